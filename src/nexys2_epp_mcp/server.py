"""MCP server entry point for the Nexys2 EPP bridge.

Exposes register read/write tools via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from .protocol.engine import read_register as _read_register
from .protocol.engine import write_register as _write_register
from .protocol.errors import TransactionError
from .transport.usb_connection import PRODUCT_ID, VENDOR_ID, USBConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "nexys2-epp",
    instructions="MCP server for register access to a Nexys2 FPGA board over its USB EPP bridge",
)

# Global connection state
_connection: USBConnection | None = None


def _get_connection() -> USBConnection:
    """Get the active USB connection, raising if not connected."""
    if _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    return _connection


def _transaction_error(e: TransactionError) -> dict[str, Any]:
    return {
        "error": str(e),
        "step": e.step,
        "transfer": e.transfer,
        "reason": e.reason,
    }


def _check_register(reg: int) -> dict[str, Any] | None:
    if not 0 <= reg <= 0xFF:
        return {"error": "Register must be 0-255"}
    return None


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(vendor_id: int = VENDOR_ID, product_id: int = PRODUCT_ID) -> dict[str, Any]:
    """Open the USB connection to the Nexys2 EPP bridge.

    Args:
        vendor_id: USB vendor ID (default 0x1443).
        product_id: USB product ID (default 0x0005).
    """
    global _connection
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "product": _connection.device_info.product,
        }

    _connection = USBConnection(vendor_id=vendor_id, product_id=product_id)
    info = _connection.open()

    return {
        "connected": True,
        "product": info.product,
        "manufacturer": info.manufacturer,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the USB connection to the board."""
    global _connection
    if _connection is None:
        return {"disconnected": True}
    _connection.close()
    _connection = None
    return {"disconnected": True}


@mcp.tool()
def get_device_info() -> dict[str, Any]:
    """Report the USB descriptor strings of the connected board."""
    info = _get_connection().device_info
    return {
        "vendor_id": f"{info.vendor_id:#06x}",
        "product_id": f"{info.product_id:#06x}",
        "manufacturer": info.manufacturer,
        "product": info.product,
        "serial_number": info.serial_number,
    }


# ─── REGISTER TOOLS ──────────────────────────────────────────────────

@mcp.tool()
def read_register(reg: int, count: int = 1) -> dict[str, Any]:
    """Read bytes from an EPP register.

    Args:
        reg: Register address (0-255).
        count: Number of bytes to read.
    """
    error = _check_register(reg)
    if error:
        return error
    if not 0 <= count <= 0xFFFFFFFF:
        return {"error": "Count must fit in 32 bits"}

    conn = _get_connection()
    try:
        data = _read_register(conn, reg, count)
    except TransactionError as e:
        return _transaction_error(e)

    return {"reg": reg, "count": len(data), "data": data.hex(" ")}


@mcp.tool()
def write_register(reg: int, data_hex: str) -> dict[str, Any]:
    """Write bytes to an EPP register.

    Args:
        reg: Register address (0-255).
        data_hex: Payload as hex, e.g. "de ad be ef".
    """
    error = _check_register(reg)
    if error:
        return error
    try:
        data = bytes.fromhex(data_hex)
    except ValueError:
        return {"error": f"Invalid hex data: {data_hex!r}"}

    conn = _get_connection()
    try:
        _write_register(conn, reg, data)
    except TransactionError as e:
        return _transaction_error(e)

    return {"written": True, "reg": reg, "count": len(data)}


@mcp.tool()
def read_register_to_file(reg: int, count: int, output_path: str) -> dict[str, Any]:
    """Read bytes from an EPP register and save them to a file.

    Args:
        reg: Register address (0-255).
        count: Number of bytes to read.
        output_path: File to write the data to.
    """
    error = _check_register(reg)
    if error:
        return error
    if not 0 <= count <= 0xFFFFFFFF:
        return {"error": "Count must fit in 32 bits"}

    conn = _get_connection()
    try:
        data = _read_register(conn, reg, count)
    except TransactionError as e:
        return _transaction_error(e)

    path = Path(output_path)
    path.write_bytes(data)
    return {"path": str(path), "reg": reg, "count": len(data)}


@mcp.tool()
def write_register_from_file(
    reg: int, input_path: str, count: int | None = None
) -> dict[str, Any]:
    """Write the contents of a file to an EPP register.

    Args:
        reg: Register address (0-255).
        input_path: File holding the payload.
        count: Number of bytes to send (default: the whole file).
    """
    error = _check_register(reg)
    if error:
        return error
    path = Path(input_path)
    if not path.exists():
        return {"error": f"File not found: {input_path}"}

    data = path.read_bytes()
    if count is not None:
        if not 0 <= count <= len(data):
            return {
                "error": f"File holds {len(data)} bytes, {count} requested",
            }
        data = data[:count]

    conn = _get_connection()
    try:
        _write_register(conn, reg, data)
    except TransactionError as e:
        return _transaction_error(e)

    return {"written": True, "reg": reg, "count": len(data)}


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
