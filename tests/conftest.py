"""Shared fixtures: a simulated EPP bridge speaking the register protocol."""

from __future__ import annotations

import pytest

from nexys2_epp_mcp.transport.usb_connection import DeviceInfo

_CONTROL_RESPONSES = {
    0xE9: bytes([0x05, 0x00, 0x10, 0x00]),
    0xE6: bytes([0x03, 0x03]),
    0xE7: bytes([0x0D, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00]),
}
_CAPABILITY_REQUEST = bytes([0x07, 0x00, 0x03, 0x00, 0x71, 0x7F, 0x12, 0x01])
_CAPABILITY_ACK = bytes([0x05, 0x00, 0x09, 0x81, 0xED, 0xFE])
_ACK = bytes([0x01, 0x00])


class SimulatedBridge:
    """In-memory stand-in for the bridge firmware.

    Stores written payloads per register and serves them back on reads.
    Every transfer is numbered from 1 in the order the host issues it;
    transfers listed in ``corrupt`` get a damaged reply: the last byte of
    a response has its low bit flipped, a payload read loses its last
    byte, and a write reports one byte fewer than it was given.
    """

    def __init__(self, corrupt=(), status_ack=None, status_header=0x05, registers=None):
        self.corrupt = set(corrupt)
        self.status_ack = status_ack
        self.status_header = status_header
        self.registers: dict[int, bytes] = dict(registers or {})
        self.log: list[tuple] = []
        self.connected = True
        self.opened = False
        self.closed = False
        self.device_info = DeviceInfo(manufacturer="Digilent", product="Nexys2")
        self._pending: list[bytes] = []
        self._command: tuple[int, int, int] | None = None

    # Connection surface used by the CLI and the server

    def open(self):
        self.opened = True
        self.connected = True
        return self.device_info

    def close(self):
        self.closed = True
        self.connected = False

    # Transport primitives

    def _damaged(self) -> bool:
        return len(self.log) in self.corrupt

    @staticmethod
    def _flip(data: bytes) -> bytes:
        if not data:
            return b"\x01"
        return data[:-1] + bytes([data[-1] ^ 0x01])

    def control_read(self, request, value, index, length):
        self.log.append(("control", request, value, index, length))
        data = _CONTROL_RESPONSES.get(request, b"")[:length]
        return self._flip(data) if self._damaged() else data

    def bulk_write(self, endpoint, data):
        data = bytes(data)
        self.log.append(("write", endpoint, data))
        if endpoint == 1:
            self._handle_command(data)
        elif endpoint == 2 and self._command is not None:
            self.registers[self._command[1]] = data
        return len(data) - 1 if self._damaged() and data else len(data)

    def bulk_read(self, endpoint, length):
        self.log.append(("read", endpoint, length))
        if endpoint == 6:
            reg = self._command[1] if self._command else 0
            stored = self.registers.get(reg, b"")
            data = (stored + bytes(length))[:length]
            return data[:-1] if self._damaged() else data

        data = self._pending.pop(0) if self._pending else b""
        return self._flip(data) if self._damaged() else data

    def _handle_command(self, data: bytes) -> None:
        if data == _CAPABILITY_REQUEST:
            self._pending.append(_CAPABILITY_ACK)
        elif len(data) == 9 and data[:2] == b"\x08\x04":
            self._command = (data[2], data[4], int.from_bytes(data[5:9], "little"))
            self._pending.append(_ACK)
        elif len(data) == 4 and data[:2] == b"\x03\x04" and data[2] in (0x84, 0x85):
            ack = 0x40 if data[2] == 0x85 else 0x80
            if self.status_ack is not None:
                ack = self.status_ack
            count = self._command[2] if self._command else 0
            self._pending.append(bytes([self.status_header, ack]) + count.to_bytes(4, "little"))
        elif len(data) == 4 and data[:2] == b"\x03\x04":
            self._pending.append(_ACK)


@pytest.fixture
def make_bridge():
    """Factory for simulated bridges with optional fault injection."""
    return SimulatedBridge


@pytest.fixture
def bridge():
    return SimulatedBridge()
