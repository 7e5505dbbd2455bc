"""Register transaction engine.

A register read or write is a complete, self-contained conversation with
the bridge firmware. The firmware keeps no session between transactions,
so every call replays the full sequence below on the borrowed transport:

    1. probe        control reads E9, E6, E7, E9
    2. capability   W1 capability request, R1 capability ack
    3. re-probe     control reads E9, E6, E7, E7
    4. mode set     W1 mode frame, R1 ack
    5. command      W1 command frame, R1 ack
    6. payload      R6 (read) or W2 (write), ``count`` bytes
    7. status       W1 status poll, R1 status frame
    8. finalize     W1 finalize frame, R1 ack

The first deviation aborts the transaction with the step's
:class:`~.errors.TransactionError` subclass. Nothing is retried.
"""

from __future__ import annotations

import logging
from typing import Protocol

from .commands import (
    BRIDGE_ACK,
    CAPABILITY_ACK,
    CAPABILITY_REQUEST,
    FINALIZE,
    MODE_SET,
    PRE_HANDSHAKE,
    RE_PROBE,
    Direction,
    Endpoint,
    build_status_poll,
)
from .errors import (
    CommandAckFailure,
    FinalizeAckFailure,
    PayloadTransferShort,
    ProbeMismatch,
    StatusMismatch,
    TransactionError,
    TransportError,
)
from .framing import (
    STATUS_FRAME_SIZE,
    STATUS_HEADER,
    build_command_frame,
    count_field,
    parse_status_frame,
)

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """The USB primitives the engine drives.

    Implementations add endpoint direction bits, apply the transfer
    timeout, and raise :class:`~.errors.TransportError` when a transfer
    fails outright.
    """

    def control_read(self, request: int, value: int, index: int, length: int) -> bytes:
        """Vendor IN control transfer; returns the bytes received."""
        ...

    def bulk_write(self, endpoint: int, data: bytes) -> int:
        """Bulk OUT transfer; returns the number of bytes written."""
        ...

    def bulk_read(self, endpoint: int, length: int) -> bytes:
        """Bulk IN transfer of up to ``length`` bytes; returns the bytes received."""
        ...


def _compare(received: bytes, expected: bytes, error: type[TransactionError], step: int, transfer: int) -> None:
    if len(received) != len(expected):
        raise error(
            step, transfer, "length",
            f"expected {len(expected)} bytes, got {len(received)}",
        )
    if bytes(received) != expected:
        raise error(
            step, transfer, "content",
            f"expected {expected.hex(' ')}, got {bytes(received).hex(' ')}",
        )


def _control_read(transport: Transport, request: int, expected: bytes,
                  error: type[TransactionError], step: int, transfer: int) -> None:
    try:
        received = transport.control_read(request, 0x0000, 0x0000, len(expected))
    except TransportError as e:
        raise error(step, transfer, "transfer", str(e)) from e
    _compare(received, expected, error, step, transfer)


def _bulk_write(transport: Transport, endpoint: int, data: bytes,
                error: type[TransactionError], step: int, transfer: int) -> None:
    try:
        written = transport.bulk_write(endpoint, data)
    except TransportError as e:
        raise error(step, transfer, "transfer", str(e)) from e
    if written != len(data):
        raise error(
            step, transfer, "length",
            f"wrote {written} of {len(data)} bytes",
        )


def _bulk_read(transport: Transport, endpoint: int, length: int,
               error: type[TransactionError], step: int, transfer: int) -> bytes:
    try:
        return bytes(transport.bulk_read(endpoint, length))
    except TransportError as e:
        raise error(step, transfer, "transfer", str(e)) from e


def _bulk_exchange(transport: Transport, request: bytes, expected: bytes,
                   error: type[TransactionError], step: int, transfer: int) -> None:
    """Write ``request`` to the command endpoint and check the reply is ``expected``."""
    _bulk_write(transport, Endpoint.COMMAND, request, error, step, transfer)
    received = _bulk_read(transport, Endpoint.COMMAND, len(expected), error, step, transfer + 1)
    _compare(received, expected, error, step, transfer + 1)


def _handshake(transport: Transport) -> None:
    """Steps 1-4: probe, capability exchange, re-probe and mode set."""
    for transfer, (request, expected) in enumerate(PRE_HANDSHAKE, start=1):
        _control_read(transport, request, expected, ProbeMismatch, 1, transfer)
    logger.debug("Probe ok")

    _bulk_exchange(transport, CAPABILITY_REQUEST, CAPABILITY_ACK, ProbeMismatch, 2, 5)
    logger.debug("Capability exchange ok")

    for transfer, (request, expected) in enumerate(RE_PROBE, start=7):
        _control_read(transport, request, expected, ProbeMismatch, 3, transfer)
    logger.debug("Re-probe ok")

    _bulk_exchange(transport, MODE_SET, BRIDGE_ACK, ProbeMismatch, 4, 11)
    logger.debug("Mode set ok")


def _check_status(transport: Transport, direction: Direction, count: int) -> None:
    """Step 7: poll the bridge and validate the status frame against the command."""
    _bulk_write(transport, Endpoint.COMMAND, build_status_poll(direction), StatusMismatch, 7, 16)
    data = _bulk_read(transport, Endpoint.COMMAND, STATUS_FRAME_SIZE, StatusMismatch, 7, 17)

    status = parse_status_frame(data)
    if status is None:
        raise StatusMismatch(
            7, 17, "length",
            f"expected {STATUS_FRAME_SIZE} bytes, got {len(data)}",
        )
    if status.matches(direction, count):
        logger.debug("Status ok: %r", status)
        return

    if status.header != STATUS_HEADER:
        raise StatusMismatch(7, 17, "content", f"bad header 0x{status.header:02X}")
    if status.ack != direction.ack:
        raise StatusMismatch(
            7, 17, "ack",
            f"expected 0x{direction.ack:02X}, got 0x{status.ack:02X}",
        )
    raise StatusMismatch(
        7, 17, "echo",
        f"expected {count_field(count).hex(' ')}, got {status.count_echo.hex(' ')}",
    )


def _transact(transport: Transport, direction: Direction, reg: int, count: int,
              payload: bytes = b"") -> bytes:
    command = build_command_frame(direction, reg, count)
    logger.debug(
        "Register %s: reg=0x%02X count=%d",
        direction.name.lower(), reg, count,
    )

    try:
        _handshake(transport)

        _bulk_exchange(transport, command, BRIDGE_ACK, CommandAckFailure, 5, 13)
        logger.debug("Command accepted: %s", command.hex(" "))

        if direction is Direction.READ:
            try:
                data = bytes(transport.bulk_read(direction.data_endpoint, count))
            except TransportError as e:
                raise PayloadTransferShort(6, 15, "transfer", str(e)) from e
            moved = len(data)
        else:
            data = b""
            try:
                moved = transport.bulk_write(direction.data_endpoint, payload)
            except TransportError as e:
                raise PayloadTransferShort(6, 15, "transfer", str(e)) from e
        if moved != count:
            raise PayloadTransferShort(
                6, 15, "length", f"expected {count} bytes, moved {moved}",
            )

        _check_status(transport, direction, count)

        _bulk_exchange(transport, FINALIZE, BRIDGE_ACK, FinalizeAckFailure, 8, 18)
    except TransactionError as e:
        logger.warning("Register 0x%02X %s failed: %s", reg, direction.name.lower(), e)
        raise

    logger.debug("Register %s complete", direction.name.lower())
    return data


def read_register(transport: Transport, reg: int, count: int) -> bytes:
    """Read ``count`` bytes from an EPP register.

    Args:
        transport: An opened transport (see :class:`Transport`).
        reg: Register address 0-255.
        count: Number of bytes to read. The bridge must deliver them in a
            single bulk transfer; no chunking is performed.

    Returns:
        Exactly ``count`` bytes.

    Raises:
        ValueError: If ``reg`` or ``count`` is out of range.
        TransactionError: If any step of the exchange fails. No partial
            data is returned.
    """
    return _transact(transport, Direction.READ, reg, count)


def write_register(transport: Transport, reg: int, data: bytes, count: int | None = None) -> None:
    """Write ``data`` to an EPP register.

    Success is confirmed by the bridge's status frame only; the register is
    not read back.

    Args:
        transport: An opened transport (see :class:`Transport`).
        reg: Register address 0-255.
        data: Payload, sent verbatim in one bulk transfer.
        count: Optional explicit length; must equal ``len(data)``.

    Raises:
        ValueError: If ``reg`` is out of range or ``count`` disagrees with ``data``.
        TransactionError: If any step of the exchange fails.
    """
    data = bytes(data)
    if count is None:
        count = len(data)
    elif count != len(data):
        raise ValueError(f"Count {count} does not match payload length {len(data)}")
    _transact(transport, Direction.WRITE, reg, count, data)
