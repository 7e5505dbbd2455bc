"""Command and status frame builders and parsers.

Command frame layout (host to bridge, command endpoint)::

    +------+------+-----+------+-----+----------------------+
    | 0x08 | 0x04 | dir | 0x00 | reg | count (LE, 4 bytes)  |
    +------+------+-----+------+-----+----------------------+

- dir: 0x05 for a register read, 0x04 for a register write
- reg: EPP register address 0-255
- count: payload length in bytes

Status frame layout (bridge to host, after the payload)::

    +------+-----+---------------------------+
    | 0x05 | ack | count echo (LE, 4 bytes)  |
    +------+-----+---------------------------+

- ack: 0x40 after a read, 0x80 after a write
- count echo: must equal the command frame's count field
"""

from __future__ import annotations

from dataclasses import dataclass

from .commands import Direction

COMMAND_FRAME_SIZE = 9
STATUS_FRAME_SIZE = 6
STATUS_HEADER = 0x05
MAX_COUNT = 0xFFFFFFFF


def count_field(count: int) -> bytes:
    """Encode a transfer length as the 4-byte little-endian count field."""
    if not 0 <= count <= MAX_COUNT:
        raise ValueError(f"Count must be 0-{MAX_COUNT:#x}, got {count}")
    return count.to_bytes(4, "little")


@dataclass(frozen=True)
class CommandFrame:
    """A register read or write request."""

    direction: Direction
    reg: int
    count: int

    def to_bytes(self) -> bytes:
        if not 0 <= self.reg <= 0xFF:
            raise ValueError(f"Register must be 0-255, got {self.reg}")
        return (
            bytes([0x08, 0x04, self.direction.value, 0x00, self.reg])
            + count_field(self.count)
        )

    def __repr__(self) -> str:
        return (
            f"CommandFrame(direction={self.direction.name}, "
            f"reg=0x{self.reg:02X}, count={self.count})"
        )


def build_command_frame(direction: Direction, reg: int, count: int) -> bytes:
    """Build the 9-byte command frame for one register transaction.

    Args:
        direction: ``Direction.READ`` or ``Direction.WRITE``.
        reg: Register address 0-255.
        count: Number of payload bytes, 0 to 2**32 - 1.

    Returns:
        The frame as sent on the command endpoint.

    Raises:
        ValueError: If ``reg`` or ``count`` is out of range.
    """
    return CommandFrame(direction, reg, count).to_bytes()


@dataclass(frozen=True)
class StatusFrame:
    """A parsed status frame."""

    header: int
    ack: int
    count_echo: bytes

    def matches(self, direction: Direction, count: int) -> bool:
        """Check the frame acknowledges a ``count``-byte transfer in ``direction``."""
        return (
            self.header == STATUS_HEADER
            and self.ack == direction.ack
            and self.count_echo == count_field(count)
        )

    def __repr__(self) -> str:
        return (
            f"StatusFrame(header=0x{self.header:02X}, ack=0x{self.ack:02X}, "
            f"count_echo={self.count_echo.hex(' ')})"
        )


def parse_status_frame(data: bytes) -> StatusFrame | None:
    """Parse a status frame.

    Returns:
        A ``StatusFrame``, or ``None`` if ``data`` is not exactly 6 bytes.
    """
    if len(data) != STATUS_FRAME_SIZE:
        return None
    return StatusFrame(header=data[0], ack=data[1], count_echo=bytes(data[2:6]))
