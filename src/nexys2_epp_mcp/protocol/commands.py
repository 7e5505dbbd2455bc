"""Bridge constants: request codes, endpoints, and the fixed handshake messages.

Every register transaction replays the same conversation with the bridge
firmware. Only the command frame, the payload, the status-poll byte and the
status ack byte depend on the transaction; everything else here is fixed.
"""

from __future__ import annotations

from enum import IntEnum


class VendorRequest(IntEnum):
    """Vendor IN control request codes used by the probe sequence."""

    STATUS = 0xE9
    VERSION = 0xE6
    CAPS = 0xE7


class Endpoint(IntEnum):
    """Bulk endpoint numbers (direction bits are added by the transport)."""

    COMMAND = 1
    DATA_OUT = 2
    DATA_IN = 6


class Direction(IntEnum):
    """Transaction direction, valued as the command frame's direction byte."""

    READ = 0x05
    WRITE = 0x04

    @property
    def ack(self) -> int:
        """Status frame ack byte expected for this direction."""
        return 0x40 if self is Direction.READ else 0x80

    @property
    def status_poll(self) -> int:
        """Request byte of the status-poll frame."""
        return 0x85 if self is Direction.READ else 0x84

    @property
    def data_endpoint(self) -> Endpoint:
        """Bulk endpoint carrying the payload."""
        return Endpoint.DATA_IN if self is Direction.READ else Endpoint.DATA_OUT


# Probe responses (control reads)
PROBE_E9_RESPONSE = bytes([0x05, 0x00, 0x10, 0x00])
PROBE_E6_RESPONSE = bytes([0x03, 0x03])
PROBE_E7_RESPONSE = bytes([0x0D, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00])

# Capability exchange (bulk, command endpoint)
CAPABILITY_REQUEST = bytes([0x07, 0x00, 0x03, 0x00, 0x71, 0x7F, 0x12, 0x01])
CAPABILITY_ACK = bytes([0x05, 0x00, 0x09, 0x81, 0xED, 0xFE])

MODE_SET = bytes([0x03, 0x04, 0x00, 0x00])
FINALIZE = bytes([0x03, 0x04, 0x01, 0x00])

# Two-byte ack shared by mode set, command dispatch and finalize
BRIDGE_ACK = bytes([0x01, 0x00])

PRE_HANDSHAKE: tuple[tuple[VendorRequest, bytes], ...] = (
    (VendorRequest.STATUS, PROBE_E9_RESPONSE),
    (VendorRequest.VERSION, PROBE_E6_RESPONSE),
    (VendorRequest.CAPS, PROBE_E7_RESPONSE),
    (VendorRequest.STATUS, PROBE_E9_RESPONSE),
)

RE_PROBE: tuple[tuple[VendorRequest, bytes], ...] = (
    (VendorRequest.STATUS, PROBE_E9_RESPONSE),
    (VendorRequest.VERSION, PROBE_E6_RESPONSE),
    (VendorRequest.CAPS, PROBE_E7_RESPONSE),
    (VendorRequest.CAPS, PROBE_E7_RESPONSE),
)


def build_status_poll(direction: Direction) -> bytes:
    """Build the 4-byte frame asking the bridge for the transfer status."""
    return bytes([0x03, 0x04, direction.status_poll, 0x00])
