"""Tests for bridge constants and direction-dependent bytes."""

from nexys2_epp_mcp.protocol.commands import (
    BRIDGE_ACK,
    CAPABILITY_ACK,
    CAPABILITY_REQUEST,
    FINALIZE,
    MODE_SET,
    PRE_HANDSHAKE,
    RE_PROBE,
    Direction,
    Endpoint,
    VendorRequest,
    build_status_poll,
)


def test_vendor_request_values():
    """Probe request codes match the bridge firmware."""
    assert VendorRequest.STATUS == 0xE9
    assert VendorRequest.VERSION == 0xE6
    assert VendorRequest.CAPS == 0xE7


def test_endpoints():
    assert Endpoint.COMMAND == 1
    assert Endpoint.DATA_OUT == 2
    assert Endpoint.DATA_IN == 6


def test_direction_bytes():
    """Read and write differ in direction, ack, poll byte and data endpoint."""
    assert Direction.READ == 0x05
    assert Direction.WRITE == 0x04
    assert Direction.READ.ack == 0x40
    assert Direction.WRITE.ack == 0x80
    assert Direction.READ.status_poll == 0x85
    assert Direction.WRITE.status_poll == 0x84
    assert Direction.READ.data_endpoint == Endpoint.DATA_IN
    assert Direction.WRITE.data_endpoint == Endpoint.DATA_OUT


def test_fixed_frame_lengths():
    """Handshake frames have the sizes the firmware expects."""
    assert len(CAPABILITY_REQUEST) == 8
    assert len(CAPABILITY_ACK) == 6
    assert len(MODE_SET) == 4
    assert len(FINALIZE) == 4
    assert len(BRIDGE_ACK) == 2


def test_status_poll_frames():
    assert build_status_poll(Direction.READ) == bytes([0x03, 0x04, 0x85, 0x00])
    assert build_status_poll(Direction.WRITE) == bytes([0x03, 0x04, 0x84, 0x00])


def test_probe_orders():
    """The re-probe ends with a second E7 where the probe ends with E9."""
    assert [r for r, _ in PRE_HANDSHAKE] == [0xE9, 0xE6, 0xE7, 0xE9]
    assert [r for r, _ in RE_PROBE] == [0xE9, 0xE6, 0xE7, 0xE7]
    assert [len(e) for _, e in PRE_HANDSHAKE] == [4, 2, 8, 4]
