"""pyusb connection to the Nexys2 EPP bridge.

The board enumerates as a vendor-specific device; we use configuration 1,
interface 0, vendor IN control requests on endpoint 0, and bulk endpoints
1 (command, both directions), 2 (payload OUT) and 6 (payload IN).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..protocol.errors import TransportError

logger = logging.getLogger(__name__)

VENDOR_ID = 0x1443
PRODUCT_ID = 0x0005
CONFIGURATION = 1
INTERFACE = 0
TIMEOUT_MS = 5000

# USB_ENDPOINT_IN | USB_TYPE_VENDOR | USB_RECIP_DEVICE
VENDOR_IN_REQUEST_TYPE = 0xC0
ENDPOINT_IN = 0x80


@dataclass
class DeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int = VENDOR_ID
    product_id: int = PRODUCT_ID
    manufacturer: str = ""
    product: str = ""
    serial_number: str = ""


class USBConnection:
    """Manages the USB connection to the EPP bridge.

    Implements the engine's transport primitives, so an open connection
    can be passed straight to ``read_register``/``write_register``.

    Usage::

        conn = USBConnection()
        conn.open()
        data = read_register(conn, 0x02, 4)
        conn.close()
    """

    def __init__(
        self,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
        timeout_ms: int = TIMEOUT_MS,
    ) -> None:
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._timeout_ms = timeout_ms
        self._device = None
        self._connected = False
        self._device_info = DeviceInfo(vendor_id=vendor_id, product_id=product_id)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    def open(self) -> DeviceInfo:
        """Find the board, select its configuration and claim interface 0.

        Returns:
            DeviceInfo with USB descriptor information.

        Raises:
            ConnectionError: If the device cannot be found or claimed.
        """
        import usb.core
        import usb.util

        try:
            dev = usb.core.find(idVendor=self._vendor_id, idProduct=self._product_id)
        except (usb.core.USBError, ValueError) as e:
            # NoBackendError (no libusb) is a ValueError
            raise ConnectionError(f"USB backend unavailable: {e}") from e
        if dev is None:
            raise ConnectionError(
                f"Could not find EPP bridge "
                f"({self._vendor_id:#06x}:{self._product_id:#06x}). "
                f"Ensure the board is connected and you have permissions."
            )

        try:
            try:
                if dev.is_kernel_driver_active(INTERFACE):
                    dev.detach_kernel_driver(INTERFACE)
                    logger.debug("Detached kernel driver from interface %d", INTERFACE)
            except NotImplementedError:
                # Not supported by the backend on this platform
                pass
            dev.set_configuration(CONFIGURATION)
            usb.util.claim_interface(dev, INTERFACE)
        except (usb.core.USBError, ValueError) as e:
            usb.util.dispose_resources(dev)
            raise ConnectionError(
                f"Could not open interface {INTERFACE} of "
                f"{self._vendor_id:#06x}:{self._product_id:#06x}: {e}"
            ) from e

        self._device = dev
        self._connected = True
        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=self._product_id,
            manufacturer=self._get_string(dev, dev.iManufacturer),
            product=self._get_string(dev, dev.iProduct),
            serial_number=self._get_string(dev, dev.iSerialNumber),
        )

        logger.info(
            "Connected to %04x:%04x: %s %s",
            self._vendor_id,
            self._product_id,
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    @staticmethod
    def _get_string(dev, index: int) -> str:
        import usb.core
        import usb.util

        if not index:
            return ""
        try:
            return usb.util.get_string(dev, index) or ""
        except (usb.core.USBError, ValueError) as e:
            logger.debug("Could not read string descriptor %d: %s", index, e)
            return ""

    def close(self) -> None:
        """Release the interface and close the device."""
        if not self._connected:
            return

        import usb.core
        import usb.util

        try:
            usb.util.release_interface(self._device, INTERFACE)
        except usb.core.USBError as e:
            logger.warning("Error releasing interface: %s", e)
        finally:
            usb.util.dispose_resources(self._device)
            self._device = None
            self._connected = False
            logger.info("Disconnected")

    def _require_device(self):
        if not self._connected:
            raise ConnectionError("Not connected to device")
        return self._device

    def control_read(self, request: int, value: int, index: int, length: int) -> bytes:
        """Issue a vendor IN control transfer.

        Raises:
            ConnectionError: If not connected.
            TransportError: If the transfer fails or times out.
        """
        import usb.core

        dev = self._require_device()
        try:
            data = dev.ctrl_transfer(
                VENDOR_IN_REQUEST_TYPE, request, value, index, length,
                timeout=self._timeout_ms,
            )
        except usb.core.USBError as e:
            raise TransportError(f"Control read 0x{request:02X} failed: {e}") from e
        logger.debug("C0 %02X -> %s", request, bytes(data).hex(" "))
        return bytes(data)

    def bulk_write(self, endpoint: int, data: bytes) -> int:
        """Write ``data`` to bulk OUT ``endpoint``.

        Returns:
            Number of bytes written.

        Raises:
            ConnectionError: If not connected.
            TransportError: If the transfer fails or times out.
        """
        import usb.core

        dev = self._require_device()
        try:
            written = dev.write(endpoint & 0x7F, data, timeout=self._timeout_ms)
        except usb.core.USBError as e:
            raise TransportError(f"Bulk write to EP{endpoint} failed: {e}") from e
        logger.debug("W%d: %d bytes", endpoint, written)
        return written

    def bulk_read(self, endpoint: int, length: int) -> bytes:
        """Read up to ``length`` bytes from bulk IN ``endpoint``.

        Raises:
            ConnectionError: If not connected.
            TransportError: If the transfer fails or times out.
        """
        import usb.core

        dev = self._require_device()
        try:
            data = dev.read(ENDPOINT_IN | endpoint, length, timeout=self._timeout_ms)
        except usb.core.USBError as e:
            raise TransportError(f"Bulk read from EP{endpoint} failed: {e}") from e
        logger.debug("R%d: %d bytes", endpoint, len(data))
        return bytes(data)
