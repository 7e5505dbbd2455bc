"""USB transport for the EPP bridge."""

from .usb_connection import USBConnection, DeviceInfo
