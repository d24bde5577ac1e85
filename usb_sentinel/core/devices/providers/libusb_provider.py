"""
Native descriptor provider backed by libusb (python-libusb1).

This is the high-fidelity source: it sees every device on the bus and reads
vendor/product/serial strings straight from the device descriptors. It holds
a libusb context between scans, opened in ``open()`` and exited in
``close()``.
"""

from __future__ import annotations

import threading
from typing import List, Optional

import usb1

from ..types import (
    DeviceRecord,
    GENERIC_USB_TYPE,
    UNKNOWN,
    UNKNOWN_MANUFACTURER,
    classify_usb_class,
    format_vid_pid,
)
from .base import DeviceSourceProvider

_CLOSE_WAIT_SECONDS = 2.0


class LibUSBProvider(DeviceSourceProvider):
    """Enumerates every device on the bus through a libusb context."""

    name = "libusb"
    source_tag = "USB"

    def __init__(self, context_factory=usb1.USBContext):
        super().__init__()
        self._context_factory = context_factory
        self._context: Optional[usb1.USBContext] = None
        self._lock = threading.Lock()
        self._close_pending = False

    @property
    def is_open(self) -> bool:
        return self._context is not None

    def open(self) -> None:
        with self._lock:
            if self._context is not None:
                return
            try:
                context = self._context_factory()
                context.open()
            except usb1.USBError as e:
                # Scans return nothing until the next open()
                self.logger.error("Unable to initialize libusb: %s", e)
                return
            self._context = context
            self._close_pending = False
            self.logger.info("libusb initialized")

    def close(self) -> None:
        if not self._lock.acquire(timeout=_CLOSE_WAIT_SECONDS):
            # A scan is still running; it exits the context when it finishes.
            self._close_pending = True
            self.logger.warning("libusb scan still in progress; deferring context exit")
            return
        try:
            self._exit_context()
        finally:
            self._lock.release()

    def _exit_context(self) -> None:
        context, self._context = self._context, None
        self._close_pending = False
        if context is None:
            return
        try:
            context.close()
        except usb1.USBError as e:
            self.logger.error("Error exiting libusb context: %s", e)
        else:
            self.logger.info("libusb context released")

    def scan(self) -> List[DeviceRecord]:
        with self._lock:
            try:
                if self._context is None:
                    return []
                return self._enumerate(self._context)
            finally:
                if self._close_pending:
                    self._exit_context()

    def _enumerate(self, context: usb1.USBContext) -> List[DeviceRecord]:
        devices: List[DeviceRecord] = []
        for usb_device in context.getDeviceList(skip_on_error=True):
            try:
                record = self._build_record(usb_device)
            except usb1.USBError as e:
                self.logger.debug("Skipping unreadable device: %s", e)
                continue
            finally:
                usb_device.close()
            devices.append(record)
        return devices

    def _build_record(self, usb_device: usb1.USBDevice) -> DeviceRecord:
        product = self._read_string(usb_device.getProduct)
        manufacturer = self._read_string(usb_device.getManufacturer)
        serial = self._read_string(usb_device.getSerialNumber)

        return DeviceRecord(
            identity=format_vid_pid(usb_device.getVendorID(), usb_device.getProductID()),
            product_name=product if product != UNKNOWN else GENERIC_USB_TYPE,
            manufacturer=manufacturer if manufacturer != UNKNOWN else UNKNOWN_MANUFACTURER,
            serial_number=serial if serial != UNKNOWN else None,
            device_type=classify_usb_class(usb_device.getDeviceClass()),
            storage_capacity=None,
        )

    @staticmethod
    def _read_string(getter) -> str:
        # String descriptors need the device opened; permission errors are common
        try:
            value = getter()
        except usb1.USBError:
            return UNKNOWN
        return value or UNKNOWN


__all__ = ["LibUSBProvider"]
