"""
USB serial port provider (pyserial).

Lists CDC/serial adapters through ``serial.tools.list_ports``. Ports
without a USB vendor/product pair (built-in UARTs, Bluetooth ports) are
skipped. Identities use the same ``VVVV:PPPP`` form as the libusb
provider, so when both see an adapter the libusb record supersedes this one.
"""

from __future__ import annotations

from typing import List

import serial.tools.list_ports

from ..types import DeviceRecord, format_vid_pid
from .base import DeviceSourceProvider

SERIAL_DEVICE_TYPE = "CDC Data"


class SerialPortProvider(DeviceSourceProvider):
    """USB-attached serial ports."""

    name = "serial"
    source_tag = "SER"

    def scan(self) -> List[DeviceRecord]:
        devices: List[DeviceRecord] = []

        for port_info in serial.tools.list_ports.comports():
            if port_info.vid is None or port_info.pid is None:
                continue

            product = port_info.product or port_info.description
            # pyserial reports "n/a" when it has no description
            if product and product.lower() == "n/a":
                product = None

            devices.append(DeviceRecord(
                identity=format_vid_pid(port_info.vid, port_info.pid),
                product_name=product,
                manufacturer=port_info.manufacturer,
                serial_number=port_info.serial_number,
                device_type=SERIAL_DEVICE_TYPE,
            ))

        return devices


__all__ = ["SerialPortProvider"]
