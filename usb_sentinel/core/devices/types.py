"""
Device record type and the helpers every provider uses to build one.

A DeviceRecord is the immutable snapshot of one USB device as seen by one
scan. Providers construct records; the merge engine keys them by identity.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Optional

UNKNOWN = "Unknown"
UNKNOWN_DEVICE = "Unknown Device"
UNKNOWN_MANUFACTURER = "Unknown Manufacturer"

# bDeviceClass -> type tag
USB_CLASS_TYPES: dict[int, str] = {
    0x00: "Composite Device",
    0x03: "Human Interface Device (HID)",
    0x07: "Printer",
    0x08: "Mass Storage",
    0x09: "USB Hub",
    0x0A: "CDC Data",
    0x0E: "Video Device",
}
GENERIC_USB_TYPE = "USB Device"

_INPUT_TYPE_HINTS = ("hid", "human interface", "input")
_INPUT_PRODUCT_HINTS = (
    "keyboard",
    "mouse",
    "controller",
    "gamepad",
    "joystick",
    "touchpad",
    "webcam",
    "camera",
    "microphone",
)


def classify_usb_class(device_class: Optional[int]) -> str:
    """Map a USB device class code to a human-readable type tag."""
    if device_class is None:
        return GENERIC_USB_TYPE
    return USB_CLASS_TYPES.get(device_class & 0xFF, GENERIC_USB_TYPE)


def format_vid_pid(vendor_id: int, product_id: int) -> str:
    """Canonical ``VVVV:PPPP`` identity for devices with a vendor/product pair."""
    return f"{vendor_id & 0xFFFF:04X}:{product_id & 0xFFFF:04X}"


def stable_name_hash(name: str) -> str:
    """Short digest of ``name`` that is identical across processes."""
    return hashlib.sha1(name.encode("utf-8")).hexdigest()[:10]


def synthesize_identity(
    source_tag: str,
    serial_number: Optional[str],
    product_name: Optional[str],
) -> str:
    """Build an identity for a source that has no natively unique key.

    The serial number is preferred; without one the product name is hashed
    so that unrelated devices from the same source do not collide.
    """
    serial = _clean(serial_number)
    if serial:
        return f"{source_tag}_{serial}"
    return f"{source_tag}_{stable_name_hash(_clean(product_name) or UNKNOWN)}"


def format_capacity(size_bytes: Optional[int]) -> str:
    """Render a byte count as whole gigabytes ("Unknown" when not positive)."""
    if not size_bytes or size_bytes <= 0:
        return UNKNOWN
    return f"{size_bytes // (1024 ** 3)} GB"


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass(frozen=True)
class DeviceRecord:
    """Immutable snapshot of a single USB device.

    Absent text fields are normalized to sentinel strings on construction so
    display and merge code never has to branch on emptiness. Serial number
    and storage capacity stay ``None`` when unknown.
    """

    identity: str
    product_name: str = UNKNOWN_DEVICE
    manufacturer: str = UNKNOWN_MANUFACTURER
    serial_number: Optional[str] = None
    device_type: str = UNKNOWN
    storage_capacity: Optional[str] = None

    def __post_init__(self) -> None:
        identity = _clean(self.identity)
        if not identity:
            raise ValueError("DeviceRecord identity must not be empty")
        object.__setattr__(self, "identity", identity)
        object.__setattr__(self, "product_name", _clean(self.product_name) or UNKNOWN_DEVICE)
        object.__setattr__(self, "manufacturer", _clean(self.manufacturer) or UNKNOWN_MANUFACTURER)
        object.__setattr__(self, "serial_number", _clean(self.serial_number))
        object.__setattr__(self, "device_type", _clean(self.device_type) or UNKNOWN)
        object.__setattr__(self, "storage_capacity", _clean(self.storage_capacity))

    @property
    def is_input_device(self) -> bool:
        """Heuristic: HID class or a product name that reads like an input device."""
        device_type = self.device_type.lower()
        if any(hint in device_type for hint in _INPUT_TYPE_HINTS):
            return True
        product = self.product_name.lower()
        return any(hint in product for hint in _INPUT_PRODUCT_HINTS)

    def display_string(self) -> str:
        return f"{self.product_name} ({self.identity}) - {self.manufacturer} [{self.device_type}]"

    def log_string(self) -> str:
        parts = [
            f"{self.product_name} - Type: {self.device_type}",
            f"ID: {self.identity}",
            f"Manufacturer: {self.manufacturer}",
        ]
        if self.serial_number and self.serial_number != UNKNOWN:
            parts.append(f"Serial: {self.serial_number}")
        if self.storage_capacity:
            parts.append(f"Capacity: {self.storage_capacity}")
        return ", ".join(parts)

    def __str__(self) -> str:
        return (
            f"{self.product_name} - Type: {self.device_type}"
            f", Manufacturer: {self.manufacturer}"
            f", Serial: {self.serial_number or UNKNOWN}"
            f", Capacity: {self.storage_capacity or 'N/A'}"
            f"\nID: {self.identity}"
        )


__all__ = [
    "UNKNOWN",
    "UNKNOWN_DEVICE",
    "UNKNOWN_MANUFACTURER",
    "USB_CLASS_TYPES",
    "GENERIC_USB_TYPE",
    "DeviceRecord",
    "classify_usb_class",
    "format_vid_pid",
    "format_capacity",
    "stable_name_hash",
    "synthesize_identity",
]
