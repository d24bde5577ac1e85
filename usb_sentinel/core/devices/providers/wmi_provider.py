"""
Windows Management Instrumentation provider.

Queries USB disk drives through ``wmic`` and parses its ``/format:list``
output. WMI has broad coverage of mass-storage devices (including capacity)
but no vendor/product pair, so identities are synthesized from the serial
number or, failing that, a hash of the model name.
"""

from __future__ import annotations

import shutil
import subprocess
import sys
from typing import Iterable, List, Optional

from usb_sentinel.core.errors import ProviderError
from ..types import DeviceRecord, UNKNOWN, format_capacity, synthesize_identity
from .base import DeviceSourceProvider

WMIC_QUERY = [
    "diskdrive",
    "where",
    "InterfaceType='USB'",
    "get",
    "DeviceID,Model,SerialNumber,Size",
    "/format:list",
]
DEFAULT_TIMEOUT = 5.0
MASS_STORAGE_TYPE = "Mass Storage"

# Keep wmic from flashing a console window
_SUBPROCESS_FLAGS = subprocess.CREATE_NO_WINDOW if sys.platform == "win32" else 0


def parse_wmic_diskdrive(lines: Iterable[str], source_tag: str = "WMI") -> List[DeviceRecord]:
    """Parse ``wmic diskdrive ... /format:list`` output into records.

    Each drive is a block of ``Key=Value`` lines. ``Size`` is the last key of
    a block; a record is emitted when it is read and both DeviceID and Model
    were seen.
    """
    devices: List[DeviceRecord] = []
    device_id: Optional[str] = None
    model: Optional[str] = None
    serial: Optional[str] = None

    for raw_line in lines:
        line = raw_line.strip()
        if not line:
            continue

        key, sep, value = line.partition("=")
        if not sep:
            continue
        value = value.strip()

        if key == "DeviceID":
            device_id = value
        elif key == "Model":
            model = value
        elif key == "SerialNumber":
            serial = value
        elif key == "Size":
            try:
                size_bytes = int(value)
            except ValueError:
                size_bytes = 0

            if device_id and model:
                devices.append(DeviceRecord(
                    identity=synthesize_identity(source_tag, serial, model),
                    product_name=model,
                    manufacturer=UNKNOWN,
                    serial_number=serial,
                    device_type=MASS_STORAGE_TYPE,
                    storage_capacity=format_capacity(size_bytes),
                ))

            device_id = model = serial = None

    return devices


class WMIProvider(DeviceSourceProvider):
    """USB disk drives as reported by ``wmic``."""

    name = "wmi"
    source_tag = "WMI"

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, executable: Optional[str] = None):
        super().__init__()
        self._timeout = timeout
        self._executable = executable

    def open(self) -> None:
        if self._executable is None:
            self._executable = shutil.which("wmic")
        if self._executable is None:
            self.logger.info("wmic not available; WMI provider disabled")

    def scan(self) -> List[DeviceRecord]:
        if self._executable is None:
            return []

        try:
            result = subprocess.run(
                [self._executable, *WMIC_QUERY],
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self._timeout,
                check=False,
                creationflags=_SUBPROCESS_FLAGS,
            )
        except subprocess.TimeoutExpired as e:
            raise ProviderError(self.name, f"wmic timed out after {self._timeout:.1f}s") from e
        except OSError as e:
            raise ProviderError(self.name, f"wmic could not be started: {e}") from e

        if result.returncode != 0:
            raise ProviderError(
                self.name,
                f"wmic exited with {result.returncode}: {result.stderr.strip()}",
            )

        return parse_wmic_diskdrive(result.stdout.splitlines(), self.source_tag)


__all__ = ["WMIProvider", "parse_wmic_diskdrive", "WMIC_QUERY"]
