"""
Device source provider contract.

Every enumeration backend answers one question: which devices are visible
right now? The monitor calls ``scan_safely()`` once per poll cycle, which
guarantees that a failing backend looks exactly like a backend that saw
nothing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from usb_sentinel.core.logging_utils import get_module_logger
from ..types import DeviceRecord


class DeviceSourceProvider(ABC):
    """
    Base class for enumeration backends.

    Subclasses implement ``scan()`` and may override ``open()`` / ``close()``
    when they hold a native resource between scans. ``source_tag`` prefixes
    identities the provider has to synthesize.
    """

    name: str = "provider"
    source_tag: str = "SRC"

    def __init__(self):
        self.logger = get_module_logger(f"Provider.{self.name}")

    def open(self) -> None:
        """Acquire provider-held resources. Called once per monitor start."""

    def close(self) -> None:
        """Release provider-held resources. Called once per monitor stop."""

    @abstractmethod
    def scan(self) -> List[DeviceRecord]:
        """Return the devices currently visible to this source.

        May raise; callers outside the provider package go through
        ``scan_safely()``.
        """

    def scan_safely(self) -> List[DeviceRecord]:
        """Run ``scan()`` and convert any failure into an empty result."""
        try:
            devices = list(self.scan())
        except Exception as e:
            self.logger.error("Scan failed: %s", e)
            return []
        self.logger.debug("Scan found %d device(s)", len(devices))
        return devices

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


__all__ = ["DeviceSourceProvider"]
