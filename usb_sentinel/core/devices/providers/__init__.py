"""
Enumeration backends and the factory that builds them from configuration.

Order matters: providers are merged left to right and later providers win
identity conflicts, so list coarse sources first.
"""

from typing import Callable, Dict, Iterable, List

from usb_sentinel.core.settings import DEFAULT_PROVIDERS

from .base import DeviceSourceProvider
from .libusb_provider import LibUSBProvider
from .serial_provider import SerialPortProvider
from .wmi_provider import WMIProvider, parse_wmic_diskdrive

DEFAULT_PROVIDER_ORDER = DEFAULT_PROVIDERS

PROVIDER_FACTORIES: Dict[str, Callable[..., DeviceSourceProvider]] = {
    WMIProvider.name: WMIProvider,
    SerialPortProvider.name: SerialPortProvider,
    LibUSBProvider.name: LibUSBProvider,
}


def build_providers(
    names: Iterable[str] = DEFAULT_PROVIDER_ORDER,
    *,
    wmi_timeout: float | None = None,
) -> List[DeviceSourceProvider]:
    """Instantiate providers by name, preserving the given priority order."""
    providers: List[DeviceSourceProvider] = []
    seen: set[str] = set()

    for raw_name in names:
        name = raw_name.strip().lower()
        if not name or name in seen:
            continue
        factory = PROVIDER_FACTORIES.get(name)
        if factory is None:
            known = ", ".join(sorted(PROVIDER_FACTORIES))
            raise ValueError(f"Unknown provider '{raw_name}' (known: {known})")
        if name == WMIProvider.name and wmi_timeout is not None:
            providers.append(WMIProvider(timeout=wmi_timeout))
        else:
            providers.append(factory())
        seen.add(name)

    return providers


__all__ = [
    "DEFAULT_PROVIDER_ORDER",
    "PROVIDER_FACTORIES",
    "DeviceSourceProvider",
    "LibUSBProvider",
    "SerialPortProvider",
    "WMIProvider",
    "build_providers",
    "parse_wmic_diskdrive",
]
