"""USB Sentinel - reconciled USB device connect/disconnect monitoring."""

from __future__ import annotations

from importlib import metadata
from typing import Optional, Sequence

from .core.devices import (
    CallbackListener,
    DeviceEventListener,
    DeviceRecord,
    USBMonitor,
    build_providers,
)

try:
    __version__ = metadata.version("usb-sentinel")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev
    __version__ = "0.0.0"


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command-line watcher."""
    from .app.cli import run as run_cli

    return run_cli(list(argv) if argv is not None else None)


__all__ = [
    "__version__",
    "CallbackListener",
    "DeviceEventListener",
    "DeviceRecord",
    "USBMonitor",
    "build_providers",
    "run",
]
