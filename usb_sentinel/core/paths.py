"""Centralized path constants for USB Sentinel."""

from __future__ import annotations

import os
from pathlib import Path

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
PROJECT_ROOT = PACKAGE_ROOT.parent

# Default configuration shipped with the package; USB_SENTINEL_CONFIG points elsewhere
DEFAULT_CONFIG_PATH = PACKAGE_ROOT / "config.txt"
_CONFIG_ENV = os.environ.get("USB_SENTINEL_CONFIG")
CONFIG_PATH = Path(_CONFIG_ENV).expanduser() if _CONFIG_ENV else DEFAULT_CONFIG_PATH


__all__ = [
    "PACKAGE_ROOT",
    "PROJECT_ROOT",
    "DEFAULT_CONFIG_PATH",
    "CONFIG_PATH",
]
