"""Shared infrastructure: logging, configuration, errors and asyncio helpers."""

from .errors import MonitorStateError, ProviderError, USBSentinelError
from .logging_config import configure_logging
from .logging_utils import StructuredLogger, ensure_structured_logger, get_module_logger

__all__ = [
    "MonitorStateError",
    "ProviderError",
    "USBSentinelError",
    "configure_logging",
    "StructuredLogger",
    "ensure_structured_logger",
    "get_module_logger",
]
