"""Root logging setup for the usb-sentinel command line.

Console output goes to stdout next to the event lines; ``log_file`` adds a
size-capped rotating file so a watcher left running for days does not fill
the disk. Sizes come from ``log_max_bytes`` / ``log_backup_count`` in the
config file.
"""

from __future__ import annotations

import contextlib
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, List, Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LOG_MAX_BYTES = 500 * 1024
DEFAULT_LOG_BACKUP_COUNT = 2

LOG_LEVELS: Dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

# python-libusb1 logs every failed descriptor read; only errors are useful
QUIET_LOGGERS = ("usb1",)


def parse_level(level: Union[int, str]) -> int:
    """Map a level name from the CLI or config file to its numeric value."""
    if isinstance(level, int):
        return level
    try:
        return LOG_LEVELS[level.strip().lower()]
    except KeyError:
        raise ValueError(
            f"Unknown log level '{level}' (expected one of: {', '.join(LOG_LEVELS)})"
        ) from None


def build_handlers(
    level: int,
    *,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = DEFAULT_LOG_MAX_BYTES,
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
) -> List[logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    handlers: List[logging.Handler] = []

    if console:
        handlers.append(logging.StreamHandler(sys.stdout))

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_path,
            maxBytes=max(max_bytes, 0),
            backupCount=max(backup_count, 0),
            encoding="utf-8",
        ))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = DEFAULT_LOG_MAX_BYTES,
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
) -> None:
    """Replace the root handlers with console and/or rotating file output.

    Raises:
        ValueError: ``level`` is not a known level name.
    """
    numeric_level = parse_level(level)
    root = logging.getLogger()

    for handler in list(root.handlers):
        root.removeHandler(handler)
        with contextlib.suppress(Exception):
            handler.close()

    for handler in build_handlers(
        numeric_level,
        console=console,
        log_file=log_file,
        max_bytes=max_bytes,
        backup_count=backup_count,
    ):
        root.addHandler(handler)

    root.setLevel(numeric_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR)


__all__ = [
    "DEFAULT_LOG_BACKUP_COUNT",
    "DEFAULT_LOG_MAX_BYTES",
    "LOG_DATEFMT",
    "LOG_FORMAT",
    "LOG_LEVELS",
    "QUIET_LOGGERS",
    "build_handlers",
    "configure_logging",
    "parse_level",
]
