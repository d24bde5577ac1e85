"""Monitor settings loaded from the ``key = value`` config file."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

from .config_manager import ConfigManager, get_config_manager
from .logging_config import DEFAULT_LOG_BACKUP_COUNT, DEFAULT_LOG_MAX_BYTES, LOG_LEVELS
from .logging_utils import get_module_logger
from .paths import CONFIG_PATH

logger = get_module_logger("Settings")

DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_SHUTDOWN_TIMEOUT = 1.0
DEFAULT_WMI_TIMEOUT = 5.0
DEFAULT_PROVIDERS: Tuple[str, ...] = ("wmi", "serial", "libusb")
DEFAULT_LOG_LEVEL = "info"


def _parse_provider_list(value: str) -> Tuple[str, ...]:
    names = tuple(part.strip().lower() for part in value.split(",") if part.strip())
    return names or DEFAULT_PROVIDERS


@dataclass(frozen=True)
class MonitorSettings:
    poll_interval: float = DEFAULT_POLL_INTERVAL
    shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT
    providers: Tuple[str, ...] = field(default=DEFAULT_PROVIDERS)
    announce_existing: bool = True
    wmi_timeout: float = DEFAULT_WMI_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: Optional[Path] = None
    log_max_bytes: int = DEFAULT_LOG_MAX_BYTES
    log_backup_count: int = DEFAULT_LOG_BACKUP_COUNT

    @classmethod
    def from_config(
        cls,
        config: Dict[str, str],
        config_manager: Optional[ConfigManager] = None,
    ) -> "MonitorSettings":
        cm = config_manager or get_config_manager()

        poll_interval = cm.get_float(config, "poll_interval", DEFAULT_POLL_INTERVAL)
        if poll_interval <= 0:
            logger.warning("poll_interval must be positive (got %s), using %.1f", poll_interval, DEFAULT_POLL_INTERVAL)
            poll_interval = DEFAULT_POLL_INTERVAL

        shutdown_timeout = cm.get_float(config, "shutdown_timeout", DEFAULT_SHUTDOWN_TIMEOUT)
        if shutdown_timeout < 0:
            logger.warning("shutdown_timeout must not be negative (got %s), using %.1f", shutdown_timeout, DEFAULT_SHUTDOWN_TIMEOUT)
            shutdown_timeout = DEFAULT_SHUTDOWN_TIMEOUT

        log_level = cm.get_str(config, "log_level", DEFAULT_LOG_LEVEL).strip().lower()
        if log_level not in LOG_LEVELS:
            logger.warning("Unknown log_level '%s', using %s", log_level, DEFAULT_LOG_LEVEL)
            log_level = DEFAULT_LOG_LEVEL

        log_file = cm.get_str(config, "log_file", "").strip()

        return cls(
            poll_interval=poll_interval,
            shutdown_timeout=shutdown_timeout,
            providers=_parse_provider_list(cm.get_str(config, "providers", ",".join(DEFAULT_PROVIDERS))),
            announce_existing=cm.get_bool(config, "announce_existing", True),
            wmi_timeout=cm.get_float(config, "wmi_timeout", DEFAULT_WMI_TIMEOUT),
            log_level=log_level,
            log_file=Path(log_file).expanduser() if log_file else None,
            log_max_bytes=cm.get_int(config, "log_max_bytes", DEFAULT_LOG_MAX_BYTES),
            log_backup_count=cm.get_int(config, "log_backup_count", DEFAULT_LOG_BACKUP_COUNT),
        )


async def load_settings_async(config_path: Optional[Path] = None) -> MonitorSettings:
    cm = get_config_manager()
    config = await cm.read_config_async(config_path or CONFIG_PATH)
    return MonitorSettings.from_config(config, cm)


__all__ = [
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_SHUTDOWN_TIMEOUT",
    "DEFAULT_WMI_TIMEOUT",
    "DEFAULT_PROVIDERS",
    "DEFAULT_LOG_LEVEL",
    "MonitorSettings",
    "load_settings_async",
]
