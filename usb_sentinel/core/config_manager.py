import asyncio
from pathlib import Path
from typing import Dict, Iterable

import aiofiles

from .logging_utils import get_module_logger


logger = get_module_logger("ConfigManager")


class ConfigManager:
    """Reads ``key = value`` configuration files."""

    # ------------------------------------------------------------------
    # Internal helpers

    def _parse_config_lines(self, lines: Iterable[str]) -> Dict[str, str]:
        config: Dict[str, str] = {}

        for raw_line in lines:
            line = raw_line.strip()
            if not line or line.startswith('#'):
                continue
            if '=' not in line:
                continue

            key, value = line.split('=', 1)
            key = key.strip()
            value = value.strip()

            if '#' in value:
                value = value.split('#')[0].strip()

            if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
                value = value[1:-1]

            config[key] = value

        return config

    async def read_config_async(self, config_path: Path) -> Dict[str, str]:
        """Read a config file without blocking the loop; a missing or unreadable file yields an empty dict."""
        config: Dict[str, str] = {}

        if await asyncio.to_thread(config_path.exists):
            try:
                lines: list[str] = []
                async with aiofiles.open(config_path, 'r', encoding='utf-8') as f:
                    async for line in f:
                        lines.append(line)
                config = self._parse_config_lines(lines)
            except OSError as e:
                logger.error("Failed to read config %s: %s", config_path, e)

        return config

    def get_bool(self, config: Dict[str, str], key: str, default: bool = False) -> bool:
        if key not in config:
            return default

        value = config[key].lower()
        return value in ('true', '1', 'yes', 'on')

    def get_int(self, config: Dict[str, str], key: str, default: int = 0) -> int:
        if key not in config:
            return default

        try:
            return int(config[key])
        except ValueError:
            logger.warning("Invalid int value for %s: %s, using default %d", key, config[key], default)
            return default

    def get_float(self, config: Dict[str, str], key: str, default: float = 0.0) -> float:
        if key not in config:
            return default

        try:
            return float(config[key])
        except ValueError:
            logger.warning("Invalid float value for %s: %s, using default %f", key, config[key], default)
            return default

    def get_str(self, config: Dict[str, str], key: str, default: str = "") -> str:
        return config.get(key, default)


_config_manager = ConfigManager()


def get_config_manager() -> ConfigManager:
    return _config_manager
