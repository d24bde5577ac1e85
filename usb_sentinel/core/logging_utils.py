"""Component-tagged loggers for the USB Sentinel package.

Every module asks for ``get_module_logger("Component")`` and gets a logger in
the ``usb_sentinel`` namespace whose messages read ``[Component] ...``.
Providers use ``Provider.<name>`` so a failing backend is easy to spot.
"""

from __future__ import annotations

import logging
from typing import Any, MutableMapping, Optional, Tuple, Union

MODULE_LOGGER_NAMESPACE = "usb_sentinel"
DEFAULT_COMPONENT = "Core"


def _normalize_logger_name(name: Optional[str]) -> str:
    if not name:
        return MODULE_LOGGER_NAMESPACE
    if name.startswith(MODULE_LOGGER_NAMESPACE):
        return name
    return f"{MODULE_LOGGER_NAMESPACE}.{name}"


def _derive_component(name: str) -> str:
    if name.startswith(MODULE_LOGGER_NAMESPACE):
        return name[len(MODULE_LOGGER_NAMESPACE):].lstrip(".") or DEFAULT_COMPONENT
    return name or DEFAULT_COMPONENT


class StructuredLogger(logging.LoggerAdapter):
    """
    Logger adapter that prefixes messages with ``[component]``.

    The component is also attached to each record as ``record.component``.
    Messages are formatted eagerly so a wrong argument count degrades to an
    ``args=`` suffix instead of a logging error on the poll thread.
    """

    def __init__(self, logger: logging.Logger, component: Optional[str] = None) -> None:
        super().__init__(logger, {"component": component or _derive_component(logger.name)})

    @property
    def component(self) -> str:
        return self.extra["component"]

    def __repr__(self) -> str:
        return f"StructuredLogger({self.logger.name!r}, component={self.component!r})"

    def _compose(self, message: object, args: Tuple[Any, ...]) -> str:
        text = str(message)
        if args:
            try:
                text = text % args
            except (TypeError, ValueError):
                text = f"{text} | args={' '.join(str(arg) for arg in args)}"
        prefix = f"[{self.component}]"
        return text if text.startswith(prefix) else f"{prefix} {text}"

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def log(self, level: int, msg: object, *args: Any, **kwargs: Any) -> None:
        if not self.isEnabledFor(level):
            return
        msg, kwargs = self.process(self._compose(msg, args), kwargs)
        self.logger.log(level, msg, **kwargs)


LoggerLike = Union[StructuredLogger, logging.Logger, logging.LoggerAdapter, None]


def ensure_structured_logger(
    logger: LoggerLike,
    *,
    component: Optional[str] = None,
    fallback_name: Optional[str] = None,
) -> StructuredLogger:
    """Return a StructuredLogger wrapping ``logger`` (or a new module logger)."""
    if isinstance(logger, StructuredLogger):
        return logger
    if isinstance(logger, logging.LoggerAdapter):
        logger = logger.logger
    if isinstance(logger, logging.Logger):
        return StructuredLogger(logger, component=component)
    return get_module_logger(fallback_name)


def get_module_logger(name: Optional[str] = None) -> StructuredLogger:
    """Return a structured logger scoped to the usb_sentinel namespace."""
    return StructuredLogger(logging.getLogger(_normalize_logger_name(name)))


__all__ = [
    "LoggerLike",
    "StructuredLogger",
    "ensure_structured_logger",
    "get_module_logger",
]
