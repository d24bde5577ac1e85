"""Asyncio helpers for the background poll loop."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Coroutine, Optional

from .logging_utils import LoggerLike, ensure_structured_logger


def _task_label(task: asyncio.Task[Any], context: Optional[str]) -> str:
    if context:
        return context
    name = task.get_name()
    return name or "background task"


def add_task_exception_logger(
    task: asyncio.Task[Any],
    *,
    logger: LoggerLike = None,
    context: Optional[str] = None,
) -> asyncio.Task[Any]:
    """Ensure task exceptions are retrieved and logged.

    Without this, a poll task that dies from an unexpected error would only
    surface as "Task exception was never retrieved" when it is collected.
    """
    task_logger = ensure_structured_logger(logger, fallback_name="asyncio")

    def _done(done_task: asyncio.Task[Any]) -> None:
        if done_task.cancelled():
            return
        exc = done_task.exception()
        if exc is not None:
            task_logger.error(
                "Unhandled exception in %s: %s",
                _task_label(done_task, context),
                exc,
                exc_info=exc,
            )

    task.add_done_callback(_done)
    return task


def create_logged_task(
    coro: Coroutine[Any, Any, Any],
    *,
    logger: LoggerLike = None,
    context: Optional[str] = None,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> asyncio.Task[Any]:
    """Create a task that won't lose exceptions."""
    if loop is None:
        loop = asyncio.get_running_loop()

    task = loop.create_task(coro)
    if context:
        with contextlib.suppress(AttributeError):
            task.set_name(context)

    return add_task_exception_logger(task, logger=logger, context=context)


__all__ = ["add_task_exception_logger", "create_logged_task"]
