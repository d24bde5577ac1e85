"""Unit tests for the structured logger, logging setup and task helpers."""

import asyncio
import logging
from logging.handlers import RotatingFileHandler

import pytest

from usb_sentinel.core.asyncio_utils import create_logged_task
from usb_sentinel.core.logging_config import build_handlers, configure_logging, parse_level
from usb_sentinel.core.logging_utils import (
    StructuredLogger,
    ensure_structured_logger,
    get_module_logger,
)


class TestStructuredLogger:

    def test_module_logger_is_namespaced(self):
        logger = get_module_logger("USBMonitor")
        assert logger.name == "usb_sentinel.USBMonitor"
        assert logger.component == "USBMonitor"

    def test_messages_get_component_prefix(self, caplog):
        logger = get_module_logger("Provider.wmi")

        with caplog.at_level(logging.INFO, logger="usb_sentinel"):
            logger.info("Scan found %d device(s)", 2)

        assert "[Provider.wmi] Scan found 2 device(s)" in caplog.messages

    def test_bad_format_args_do_not_raise(self, caplog):
        logger = get_module_logger("Test")

        with caplog.at_level(logging.INFO, logger="usb_sentinel"):
            logger.info("value %d", "not a number")

        assert "args=not a number" in caplog.messages[-1]

    def test_component_attached_to_record(self, caplog):
        logger = get_module_logger("USBMonitor")

        with caplog.at_level(logging.INFO, logger="usb_sentinel"):
            logger.warning("scan slow")

        assert caplog.records[-1].component == "USBMonitor"

    def test_ensure_unwraps_adapter(self):
        adapter = logging.LoggerAdapter(logging.getLogger("usb_sentinel.Adapted"), {})
        assert ensure_structured_logger(adapter).component == "Adapted"

    def test_ensure_wraps_plain_logger(self):
        wrapped = ensure_structured_logger(logging.getLogger("plain"), component="Plain")
        assert isinstance(wrapped, StructuredLogger)
        assert wrapped.component == "Plain"

    def test_ensure_none_uses_fallback(self):
        assert ensure_structured_logger(None, fallback_name="asyncio").name == "usb_sentinel.asyncio"


class TestConfigureLogging:

    def test_file_handler(self, tmp_path):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        log_file = tmp_path / "logs" / "sentinel.log"
        try:
            configure_logging("debug", console=False, log_file=log_file, max_bytes=4096, backup_count=3)
            get_module_logger("Test").info("written to file")
            for handler in root.handlers:
                handler.flush()

            assert root.level == logging.DEBUG
            (file_handler,) = root.handlers
            assert isinstance(file_handler, RotatingFileHandler)
            assert file_handler.maxBytes == 4096
            assert file_handler.backupCount == 3
            assert logging.getLogger("usb1").level == logging.ERROR
            assert "[Test] written to file" in log_file.read_text(encoding="utf-8")
        finally:
            for handler in list(root.handlers):
                root.removeHandler(handler)
                handler.close()
            for handler in saved_handlers:
                root.addHandler(handler)
            root.setLevel(saved_level)

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            configure_logging("chatty")

    @pytest.mark.parametrize("level,expected", [
        ("debug", logging.DEBUG), (" WARNING ", logging.WARNING), (logging.ERROR, logging.ERROR),
    ])
    def test_parse_level(self, level, expected):
        assert parse_level(level) == expected

    def test_console_only_by_default(self):
        handlers = build_handlers(logging.INFO)
        assert len(handlers) == 1
        assert not isinstance(handlers[0], RotatingFileHandler)
        assert handlers[0].level == logging.INFO


class TestCreateLoggedTask:

    @pytest.mark.asyncio
    async def test_task_exception_is_logged(self, caplog):
        async def boom():
            raise RuntimeError("poll crashed")

        with caplog.at_level(logging.ERROR, logger="usb_sentinel"):
            task = create_logged_task(boom(), logger=get_module_logger("Test"), context="poll")
            with pytest.raises(RuntimeError):
                await task
            await asyncio.sleep(0)

        assert any("Unhandled exception in poll" in message for message in caplog.messages)
        assert task.get_name() == "poll"

    @pytest.mark.asyncio
    async def test_cancelled_task_is_quiet(self, caplog):
        task = create_logged_task(asyncio.sleep(10), context="sleeper")
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0)

        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]
