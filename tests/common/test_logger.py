# tests/common/test_logger.py
"""
Unit тесты для модуля логирования (src/common/logger.py).
"""

import json
import logging
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from src.common.constants import TypeMsg
from src.common.logger import (
    ColoredFormatter,
    DateBasedRotatingFileHandler,
    JsonFormatter,
    _get_caller_info,
    _loggers,
    _read_log_options,
    get_logger,
    log_error,
    log_info,
    log_warning,
)


def _record(level: int = logging.INFO, msg: str = "Test message", exc_info=None) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test_logger",
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    record.module = "test_module"
    record.funcName = "test_function"
    return record


class TestJsonFormatter:
    """Тесты для JsonFormatter."""

    def test_format_basic_record(self) -> None:
        """Одна запись, один JSON-объект с базовыми полями."""
        result = json.loads(JsonFormatter().format(_record()))

        assert result["level"] == "INFO"
        assert result["message"] == "Test message"
        assert result["module"] == "test_module"
        assert result["function"] == "test_function"
        assert result["line"] == 10
        assert result["timestamp"].endswith("Z")

    def test_format_with_extra_data(self) -> None:
        """Дополнительные поля уходят в extra."""
        record = _record(logging.WARNING)
        record.extra_data = {"driver_id": "d-1", "amount": "22.50"}

        result = json.loads(JsonFormatter().format(record))

        assert result["extra"] == {"driver_id": "d-1", "amount": "22.50"}

    def test_format_with_exception(self) -> None:
        """Трейсбек попадает в поле exception."""
        try:
            raise ValueError("Test exception")
        except ValueError:
            exc_info = sys.exc_info()

        result = json.loads(JsonFormatter().format(_record(logging.ERROR, "Error occurred", exc_info)))

        assert "ValueError" in result["exception"]
        assert "Test exception" in result["exception"]


class TestColoredFormatter:
    """Тесты для ColoredFormatter."""

    def test_format_basic_record(self) -> None:
        """Уровень, сообщение и ANSI-код."""
        result = ColoredFormatter().format(_record())

        assert "[INFO]" in result
        assert "Test message" in result
        assert "\033[" in result

    def test_format_with_caller_info(self) -> None:
        """Информация о вызывающем коде."""
        record = _record(logging.DEBUG)
        record.extra_data = {
            "caller_function": "request_payout",
            "caller_module": "src.core.earnings.service",
            "caller_file": "service.py",
            "caller_line": 42,
        }

        result = ColoredFormatter().format(record)

        assert "src.core.earnings.service.request_payout()" in result
        assert "service.py:42" in result


class TestDateBasedRotatingFileHandler:
    """Тесты файлового хендлера с архивированием по дате."""

    def test_writes_to_fixed_name(self, tmp_path: Path) -> None:
        handler = DateBasedRotatingFileHandler(log_dir=str(tmp_path), max_bytes=1024, logger_name="app")
        try:
            assert Path(handler.baseFilename) == tmp_path / "app.log"
        finally:
            handler.close()

    def test_rollover_archives_file(self, tmp_path: Path) -> None:
        handler = DateBasedRotatingFileHandler(log_dir=str(tmp_path), max_bytes=1024, logger_name="app")
        try:
            handler.emit(_record())
            handler.doRollover()

            archived = [p for p in tmp_path.iterdir() if p.name.startswith("app_")]
            assert len(archived) == 1
            assert (tmp_path / "app.log").exists()
        finally:
            handler.close()


class TestGetLogger:
    """Тесты для get_logger."""

    def setup_method(self) -> None:
        """Очистка кэша логгеров перед каждым тестом."""
        _loggers.clear()

    def test_creates_logger_with_console_handler(self) -> None:
        logger = get_logger("test_logger_console")

        assert logger.name == "test_logger_console"
        assert any(isinstance(h, logging.StreamHandler) for h in logger.handlers)
        assert logger.propagate is False

    def test_returns_cached_logger(self) -> None:
        assert get_logger("test_logger_cached") is get_logger("test_logger_cached")

    def test_options_fallback_on_mock_settings(self) -> None:
        """MagicMock вместо настроек не ломает чтение параметров."""
        with patch("src.config.settings") as mock_settings:
            mock_settings.logging.LOG_LEVEL = "WARNING"
            options = _read_log_options()

        assert options.level == "WARNING"
        assert options.fmt == "colored"
        assert options.to_file is False


class TestCallerInfo:
    """Тесты для _get_caller_info."""

    def test_returns_caller_fields(self) -> None:
        def wrapper() -> dict:
            return _get_caller_info()

        info = wrapper()

        assert info["caller_function"] == "test_returns_caller_fields"
        assert info["caller_file"] == "test_logger.py"


class TestAsyncHelpers:
    """Тесты асинхронных хелперов."""

    @pytest.mark.asyncio
    async def test_log_info_uses_level_from_type_msg(self) -> None:
        with patch("src.common.logger._emit") as mock_emit:
            await log_info("сообщение", type_msg=TypeMsg.DEBUG)

        assert mock_emit.call_args[0][1] == logging.DEBUG
        assert mock_emit.call_args[0][2] == "сообщение"

    @pytest.mark.asyncio
    async def test_log_warning_level(self) -> None:
        with patch("src.common.logger._emit") as mock_emit:
            await log_warning("внимание")

        assert mock_emit.call_args[0][1] == logging.WARNING

    @pytest.mark.asyncio
    async def test_log_error_passes_exc_info(self) -> None:
        with patch("src.common.logger._emit") as mock_emit:
            await log_error("ошибка", exc_info=True)

        assert mock_emit.call_args[0][1] == logging.ERROR
        assert mock_emit.call_args[0][5] is True
