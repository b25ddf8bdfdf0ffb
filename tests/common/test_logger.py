# tests/common/test_logger.py
"""
Unit тесты для модуля логирования (src/common/logger.py).
"""

import json
import logging
from unittest.mock import patch

import pytest

from src.common.logger import (
    ColoredFormatter,
    JsonFormatter,
    _get_caller_info,
    _loggers,
    get_logger,
    log_debug,
    log_error,
    log_info,
    log_warning,
)
from src.common.constants import TypeMsg


def _record(level: int = logging.INFO, msg: str = "Test message") -> logging.LogRecord:
    record = logging.LogRecord(
        name="test_logger",
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    record.module = "test_module"
    record.funcName = "test_function"
    return record


class TestFormatters:
    """Тесты форматтеров."""

    def test_json_basic_record(self) -> None:
        data = json.loads(JsonFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["message"] == "Test message"
        assert data["function"] == "test_function"
        assert data["line"] == 10

    def test_json_extra_data(self) -> None:
        record = _record(logging.WARNING)
        record.extra_data = {"partner_id": 42}

        data = json.loads(JsonFormatter().format(record))
        assert data["extra"] == {"partner_id": 42}

    def test_colored_includes_caller(self) -> None:
        record = _record()
        record.extra_data = {
            "caller_module": "src.core.tracking.ingest",
            "caller_function": "ingest",
            "caller_file": "ingest.py",
            "caller_line": 120,
        }

        result = ColoredFormatter().format(record)
        assert "[INFO]" in result
        assert "src.core.tracking.ingest.ingest()" in result
        assert "Test message" in result


class TestGetLogger:

    def setup_method(self) -> None:
        _loggers.clear()

    def test_logger_cached(self) -> None:
        assert get_logger("tracking_test") is get_logger("tracking_test")

    def test_logger_does_not_propagate(self) -> None:
        assert get_logger("tracking_test_propagate").propagate is False


class TestLogFunctions:
    """Тесты для асинхронных функций логирования."""

    def setup_method(self) -> None:
        _loggers.clear()

    async def test_log_info_basic(self) -> None:
        with patch.object(logging.Logger, "info") as mock_info:
            await log_info("Test message")

        mock_info.assert_called_once()
        assert "Test message" in mock_info.call_args[0]

    @pytest.mark.parametrize(
        "type_msg, method",
        [
            (TypeMsg.DEBUG, "debug"),
            (TypeMsg.WARNING, "warning"),
            (TypeMsg.ERROR, "error"),
            (TypeMsg.CRITICAL, "critical"),
        ],
    )
    async def test_log_info_routes_by_type(self, type_msg: TypeMsg, method: str) -> None:
        with patch.object(logging.Logger, method) as mock_method:
            await log_info("message", type_msg=type_msg)

        mock_method.assert_called_once()

    async def test_extra_merged_with_caller(self) -> None:
        with patch.object(logging.Logger, "info") as mock_info:
            await log_info("message", extra={"order_id": "abc"})

        extra_data = mock_info.call_args[1]["extra"]["extra_data"]
        assert extra_data["order_id"] == "abc"
        assert extra_data["caller_function"] == "test_extra_merged_with_caller"

    async def test_shortcuts(self) -> None:
        with patch.object(logging.Logger, "debug") as mock_debug, \
                patch.object(logging.Logger, "warning") as mock_warning:
            await log_debug("d")
            await log_warning("w")

        mock_debug.assert_called_once()
        mock_warning.assert_called_once()

    async def test_log_error_with_exc_info(self) -> None:
        with patch.object(logging.Logger, "error") as mock_error:
            await log_error("failed", exc_info=True)

        assert mock_error.call_args[1]["exc_info"] is True


def test_get_caller_info_reports_calling_function() -> None:
    def log_something():
        return _get_caller_info()

    info = log_something()
    assert info["caller_function"] == "test_get_caller_info_reports_calling_function"
    assert info["caller_file"] == "test_logger.py"
