"""
Unit tests for structured logging setup.
"""

import json
import logging
import sys

import pytest

from conversation_context.logging_config import (
    LogFormat,
    LogOutput,
    LoggingConfig,
    StructuredJSONFormatter,
    apply_log_level,
    build_logging_config,
    session_id_var,
    session_logging_context,
    setup_logging
)


def make_record(message: str = "hello", exc_info=None, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="conversation_context.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=exc_info
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    names = ("conversation_context", "redis", "asyncio")
    levels = {name: logging.getLogger(name).level for name in names}
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    for name, saved in levels.items():
        logging.getLogger(name).setLevel(saved)


class TestStructuredJSONFormatter:
    """Test JSON log output."""

    def test_basic_fields(self):
        payload = json.loads(StructuredJSONFormatter().format(make_record()))

        assert payload["message"] == "hello"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "conversation_context.test"
        assert payload["line_number"] == 10
        assert "timestamp" in payload
        assert "session_id" not in payload

    def test_session_id_included(self):
        with session_logging_context("s-42"):
            payload = json.loads(StructuredJSONFormatter().format(make_record()))

        assert payload["session_id"] == "s-42"

    def test_extra_data(self):
        record = make_record(extra_data={"turns": 3})
        payload = json.loads(StructuredJSONFormatter().format(record))

        assert payload["extra_data"] == {"turns": 3}

    def test_extra_data_can_be_excluded(self):
        record = make_record(extra_data={"turns": 3})
        payload = json.loads(StructuredJSONFormatter(include_extra=False).format(record))

        assert "extra_data" not in payload

    def test_error_details(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record("failed", exc_info=sys.exc_info())

        payload = json.loads(StructuredJSONFormatter().format(record))

        assert payload["error_details"]["exception_type"] == "RuntimeError"
        assert payload["error_details"]["exception_message"] == "boom"


class TestSessionLoggingContext:
    """Test the session id context variable."""

    def test_reset_after_block(self):
        assert session_id_var.get() is None
        with session_logging_context("outer"):
            with session_logging_context("inner"):
                assert session_id_var.get() == "inner"
            assert session_id_var.get() == "outer"
        assert session_id_var.get() is None


class TestBuildLoggingConfig:
    """Test dictConfig generation."""

    def test_console_json(self):
        config = build_logging_config(LoggingConfig(level="DEBUG"))

        assert list(config["handlers"]) == ["console"]
        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["loggers"]["conversation_context"]["level"] == "DEBUG"
        assert config["loggers"]["redis"]["level"] == "WARNING"
        assert config["root"]["handlers"] == ["console"]

    def test_file_output(self, tmp_path):
        log_file = tmp_path / "logs" / "context.log"
        config = build_logging_config(LoggingConfig(
            format_type=LogFormat.PLAIN, output=LogOutput.BOTH, log_file=str(log_file)
        ))

        assert set(config["handlers"]) == {"console", "file"}
        assert config["handlers"]["file"]["filename"] == str(log_file)
        assert config["handlers"]["file"]["formatter"] == "plain"
        assert log_file.parent.exists()

    def test_colored_console(self):
        config = build_logging_config(LoggingConfig(format_type=LogFormat.COLORED))
        assert config["handlers"]["console"]["formatter"] == "colored"

    def test_colors_disabled(self):
        config = build_logging_config(LoggingConfig(format_type=LogFormat.COLORED, console_colors=False))
        assert config["handlers"]["console"]["formatter"] == "plain"


class TestSetupLogging:
    """Test applying the logging configuration."""

    def test_setup_from_strings(self, restore_logging):
        config = setup_logging(level="warning", format_type="plain", output="console")

        assert config.level == "WARNING"
        assert config.format_type == LogFormat.PLAIN
        assert logging.getLogger("conversation_context").level == logging.WARNING


class TestApplyLogLevel:
    """Test applying a level to the package logger."""

    def test_sets_package_logger_level(self, restore_logging):
        apply_log_level("debug")
        assert logging.getLogger("conversation_context").level == logging.DEBUG

        apply_log_level(logging.ERROR)
        assert logging.getLogger("conversation_context").level == logging.ERROR
