"""Unit tests for logging configuration module.

Tests verify that ``setup_logging`` honours explicit arguments, falls back to
``KnightAgentSettings`` and leaves the root logger with exactly the handlers
it installed.
"""

import logging
from pathlib import Path

import pytest

from knightagent.core.logging_config import (
    DETAILED_FORMAT,
    JSON_FORMAT,
    LOG_FILE_NAME,
    MODULE_LOG_LEVELS,
    SIMPLE_FORMAT,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _restore_logging():
    """Drop the handlers installed by ``setup_logging`` and restore levels."""
    root = logging.getLogger()
    level = root.level
    module_levels = {name: logging.getLogger(name).level for name in MODULE_LOG_LEVELS}
    yield
    for handler in root.handlers[:]:
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    for name, module_level in module_levels.items():
        logging.getLogger(name).setLevel(module_level)


def _console_handler() -> logging.Handler:
    return next(h for h in logging.getLogger().handlers if type(h) is logging.StreamHandler)


def _file_handler():
    return next((h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)), None)


class TestSetupLoggingLevels:
    """Test setup_logging with different log levels."""

    @pytest.mark.parametrize(
        "log_level,expected_level",
        [
            ("DEBUG", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARNING", logging.WARNING),
            ("error", logging.ERROR),
            ("critical", logging.CRITICAL),
        ],
    )
    def test_console_handler_level(self, log_level, expected_level):
        setup_logging(log_level=log_level, enable_file=False)

        assert _console_handler().level == expected_level

    def test_level_from_settings(self, monkeypatch):
        """Without an explicit level, KNIGHTAGENT_LOG_LEVEL decides."""
        monkeypatch.setenv("KNIGHTAGENT_LOG_LEVEL", "WARNING")

        setup_logging(enable_file=False)

        assert _console_handler().level == logging.WARNING

    def test_root_logger_captures_everything(self):
        setup_logging(log_level="ERROR", enable_file=False)

        assert logging.getLogger().level == logging.DEBUG


class TestSetupLoggingFormats:
    """Test setup_logging with different log formats."""

    @pytest.mark.parametrize(
        "log_format,expected_format",
        [
            ("simple", SIMPLE_FORMAT),
            ("detailed", DETAILED_FORMAT),
            ("json", JSON_FORMAT),
            ("unknown", DETAILED_FORMAT),
        ],
    )
    def test_formats(self, log_format, expected_format):
        setup_logging(log_format=log_format, enable_file=False)

        formatter = _console_handler().formatter
        assert formatter._fmt == expected_format
        assert formatter.datefmt == "%Y-%m-%d %H:%M:%S"

    def test_format_from_settings(self, monkeypatch):
        monkeypatch.setenv("KNIGHTAGENT_LOG_FORMAT", "json")

        setup_logging(enable_file=False)

        assert _console_handler().formatter._fmt == JSON_FORMAT


class TestSetupLoggingFileHandling:
    """Test setup_logging file logging functionality."""

    def test_file_handler_writes_to_configured_directory(self, monkeypatch, tmp_path: Path):
        log_dir = tmp_path / "new_logs"
        monkeypatch.setenv("KNIGHTAGENT_LOG_FILE_DIR", str(log_dir))

        setup_logging(log_level="ERROR", enable_file=True)
        get_logger("knightagent.test").info("written to file")

        handler = _file_handler()
        assert handler is not None
        assert handler.level == logging.DEBUG
        handler.flush()
        assert "written to file" in (log_dir / LOG_FILE_NAME).read_text()

    def test_file_logging_enabled_by_settings(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("KNIGHTAGENT_LOG_FILE_DIR", str(tmp_path))
        monkeypatch.setenv("KNIGHTAGENT_ENABLE_FILE_LOGGING", "true")

        setup_logging()

        assert _file_handler() is not None

    def test_file_logging_disabled(self):
        setup_logging(enable_file=False)

        assert _file_handler() is None


class TestSetupLoggingHandlers:
    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging(enable_file=False)
        setup_logging(enable_file=False)

        assert len(logging.getLogger().handlers) == 1

    @pytest.mark.parametrize("module_name,expected", list(MODULE_LOG_LEVELS.items()))
    def test_module_levels(self, module_name, expected):
        setup_logging(enable_file=False)

        assert logging.getLogger(module_name).level == logging.getLevelName(expected)


def test_get_logger_returns_named_logger():
    logger = get_logger("knightagent.agent_core.runtime.engine")

    assert isinstance(logger, logging.Logger)
    assert logger.name == "knightagent.agent_core.runtime.engine"
    assert logger is logging.getLogger("knightagent.agent_core.runtime.engine")
