"""Unit tests for the logging configuration module.

Covers log levels, formats, file logging and per-module levels.
"""

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

import orchestra_ai.core.logging_config as logging_config
from orchestra_ai.core.logging_config import (
    DETAILED_FORMAT,
    JSON_FORMAT,
    MODULE_LOG_LEVELS,
    SIMPLE_FORMAT,
    get_logger,
    setup_logging,
)


def _console_handler() -> logging.Handler:
    return next(h for h in logging.getLogger().handlers if type(h) is logging.StreamHandler)


class TestSetupLoggingLogLevels:
    """setup_logging applies the requested level to the console handler."""

    @pytest.mark.parametrize(
        "log_level,expected_level",
        [
            ("DEBUG", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARNING", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("debug", logging.DEBUG),
        ],
    )
    def test_setup_logging_with_different_levels(self, log_level, expected_level):
        setup_logging(log_level=log_level, enable_file=False)

        assert _console_handler().level == expected_level
        assert logging.getLogger().level == logging.DEBUG

    def test_setup_logging_replaces_handlers(self):
        setup_logging(log_level="INFO", enable_file=False)
        setup_logging(log_level="INFO", enable_file=False)

        stream_handlers = [h for h in logging.getLogger().handlers if type(h) is logging.StreamHandler]
        assert len(stream_handlers) == 1


class TestSetupLoggingFormats:
    @pytest.mark.parametrize(
        "log_format,expected",
        [("simple", SIMPLE_FORMAT), ("detailed", DETAILED_FORMAT), ("json", JSON_FORMAT), ("other", DETAILED_FORMAT)],
    )
    def test_format_selection(self, log_format, expected):
        setup_logging(log_level="INFO", log_format=log_format, enable_file=False)

        assert _console_handler().formatter._fmt == expected


class TestFileLogging:
    def test_file_handler_added_when_enabled(self, tmp_path: Path):
        with patch.object(logging_config, "ENABLE_FILE_LOGGING", True), patch.object(
            logging_config, "LOG_FILE_DIR", str(tmp_path / "logs")
        ):
            setup_logging(log_level="INFO", enable_file=True)

        file_handlers = [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert Path(file_handlers[0].baseFilename) == tmp_path / "logs" / "orchestra_ai.log"
        assert file_handlers[0].level == logging.DEBUG

    def test_no_file_handler_when_globally_disabled(self, tmp_path: Path):
        with patch.object(logging_config, "ENABLE_FILE_LOGGING", False), patch.object(
            logging_config, "LOG_FILE_DIR", str(tmp_path / "logs")
        ):
            setup_logging(log_level="INFO", enable_file=True)

        assert not any(isinstance(h, logging.FileHandler) for h in logging.getLogger().handlers)
        assert not (tmp_path / "logs").exists()


class TestModuleLogLevels:
    def test_module_levels_applied(self):
        setup_logging(log_level="INFO", enable_file=False)

        for module_name, level in MODULE_LOG_LEVELS.items():
            assert logging.getLogger(module_name).level == logging.getLevelName(level)

    def test_third_party_noise_reduced(self):
        assert MODULE_LOG_LEVELS["sqlalchemy.engine"] == "WARNING"
        assert MODULE_LOG_LEVELS["orchestra_ai.orchestration.runtime"] == "DEBUG"


def test_get_logger_returns_named_logger():
    logger = get_logger("orchestra_ai.test")
    assert logger is logging.getLogger("orchestra_ai.test")
