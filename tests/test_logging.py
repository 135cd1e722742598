"""Tests for logging setup."""

import logging

import pytest
from pydantic import ValidationError

from clyde.utils.logging import LogConfig, get_logger, setup_logging


class TestLogging:
    """Tests for logging configuration helpers."""

    def test_setup_logging_sets_root_level(self):
        """Test root level and pinned third-party loggers."""
        setup_logging(LogConfig(level="debug"))

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("anthropic").level == logging.WARNING

        setup_logging()
        assert logging.getLogger().level == logging.WARNING

    def test_get_logger_honours_log_level(self, monkeypatch):
        """Test LOG_LEVEL applied to module loggers."""
        monkeypatch.setenv("LOG_LEVEL", "info")

        assert get_logger("clyde.test.env").level == logging.INFO

    def test_get_logger_explicit_level(self, monkeypatch):
        """Test explicit level taking priority over LOG_LEVEL."""
        monkeypatch.setenv("LOG_LEVEL", "info")

        assert get_logger("clyde.test.explicit", level="ERROR").level == logging.ERROR

    def test_get_logger_inherits_root_by_default(self, monkeypatch):
        """Test logger left at NOTSET without a level."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        assert get_logger("clyde.test.inherit").level == logging.NOTSET

    def test_log_config_rejects_unknown_level(self):
        """Test LogConfig refusing a level name logging does not know."""
        with pytest.raises(ValidationError):
            LogConfig(level="verbose")

    def test_get_logger_ignores_unknown_log_level(self, monkeypatch):
        """Test an unknown LOG_LEVEL leaves the logger at NOTSET."""
        monkeypatch.setenv("LOG_LEVEL", "verbose")

        assert get_logger("clyde.test.unknown").level == logging.NOTSET
