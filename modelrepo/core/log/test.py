"""Tests for core logging module."""

import logging
from io import StringIO

import pytest

from .lib import get_logger, resolve_level, setup_logging


class TestLogging:
    """Test core logging API."""

    @pytest.mark.unit
    def test_get_logger(self) -> None:
        """Named loggers are nested under the package logger."""
        logger = get_logger("archive")
        assert logger.name == "modelrepo.archive"
        assert isinstance(logger, logging.Logger)

    @pytest.mark.unit
    def test_get_logger_default_name(self) -> None:
        """Verify default logger name."""
        logger = get_logger()
        assert logger.name == "modelrepo"

    @pytest.mark.unit
    def test_get_logger_keeps_qualified_name(self) -> None:
        """Already qualified names are not prefixed twice."""
        logger = get_logger("modelrepo.repository")
        assert logger.name == "modelrepo.repository"

    @pytest.mark.unit
    def test_setup_logging(self) -> None:
        """Verify logging setup."""
        stream = StringIO()
        setup_logging(level="debug", stream=stream)
        logger = get_logger("test_setup")
        logger.debug("test message")

        # basicConfig is a no-op when logging was configured earlier,
        # so only the API contract is checked.
        assert logger.level == logging.NOTSET

    @pytest.mark.unit
    def test_setup_logging_reads_environment(self, monkeypatch) -> None:
        """Without an explicit level, MODELREPO_LOG_LEVEL is used."""
        captured: dict = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: captured.update(kw))
        monkeypatch.setenv("MODELREPO_LOG_LEVEL", "debug")

        setup_logging(stream=StringIO())
        assert captured["level"] == logging.DEBUG

        setup_logging(level="error", stream=StringIO())
        assert captured["level"] == logging.ERROR

    @pytest.mark.unit
    def test_setup_logging_default_level(self, monkeypatch) -> None:
        captured: dict = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: captured.update(kw))
        setup_logging()
        assert captured["level"] == logging.INFO


class TestResolveLevel:
    """Tests for level name resolution."""

    @pytest.mark.unit
    def test_names_are_case_insensitive(self) -> None:
        assert resolve_level("warning") == logging.WARNING
        assert resolve_level("ERROR") == logging.ERROR

    @pytest.mark.unit
    def test_numeric_passthrough(self) -> None:
        assert resolve_level(logging.DEBUG) == logging.DEBUG

    @pytest.mark.unit
    def test_unknown_name_defaults_to_info(self) -> None:
        assert resolve_level("chatty") == logging.INFO
