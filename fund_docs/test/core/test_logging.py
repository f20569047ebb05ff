"""
Tests for logging setup (fund_docs/core/logging.py)
"""
import json
import logging
import sys
from unittest import mock

import pytest

from fund_docs.core.exceptions import ConfigurationError
from fund_docs.core.logging import JsonLineFormatter, setup_logging

LOGGER_NAME = "fund_docs.test_logging"


@pytest.fixture
def logger_name():
    yield LOGGER_NAME
    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()


class TestSetupLogging:
    """Tests for setup_logging()."""

    @mock.patch("fund_docs.core.logging.LOG_LEVEL", "WARNING")
    @mock.patch("fund_docs.core.logging.LOG_FORMAT", "text")
    def test_defaults_from_config(self, logger_name):
        """Test level and style come from the LOG_* settings."""
        logger = setup_logging(logger_name)
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        assert not isinstance(logger.handlers[0].formatter, JsonLineFormatter)

    @mock.patch("fund_docs.core.logging.LOG_FORMAT", "json")
    def test_json_from_config(self, logger_name):
        """Test LOG_FORMAT=json installs the JSON formatter."""
        logger = setup_logging(logger_name, level="info")
        assert isinstance(logger.handlers[0].formatter, JsonLineFormatter)

    @mock.patch("fund_docs.core.logging.LOG_LEVEL", "WARNING")
    def test_argument_wins(self, logger_name):
        """Test an explicit level overrides the configured one."""
        assert setup_logging(logger_name, level="DEBUG").level == logging.DEBUG

    def test_no_duplicate_handlers(self, logger_name):
        """Test calling twice replaces handlers."""
        setup_logging(logger_name, log_format="text")
        logger = setup_logging(logger_name, log_format="text")
        assert len(logger.handlers) == 1

    def test_file_handler(self, logger_name, tmp_path):
        """Test a log file is created under the log directory."""
        logger = setup_logging(logger_name, level="INFO", log_format="text", log_file="compose.log", log_dir=tmp_path)
        logger.info("합성 완료")
        for handler in logger.handlers:
            handler.flush()
        assert "합성 완료" in (tmp_path / "compose.log").read_text(encoding="utf-8")

    @mock.patch("fund_docs.core.logging.LOG_FILE", "")
    def test_console_only(self, logger_name):
        """Test console=False with no file leaves no handlers."""
        assert setup_logging(logger_name, console=False).handlers == []

    def test_unknown_level(self, logger_name):
        """Test an unknown level name is a configuration error."""
        with pytest.raises(ConfigurationError) as exc_info:
            setup_logging(logger_name, level="LOUD")
        assert exc_info.value.config_key == "LOG_LEVEL"

    def test_unknown_format(self, logger_name):
        """Test an unknown style is a configuration error."""
        with pytest.raises(ConfigurationError) as exc_info:
            setup_logging(logger_name, log_format="xml")
        assert exc_info.value.config_key == "LOG_FORMAT"


class TestJsonLineFormatter:
    """Tests for the JSON formatter."""

    def test_record_fields(self):
        """Test one parseable object per record with Korean text intact."""
        record = logging.LogRecord("fund_docs.pdf", logging.INFO, __file__, 1, "조합원 %d명", (3,), None)
        line = JsonLineFormatter().format(record)
        assert "조합원 3명" in line
        payload = json.loads(line)
        assert payload["logger"] == "fund_docs.pdf"
        assert payload["level"] == "INFO"
        assert payload["message"] == "조합원 3명"
        assert "exception" not in payload

    def test_exception_included(self):
        """Test exception text is carried in the payload."""
        try:
            raise ValueError("bad page")
        except ValueError:
            record = logging.LogRecord("fund_docs", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        payload = json.loads(JsonLineFormatter().format(record))
        assert "ValueError: bad page" in payload["exception"]
