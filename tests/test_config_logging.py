"""Tests for settings and logging setup."""

import json
import logging
from pathlib import Path

import pytest

from finledger.config import Settings, default_database_path
from finledger.logging import JsonFormatter, get_logger, setup_logging


@pytest.fixture
def app_logger():
    """Restore the finledger logger after a test reconfigures it."""
    logger = logging.getLogger("finledger")
    saved = (logger.level, logger.propagate, logger.handlers[:])
    yield logger
    logger.setLevel(saved[0])
    logger.propagate = saved[1]
    logger.handlers[:] = saved[2]


class TestSettings:
    """Tests for Settings."""

    def test_default_values(self, monkeypatch):
        """Test defaults when no environment variables are set."""
        for name in ("FINLEDGER_DB_PATH", "FINLEDGER_LOG_LEVEL", "FINLEDGER_LOG_FORMAT"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.database_path == default_database_path()
        assert settings.database_path.name == "finledger.db"
        assert settings.log_level == "WARNING"
        assert settings.log_format == "standard"

    def test_from_env_custom(self, monkeypatch, tmp_path):
        """Test values read from the environment."""
        monkeypatch.setenv("FINLEDGER_DB_PATH", str(tmp_path / "ledger.db"))
        monkeypatch.setenv("FINLEDGER_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("FINLEDGER_LOG_FORMAT", "json")

        settings = Settings.from_env()

        assert settings.database_path == Path(tmp_path / "ledger.db")
        assert settings.log_level == "DEBUG"
        assert settings.log_format == "json"


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_setup_logging_default(self, app_logger):
        """Test the default level is WARNING."""
        setup_logging()

        assert app_logger.level == logging.WARNING
        assert len(app_logger.handlers) == 1

    def test_setup_logging_invalid_level(self, app_logger):
        """Test an unknown level falls back to WARNING."""
        setup_logging(level="LOUD")

        assert app_logger.level == logging.WARNING

    def test_setup_logging_json_format(self, app_logger):
        """Test the json format installs JsonFormatter."""
        setup_logging(level="debug", format_type="json")

        assert app_logger.level == logging.DEBUG
        assert isinstance(app_logger.handlers[0].formatter, JsonFormatter)

    def test_setup_logging_replaces_handlers(self, app_logger):
        """Test repeated setup does not stack handlers."""
        setup_logging()
        setup_logging()

        assert len(app_logger.handlers) == 1

    def test_external_loggers_quieted(self, app_logger):
        """Test SQLAlchemy stays at WARNING even in debug mode."""
        setup_logging(level="DEBUG")

        assert logging.getLogger("sqlalchemy").level == logging.WARNING


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_format_basic(self):
        """Test a record is rendered as one JSON object."""
        record = logging.LogRecord(
            name="finledger.domain.bills",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Paid bill %s",
            args=(3,),
            exc_info=None,
        )

        data = json.loads(JsonFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "finledger.domain.bills"
        assert data["message"] == "Paid bill 3"
        assert "timestamp" in data

    def test_format_with_exception(self):
        """Test exception text is included."""
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            import sys

            exc_info = sys.exc_info()
        record = logging.LogRecord("finledger", logging.ERROR, __file__, 1, "failed", (), exc_info)

        data = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: boom" in data["exception"]


def test_get_logger():
    """Test module loggers live under the given name."""
    assert get_logger("finledger.domain.loan").name == "finledger.domain.loan"
    assert get_logger("finledger.x") is get_logger("finledger.x")
