"""Tests for logging configuration."""

import logging

import pytest
import structlog
from pharmacart.utils.logging import configure_logging, get_environment, get_log_level


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    config = structlog.get_config()
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers = handlers
    root.setLevel(level)
    structlog.configure(**config)


class TestEnvironment:
    def test_environment_from_protean_env(self, monkeypatch):
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        monkeypatch.setenv("PROTEAN_ENV", "Staging")
        assert get_environment() == "staging"

    @pytest.mark.parametrize(
        "environment, level",
        [("production", "INFO"), ("development", "DEBUG"), ("test", "WARNING"), ("unknown", "INFO")],
    )
    def test_log_level_follows_environment(self, monkeypatch, environment, level):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("ENVIRONMENT", environment)
        assert get_log_level() == level

    def test_explicit_log_level_wins(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert get_log_level() == "ERROR"


class TestConfigureLogging:
    def test_creates_log_files(self, tmp_path, monkeypatch, restore_logging):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("ENVIRONMENT", "test")
        configure_logging(tmp_path / "logs")

        assert (tmp_path / "logs" / "pharmacart.log").exists()
        assert (tmp_path / "logs" / "pharmacart_error.log").exists()
        assert logging.getLogger().level == logging.WARNING
        assert logging.getLogger("protean").level == logging.WARNING

    def test_production_renders_json(self, tmp_path, monkeypatch, restore_logging):
        monkeypatch.setenv("ENVIRONMENT", "production")
        configure_logging(tmp_path)

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert structlog.get_config()["cache_logger_on_first_use"] is True
