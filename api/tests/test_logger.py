"""Unit tests for core.logger module.

Tests the structlog-based logging configuration:
- configure_logging() installs a single stdout handler on the root logger
- LOG_FORMAT=json renders one JSON object per line
- Context bound with bind_contextvars is merged into every line
- Noisy third-party loggers are quieted
"""

import json
import logging

import pytest
import structlog

from core.logger import (
    bind_contextvars,
    clear_contextvars,
    configure_logging,
    get_logger,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Save and restore root logger and structlog state around each test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    clear_contextvars()
    structlog.reset_defaults()


def _json_lines(output: str) -> list[dict]:
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


@pytest.mark.unit
class TestConfigureLogging:
    def test_installs_single_handler(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_respects_log_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        configure_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_log_level_defaults_to_info(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "CHATTY")
        configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_quiets_noisy_loggers(self):
        configure_logging()
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("uvicorn.access").level == logging.WARNING


@pytest.mark.unit
class TestJsonOutput:
    def test_event_and_fields_rendered_as_json(self, monkeypatch, capsys):
        monkeypatch.setenv("LOG_FORMAT", "json")
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        configure_logging()

        get_logger("tests.json").info(
            "resource.created", resource_type="films", resource_id=1
        )

        lines = _json_lines(capsys.readouterr().out)
        assert lines
        record = lines[-1]
        assert record["event"] == "resource.created"
        assert record["resource_type"] == "films"
        assert record["resource_id"] == 1
        assert record["level"] == "info"
        assert record["logger"] == "tests.json"
        assert "timestamp" in record

    def test_bound_context_is_merged(self, monkeypatch, capsys):
        monkeypatch.setenv("LOG_FORMAT", "json")
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        configure_logging()

        bind_contextvars(request_id="req-42")
        get_logger("tests.context").warning("auth.login.failed")

        record = _json_lines(capsys.readouterr().out)[-1]
        assert record["request_id"] == "req-42"
        assert record["level"] == "warning"

    def test_stdlib_loggers_share_the_format(self, monkeypatch, capsys):
        monkeypatch.setenv("LOG_FORMAT", "json")
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        configure_logging()

        logging.getLogger("alembic").info("Running upgrade")

        record = _json_lines(capsys.readouterr().out)[-1]
        assert record["event"] == "Running upgrade"
        assert record["logger"] == "alembic"
