"""Tests for logging setup."""

import json
import logging

import pytest
import structlog

from web_access_advisor.logs import configure_logging


@pytest.fixture
def clean_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    root.handlers.clear()
    structlog.reset_defaults()
    yield
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    structlog.reset_defaults()


class TestConfigureLogging:
    def test_json_output(self, clean_logging, capsys):
        configure_logging("DEBUG", json_format=True)

        structlog.get_logger("web_access_advisor.test").info("snapshot captured", step=3)

        line = capsys.readouterr().err.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "snapshot captured"
        assert event["step"] == 3
        assert event["level"] == "info"
        assert event["logger"] == "web_access_advisor.test"
        assert "timestamp" in event

    def test_level_filters(self, clean_logging, capsys):
        configure_logging("WARNING", json_format=True)

        structlog.get_logger("web_access_advisor.test").info("quiet")

        assert "quiet" not in capsys.readouterr().err
