"""Tests for logging setup."""

from __future__ import annotations

import io
import json

import pytest
import structlog

from sms_dispatch.core.logging import setup_logging


@pytest.fixture
def reset_structlog():
    """Restore structlog defaults after each test."""
    yield
    structlog.reset_defaults()


class TestSetupLogging:
    """Test structured logging configuration."""

    def test_json_output_carries_service_name(self, reset_structlog):
        """Every JSON entry names the service."""
        stream = io.StringIO()
        setup_logging(level="INFO", json_output=True, service_name="sms-dispatch", stream=stream)

        structlog.get_logger("test").info("SMS sent", gateway="bulkgate")

        entry = json.loads(stream.getvalue().strip())
        assert entry["service"] == "sms-dispatch"
        assert entry["event"] == "SMS sent"
        assert entry["gateway"] == "bulkgate"
        assert entry["level"] == "info"

    def test_level_filters_entries(self, reset_structlog):
        """Entries below the configured level are dropped."""
        stream = io.StringIO()
        setup_logging(level="WARNING", json_output=True, stream=stream)

        logger = structlog.get_logger("test")
        logger.info("hidden")
        logger.warning("shown")

        lines = stream.getvalue().strip().splitlines()
        assert [json.loads(line)["event"] for line in lines] == ["shown"]
        assert "service" not in json.loads(lines[0])
