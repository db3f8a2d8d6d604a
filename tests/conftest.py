"""Pytest configuration and fixtures for SMS dispatch tests."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Set test environment
os.environ["SMSD_ENV"] = "test"
os.environ["SMSD_DEBUG"] = "true"


@pytest.fixture
def mock_settings(monkeypatch):
    """Settings with credentials for every gateway, no config files."""
    from sms_dispatch.config import (
        AfricasTalkingSettings,
        BulkGateSettings,
        BulkSMSSettings,
        GatewaysSettings,
        RouteeSettings,
        Settings,
    )

    settings = Settings(
        environment="test",
        debug=True,
        gateways=GatewaysSettings(
            timeout=5.0,
            bulksms=BulkSMSSettings(token_id="test_token_id", token_secret="test_token_secret"),
            bulkgate=BulkGateSettings(api_key="12345:test_app_token"),
            routee=RouteeSettings(application_id="test_app_id", application_secret="test_app_secret"),
            africastalking=AfricasTalkingSettings(username="sandbox", api_key="test_at_key", sandbox=True),
        ),
    )

    from sms_dispatch import config

    monkeypatch.setattr(config, "get_settings", lambda: settings)
    return settings


@pytest.fixture
def sample_text():
    """Sample SMS body."""
    return "A sua encomenda foi enviada. Obrigado por comprar connosco."
