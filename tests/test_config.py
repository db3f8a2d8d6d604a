"""Tests for application settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from sms_dispatch import config
from sms_dispatch.config import (
    AfricasTalkingSettings,
    BulkGateSettings,
    BulkSMSSettings,
    GatewayEntrySettings,
    GatewaysSettings,
    RouteeSettings,
    RoutingSettings,
    Settings,
    validate_production_settings,
)
from sms_dispatch.core.exceptions import ConfigurationError


def _production_settings(**routing) -> Settings:
    return Settings(
        environment="production",
        gateways=GatewaysSettings(
            bulksms=BulkSMSSettings(token_id="id", token_secret="secret"),
            bulkgate=BulkGateSettings(api_key="1:token"),
            routee=RouteeSettings(application_id="app", application_secret="secret"),
            africastalking=AfricasTalkingSettings(enabled=False),
        ),
        routing=RoutingSettings(**routing),
    )


class TestSettings:
    """Test settings defaults and validation."""

    def test_defaults(self):
        """Defaults route Angola through the bulkgate/bulksms pair."""
        settings = Settings()

        assert settings.gateways.timeout == 30.0
        assert settings.routing.policy == "country"
        assert settings.routing.home_country == "AO"
        assert settings.routing.gateway_pair == ("bulkgate", "bulksms")
        assert settings.routing.default_sender_id == "SMSAO"
        assert [e.name for e in settings.gateways.registry] == ["bulkgate", "bulksms"]

    def test_policy_is_normalized(self):
        """Policy names are case-insensitive."""
        assert RoutingSettings(policy="Static").policy == "static"

    def test_unknown_policy_rejected(self):
        """Only static and country policies exist."""
        with pytest.raises(ValidationError):
            RoutingSettings(policy="round-robin")

    def test_pair_must_differ(self):
        """The fallback pair needs two different gateways."""
        with pytest.raises(ValidationError):
            RoutingSettings(gateway_pair=("bulksms", "bulksms"))

    def test_nested_environment_override(self, monkeypatch):
        """Nested keys are set with double underscores."""
        monkeypatch.setenv("SMSD_GATEWAYS__BULKSMS__TOKEN_ID", "env_token")
        monkeypatch.setenv("SMSD_ROUTING__POLICY", "static")

        settings = Settings()

        assert settings.gateways.bulksms.token_id == "env_token"
        assert settings.routing.policy == "static"

    def test_get_settings_reads_config_dir(self, monkeypatch, tmp_path):
        """default.yaml is overlaid by the environment file."""
        (tmp_path / "default.yaml").write_text(
            "log_level: INFO\n"
            "gateways:\n"
            "  timeout: 10.0\n"
            "  bulksms:\n"
            "    token_id: from_default\n"
            "routing:\n"
            "  home_country: AO\n"
        )
        (tmp_path / "test.yaml").write_text("log_level: DEBUG\n")
        monkeypatch.setenv("SMSD_CONFIG_DIR", str(tmp_path))
        monkeypatch.setenv("SMSD_ENV", "test")

        config.get_settings.cache_clear()
        try:
            settings = config.get_settings()
        finally:
            config.get_settings.cache_clear()

        assert settings.environment == "test"
        assert settings.log_level == "DEBUG"
        assert settings.gateways.timeout == 10.0
        assert settings.gateways.bulksms.token_id == "from_default"


class TestProductionValidation:
    """Test production readiness checks."""

    def test_development_is_not_checked(self):
        """Non-production environments always pass."""
        assert validate_production_settings(Settings(environment="development")) == []

    def test_complete_production_settings(self):
        """Fully configured production settings pass."""
        assert validate_production_settings(_production_settings()) == []

    def test_missing_credentials(self):
        """Enabled gateways without credentials are reported."""
        settings = _production_settings()
        settings.gateways.bulksms.token_secret = ""
        settings.gateways.bulkgate.api_key = ""

        errors = validate_production_settings(settings)

        assert any("BULKSMS__TOKEN_SECRET" in e for e in errors)
        assert any("BULKGATE__API_KEY" in e for e in errors)

    def test_sandbox_in_production(self):
        """The Africa's Talking sandbox is rejected in production."""
        settings = _production_settings()
        settings.gateways.africastalking = AfricasTalkingSettings(
            username="sandbox", api_key="key", sandbox=True
        )

        errors = validate_production_settings(settings)

        assert errors == ["Africa's Talking sandbox must not be used in production"]

    def test_static_policy_needs_one_primary(self):
        """Static routing requires exactly one active primary."""
        settings = _production_settings(policy="static")
        settings.gateways.registry = [GatewayEntrySettings(name="bulksms")]

        errors = validate_production_settings(settings)

        assert len(errors) == 1
        assert "exactly one active primary" in errors[0]

    def test_require_valid_settings_raises(self, monkeypatch):
        """Invalid production settings raise ConfigurationError."""
        settings = _production_settings()
        settings.gateways.routee.application_id = ""
        monkeypatch.setattr(config, "get_settings", lambda: settings)

        with pytest.raises(ConfigurationError) as exc_info:
            config.require_valid_settings()

        assert len(exc_info.value.details["errors"]) == 1
