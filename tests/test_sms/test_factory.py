"""Tests for the gateway factory."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from sms_dispatch.core.exceptions import ConfigurationError, GatewayQueryError
from sms_dispatch.integrations.sms.base import Balance, MockSMSGateway
from sms_dispatch.integrations.sms.bulkgate import BulkGateGateway
from sms_dispatch.integrations.sms.bulksms import BulkSMSGateway
from sms_dispatch.integrations.sms.factory import GatewayFactory
from sms_dispatch.integrations.sms.routee import RouteeGateway


class TestGatewayFactory:
    """Test gateway construction."""

    def test_supported_gateways(self):
        """All four providers are supported."""
        assert set(GatewayFactory.supported_gateways()) == {
            "bulksms",
            "bulkgate",
            "routee",
            "africastalking",
        }

    def test_validate_credentials(self):
        """Every required field must be present and non-empty."""
        assert GatewayFactory.validate_credentials("bulksms", {"token_id": "a", "token_secret": "b"})
        assert not GatewayFactory.validate_credentials("bulksms", {"token_id": "a"})
        assert not GatewayFactory.validate_credentials("bulksms", {"token_id": "a", "token_secret": "  "})
        assert GatewayFactory.validate_credentials("BulkGate", {"api_key": "k"})
        assert not GatewayFactory.validate_credentials("unknown", {"api_key": "k"})

    def test_create_bulksms(self, mock_http_client):
        """Valid credentials build the adapter."""
        gateway = GatewayFactory.create("bulksms", {"token_id": "id", "token_secret": "secret"})

        assert isinstance(gateway, BulkSMSGateway)
        assert gateway.is_configured() is True

    def test_create_with_options(self, mock_http_client):
        """Options are passed through and None values are ignored."""
        gateway = GatewayFactory.create(
            "routee",
            {"application_id": "app", "application_secret": "secret"},
            timeout=5.0,
            base_url=None,
            default_country_prefix="+351",
        )

        assert isinstance(gateway, RouteeGateway)
        assert gateway.timeout == 5.0
        assert gateway.base_url == RouteeGateway.API_BASE
        assert gateway.default_country_prefix == "+351"

    def test_missing_credentials_raise_before_any_client(self):
        """Missing credentials are rejected without creating an HTTP client."""
        with patch("httpx.AsyncClient") as client_cls:
            with pytest.raises(ConfigurationError) as exc_info:
                GatewayFactory.create("bulksms", {"token_id": "id"})

        client_cls.assert_not_called()
        assert exc_info.value.details["missing"] == ["token_secret"]
        assert exc_info.value.error_code == "CONFIGURATION_ERROR"

    def test_unsupported_gateway(self):
        """Unknown gateway types are a configuration error."""
        with pytest.raises(ConfigurationError, match="Unsupported gateway type"):
            GatewayFactory.create("twilio", {"sid": "x"})


class TestCreateFromSettings:
    """Test building gateways from settings."""

    def test_all_configured(self, mock_settings, mock_http_client):
        """Every enabled gateway with credentials is created."""
        gateways = GatewayFactory.create_from_settings(mock_settings)

        assert set(gateways) == {"bulksms", "bulkgate", "routee", "africastalking"}
        assert gateways["routee"].default_country_prefix == "+244"
        assert gateways["africastalking"].sandbox is True

    def test_skips_missing_credentials(self, mock_settings, mock_http_client):
        """Gateways without credentials are skipped."""
        mock_settings.gateways.bulksms.token_secret = ""

        gateways = GatewayFactory.create_from_settings(mock_settings)

        assert "bulksms" not in gateways
        assert isinstance(gateways["bulkgate"], BulkGateGateway)

    def test_skips_disabled(self, mock_settings, mock_http_client):
        """Disabled gateways are skipped."""
        mock_settings.gateways.africastalking.enabled = False

        gateways = GatewayFactory.create_from_settings(mock_settings)

        assert "africastalking" not in gateways

    def test_timeout_applied(self, mock_settings, mock_http_client):
        """The shared timeout reaches every adapter."""
        mock_settings.gateways.timeout = 12.5

        gateways = GatewayFactory.create_from_settings(mock_settings)

        assert {g.timeout for g in gateways.values()} == {12.5}


class TestGatewayHealthCheck:
    """Test the gateway health check."""

    @pytest.mark.asyncio
    async def test_healthy_gateway(self):
        """Connected gateway reports its balance."""
        gateway = MockSMSGateway()
        gateway.get_balance = AsyncMock(return_value=Balance(credits=99.0, currency="EUR"))

        report = await GatewayFactory.test_gateway(gateway)

        assert report.configured is True
        assert report.connected is True
        assert report.balance == 99.0
        assert report.error is None

    @pytest.mark.asyncio
    async def test_balance_failure_is_not_fatal(self):
        """A balance error leaves the gateway connected."""
        gateway = MockSMSGateway()
        gateway.get_balance = AsyncMock(side_effect=GatewayQueryError("Failed to get balance: HTTP 500"))

        report = await GatewayFactory.test_gateway(gateway)

        assert report.connected is True
        assert report.balance is None

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        """A failed connection test is reported."""
        gateway = MockSMSGateway()
        gateway.test_connection = AsyncMock(return_value=False)

        report = await GatewayFactory.test_gateway(gateway)

        assert report.configured is True
        assert report.connected is False
        assert report.error == "Gateway connection failed"

    @pytest.mark.asyncio
    async def test_not_configured(self, bulksms_gateway):
        """Unconfigured gateways are not contacted."""
        bulksms_gateway.token_secret = ""

        report = await GatewayFactory.test_gateway(bulksms_gateway)

        assert report.to_dict() == {
            "configured": False,
            "connected": False,
            "balance": None,
            "error": "Gateway not configured",
        }
        bulksms_gateway._client.get.assert_not_called()


class TestPackageExports:
    """Test lazy exports of the SMS package."""

    def test_lazy_exports_resolve(self):
        """Factory and adapters resolve from the package on first access."""
        from sms_dispatch.integrations import sms

        assert sms.GatewayFactory is GatewayFactory
        assert sms.BulkGateGateway is BulkGateGateway
        assert sms.RouteeGateway is RouteeGateway

    def test_unknown_export(self):
        """Unknown names raise AttributeError."""
        from sms_dispatch.integrations import sms

        with pytest.raises(AttributeError):
            sms.TwilioGateway
