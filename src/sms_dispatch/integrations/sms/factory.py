"""SMS Gateway Factory.

Creates gateway adapters from credentials or from application settings.

Supported providers:
- bulksms: HTTP Basic auth, token id / secret
- bulkgate: single API key, sender ID validation endpoint
- routee: OAuth2 client credentials
- africastalking: API key header plus username, sandbox available
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from sms_dispatch.core.exceptions import ConfigurationError
from sms_dispatch.core.logging import get_logger
from sms_dispatch.integrations.sms.africastalking import AfricasTalkingGateway
from sms_dispatch.integrations.sms.base import SMSGateway
from sms_dispatch.integrations.sms.bulkgate import BulkGateGateway
from sms_dispatch.integrations.sms.bulksms import BulkSMSGateway
from sms_dispatch.integrations.sms.routee import RouteeGateway

log = get_logger(__name__)


# Credential fields each provider needs before it can be constructed
REQUIRED_CREDENTIALS: dict[str, tuple[str, ...]] = {
    "bulksms": ("token_id", "token_secret"),
    "bulkgate": ("api_key",),
    "routee": ("application_id", "application_secret"),
    "africastalking": ("username", "api_key"),
}

_BUILDERS: dict[str, Callable[..., SMSGateway]] = {
    "bulksms": BulkSMSGateway,
    "bulkgate": BulkGateGateway,
    "routee": RouteeGateway,
    "africastalking": AfricasTalkingGateway,
}


@dataclass
class GatewayTestReport:
    """Outcome of a gateway health check."""

    configured: bool
    connected: bool
    balance: float | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "configured": self.configured,
            "connected": self.connected,
            "balance": self.balance,
            "error": self.error,
        }


def _missing_fields(gateway_type: str, credentials: Mapping[str, Any]) -> list[str]:
    return [
        field
        for field in REQUIRED_CREDENTIALS[gateway_type]
        if not str(credentials.get(field) or "").strip()
    ]


class GatewayFactory:
    """Builds gateway adapters after validating their credentials."""

    @staticmethod
    def supported_gateways() -> list[str]:
        """Names of the gateways the factory can build."""
        return list(REQUIRED_CREDENTIALS)

    @staticmethod
    def validate_credentials(gateway_type: str, credentials: Mapping[str, Any]) -> bool:
        """True if every required credential field is present and non-empty."""
        gateway_type = gateway_type.lower()
        if gateway_type not in REQUIRED_CREDENTIALS:
            return False
        return not _missing_fields(gateway_type, credentials)

    @staticmethod
    def create(
        gateway_type: str,
        credentials: Mapping[str, Any],
        **options: Any,
    ) -> SMSGateway:
        """Create a gateway adapter.

        Credentials are validated before anything is constructed, so a
        rejected call never opens a connection.

        Args:
            gateway_type: One of supported_gateways()
            credentials: Provider credential fields
            **options: Adapter options (timeout, base_url, sandbox, ...)

        Returns:
            Configured gateway adapter

        Raises:
            ConfigurationError: Unknown gateway type or missing credentials
        """
        gateway_type = gateway_type.lower()
        if gateway_type not in _BUILDERS:
            raise ConfigurationError(
                f"Unsupported gateway type: {gateway_type}",
                details={"supported": GatewayFactory.supported_gateways()},
            )

        missing = _missing_fields(gateway_type, credentials)
        if missing:
            raise ConfigurationError(
                f"{gateway_type} requires {', '.join(REQUIRED_CREDENTIALS[gateway_type])}",
                details={"gateway": gateway_type, "missing": missing},
            )

        kwargs = {field: credentials[field] for field in REQUIRED_CREDENTIALS[gateway_type]}
        kwargs.update({k: v for k, v in options.items() if v is not None})
        return _BUILDERS[gateway_type](**kwargs)

    @staticmethod
    def create_from_settings(settings: Any) -> dict[str, SMSGateway]:
        """Create every gateway whose credentials are present in settings.

        Gateways that are disabled or lack credentials are skipped with
        a warning.

        Args:
            settings: Application Settings

        Returns:
            Mapping of gateway name to adapter
        """
        gateways_config = settings.gateways
        prefix = settings.routing.default_country_prefix
        timeout = gateways_config.timeout

        candidates: dict[str, tuple[Any, dict[str, Any], dict[str, Any]]] = {
            "bulksms": (
                gateways_config.bulksms,
                {
                    "token_id": gateways_config.bulksms.token_id,
                    "token_secret": gateways_config.bulksms.token_secret,
                },
                {"base_url": gateways_config.bulksms.base_url},
            ),
            "bulkgate": (
                gateways_config.bulkgate,
                {"api_key": gateways_config.bulkgate.api_key},
                {
                    "application_id": gateways_config.bulkgate.application_id or None,
                    "base_url": gateways_config.bulkgate.base_url,
                },
            ),
            "routee": (
                gateways_config.routee,
                {
                    "application_id": gateways_config.routee.application_id,
                    "application_secret": gateways_config.routee.application_secret,
                },
                {
                    "base_url": gateways_config.routee.base_url,
                    "token_url": gateways_config.routee.token_url,
                    "default_country_prefix": prefix,
                },
            ),
            "africastalking": (
                gateways_config.africastalking,
                {
                    "username": gateways_config.africastalking.username,
                    "api_key": gateways_config.africastalking.api_key,
                },
                {
                    "sandbox": gateways_config.africastalking.sandbox,
                    "default_country_prefix": prefix,
                },
            ),
        }

        gateways: dict[str, SMSGateway] = {}
        for name, (section, credentials, options) in candidates.items():
            if not section.enabled:
                log.info("Gateway disabled, skipping", gateway=name)
                continue
            if not GatewayFactory.validate_credentials(name, credentials):
                log.warning(
                    "Gateway credentials not configured, skipping",
                    gateway=name,
                    missing=_missing_fields(name, credentials),
                )
                continue
            gateways[name] = GatewayFactory.create(name, credentials, timeout=timeout, **options)
            log.info("Gateway initialized", gateway=name)

        return gateways

    @staticmethod
    async def test_gateway(gateway: SMSGateway) -> GatewayTestReport:
        """Check configuration, connectivity and (best effort) balance.

        A balance failure does not fail the check.
        """
        try:
            if not gateway.is_configured():
                return GatewayTestReport(
                    configured=False,
                    connected=False,
                    error="Gateway not configured",
                )

            if not await gateway.test_connection():
                return GatewayTestReport(
                    configured=True,
                    connected=False,
                    error="Gateway connection failed",
                )

            balance = None
            try:
                balance = (await gateway.get_balance()).credits
            except Exception as e:
                log.warning("Could not fetch balance", gateway=gateway.name, error=str(e))

            return GatewayTestReport(configured=True, connected=True, balance=balance)

        except Exception as e:
            log.exception("Gateway test failed", gateway=gateway.name)
            return GatewayTestReport(configured=False, connected=False, error=str(e))
