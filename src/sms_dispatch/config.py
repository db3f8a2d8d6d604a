"""Application configuration."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sms_dispatch.core.exceptions import ConfigurationError


class BulkSMSSettings(BaseModel):
    """BulkSMS credentials and endpoint."""

    enabled: bool = True
    token_id: str = ""
    token_secret: str = ""
    base_url: str = "https://api.bulksms.com/v1"


class BulkGateSettings(BaseModel):
    """BulkGate credentials and endpoint."""

    enabled: bool = True
    # "application_id:application_token" or a bare token
    api_key: str = ""
    application_id: str = ""
    base_url: str = "https://portal.bulkgate.com/api"


class RouteeSettings(BaseModel):
    """Routee (AMD Telecom) OAuth client and endpoints."""

    enabled: bool = True
    application_id: str = ""
    application_secret: str = ""
    base_url: str = "https://connect.routee.net"
    token_url: str = "https://auth.routee.net/oauth/token"


class AfricasTalkingSettings(BaseModel):
    """Africa's Talking account configuration."""

    enabled: bool = True
    username: str = ""
    api_key: str = ""
    sandbox: bool = False


class GatewayEntrySettings(BaseModel):
    """One row of the gateway registry used by the static policy."""

    name: str
    display_name: str = ""
    is_active: bool = True
    is_primary: bool = False
    api_endpoint: str = ""
    auth_type: str = ""


def _default_registry() -> list[GatewayEntrySettings]:
    return [
        GatewayEntrySettings(
            name="bulkgate",
            display_name="BulkGate",
            is_primary=True,
            api_endpoint="https://portal.bulkgate.com/api",
            auth_type="api_key",
        ),
        GatewayEntrySettings(
            name="bulksms",
            display_name="BulkSMS",
            api_endpoint="https://api.bulksms.com/v1",
            auth_type="basic",
        ),
    ]


class GatewaysSettings(BaseModel):
    """SMS provider configuration."""

    # Per-request HTTP timeout (seconds) for every adapter
    timeout: float = 30.0

    bulksms: BulkSMSSettings = Field(default_factory=BulkSMSSettings)
    bulkgate: BulkGateSettings = Field(default_factory=BulkGateSettings)
    routee: RouteeSettings = Field(default_factory=RouteeSettings)
    africastalking: AfricasTalkingSettings = Field(default_factory=AfricasTalkingSettings)

    registry: list[GatewayEntrySettings] = Field(default_factory=_default_registry)


class RoutingSettings(BaseModel):
    """Gateway selection and fallback configuration."""

    # "static" (registry primary/fallback) or "country" (destination rules)
    policy: str = "country"
    home_country: str = "AO"
    default_gateway: str = "bulksms"
    # Country policy falls back to the other member of this pair
    gateway_pair: tuple[str, str] = ("bulkgate", "bulksms")
    default_sender_id: str = "SMSAO"
    default_country_prefix: str = "+244"

    @field_validator("policy")
    @classmethod
    def _check_policy(cls, value: str) -> str:
        value = value.lower()
        if value not in ("static", "country"):
            raise ValueError("policy must be 'static' or 'country'")
        return value

    @field_validator("gateway_pair")
    @classmethod
    def _check_pair(cls, value: tuple[str, str]) -> tuple[str, str]:
        if value[0] == value[1]:
            raise ValueError("gateway_pair must name two different gateways")
        return value


class Settings(BaseSettings):
    """Application settings.

    Loaded from:
    1. Environment variables (SMSD_*)
    2. configs/{environment}.yaml
    3. configs/default.yaml
    """

    model_config = SettingsConfigDict(
        env_prefix="SMSD_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Environment
    environment: str = "development"
    debug: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    gateways: GatewaysSettings = Field(default_factory=GatewaysSettings)
    routing: RoutingSettings = Field(default_factory=RoutingSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings object loaded from config files and environment.
    """
    import os
    from dynaconf import Dynaconf

    config_dir = Path(os.getenv("SMSD_CONFIG_DIR", "configs"))
    env = os.getenv("SMSD_ENV", "development")

    settings_files = []
    if (config_dir / "default.yaml").exists():
        settings_files.append(str(config_dir / "default.yaml"))
    if (config_dir / f"{env}.yaml").exists():
        settings_files.append(str(config_dir / f"{env}.yaml"))

    dynaconf = Dynaconf(
        envvar_prefix="SMSD",
        settings_files=settings_files,
        load_dotenv=True,
    )

    config_dict: dict[str, Any] = {}
    for key in dynaconf.keys():
        if not key.startswith("_"):
            config_dict[key.lower()] = dynaconf[key]

    config_dict["environment"] = env

    return Settings(**config_dict)


def validate_production_settings(settings: Settings) -> list[str]:
    """Validate settings for production readiness.

    Args:
        settings: Application settings to validate.

    Returns:
        List of validation error messages (empty if all valid).
    """
    errors: list[str] = []

    if settings.environment not in ("production", "staging", "prod"):
        return errors

    gateways = settings.gateways

    if gateways.bulksms.enabled:
        if not gateways.bulksms.token_id:
            errors.append("SMSD_GATEWAYS__BULKSMS__TOKEN_ID must be set when BulkSMS is enabled")
        if not gateways.bulksms.token_secret:
            errors.append("SMSD_GATEWAYS__BULKSMS__TOKEN_SECRET must be set when BulkSMS is enabled")

    if gateways.bulkgate.enabled and not gateways.bulkgate.api_key:
        errors.append("SMSD_GATEWAYS__BULKGATE__API_KEY must be set when BulkGate is enabled")

    if gateways.routee.enabled:
        if not gateways.routee.application_id:
            errors.append(
                "SMSD_GATEWAYS__ROUTEE__APPLICATION_ID must be set when Routee is enabled"
            )
        if not gateways.routee.application_secret:
            errors.append(
                "SMSD_GATEWAYS__ROUTEE__APPLICATION_SECRET must be set when Routee is enabled"
            )

    if gateways.africastalking.enabled:
        if not gateways.africastalking.username:
            errors.append(
                "SMSD_GATEWAYS__AFRICASTALKING__USERNAME must be set when Africa's Talking is enabled"
            )
        if not gateways.africastalking.api_key:
            errors.append(
                "SMSD_GATEWAYS__AFRICASTALKING__API_KEY must be set when Africa's Talking is enabled"
            )
        if gateways.africastalking.sandbox:
            errors.append("Africa's Talking sandbox must not be used in production")

    primaries = [g.name for g in gateways.registry if g.is_active and g.is_primary]
    if settings.routing.policy == "static" and len(primaries) != 1:
        errors.append(
            f"Static routing needs exactly one active primary gateway, found {len(primaries)}"
        )

    return errors


def require_valid_settings() -> Settings:
    """Get settings and raise if production validation fails.

    Raises:
        ConfigurationError: If production settings are invalid.

    Returns:
        Validated settings.
    """
    settings = get_settings()
    errors = validate_production_settings(settings)

    if errors:
        error_list = "\n  - ".join(errors)
        raise ConfigurationError(
            f"Production configuration errors:\n  - {error_list}",
            details={"errors": errors},
        )

    return settings
