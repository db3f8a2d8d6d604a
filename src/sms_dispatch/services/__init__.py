"""Dispatch services.

- CountryRoutingTable: destination country to preferred gateway
- GatewayConfigRegistry: operator gateway configs, single primary
- DispatchEngine: send with one fallback hop and an attempt trail
"""

from sms_dispatch.services.country_routing import (
    DEFAULT_COUNTRIES,
    BatchRouting,
    CountryInfo,
    CountryRoutingTable,
)
from sms_dispatch.services.dispatcher import (
    CountryFallbackPolicy,
    DeliveryAttempt,
    DispatchEngine,
    FailureKind,
    FallbackPolicy,
    FallbackResult,
    StaticFallbackPolicy,
    classify_failure,
    is_retryable,
)
from sms_dispatch.services.gateway_registry import GatewayConfig, GatewayConfigRegistry

__all__ = [
    "DEFAULT_COUNTRIES",
    "BatchRouting",
    "CountryInfo",
    "CountryRoutingTable",
    "CountryFallbackPolicy",
    "DeliveryAttempt",
    "DispatchEngine",
    "FailureKind",
    "FallbackPolicy",
    "FallbackResult",
    "StaticFallbackPolicy",
    "classify_failure",
    "is_retryable",
    "GatewayConfig",
    "GatewayConfigRegistry",
]
