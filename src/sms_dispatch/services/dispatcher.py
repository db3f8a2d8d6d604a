"""SMS dispatch with single-hop fallback.

Each message goes to a primary gateway. When that fails in a way that
another provider could fix (credits, sender approval, outages, rate
limits), it is sent once more through a fallback gateway. Every live
attempt is recorded in order.

Primary/fallback selection is pluggable:
- StaticFallbackPolicy: operator-configured primary and fallback
- CountryFallbackPolicy: preferred gateway of the destination country,
  falling back to the other gateway of a fixed pair
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from sms_dispatch.core.exceptions import ConfigurationError, GatewayNotFoundError
from sms_dispatch.core.logging import get_logger
from sms_dispatch.integrations.sms.base import (
    Balance,
    DeliveryStatus,
    SMSGateway,
    SMSMessage,
    SMSResult,
    utcnow,
)
from sms_dispatch.integrations.sms.factory import GatewayFactory, GatewayTestReport
from sms_dispatch.integrations.sms.sender_id import resolve_sender_id
from sms_dispatch.services.country_routing import CountryRoutingTable
from sms_dispatch.services.gateway_registry import GatewayConfigRegistry

log = get_logger(__name__)


# =============================================================================
# Failure classification
# =============================================================================


class FailureKind(str, Enum):
    """Whether a failed send may be retried through another gateway."""

    RETRYABLE = "retryable"
    TERMINAL = "terminal"


# Substrings (lower case) of provider errors another gateway may not hit
RETRYABLE_ERROR_MARKERS: tuple[str, ...] = (
    "insufficient credits",
    "saldo insuficiente",
    "sender id not approved",
    "timeout",
    "connection failed",
    "server error",
    "rate limit",
)

RETRYABLE_STATUS_CODES = frozenset({402, 403, 429, 500, 502, 503, 504})


def classify_failure(error: str | None, status_code: int | None = None) -> FailureKind:
    """Classify a failed send.

    Args:
        error: Raw provider error text
        status_code: Provider HTTP status, if any

    Returns:
        RETRYABLE if the text contains a known marker (case-insensitive)
        or the status is in RETRYABLE_STATUS_CODES, TERMINAL otherwise
    """
    text = (error or "").lower()
    if any(marker in text for marker in RETRYABLE_ERROR_MARKERS):
        return FailureKind.RETRYABLE
    if status_code is not None and status_code in RETRYABLE_STATUS_CODES:
        return FailureKind.RETRYABLE
    return FailureKind.TERMINAL


def is_retryable(error: str | None, status_code: int | None = None) -> bool:
    return classify_failure(error, status_code) is FailureKind.RETRYABLE


# =============================================================================
# Results
# =============================================================================


@dataclass
class DeliveryAttempt:
    """One live send to one gateway."""

    gateway: str
    result: SMSResult
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "gateway": self.gateway,
            "result": self.result.to_dict(),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class FallbackResult:
    """Outcome of a dispatch with its full attempt trail."""

    final_result: SMSResult
    attempts: list[DeliveryAttempt]
    fallback_used: bool
    country_code: str | None = None

    @property
    def success(self) -> bool:
        return self.final_result.success

    def to_dict(self, max_attempts: int | None = None) -> dict[str, Any]:
        """Convert to dictionary.

        Args:
            max_attempts: Show at most this many attempts (display only)
        """
        attempts = self.attempts if max_attempts is None else self.attempts[:max_attempts]
        data = {
            "final_result": self.final_result.to_dict(),
            "attempts": [a.to_dict() for a in attempts],
            "fallback_used": self.fallback_used,
            "country_code": self.country_code,
        }
        if len(attempts) < len(self.attempts):
            data["attempts_hidden"] = len(self.attempts) - len(attempts)
        return data


# =============================================================================
# Policies
# =============================================================================


@dataclass(frozen=True)
class RouteSelection:
    """Gateways chosen for one message."""

    primary: str
    fallback: str | None = None
    country_code: str | None = None


class FallbackPolicy(ABC):
    """Chooses the primary and fallback gateway for a message."""

    name: str = ""
    # Check is_configured/test_connection before each live send
    preflight: bool = False

    @abstractmethod
    def select(self, message: SMSMessage) -> RouteSelection:
        """Pick gateways for a message."""


class StaticFallbackPolicy(FallbackPolicy):
    """Primary and fallback come from the gateway config registry.

    The fallback is the first active config that is not primary.
    """

    name = "static"

    def __init__(self, registry: GatewayConfigRegistry):
        self.registry = registry

    def select(self, message: SMSMessage) -> RouteSelection:
        primary = self.registry.primary()
        if primary is None:
            raise ConfigurationError("No primary gateway configured")
        fallback = self.registry.fallback()
        return RouteSelection(
            primary=primary.name,
            fallback=fallback.name if fallback else None,
        )


class CountryFallbackPolicy(FallbackPolicy):
    """Primary is the destination country's preferred gateway.

    The fallback is the other member of `pair`. A preferred gateway
    outside the pair falls back to the first member.
    """

    name = "country"
    preflight = True

    def __init__(
        self,
        routing_table: CountryRoutingTable,
        pair: tuple[str, str] = ("bulkgate", "bulksms"),
    ):
        if len(pair) != 2 or pair[0] == pair[1]:
            raise ConfigurationError(
                "Country policy needs two different gateways",
                details={"pair": list(pair)},
            )
        self.routing_table = routing_table
        self.pair = tuple(pair)

    def select(self, message: SMSMessage) -> RouteSelection:
        country_code, primary = self.routing_table.gateway_for_phone(message.to)
        if primary == self.pair[0]:
            fallback = self.pair[1]
        else:
            fallback = self.pair[0]
        return RouteSelection(primary=primary, fallback=fallback, country_code=country_code)


def build_policy(
    settings: Any,
    registry: GatewayConfigRegistry | None = None,
    routing_table: CountryRoutingTable | None = None,
) -> FallbackPolicy:
    """Build the policy named by `settings.routing.policy`."""
    routing = settings.routing
    if routing.policy == "static":
        return StaticFallbackPolicy(registry or GatewayConfigRegistry.from_settings(settings))
    if routing.policy == "country":
        table = routing_table or CountryRoutingTable(
            home_country=routing.home_country,
            default_gateway=routing.default_gateway,
        )
        return CountryFallbackPolicy(table, pair=tuple(routing.gateway_pair))
    raise ConfigurationError(f"Unknown routing policy: {routing.policy}")


# =============================================================================
# Engine
# =============================================================================


class DispatchEngine:
    """Sends messages through a gateway set with one fallback hop.

    Args:
        gateways: Gateway adapters by name
        policy: Primary/fallback selection policy
        default_sender_id: When set, sender IDs are resolved against it
            before sending (empty or deprecated IDs are replaced)
    """

    def __init__(
        self,
        gateways: Mapping[str, SMSGateway],
        policy: FallbackPolicy,
        default_sender_id: str | None = None,
    ):
        self.gateways: dict[str, SMSGateway] = dict(gateways)
        self.policy = policy
        self.default_sender_id = default_sender_id

    @classmethod
    def from_settings(cls, settings: Any) -> "DispatchEngine":
        """Create gateways and policy from application settings."""
        return cls(
            GatewayFactory.create_from_settings(settings),
            build_policy(settings),
            default_sender_id=settings.routing.default_sender_id,
        )

    def _prepare(self, message: SMSMessage) -> SMSMessage:
        if self.default_sender_id is None:
            return message
        sender = resolve_sender_id(message.sender, self.default_sender_id)
        if sender == message.sender:
            return message
        return replace(message, sender=sender)

    async def _attempt(
        self,
        name: str,
        message: SMSMessage,
        attempts: list[DeliveryAttempt],
    ) -> tuple[SMSResult, bool]:
        """Run one attempt.

        Returns:
            The result and whether a live send was made
        """
        gateway = self.gateways.get(name)
        if gateway is None:
            log.warning("Gateway not available", gateway=name)
            return SMSResult(success=False, gateway=name, error=f"Gateway {name} not available"), False

        if self.policy.preflight:
            problem = await self._preflight(gateway)
            if problem is not None:
                result = gateway.failure(problem)
                attempts.append(DeliveryAttempt(gateway=name, result=result))
                log.warning("Gateway pre-flight failed", gateway=name, error=problem)
                return result, False

        try:
            result = await gateway.send_single(message)
        except Exception as e:
            log.exception("Gateway raised during send", gateway=name)
            result = gateway.failure(str(e) or type(e).__name__)

        attempts.append(DeliveryAttempt(gateway=name, result=result))
        return result, True

    async def _preflight(self, gateway: SMSGateway) -> str | None:
        if not gateway.is_configured():
            return f"Gateway {gateway.name} not configured"
        try:
            connected = await gateway.test_connection()
        except Exception as e:
            return f"Gateway {gateway.name} connection failed: {e}"
        if not connected:
            return f"Gateway {gateway.name} connection failed"
        return None

    async def send_with_fallback(self, message: SMSMessage) -> FallbackResult:
        """Send one message, falling back once on a retryable failure.

        Args:
            message: Message to send

        Returns:
            Final result with every attempt made

        Raises:
            ConfigurationError: If the policy cannot pick a primary gateway
        """
        message = self._prepare(message)
        selection = self.policy.select(message)
        attempts: list[DeliveryAttempt] = []

        log.info(
            "Dispatching SMS",
            policy=self.policy.name,
            primary=selection.primary,
            fallback=selection.fallback,
            country=selection.country_code,
        )

        primary_result, sent = await self._attempt(selection.primary, message, attempts)

        if primary_result.success:
            return FallbackResult(primary_result, attempts, False, selection.country_code)

        # A skipped send is always worth another gateway; a live failure only if retryable
        eligible = not sent or is_retryable(primary_result.error, primary_result.status_code)
        fallback = selection.fallback

        if fallback is not None and fallback not in self.gateways:
            log.warning("Fallback gateway not available", gateway=fallback)
            fallback = None

        if not eligible or fallback is None or fallback == selection.primary:
            log.warning(
                "SMS failed without fallback",
                gateway=selection.primary,
                error=primary_result.error,
                retryable=eligible,
            )
            return FallbackResult(primary_result, attempts, False, selection.country_code)

        log.info(
            "Primary gateway failed, trying fallback",
            primary=selection.primary,
            fallback=fallback,
            error=primary_result.error,
        )
        fallback_result, _ = await self._attempt(fallback, message, attempts)

        if fallback_result.success:
            log.info("SMS sent via fallback", gateway=fallback)
        else:
            log.error("Fallback gateway failed", gateway=fallback, error=fallback_result.error)

        return FallbackResult(fallback_result, attempts, True, selection.country_code)

    async def send_bulk_with_fallback(self, messages: list[SMSMessage]) -> list[FallbackResult]:
        """Send messages one after another, in input order."""
        results = []
        for message in messages:
            results.append(await self.send_with_fallback(message))

        sent = sum(1 for r in results if r.success)
        log.info(
            "Bulk dispatch finished",
            total=len(results),
            sent=sent,
            failed=len(results) - sent,
            fallbacks=sum(1 for r in results if r.fallback_used),
        )
        return results

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    def _require(self, name: str) -> SMSGateway:
        gateway = self.gateways.get(name)
        if gateway is None:
            raise GatewayNotFoundError(
                f"Gateway {name} not found",
                details={"available": self.available_gateways()},
            )
        return gateway

    def available_gateways(self) -> list[str]:
        return list(self.gateways)

    async def get_gateway_balance(self, name: str) -> Balance:
        """Balance of one gateway.

        Raises:
            GatewayNotFoundError: Unknown gateway
            GatewayQueryError: Provider query failed
        """
        return await self._require(name).get_balance()

    async def get_message_status(self, name: str, message_id: str) -> DeliveryStatus:
        """Delivery status of a message sent through `name`.

        Raises:
            GatewayNotFoundError: Unknown gateway
            GatewayQueryError: Provider query failed
        """
        return await self._require(name).get_status(message_id)

    async def test_gateway_connection(self, name: str) -> bool:
        gateway = self.gateways.get(name)
        if gateway is None:
            return False
        return await gateway.test_connection()

    async def validate_sender_id(self, name: str, sender_id: str) -> bool:
        gateway = self.gateways.get(name)
        if gateway is None:
            return False
        return await gateway.validate_sender_id(sender_id)

    def is_gateway_configured(self, name: str) -> bool:
        gateway = self.gateways.get(name)
        return gateway is not None and gateway.is_configured()

    async def get_gateway_status(self, name: str) -> GatewayTestReport:
        """Health report for one gateway."""
        gateway = self.gateways.get(name)
        if gateway is None:
            return GatewayTestReport(
                configured=False,
                connected=False,
                error=f"Gateway {name} not available",
            )
        return await GatewayFactory.test_gateway(gateway)

    async def get_all_gateway_statuses(self) -> dict[str, GatewayTestReport]:
        """Health reports for every gateway, checked one by one."""
        return {name: await self.get_gateway_status(name) for name in self.gateways}

    async def close(self) -> None:
        """Close every gateway's HTTP client."""
        for gateway in self.gateways.values():
            await gateway.close()

    async def __aenter__(self) -> "DispatchEngine":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
