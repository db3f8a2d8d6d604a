"""Base SMS Gateway Interface.

Defines the canonical message/result types and the abstract
interface every provider adapter implements.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping
from uuid import uuid4

import httpx

from sms_dispatch.core.exceptions import (
    ConnectivityError,
    SMSGatewayError,
)
from sms_dispatch.core.logging import get_logger
from sms_dispatch.integrations.sms.sender_id import is_valid_sender_id_format

log = get_logger(__name__)


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class SMSStatus(str, Enum):
    """Canonical delivery status vocabulary."""

    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"


def map_provider_status(
    raw_status: str | None,
    status_map: Mapping[str, SMSStatus],
) -> SMSStatus:
    """Map a provider status value to the canonical vocabulary.

    Unknown values are reported as pending, never as failed.
    """
    if not raw_status:
        return SMSStatus.PENDING
    return status_map.get(str(raw_status).strip().lower(), SMSStatus.PENDING)


@dataclass
class SMSMessage:
    """SMS message to send."""

    to: str  # Phone number, E.164 preferred (e.g., +244923456789)
    text: str  # Message body
    sender: str = ""  # Sender ID or number
    campaign_id: str | None = None


@dataclass
class SMSResult:
    """Result of a single send operation."""

    success: bool
    gateway: str
    message_id: str | None = None
    error: str | None = None
    cost: float | None = None  # Units billed by the provider
    status_code: int | None = None  # Provider HTTP status on failure

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "gateway": self.gateway,
            "message_id": self.message_id,
            "error": self.error,
            "cost": self.cost,
            "status_code": self.status_code,
        }


@dataclass
class BulkSendResult:
    """Aggregate result of a bulk send."""

    success: bool
    total_sent: int
    total_failed: int
    results: list[SMSResult]
    gateway: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "total_sent": self.total_sent,
            "total_failed": self.total_failed,
            "results": [r.to_dict() for r in self.results],
            "gateway": self.gateway,
        }


@dataclass
class DeliveryStatus:
    """Delivery status of a message."""

    message_id: str
    status: SMSStatus
    delivered_at: datetime | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "message_id": self.message_id,
            "status": self.status.value,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "error": self.error,
        }


@dataclass
class Balance:
    """Account balance reported by a provider."""

    credits: float
    currency: str | None = None
    last_updated: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "credits": self.credits,
            "currency": self.currency,
            "last_updated": self.last_updated.isoformat(),
        }


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp from a provider payload."""
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def is_success(response: httpx.Response) -> bool:
    """True for 2xx responses."""
    return 200 <= response.status_code < 300


def safe_json(response: httpx.Response) -> Any:
    """Decode a JSON body, returning an empty dict when there is none."""
    if not response.content:
        return {}
    try:
        return response.json()
    except (ValueError, TypeError):
        return {}


class SMSGateway(ABC):
    """Abstract base class for SMS gateways.

    Adapters implement `_deliver` and may raise SMSGatewayError
    subclasses from it; `send_single` turns every failure into a
    failed SMSResult so nothing escapes to the caller.
    """

    name: str = ""
    display_name: str = ""

    _client: httpx.AsyncClient

    async def send_single(self, message: SMSMessage) -> SMSResult:
        """Send a single SMS message.

        Args:
            message: SMS message to send

        Returns:
            Result with success flag, message ID or raw provider error
        """
        try:
            return await self._deliver(message)
        except SMSGatewayError as e:
            log.warning(
                "SMS send failed",
                gateway=self.name,
                error_code=e.error_code,
                provider_status=e.provider_status,
                error=e.message,
            )
            return self.failure(e.message, e.provider_status)
        except httpx.TimeoutException:
            log.error("SMS send timeout", gateway=self.name)
            return self.failure("Request timeout")
        except httpx.HTTPError as e:
            log.error("SMS send HTTP error", gateway=self.name, error=str(e))
            return self.failure(f"Connection failed: {e}")
        except Exception as e:
            log.exception("SMS send error", gateway=self.name)
            return self.failure(str(e) or type(e).__name__)

    @abstractmethod
    async def _deliver(self, message: SMSMessage) -> SMSResult:
        """Submit one message to the provider."""

    async def send_bulk(self, messages: list[SMSMessage]) -> BulkSendResult:
        """Send multiple SMS messages one by one.

        Sends run one after another; results keep the input order.

        Args:
            messages: List of messages to send

        Returns:
            Aggregate result with one entry per message, in input order
        """
        results: list[SMSResult] = []
        total_sent = 0
        total_failed = 0

        for message in messages:
            result = await self.send_single(message)
            results.append(result)
            if result.success:
                total_sent += 1
            else:
                total_failed += 1

        return BulkSendResult(
            success=total_sent > 0,
            total_sent=total_sent,
            total_failed=total_failed,
            results=results,
            gateway=self.name,
        )

    @abstractmethod
    async def get_balance(self) -> Balance:
        """Get account balance.

        Raises:
            GatewayQueryError: If the provider is unreachable or the
                response has an unexpected shape
        """

    @abstractmethod
    async def get_status(self, message_id: str) -> DeliveryStatus:
        """Check delivery status of a message.

        Args:
            message_id: Message ID from send result

        Returns:
            Current delivery status in the canonical vocabulary
        """

    async def validate_sender_id(self, sender_id: str) -> bool:
        """Check whether a sender ID is usable.

        Default is a local format check (alphanumeric, at most 11
        characters) for providers without a validation endpoint.
        """
        return is_valid_sender_id_format(sender_id)

    @abstractmethod
    def credential_fields(self) -> dict[str, str]:
        """Return the credential values this gateway requires."""

    def is_configured(self) -> bool:
        """True if every required credential is present (no I/O)."""
        return all(value and value.strip() for value in self.credential_fields().values())

    @abstractmethod
    async def test_connection(self) -> bool:
        """Cheap live call confirming the provider accepts our credentials."""

    def failure(self, error: str, status_code: int | None = None) -> SMSResult:
        """Build a failed result for this gateway."""
        return SMSResult(
            success=False,
            gateway=self.name,
            error=error,
            status_code=status_code,
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Issue an HTTP request, mapping transport failures.

        Raises:
            ConnectivityError: On timeout or connection failure
        """
        call = self._client.get if method == "GET" else self._client.post
        try:
            return await call(url, **kwargs)
        except httpx.TimeoutException as e:
            raise ConnectivityError("Request timeout", cause=e) from e
        except httpx.TransportError as e:
            raise ConnectivityError(f"Connection failed: {e}", cause=e) from e

    def normalize_phone(self, phone: str, default_prefix: str = "+244") -> str:
        """Normalize phone number to E.164 format.

        Numbers without an international prefix are assumed to belong
        to the default country.

        Args:
            phone: Phone number in any format
            default_prefix: Country prefix for national numbers

        Returns:
            Phone number in E.164 format (e.g., +244923456789)
        """
        # Remove spaces, dashes, and parentheses
        phone = "".join(c for c in phone if c.isdigit() or c == "+")
        country_digits = default_prefix.lstrip("+")

        if phone.startswith("+"):
            return phone
        if phone.startswith("00"):
            return "+" + phone[2:]
        if phone.startswith(country_digits) and len(phone) > len(country_digits) + 8:
            return "+" + phone
        return default_prefix + phone.lstrip("0")

    def calculate_segments(self, text: str) -> int:
        """Calculate number of SMS segments for a message.

        Standard SMS: 160 chars (GSM-7) or 70 chars (Unicode)
        Concatenated: 153 chars (GSM-7) or 67 chars (Unicode) per segment

        Args:
            text: Message text

        Returns:
            Number of segments
        """
        return calculate_segments(text)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "SMSGateway":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()


GSM7_CHARS = set(
    "@£$¥èéùìòÇ\nØø\rÅåΔ_ΦΓΛΩΠΨΣΘΞ\x1bÆæßÉ "
    '!"#¤%&\'()*+,-./0123456789:;<=>?'
    "¡ABCDEFGHIJKLMNOPQRSTUVWXYZÄÖÑÜ§"
    "¿abcdefghijklmnopqrstuvwxyzäöñüà"
)
# Escaped characters that take two GSM-7 septets
GSM7_EXTENDED = set("{}\\[~]|€^")


def calculate_segments(text: str) -> int:
    """Number of billable segments for a message body."""
    is_gsm7 = all(c in GSM7_CHARS or c in GSM7_EXTENDED for c in text)

    if is_gsm7:
        length = sum(2 if c in GSM7_EXTENDED else 1 for c in text)
        if length <= 160:
            return 1
        return (length + 152) // 153

    if len(text) <= 70:
        return 1
    return (len(text) + 66) // 67


class MockSMSGateway(SMSGateway):
    """Mock SMS gateway for development and testing.

    Optionally fails every send with a fixed error so fallback
    paths can be exercised without a provider.
    """

    def __init__(
        self,
        name: str = "mock",
        fail_with: str | None = None,
        fail_status: int | None = None,
    ):
        """Initialize mock gateway."""
        self.name = name
        self.display_name = f"Mock ({name})"
        self.fail_with = fail_with
        self.fail_status = fail_status
        self._sent_messages: list[dict[str, Any]] = []
        self._message_statuses: dict[str, SMSStatus] = {}

    async def _deliver(self, message: SMSMessage) -> SMSResult:
        """Mock send - records message and returns success."""
        if self.fail_with:
            return self.failure(self.fail_with, self.fail_status)

        message_id = str(uuid4())
        segments = self.calculate_segments(message.text)

        log.info(
            "Mock SMS sent",
            gateway=self.name,
            message_id=message_id,
            segments=segments,
        )

        self._sent_messages.append({
            "message_id": message_id,
            "to": message.to,
            "sender": message.sender,
            "text": message.text,
            "sent_at": utcnow(),
        })
        self._message_statuses[message_id] = SMSStatus.SENT

        return SMSResult(
            success=True,
            gateway=self.name,
            message_id=message_id,
            cost=float(segments),
        )

    async def get_balance(self) -> Balance:
        """Mock balance."""
        return Balance(credits=0.0, currency=None)

    async def get_status(self, message_id: str) -> DeliveryStatus:
        """Get mock message status."""
        return DeliveryStatus(
            message_id=message_id,
            status=self._message_statuses.get(message_id, SMSStatus.PENDING),
        )

    def credential_fields(self) -> dict[str, str]:
        """Mock gateway needs no credentials."""
        return {}

    async def test_connection(self) -> bool:
        """Mock gateway is always reachable."""
        return True

    async def close(self) -> None:
        """Nothing to close."""

    def get_sent_messages(self) -> list[dict[str, Any]]:
        """Get list of all sent messages (for testing)."""
        return self._sent_messages.copy()

    def clear_sent_messages(self) -> None:
        """Clear sent messages list (for testing)."""
        self._sent_messages.clear()
        self._message_statuses.clear()
