"""Africa's Talking Gateway Implementation.

Africa's Talking messaging API (version1). Requests are
form-urlencoded and authenticated with an `apiKey` header plus the
account `username`. A sandbox environment is available for testing.
"""

from __future__ import annotations

import re
from typing import Any

import httpx

from sms_dispatch.core.exceptions import (
    GatewayQueryError,
    TerminalProviderRejection,
    provider_error,
    wrap_exception,
)
from sms_dispatch.core.logging import get_logger
from sms_dispatch.integrations.sms.base import (
    Balance,
    DeliveryStatus,
    SMSGateway,
    SMSMessage,
    SMSResult,
    SMSStatus,
    is_success,
    safe_json,
)

log = get_logger(__name__)


# Recipient statusCode for a message accepted for delivery
AT_SUCCESS_CODE = 101

AFRICASTALKING_STATUS_MAP = {
    "success": SMSStatus.SENT,
    "sent": SMSStatus.SENT,
    "submitted": SMSStatus.SENT,
    "buffered": SMSStatus.SENT,
    "delivered": SMSStatus.DELIVERED,
    "failed": SMSStatus.FAILED,
    "rejected": SMSStatus.FAILED,
}

# "AOA 0.8000", "KES 1785.50"
_AMOUNT_PATTERN = re.compile(r"^\s*([A-Z]{3})?\s*(-?[\d.,]+)\s*$")


def parse_amount(value: Any) -> tuple[str | None, float | None]:
    """Split an Africa's Talking amount string into currency and value."""
    if value is None:
        return None, None
    if isinstance(value, (int, float)):
        return None, float(value)
    match = _AMOUNT_PATTERN.match(str(value))
    if not match:
        return None, None
    currency, amount = match.groups()
    try:
        return currency, float(amount.replace(",", ""))
    except ValueError:
        return currency, None


class AfricasTalkingGateway(SMSGateway):
    """Africa's Talking gateway implementation.

    There is no per-message status query; delivery reports arrive by
    callback only.

    API Documentation: https://developers.africastalking.com/docs/sms/sending
    """

    name = "africastalking"
    display_name = "Africa's Talking"

    API_BASE = "https://api.africastalking.com/version1"
    SANDBOX_API_BASE = "https://api.sandbox.africastalking.com/version1"

    def __init__(
        self,
        username: str,
        api_key: str,
        sandbox: bool = False,
        default_country_prefix: str = "+244",
        base_url: str | None = None,
        timeout: float = 30.0,
    ):
        """Initialize Africa's Talking gateway.

        Args:
            username: Africa's Talking account username ("sandbox" in sandbox)
            api_key: Africa's Talking API key
            sandbox: Use the sandbox environment
            default_country_prefix: Prefix for numbers in national format
            base_url: Override for the API base URL
            timeout: HTTP request timeout in seconds
        """
        self.username = username
        self.api_key = api_key
        self.sandbox = sandbox
        self.default_country_prefix = default_country_prefix
        self.base_url = base_url or (self.SANDBOX_API_BASE if sandbox else self.API_BASE)
        self.timeout = timeout

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "apiKey": api_key,
                "Accept": "application/json",
            },
        )

    def credential_fields(self) -> dict[str, str]:
        return {"username": self.username, "api_key": self.api_key}

    async def _deliver(self, message: SMSMessage) -> SMSResult:
        """Send SMS via the messaging endpoint."""
        normalized_to = self.normalize_phone(message.to, self.default_country_prefix)

        form = {
            "username": self.username,
            "to": normalized_to,
            "message": message.text,
        }
        if message.sender:
            form["from"] = message.sender

        response = await self._request("POST", "/messaging", data=form)
        if not is_success(response):
            # Error bodies are plain text
            raise provider_error(
                response.text or f"HTTP {response.status_code}",
                response.status_code,
            )

        data = safe_json(response)
        sms_data = data.get("SMSMessageData") if isinstance(data, dict) else None
        if not isinstance(sms_data, dict):
            raise TerminalProviderRejection(
                "Invalid response from Africa's Talking",
                provider_status=response.status_code,
            )

        recipients = sms_data.get("Recipients") or []
        if not recipients:
            # The batch-level Message explains the refusal, e.g. "InvalidSenderId"
            raise TerminalProviderRejection(
                str(sms_data.get("Message") or "No recipients accepted"),
                provider_status=response.status_code,
            )

        recipient = recipients[0]
        if recipient.get("statusCode") != AT_SUCCESS_CODE:
            raise TerminalProviderRejection(
                str(recipient.get("status") or "Message not accepted"),
                provider_status=response.status_code,
            )

        message_id = str(recipient.get("messageId") or "")
        _, cost = parse_amount(recipient.get("cost"))

        log.info(
            "SMS sent via Africa's Talking",
            to=normalized_to,
            message_id=message_id,
            segments=self.calculate_segments(message.text),
        )

        return SMSResult(
            success=True,
            gateway=self.name,
            message_id=message_id,
            cost=cost,
        )

    async def get_balance(self) -> Balance:
        """Get the account balance from the user endpoint."""
        try:
            response = await self._request(
                "GET", "/user", params={"username": self.username}
            )
        except Exception as e:
            raise wrap_exception(
                e, GatewayQueryError, f"Failed to get balance: {e}", gateway=self.name
            ) from e

        data = safe_json(response)
        user_data = data.get("UserData") if isinstance(data, dict) else None

        if not is_success(response) or not isinstance(user_data, dict):
            raise GatewayQueryError(
                f"Failed to get balance: HTTP {response.status_code}",
                provider_status=response.status_code,
            )

        currency, amount = parse_amount(user_data.get("balance"))
        if amount is None:
            raise GatewayQueryError(
                f"Failed to get balance: unexpected balance {user_data.get('balance')!r}"
            )

        return Balance(credits=amount, currency=currency)

    async def get_status(self, message_id: str) -> DeliveryStatus:
        """Africa's Talking has no status query, so this is always pending.

        Delivery reports are handled by `parse_delivery_report`.
        """
        return DeliveryStatus(message_id=message_id, status=SMSStatus.PENDING)

    async def test_connection(self) -> bool:
        """Check the credentials against the user endpoint."""
        try:
            response = await self._request(
                "GET", "/user", params={"username": self.username}
            )
            return is_success(response)
        except Exception as e:
            log.warning("Africa's Talking connection test failed", error=str(e))
            return False
