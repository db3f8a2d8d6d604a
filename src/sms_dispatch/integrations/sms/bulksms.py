"""BulkSMS Gateway Implementation.

BulkSMS (bulksms.com) JSON REST API v1.
Authenticates with an API token pair over HTTP Basic auth and bills
one credit per standard message.
"""

from __future__ import annotations

from typing import Any

import httpx

from sms_dispatch.core.exceptions import GatewayQueryError, provider_error, wrap_exception
from sms_dispatch.core.logging import get_logger
from sms_dispatch.integrations.sms.base import (
    Balance,
    DeliveryStatus,
    SMSGateway,
    SMSMessage,
    SMSResult,
    SMSStatus,
    is_success,
    map_provider_status,
    safe_json,
    utcnow,
)

log = get_logger(__name__)


# Map BulkSMS status.type values to canonical statuses
BULKSMS_STATUS_MAP = {
    "accepted": SMSStatus.PENDING,
    "scheduled": SMSStatus.PENDING,
    "sent": SMSStatus.SENT,
    "delivered": SMSStatus.DELIVERED,
    "failed": SMSStatus.FAILED,
}


def bulksms_error(data: Any, status_code: int) -> str:
    """Extract the raw error text from a BulkSMS error body."""
    if isinstance(data, dict):
        if data.get("detail"):
            return str(data["detail"])
        error = data.get("error")
        if isinstance(error, dict) and error.get("description"):
            return str(error["description"])
    return f"HTTP {status_code}"


class BulkSMSGateway(SMSGateway):
    """BulkSMS gateway implementation.

    API Documentation: https://www.bulksms.com/developer/json/v1/
    """

    name = "bulksms"
    display_name = "BulkSMS"

    API_BASE = "https://api.bulksms.com/v1"

    def __init__(
        self,
        token_id: str,
        token_secret: str,
        base_url: str | None = None,
        timeout: float = 30.0,
    ):
        """Initialize BulkSMS gateway.

        Args:
            token_id: BulkSMS API token ID
            token_secret: BulkSMS API token secret
            base_url: Override for the API base URL
            timeout: HTTP request timeout in seconds
        """
        self.token_id = token_id
        self.token_secret = token_secret
        self.base_url = base_url or self.API_BASE
        self.timeout = timeout

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=httpx.BasicAuth(token_id, token_secret),
            timeout=timeout,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )

    def credential_fields(self) -> dict[str, str]:
        return {"token_id": self.token_id, "token_secret": self.token_secret}

    async def _deliver(self, message: SMSMessage) -> SMSResult:
        """Send SMS via the BulkSMS messages endpoint."""
        payload = {
            "to": message.to,
            "from": message.sender,
            "body": message.text,
        }

        response = await self._request("POST", "/messages", json=payload)
        data = safe_json(response)

        if is_success(response) and isinstance(data, list) and data and data[0].get("id"):
            message_id = str(data[0]["id"])
            log.info(
                "SMS sent via BulkSMS",
                to=message.to,
                message_id=message_id,
                segments=self.calculate_segments(message.text),
            )
            # BulkSMS charges one credit per standard message
            return SMSResult(
                success=True,
                gateway=self.name,
                message_id=message_id,
                cost=1.0,
            )

        raise provider_error(bulksms_error(data, response.status_code), response.status_code)

    async def get_balance(self) -> Balance:
        """Get BulkSMS credit balance from the profile endpoint."""
        try:
            response = await self._request("GET", "/profile")
        except Exception as e:
            raise wrap_exception(
                e, GatewayQueryError, f"Failed to get balance: {e}", gateway=self.name
            ) from e

        data = safe_json(response)
        credits = data.get("credits") if isinstance(data, dict) else None

        if not is_success(response) or not isinstance(credits, dict):
            raise GatewayQueryError(
                f"Failed to get balance: {bulksms_error(data, response.status_code)}",
                provider_status=response.status_code,
            )

        return Balance(credits=float(credits.get("balance") or 0), currency="USD")

    async def get_status(self, message_id: str) -> DeliveryStatus:
        """Get message status from BulkSMS.

        Args:
            message_id: BulkSMS message ID

        Returns:
            Current delivery status
        """
        try:
            response = await self._request("GET", f"/messages/{message_id}")
        except Exception as e:
            raise wrap_exception(
                e, GatewayQueryError, f"Failed to get status: {e}", gateway=self.name
            ) from e

        data = safe_json(response)
        if not is_success(response) or not isinstance(data, dict):
            raise GatewayQueryError(
                f"Failed to get status: {bulksms_error(data, response.status_code)}",
                provider_status=response.status_code,
            )

        status_info = data.get("status") or {}
        status = map_provider_status(status_info.get("type"), BULKSMS_STATUS_MAP)

        return DeliveryStatus(
            message_id=message_id,
            status=status,
            delivered_at=utcnow() if status == SMSStatus.DELIVERED else None,
            error=status_info.get("description") if status == SMSStatus.FAILED else None,
        )

    async def test_connection(self) -> bool:
        """Check the credentials against the profile endpoint."""
        try:
            response = await self._request("GET", "/profile")
            return is_success(response)
        except Exception as e:
            log.warning("BulkSMS connection test failed", error=str(e))
            return False
