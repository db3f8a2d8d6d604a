"""BulkGate Gateway Implementation.

BulkGate (bulkgate.com) HTTP API. Credentials travel in the JSON body
instead of a header: every request carries `application_id` and
`application_token`. A single API key may be given as
"application_id:application_token"; a bare key is used for both.
"""

from __future__ import annotations

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
    map_provider_status,
    parse_timestamp,
    safe_json,
)

log = get_logger(__name__)


BULKGATE_STATUS_MAP = {
    "accepted": SMSStatus.PENDING,
    "scheduled": SMSStatus.PENDING,
    "sent": SMSStatus.SENT,
    "delivered": SMSStatus.DELIVERED,
    "failed": SMSStatus.FAILED,
    "rejected": SMSStatus.FAILED,
}


def bulkgate_error(data: Any, status_code: int) -> str:
    """Extract the raw error text from a BulkGate response."""
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        inner = data.get("data")
        if isinstance(inner, dict) and inner.get("error"):
            return str(inner["error"])
    return f"HTTP {status_code}"


def split_api_key(api_key: str) -> tuple[str, str]:
    """Split an "id:token" API key into its two parts."""
    if ":" in api_key:
        application_id, _, application_token = api_key.partition(":")
        return application_id, application_token
    return api_key, api_key


class BulkGateGateway(SMSGateway):
    """BulkGate gateway implementation.

    Preferred route for Angola and the other PALOP countries.

    API Documentation: https://help.bulkgate.com/docs/en/http-simple-transactional.html
    """

    name = "bulkgate"
    display_name = "BulkGate"

    API_BASE = "https://portal.bulkgate.com/api"

    def __init__(
        self,
        api_key: str,
        application_id: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
    ):
        """Initialize BulkGate gateway.

        Args:
            api_key: BulkGate API key ("id:token" or a bare token)
            application_id: Explicit application ID, overrides the key prefix
            base_url: Override for the API base URL
            timeout: HTTP request timeout in seconds
        """
        self.api_key = api_key
        key_id, self.application_token = split_api_key(api_key or "")
        self.application_id = application_id or key_id
        self.base_url = base_url or self.API_BASE
        self.timeout = timeout

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )

    def credential_fields(self) -> dict[str, str]:
        return {"api_key": self.api_key}

    def _auth_payload(self) -> dict[str, str]:
        return {
            "application_id": self.application_id,
            "application_token": self.application_token,
        }

    async def _deliver(self, message: SMSMessage) -> SMSResult:
        """Send SMS via the simple transactional endpoint."""
        payload = {
            **self._auth_payload(),
            "number": message.to,
            "text": message.text,
        }
        if message.sender:
            payload["sender_id"] = "text"
            payload["sender_id_value"] = message.sender

        response = await self._request("POST", "/1.0/simple/transactional", json=payload)
        data = safe_json(response)
        result = data.get("data") if isinstance(data, dict) else None

        if is_success(response) and isinstance(result, dict):
            if result.get("status") == "accepted":
                message_id = str(result.get("sms_id") or "")
                log.info(
                    "SMS sent via BulkGate",
                    to=message.to,
                    message_id=message_id,
                    segments=self.calculate_segments(message.text),
                )
                return SMSResult(
                    success=True,
                    gateway=self.name,
                    message_id=message_id,
                    cost=float(result.get("price") or 1),
                )
            # Answered 2xx but refused the message
            raise TerminalProviderRejection(
                bulkgate_error(data, response.status_code)
                if result.get("error")
                else "Message not accepted",
                provider_status=response.status_code,
            )

        raise provider_error(bulkgate_error(data, response.status_code), response.status_code)

    async def get_balance(self) -> Balance:
        """Get BulkGate credit from the account info endpoint."""
        try:
            response = await self._request(
                "POST", "/2.0/advanced/info", json=self._auth_payload()
            )
        except Exception as e:
            raise wrap_exception(
                e, GatewayQueryError, f"Failed to get balance: {e}", gateway=self.name
            ) from e

        data = safe_json(response)
        info = data.get("data") if isinstance(data, dict) else None

        if not is_success(response) or not isinstance(info, dict):
            raise GatewayQueryError(
                f"Failed to get balance: {bulkgate_error(data, response.status_code)}",
                provider_status=response.status_code,
            )

        currency = info.get("currency") or "EUR"
        # BulkGate reports prepaid credit with the pseudo-currency "credits"
        if currency == "credits":
            currency = "EUR"

        return Balance(credits=float(info.get("credit") or 0), currency=currency)

    async def get_status(self, message_id: str) -> DeliveryStatus:
        """Get message status from BulkGate.

        Args:
            message_id: BulkGate sms_id

        Returns:
            Current delivery status
        """
        payload = {**self._auth_payload(), "sms_id": message_id}
        try:
            response = await self._request("POST", "/1.0/simple/status", json=payload)
        except Exception as e:
            raise wrap_exception(
                e, GatewayQueryError, f"Failed to get status: {e}", gateway=self.name
            ) from e

        data = safe_json(response)
        info = data.get("data") if isinstance(data, dict) else None

        if not is_success(response) or not isinstance(info, dict):
            raise GatewayQueryError(
                f"Failed to get status: {bulkgate_error(data, response.status_code)}",
                provider_status=response.status_code,
            )

        status = map_provider_status(info.get("status"), BULKGATE_STATUS_MAP)
        return DeliveryStatus(
            message_id=message_id,
            status=status,
            delivered_at=parse_timestamp(info.get("delivered_at")),
            error=info.get("error") if status == SMSStatus.FAILED else None,
        )

    async def validate_sender_id(self, sender_id: str) -> bool:
        """Ask BulkGate whether the sender ID is approved for this account."""
        payload = {**self._auth_payload(), "sender_id_value": sender_id}
        try:
            response = await self._request(
                "POST", "/1.0/simple/sender-id/validate", json=payload
            )
        except Exception as e:
            log.warning("BulkGate sender ID check failed", sender_id=sender_id, error=str(e))
            return False

        data = safe_json(response)
        info = data.get("data") if isinstance(data, dict) else None
        return is_success(response) and isinstance(info, dict) and info.get("valid") is True

    async def test_connection(self) -> bool:
        """Check the credentials against the account info endpoint."""
        try:
            response = await self._request(
                "POST", "/2.0/advanced/info", json=self._auth_payload()
            )
            return is_success(response)
        except Exception as e:
            log.warning("BulkGate connection test failed", error=str(e))
            return False
