"""Routee (AMD Telecom) Gateway Implementation.

Routee authenticates with OAuth2 client credentials. The bearer token
is cached on the adapter instance together with its expiry and is
fetched again lazily once it has expired.
"""

from __future__ import annotations

import asyncio
from time import monotonic
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
    parse_timestamp,
    safe_json,
)

log = get_logger(__name__)


# Subtracted from the provider-declared token lifetime
TOKEN_EXPIRY_MARGIN = 60

ROUTEE_STATUS_MAP = {
    "queued": SMSStatus.PENDING,
    "sent": SMSStatus.SENT,
    "delivered": SMSStatus.DELIVERED,
    "undelivered": SMSStatus.FAILED,
    "failed": SMSStatus.FAILED,
    "expired": SMSStatus.FAILED,
    "rejected": SMSStatus.FAILED,
}


def routee_error(data: Any, status_code: int) -> str:
    """Extract the raw error text from a Routee error body."""
    if isinstance(data, dict):
        for key in ("developerMessage", "message", "error_description", "error"):
            if data.get(key):
                return str(data[key])
    return f"HTTP {status_code}"


def _status_name(value: Any) -> str | None:
    # Tracking entries carry either "Delivered" or {"name": "Delivered"}
    if isinstance(value, dict):
        return value.get("name") or value.get("status")
    return value


class RouteeGateway(SMSGateway):
    """Routee gateway implementation.

    Numbers without an international prefix are sent to the
    default country (+244 unless configured otherwise).

    API Documentation: https://docs.routee.net/docs/sending-sms
    """

    name = "routee"
    display_name = "Routee (AMD Telecom)"

    API_BASE = "https://connect.routee.net"
    TOKEN_URL = "https://auth.routee.net/oauth/token"

    def __init__(
        self,
        application_id: str,
        application_secret: str,
        default_country_prefix: str = "+244",
        base_url: str | None = None,
        token_url: str | None = None,
        timeout: float = 30.0,
    ):
        """Initialize Routee gateway.

        Args:
            application_id: Routee application ID
            application_secret: Routee application secret
            default_country_prefix: Prefix for numbers in national format
            base_url: Override for the API base URL
            token_url: Override for the OAuth token endpoint
            timeout: HTTP request timeout in seconds
        """
        self.application_id = application_id
        self.application_secret = application_secret
        self.default_country_prefix = default_country_prefix
        self.base_url = base_url or self.API_BASE
        self.token_url = token_url or self.TOKEN_URL
        self.timeout = timeout

        self._access_token: str | None = None
        self._token_expires_at: float = 0.0
        self._token_lock = asyncio.Lock()

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    def credential_fields(self) -> dict[str, str]:
        return {
            "application_id": self.application_id,
            "application_secret": self.application_secret,
        }

    def _token_valid(self) -> bool:
        return self._access_token is not None and monotonic() < self._token_expires_at

    def invalidate_token(self) -> None:
        """Forget the cached token so the next call fetches a new one."""
        self._access_token = None
        self._token_expires_at = 0.0

    async def _get_access_token(self) -> str:
        """Return a valid bearer token, fetching one if needed.

        Concurrent callers wait on the lock; the first one fetches and
        the rest reuse its token.
        """
        if self._token_valid():
            return self._access_token  # type: ignore[return-value]

        async with self._token_lock:
            if self._token_valid():
                return self._access_token  # type: ignore[return-value]

            response = await self._request(
                "POST",
                self.token_url,
                auth=httpx.BasicAuth(self.application_id, self.application_secret),
                data={"grant_type": "client_credentials"},
            )
            data = safe_json(response)

            if not is_success(response) or not isinstance(data, dict) or not data.get("access_token"):
                raise provider_error(
                    f"Routee authentication failed: {routee_error(data, response.status_code)}",
                    response.status_code,
                )

            expires_in = float(data.get("expires_in") or 0)
            self._access_token = str(data["access_token"])
            self._token_expires_at = monotonic() + expires_in - TOKEN_EXPIRY_MARGIN

            log.debug("Routee access token refreshed", expires_in=expires_in)
            return self._access_token

    async def _auth_headers(self) -> dict[str, str]:
        token = await self._get_access_token()
        return {"Authorization": f"Bearer {token}"}

    async def _deliver(self, message: SMSMessage) -> SMSResult:
        """Send SMS via the Routee /sms endpoint."""
        normalized_to = self.normalize_phone(message.to, self.default_country_prefix)

        payload = {
            "body": message.text,
            "to": normalized_to,
            "from": message.sender,
        }

        headers = await self._auth_headers()
        response = await self._request("POST", "/sms", json=payload, headers=headers)
        data = safe_json(response)

        if is_success(response) and isinstance(data, dict):
            message_id = str(data.get("trackingId") or data.get("messageId") or "")
            log.info(
                "SMS sent via Routee",
                to=normalized_to,
                message_id=message_id,
                segments=self.calculate_segments(message.text),
            )
            return SMSResult(
                success=True,
                gateway=self.name,
                message_id=message_id,
                cost=_parse_cost(data.get("price") or data.get("cost")),
            )

        if response.status_code == 401:
            self.invalidate_token()

        raise provider_error(routee_error(data, response.status_code), response.status_code)

    async def get_balance(self) -> Balance:
        """Get the Routee account balance."""
        try:
            headers = await self._auth_headers()
            response = await self._request("GET", "/accounts/me/balance", headers=headers)
        except Exception as e:
            raise wrap_exception(
                e, GatewayQueryError, f"Failed to get balance: {e}", gateway=self.name
            ) from e

        data = safe_json(response)
        if not is_success(response) or not isinstance(data, dict) or "balance" not in data:
            raise GatewayQueryError(
                f"Failed to get balance: {routee_error(data, response.status_code)}",
                provider_status=response.status_code,
            )

        currency = data.get("currency")
        if isinstance(currency, dict):
            currency = currency.get("code")

        return Balance(credits=float(data["balance"] or 0), currency=currency or "EUR")

    async def get_status(self, message_id: str) -> DeliveryStatus:
        """Get message status from the Routee tracking API.

        Args:
            message_id: Routee tracking ID

        Returns:
            Current delivery status
        """
        try:
            headers = await self._auth_headers()
            response = await self._request(
                "GET", f"/sms/tracking/single/{message_id}", headers=headers
            )
        except Exception as e:
            raise wrap_exception(
                e, GatewayQueryError, f"Failed to get status: {e}", gateway=self.name
            ) from e

        data = safe_json(response)
        if not is_success(response):
            raise GatewayQueryError(
                f"Failed to get status: {routee_error(data, response.status_code)}",
                provider_status=response.status_code,
            )

        # The tracking endpoint answers with one entry per message part
        entry = data[-1] if isinstance(data, list) and data else data
        if not isinstance(entry, dict):
            return DeliveryStatus(message_id=message_id, status=SMSStatus.PENDING)

        status = map_provider_status(_status_name(entry.get("status")), ROUTEE_STATUS_MAP)
        return DeliveryStatus(
            message_id=message_id,
            status=status,
            delivered_at=(
                parse_timestamp(entry.get("lastUpdated") or entry.get("deliveredAt"))
                if status == SMSStatus.DELIVERED
                else None
            ),
            error=entry.get("reason") if status == SMSStatus.FAILED else None,
        )

    async def test_connection(self) -> bool:
        """Check the credentials by fetching an access token."""
        try:
            await self._get_access_token()
            return True
        except Exception as e:
            log.warning("Routee connection test failed", error=str(e))
            return False


def _parse_cost(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
