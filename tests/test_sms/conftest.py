"""Test fixtures for SMS integration tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest


@pytest.fixture
def make_response():
    """Factory for mocked httpx responses."""

    def _make(status_code: int = 200, json_data=None, text: str = ""):
        response = MagicMock()
        response.status_code = status_code
        response.text = text
        if json_data is None:
            response.content = b""
            response.json.side_effect = ValueError("No JSON body")
        else:
            response.content = b"{}"
            response.json.return_value = json_data
        return response

    return _make


@pytest.fixture
def mock_http_client():
    """Mock httpx.AsyncClient used by the gateways."""
    with patch("httpx.AsyncClient") as mock:
        client = MagicMock()
        client.post = AsyncMock()
        client.get = AsyncMock()
        client.aclose = AsyncMock()

        mock.return_value = client
        yield client


@pytest.fixture
def bulksms_gateway(mock_http_client):
    """Create BulkSMSGateway with mocked client."""
    from sms_dispatch.integrations.sms.bulksms import BulkSMSGateway

    gateway = BulkSMSGateway(token_id="test_token_id", token_secret="test_token_secret")
    gateway._client = mock_http_client
    return gateway


@pytest.fixture
def bulkgate_gateway(mock_http_client):
    """Create BulkGateGateway with mocked client."""
    from sms_dispatch.integrations.sms.bulkgate import BulkGateGateway

    gateway = BulkGateGateway(api_key="12345:test_app_token")
    gateway._client = mock_http_client
    return gateway


@pytest.fixture
def routee_gateway(mock_http_client):
    """Create RouteeGateway with mocked client."""
    from sms_dispatch.integrations.sms.routee import RouteeGateway

    gateway = RouteeGateway(application_id="test_app_id", application_secret="test_app_secret")
    gateway._client = mock_http_client
    return gateway


@pytest.fixture
def africastalking_gateway(mock_http_client):
    """Create AfricasTalkingGateway with mocked client."""
    from sms_dispatch.integrations.sms.africastalking import AfricasTalkingGateway

    gateway = AfricasTalkingGateway(username="sandbox", api_key="test_at_key", sandbox=True)
    gateway._client = mock_http_client
    return gateway


@pytest.fixture
def sample_sms_message():
    """Create a sample SMS message to an Angolan number."""
    from sms_dispatch.integrations.sms.base import SMSMessage

    return SMSMessage(
        to="+244923456789",
        text="A sua encomenda foi enviada.",
        sender="SMSAO",
    )


@pytest.fixture
def routee_token_payload():
    """Routee OAuth token response body."""
    return {
        "access_token": "routee_access_token",
        "token_type": "bearer",
        "expires_in": 3600,
        "scope": "sms",
    }
