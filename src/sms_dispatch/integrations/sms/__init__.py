"""SMS Gateway Integration Module.

Supported providers:
- bulksms: HTTP Basic auth, JSON API
- bulkgate: API key in the request body, sender ID validation
- routee: OAuth2 client credentials, cached bearer token
- africastalking: API key header, form-encoded requests
- mock: For development and testing

Delivery Tracking:
- get_status() queries the provider where it has an endpoint
- parse_delivery_report() handles provider callbacks
- Status vocabulary: pending -> sent -> delivered | failed
"""

from sms_dispatch.integrations.sms.base import (
    Balance,
    BulkSendResult,
    DeliveryStatus,
    MockSMSGateway,
    SMSGateway,
    SMSMessage,
    SMSResult,
    SMSStatus,
)
from sms_dispatch.integrations.sms.sender_id import (
    DEFAULT_SENDER_ID,
    is_valid_sender_id_format,
    resolve_sender_id,
)


# Lazy imports for provider gateways and the factory that builds them
def __getattr__(name: str):
    """Lazy load provider gateways, the factory and report parsing."""
    if name == "BulkSMSGateway":
        from sms_dispatch.integrations.sms.bulksms import BulkSMSGateway
        return BulkSMSGateway
    elif name == "BulkGateGateway":
        from sms_dispatch.integrations.sms.bulkgate import BulkGateGateway
        return BulkGateGateway
    elif name == "RouteeGateway":
        from sms_dispatch.integrations.sms.routee import RouteeGateway
        return RouteeGateway
    elif name == "AfricasTalkingGateway":
        from sms_dispatch.integrations.sms.africastalking import AfricasTalkingGateway
        return AfricasTalkingGateway
    elif name == "GatewayFactory":
        from sms_dispatch.integrations.sms.factory import GatewayFactory
        return GatewayFactory
    elif name == "GatewayTestReport":
        from sms_dispatch.integrations.sms.factory import GatewayTestReport
        return GatewayTestReport
    elif name == "parse_delivery_report":
        from sms_dispatch.integrations.sms.webhooks import parse_delivery_report
        return parse_delivery_report
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    # Base classes
    "Balance",
    "BulkSendResult",
    "DeliveryStatus",
    "MockSMSGateway",
    "SMSGateway",
    "SMSMessage",
    "SMSResult",
    "SMSStatus",
    # Provider gateways (lazy loaded)
    "BulkSMSGateway",
    "BulkGateGateway",
    "RouteeGateway",
    "AfricasTalkingGateway",
    # Factory (lazy loaded)
    "GatewayFactory",
    "GatewayTestReport",
    # Sender IDs and delivery reports
    "DEFAULT_SENDER_ID",
    "is_valid_sender_id_format",
    "resolve_sender_id",
    "parse_delivery_report",
]
