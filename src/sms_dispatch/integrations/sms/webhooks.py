"""Delivery report parsing.

Turns the callback payloads each provider posts back into canonical
DeliveryStatus records, using the same status tables the adapters use
for their status queries.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

from sms_dispatch.core.exceptions import GatewayNotFoundError
from sms_dispatch.core.logging import get_logger
from sms_dispatch.integrations.sms.africastalking import AFRICASTALKING_STATUS_MAP
from sms_dispatch.integrations.sms.base import (
    DeliveryStatus,
    SMSStatus,
    map_provider_status,
    parse_timestamp,
    utcnow,
)
from sms_dispatch.integrations.sms.bulkgate import BULKGATE_STATUS_MAP
from sms_dispatch.integrations.sms.bulksms import BULKSMS_STATUS_MAP
from sms_dispatch.integrations.sms.routee import ROUTEE_STATUS_MAP

log = get_logger(__name__)


def _as_list(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, Mapping)]
    if isinstance(payload, Mapping):
        return [payload]
    return []


def _report(
    message_id: Any,
    raw_status: Any,
    status_map: Mapping[str, SMSStatus],
    timestamp: Any = None,
    error: Any = None,
) -> DeliveryStatus | None:
    if not message_id:
        return None
    status = map_provider_status(raw_status, status_map)
    delivered_at = None
    if status == SMSStatus.DELIVERED:
        delivered_at = parse_timestamp(timestamp) or utcnow()
    return DeliveryStatus(
        message_id=str(message_id),
        status=status,
        delivered_at=delivered_at,
        error=str(error) if error and status == SMSStatus.FAILED else None,
    )


def parse_bulksms_report(payload: Any) -> list[DeliveryStatus]:
    """BulkSMS posts a JSON array of message objects."""
    reports = []
    for item in _as_list(payload):
        status = item.get("status") or {}
        if not isinstance(status, Mapping):
            status = {"type": status}
        submission = item.get("submission")
        report = _report(
            item.get("id"),
            status.get("type"),
            BULKSMS_STATUS_MAP,
            timestamp=submission.get("date") if isinstance(submission, Mapping) else None,
            error=status.get("subtype") or status.get("description"),
        )
        if report:
            reports.append(report)
    return reports


def parse_bulkgate_report(payload: Any) -> list[DeliveryStatus]:
    """BulkGate posts one report per message with its sms_id."""
    reports = []
    for item in _as_list(payload):
        report = _report(
            item.get("sms_id") or item.get("id"),
            item.get("status"),
            BULKGATE_STATUS_MAP,
            timestamp=item.get("delivered_at") or item.get("timestamp"),
            error=item.get("error"),
        )
        if report:
            reports.append(report)
    return reports


def parse_routee_report(payload: Any) -> list[DeliveryStatus]:
    """Routee posts {"messageId", "status": {"name", "date"}}."""
    reports = []
    for item in _as_list(payload):
        status = item.get("status") or {}
        if not isinstance(status, Mapping):
            status = {"name": status}
        report = _report(
            item.get("messageId") or item.get("trackingId"),
            status.get("name"),
            ROUTEE_STATUS_MAP,
            timestamp=status.get("date"),
            error=item.get("reason") or status.get("reason"),
        )
        if report:
            reports.append(report)
    return reports


def parse_africastalking_report(payload: Any) -> list[DeliveryStatus]:
    """Africa's Talking posts form fields id, status and failureReason."""
    reports = []
    for item in _as_list(payload):
        report = _report(
            item.get("id"),
            item.get("status"),
            AFRICASTALKING_STATUS_MAP,
            error=item.get("failureReason"),
        )
        if report:
            reports.append(report)
    return reports


REPORT_PARSERS: dict[str, Callable[[Any], list[DeliveryStatus]]] = {
    "bulksms": parse_bulksms_report,
    "bulkgate": parse_bulkgate_report,
    "routee": parse_routee_report,
    "africastalking": parse_africastalking_report,
}


def parse_delivery_report(gateway: str, payload: Any) -> list[DeliveryStatus]:
    """Parse a provider delivery report.

    Args:
        gateway: Gateway name the callback belongs to
        payload: Decoded JSON body or form fields

    Returns:
        One DeliveryStatus per message in the report; entries without
        a message ID are skipped

    Raises:
        GatewayNotFoundError: If there is no parser for the gateway
    """
    parser = REPORT_PARSERS.get(gateway.lower())
    if parser is None:
        raise GatewayNotFoundError(
            f"No delivery report parser for gateway '{gateway}'",
            details={"supported": sorted(REPORT_PARSERS)},
        )

    reports = parser(payload)
    log.info("Delivery report parsed", gateway=gateway, count=len(reports))
    return reports
