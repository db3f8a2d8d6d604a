"""Tests for delivery report parsing."""

from __future__ import annotations

import pytest

from sms_dispatch.core.exceptions import GatewayNotFoundError
from sms_dispatch.integrations.sms.base import SMSStatus
from sms_dispatch.integrations.sms.webhooks import parse_delivery_report


class TestDeliveryReports:
    """Test provider callback parsing."""

    def test_bulksms_report(self):
        """BulkSMS posts a list of message objects."""
        payload = [
            {"id": "1", "status": {"type": "DELIVERED"}, "submission": {"date": "2024-05-01T10:30:00Z"}},
            {"id": "2", "status": {"type": "FAILED", "subtype": "REJECTED"}},
        ]

        reports = parse_delivery_report("bulksms", payload)

        assert [r.status for r in reports] == [SMSStatus.DELIVERED, SMSStatus.FAILED]
        assert reports[0].delivered_at.year == 2024
        assert reports[1].error == "REJECTED"

    def test_bulkgate_report(self):
        """BulkGate reports carry sms_id and status."""
        reports = parse_delivery_report("bulkgate", {"sms_id": "idx-1", "status": "delivered"})

        assert len(reports) == 1
        assert reports[0].message_id == "idx-1"
        assert reports[0].status == SMSStatus.DELIVERED
        assert reports[0].delivered_at is not None

    def test_routee_report(self):
        """Routee status is nested under status.name."""
        payload = {
            "messageId": "trk-1",
            "status": {"name": "Undelivered", "date": "2024-05-01T10:30:00Z"},
            "reason": "Absent subscriber",
        }

        reports = parse_delivery_report("routee", payload)

        assert reports[0].status == SMSStatus.FAILED
        assert reports[0].error == "Absent subscriber"
        assert reports[0].delivered_at is None

    def test_routee_queued_is_pending(self):
        """Queued maps to pending in reports as in status queries."""
        reports = parse_delivery_report("routee", {"messageId": "trk-1", "status": {"name": "Queued"}})

        assert reports[0].status == SMSStatus.PENDING

    def test_africastalking_report(self):
        """Africa's Talking form fields are parsed."""
        reports = parse_delivery_report(
            "africastalking",
            {"id": "ATXid_1", "status": "Rejected", "failureReason": "InsufficientCredit"},
        )

        assert reports[0].status == SMSStatus.FAILED
        assert reports[0].error == "InsufficientCredit"

    def test_africastalking_unknown_is_pending(self):
        """Africa's Talking "Unknown" stays pending until a final report."""
        reports = parse_delivery_report("africastalking", {"id": "ATXid_2", "status": "Unknown"})

        assert reports[0].status == SMSStatus.PENDING
        assert reports[0].error is None

    def test_unknown_status_is_pending(self):
        """Unrecognized provider statuses never count as failed."""
        reports = parse_delivery_report("bulkgate", {"sms_id": "x", "status": "teleported"})

        assert reports[0].status == SMSStatus.PENDING
        assert reports[0].error is None

    def test_entries_without_id_are_skipped(self):
        """Entries lacking a message ID are dropped."""
        reports = parse_delivery_report("bulksms", [{"status": {"type": "SENT"}}, {"id": "9", "status": "SENT"}])

        assert [r.message_id for r in reports] == ["9"]
        assert reports[0].status == SMSStatus.SENT

    def test_gateway_name_is_case_insensitive(self):
        """Gateway names are matched case-insensitively."""
        assert parse_delivery_report("BulkGate", {"sms_id": "x", "status": "sent"})

    def test_unknown_gateway(self):
        """Unknown gateways raise GatewayNotFoundError."""
        with pytest.raises(GatewayNotFoundError):
            parse_delivery_report("twilio", {})
