"""Sender ID helpers.

Alphanumeric sender IDs are limited to 11 characters by the
carriers; anything outside that falls back to the platform default.
"""

from __future__ import annotations

import re

from sms_dispatch.core.logging import get_logger

log = get_logger(__name__)

DEFAULT_SENDER_ID = "SMSAO"
DEPRECATED_SENDER_IDS = frozenset({"ONSMS", "SMS"})

_SENDER_ID_PATTERN = re.compile(r"^[A-Za-z0-9]{1,11}$")


def is_valid_sender_id_format(sender_id: str | None) -> bool:
    """Check a sender ID is alphanumeric and 1-11 characters long."""
    if not sender_id:
        return False
    return bool(_SENDER_ID_PATTERN.match(sender_id))


def resolve_sender_id(value: str | None, default: str = DEFAULT_SENDER_ID) -> str:
    """Resolve the sender ID to put on the wire.

    Args:
        value: Requested sender ID (may be empty)
        default: Sender ID used when the request is unusable

    Returns:
        Upper-cased sender ID, or the default when the request is
        empty, deprecated or malformed
    """
    if not value or not value.strip():
        return default

    normalized = value.strip().upper()

    if normalized in DEPRECATED_SENDER_IDS:
        log.warning("Deprecated sender ID replaced", sender_id=value, replacement=default)
        return default

    if not is_valid_sender_id_format(normalized):
        log.warning("Invalid sender ID replaced", sender_id=value, replacement=default)
        return default

    return normalized


def filter_sender_ids(sender_ids: list[str]) -> list[str]:
    """Drop deprecated and duplicate (case-insensitive) sender IDs, keeping order."""
    seen: set[str] = set()
    kept = []
    for sender_id in sender_ids:
        if not sender_id:
            continue
        normalized = sender_id.strip().upper()
        if normalized in DEPRECATED_SENDER_IDS or normalized in seen:
            continue
        seen.add(normalized)
        kept.append(sender_id)
    return kept
