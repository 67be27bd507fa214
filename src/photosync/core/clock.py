"""Timestamp and identifier source."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def new_id() -> str:
    """Return a random, non-sequential identifier (UUID4)."""
    return str(uuid.uuid4())


def ensure_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC.

    SQLite hands back naive datetimes; those are assumed to be UTC already.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp (``Z`` suffix accepted) into aware UTC.

    Raises:
        ValueError: If the string is not a valid ISO 8601 timestamp.
    """
    return ensure_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))


def format_timestamp(value: datetime | None) -> str | None:
    """Format a datetime as ISO 8601 UTC, or None."""
    if value is None:
        return None
    return ensure_utc(value).isoformat()
