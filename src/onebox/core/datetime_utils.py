"""Datetime helpers shared across the application."""

from __future__ import annotations

from datetime import UTC, datetime

__all__ = [
    "ensure_utc",
    "parse_datetime",
    "serialize_datetime",
    "utc_now",
]


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(tz=UTC)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` in UTC; naive values are assumed to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def serialize_datetime(value: datetime) -> str:
    """Serialise ``value`` to a sortable UTC ISO 8601 string."""
    return ensure_utc(value).isoformat()


def parse_datetime(value: str) -> datetime:
    """Parse an ISO 8601 string into a UTC ``datetime`` instance."""
    return ensure_utc(datetime.fromisoformat(value))
