"""Core utilities for Mongo Extract."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

# yyyy-MM-ddTHH:mm:ss.SSSZ, always UTC
MILLIS_FORMAT = "%Y-%m-%dT%H:%M:%S"


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Returns:
        datetime: Current UTC time with timezone info
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware in UTC.

    Args:
        dt: A datetime object (may be naive or timezone-aware)

    Returns:
        Timezone-aware datetime in UTC, or None if input is None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        # pymongo hands back naive datetimes that are already UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_millis(dt: datetime) -> str:
    """
    Format a datetime as ``yyyy-MM-ddTHH:mm:ss.SSSZ`` in UTC.

    Examples:
        format_millis(datetime(2024, 1, 1, tzinfo=timezone.utc))
            -> "2024-01-01T00:00:00.000Z"
    """
    dt = ensure_utc(dt)
    return f"{dt.strftime(MILLIS_FORMAT)}.{dt.microsecond // 1000:03d}Z"


def parse_iso(iso_string: str) -> datetime:
    """
    Parse an ISO 8601 date or datetime string.

    Accepts a trailing ``Z`` as UTC. Date-only strings resolve to midnight UTC.

    Args:
        iso_string: ISO 8601 formatted string

    Returns:
        Timezone-aware datetime object

    Raises:
        ValueError: If the string is not ISO 8601
    """
    value = iso_string.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    return ensure_utc(dt)


__all__ = [
    "utc_now",
    "ensure_utc",
    "format_millis",
    "parse_iso",
]
