"""
Timestamp helpers.

All timestamps exchanged over the API or written into export payloads use the
same ISO-8601 UTC form with millisecond precision and a trailing "Z"
(e.g. 2024-12-01T10:15:30.123Z).
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> str:
    """Format a datetime as ISO-8601 UTC; naive values are taken as UTC. None -> ""."""
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    return to_iso(utc_now())
