"""
UTC timestamps for extracted memories.

Naive datetimes are read as UTC; everything is written as ISO 8601 with an
explicit +00:00 offset.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_utc_iso(dt: datetime, include_ms: bool = True) -> str:
    """
    Format a datetime as ISO 8601 in UTC, e.g. 2025-01-01T12:00:00.000+00:00.
    """
    dt = dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds" if include_ms else "seconds")
