"""
Module: core.utils.timestamps

Purpose:
    ISO-8601 timestamp helpers. All stored timestamps use the millisecond
    UTC form ``2026-01-31T09:15:00.123Z`` so that keys built from them sort
    the same way lexically and chronologically.

Key Functions:
    - utc_now(): Current aware UTC datetime (default clock)
    - to_iso(): Format a datetime in the stored form
    - parse_iso(): Lenient parse, returns None on garbage
    - to_epoch_millis() / from_epoch_millis()

Used By:
    - storage.persistence, backup.manager, migration.scanner, repository.*
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

Clock = Callable[[], datetime]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """
    Format a datetime as a millisecond-precision UTC ISO string.

    Naive datetimes are assumed to already be UTC.

    Example:
        >>> to_iso(datetime(2026, 1, 31, 9, 15, 0, 123456, tzinfo=timezone.utc))
        '2026-01-31T09:15:00.123Z'
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return f"{dt:%Y-%m-%dT%H:%M:%S}.{dt.microsecond // 1000:03d}Z"


def parse_iso(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string into an aware datetime.

    Accepts the trailing ``Z`` form and date-only strings. Returns None for
    anything that is not a parseable string.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_epoch_millis(dt: datetime) -> int:
    """Milliseconds since the Unix epoch."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - _EPOCH) // timedelta(milliseconds=1)


def from_epoch_millis(millis: int) -> datetime:
    """Inverse of to_epoch_millis()."""
    return _EPOCH + timedelta(milliseconds=millis)


def add_millis(dt: datetime, millis: int) -> datetime:
    return dt + timedelta(milliseconds=millis)
