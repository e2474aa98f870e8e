# app/core/times.py
"""
Timestamp handling shared by the gateway and the GraphQL layer.

Instants are kept timezone-aware in UTC inside the app, stored as naive UTC
BSON dates (millisecond resolution) and sent over the wire as ISO-8601
strings with a trailing ``Z``.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from app.core.errors import InvalidInput

UTC = timezone.utc


def _truncate_ms(dt: datetime) -> datetime:
    return dt.replace(microsecond=dt.microsecond - dt.microsecond % 1000)


def parse_instant(value: str) -> datetime:
    """Accept ISO8601 with offset or ``Z``; naive values are taken as UTC."""
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        raise InvalidInput(f"Invalid date/time: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return _truncate_ms(dt.astimezone(UTC))


def ensure_utc(dt: datetime) -> datetime:
    """Normalise a datetime read back from storage (naive means UTC)."""
    if dt.tzinfo is None:
        return _truncate_ms(dt.replace(tzinfo=UTC))
    return _truncate_ms(dt.astimezone(UTC))


def to_storage(dt: datetime) -> datetime:
    return ensure_utc(dt).replace(tzinfo=None)


def to_iso(dt: datetime) -> str:
    return ensure_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_calendar_date(value: str) -> date:
    # yyyy-mm-dd, month is 1-based
    try:
        year, month, day = (int(part) for part in value.strip().split("-"))
        return date(year, month, day)
    except (AttributeError, ValueError):
        raise InvalidInput(f"Invalid calendar date: {value!r} (expected YYYY-MM-DD)")


def day_bounds(value: str) -> tuple[datetime, datetime]:
    """Half-open UTC range [day 00:00, next day 00:00)."""
    day = parse_calendar_date(value)
    start = datetime(day.year, day.month, day.day, tzinfo=UTC)
    return start, start + timedelta(days=1)
