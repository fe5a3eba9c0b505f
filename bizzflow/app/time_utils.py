"""Date helpers shared by the sales, dashboard and export services."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple


def utcnow() -> datetime:
    """Server-side 'now' in UTC (timezone aware)."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a stored datetime to an aware UTC value.

    SQLite hands timezone-aware columns back as naive values; those are
    interpreted as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Return the half-open ``[start, end)`` UTC range covering ``day``."""
    start = day_start(day)
    return start, start + timedelta(days=1)


def date_range_bounds(start: Optional[date], end: Optional[date]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Convert an inclusive date range into half-open datetime bounds."""
    lower = day_start(start) if start else None
    upper = day_start(end) + timedelta(days=1) if end else None
    return lower, upper


def week_start(today: date) -> date:
    return today - timedelta(days=today.weekday())


def month_start(today: date) -> date:
    return today.replace(day=1)


def year_start(today: date) -> date:
    return today.replace(month=1, day=1)
