"""Due-date helpers used by cards and the dashboard.

All comparisons are made against the start of the current UTC day.  Every
helper accepts an optional ``now`` so callers (and tests) can pin the clock.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from ..constants import DUE_SOON_DAYS
from ..utils import parse_iso

PERIODS = ("overdue", "today", "tomorrow", "next_7_days", "later")


def _now(now: Optional[datetime] = None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def start_of_day(now: Optional[datetime] = None) -> datetime:
    return _now(now).replace(hour=0, minute=0, second=0, microsecond=0)


def to_iso_date(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def is_overdue(due_date: Optional[str], now: Optional[datetime] = None) -> bool:
    """True when *due_date* falls before today."""
    due = parse_iso(due_date)
    if due is None:
        return False
    return due < start_of_day(now)


def is_due_soon(due_date: Optional[str], now: Optional[datetime] = None) -> bool:
    """True when *due_date* is after the start of today and within three days."""
    due = parse_iso(due_date)
    if due is None:
        return False
    today = start_of_day(now)
    return today < due < today + timedelta(days=DUE_SOON_DAYS)


def group_date_by_period(value: str, now: Optional[datetime] = None) -> str:
    """Bucket a date into one of :data:`PERIODS`.

    Raises ``ValueError`` if *value* is not an ISO date.
    """
    when = parse_iso(value)
    if when is None:
        raise ValueError(f"Invalid date: {value!r}")
    today = start_of_day(now)
    if when < today:
        return "overdue"
    if when < today + timedelta(days=1):
        return "today"
    if when < today + timedelta(days=2):
        return "tomorrow"
    if when < today + timedelta(days=7):
        return "next_7_days"
    return "later"


def date_range(days: int, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Return ``(start, end)`` spanning the last *days* days up to now."""
    end = _now(now)
    return end - timedelta(days=days), end
