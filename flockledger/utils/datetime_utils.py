"""Datetime utilities for timezone-aware UTC timestamps.

SQLite hands back naive datetimes even for values written as aware ones,
so anything read from the database goes through ``as_utc`` before it is
compared with ``utc_now()``.

Usage:
    from flockledger.utils.datetime_utils import utc_now

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)
"""

from datetime import date, datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a naive datetime; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_date(value) -> date:
    """Return the calendar date (UTC) of a datetime or date."""
    if isinstance(value, datetime):
        return as_utc(value).date()
    return value


def days_between(start, end) -> int:
    """Whole calendar days from ``start`` to ``end`` (negative if reversed)."""
    return (to_date(end) - to_date(start)).days
