"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from restaurant_pos.utils.datetime_utils import utc_now

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)

SQLite drops tzinfo on round-trip, so values read back from the database are
naive. ``as_utc`` normalizes either kind before comparison.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(value: Optional[datetime] = None) -> datetime:
    """Midnight (UTC) of the day containing ``value`` (defaults to now)."""
    value = as_utc(value or utc_now())
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def days_ago(days: int, now: Optional[datetime] = None) -> datetime:
    """Midnight ``days`` days before the day containing ``now``."""
    return start_of_day(now) - timedelta(days=days)


def parse_date(value: Union[str, date, datetime]) -> datetime:
    """
    Parse an ISO date or datetime into an aware UTC datetime.

    Args:
        value: "YYYY-MM-DD", full ISO datetime string, date or datetime

    Returns:
        Timezone-aware datetime

    Raises:
        ValueError: If the string is not ISO formatted
    """
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return as_utc(datetime.fromisoformat(value.strip()))


def end_of_day(value: Union[str, date, datetime]) -> datetime:
    """Last microsecond of the day containing ``value``."""
    start = parse_date(value).replace(hour=0, minute=0, second=0, microsecond=0)
    return start + timedelta(days=1) - timedelta(microseconds=1)
