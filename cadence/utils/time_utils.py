"""
Time Utilities
Timezone-aware helpers for business-hour scheduling.

All engine datetimes are UTC-aware. Calendar questions ("is it due today?",
"tomorrow at 9 AM") are answered in the configured business timezone.
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

import pytz

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(pytz.UTC)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def get_timezone(name: str):
    """Resolve a timezone name, falling back to UTC for unknown names."""
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone '{name}', using UTC")
        return pytz.UTC


def local_day(value: datetime, timezone: str = "UTC") -> date:
    """Calendar date of a moment in the business timezone."""
    return ensure_utc(value).astimezone(get_timezone(timezone)).date()


def business_time(
    reference: datetime,
    days: int = 0,
    hour: int = 9,
    timezone: str = "UTC"
) -> datetime:
    """
    Moment `days` calendar days after `reference` at `hour`:00 local time.

    Args:
        reference: Anchor moment
        days: Calendar days to add in the business timezone
        hour: Local hour of day
        timezone: Business timezone name

    Returns:
        Aware UTC datetime
    """
    tz = get_timezone(timezone)
    target = local_day(reference, timezone) + timedelta(days=days)
    return tz.localize(datetime.combine(target, time(hour, 0))).astimezone(pytz.UTC)


def is_on_or_before_day(value: Optional[datetime], now: datetime, timezone: str = "UTC") -> bool:
    """True when `value` falls on today's local date or earlier."""
    if value is None:
        return False
    return local_day(value, timezone) <= local_day(now, timezone)


def days_between(earlier: Optional[datetime], later: datetime) -> Optional[float]:
    """Fractional days from `earlier` to `later`, or None when `earlier` is missing."""
    if earlier is None:
        return None
    return (ensure_utc(later) - ensure_utc(earlier)).total_seconds() / 86400
