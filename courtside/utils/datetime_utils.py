"""
Datetime utility functions.
Provides timezone-aware helpers shared by the booking and ranking services.
"""

import calendar
import re
from datetime import date, datetime, time
from typing import Optional
import pytz

from courtside.utils.constants import COURTSIDE_TIMEZONE

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def local_timezone(name: Optional[str] = None):
    """Timezone that court schedules are expressed in."""
    return pytz.timezone(name or COURTSIDE_TIMEZONE)


def parse_hhmm(value: str) -> time:
    """
    Parse an "HH:MM" wall-clock string.

    Raises:
        ValueError: If the string is not a valid 24h time
    """
    match = _HHMM_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def minutes_since_midnight(value: str) -> int:
    """Convert "HH:MM" to minutes past midnight."""
    parsed = parse_hhmm(value)
    return parsed.hour * 60 + parsed.minute


def format_hhmm(total_minutes: int) -> str:
    """Convert minutes past midnight back to "HH:MM"."""
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def localize_wall_clock(day: date, total_minutes: int, tz=None) -> datetime:
    """
    Build the aware UTC instant for a wall-clock time on ``day``.

    Args:
        day: Calendar date in the schedule's timezone
        total_minutes: Minutes past local midnight
        tz: pytz timezone (defaults to COURTSIDE_TIMEZONE)

    Returns:
        Aware datetime in UTC
    """
    tz = tz or local_timezone()
    naive = datetime.combine(day, time(total_minutes // 60, total_minutes % 60))
    return tz.localize(naive).astimezone(pytz.UTC)


def local_day_bounds(day: date, tz=None):
    """UTC instants for local midnight of ``day`` and of the following day."""
    tz = tz or local_timezone()
    start = tz.localize(datetime.combine(day, time(0, 0)))
    next_day = date.fromordinal(day.toordinal() + 1)
    end = tz.localize(datetime.combine(next_day, time(0, 0)))
    return start.astimezone(pytz.UTC), end.astimezone(pytz.UTC)


def subtract_months(value: datetime, months: int) -> datetime:
    """
    Step back ``months`` calendar months, clamping the day to the target month.

    Examples:
        >>> subtract_months(datetime(2025, 3, 31), 1)
        datetime.datetime(2025, 2, 28, 0, 0)
    """
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
