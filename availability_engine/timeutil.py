"""Time-of-day parsing and time-zone aware calendar-day keys."""

import re
from datetime import date, datetime, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from availability_engine.config import settings

Instant = Union[datetime, date, str, int, float]

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([AaPp][Mm])?\s*$")


def resolve_zone(time_zone: Optional[str] = None) -> ZoneInfo:
    """Return the ZoneInfo for an IANA name, falling back to the configured default."""
    name = time_zone or settings.schedule.default_time_zone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown time zone: {name!r}") from None


def parse_datetime(text: str) -> datetime:
    """Parse an ISO-8601 date-time. A value without an offset stays naive."""
    try:
        return datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"Invalid date/time value: {text!r}") from None


def to_datetime(instant: Instant, time_zone: Optional[str] = None) -> datetime:
    """Normalize an incoming instant to an aware datetime.

    Naive datetimes and naive ISO strings are wall-clock times in the
    given zone (default zone when omitted), never the host machine's.
    Epoch seconds are absolute.
    """
    if isinstance(instant, datetime):
        dt = instant
    elif isinstance(instant, (int, float)) and not isinstance(instant, bool):
        return datetime.fromtimestamp(instant, tz=timezone.utc)
    elif isinstance(instant, str):
        dt = parse_datetime(instant)
    else:
        raise ValueError(f"Unsupported date/time value: {instant!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=resolve_zone(time_zone))
    return dt


def day_key(instant: Instant, time_zone: Optional[str] = None) -> str:
    """
    Stable YYYY-MM-DD key of an instant in the given zone.
    A plain date is already a calendar day and is returned as-is.
    """
    if isinstance(instant, date) and not isinstance(instant, datetime):
        return instant.isoformat()
    if isinstance(instant, str) and re.fullmatch(r"\d{4}-\d{2}-\d{2}", instant.strip()):
        return date.fromisoformat(instant.strip()).isoformat()
    zone = resolve_zone(time_zone)
    return to_datetime(instant, time_zone).astimezone(zone).date().isoformat()


def to_minutes(value: str) -> int:
    """Parse "2:30 PM" or "14:30" to minutes since midnight."""
    match = _TIME_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid time of day: {value!r}")
    hours = int(match.group(1))
    minutes = int(match.group(2))
    period = match.group(4)
    if minutes > 59:
        raise ValueError(f"Invalid time of day: {value!r}")
    if period:
        if not 1 <= hours <= 12:
            raise ValueError(f"Invalid 12-hour time: {value!r}")
        period = period.upper()
        if period == "PM" and hours != 12:
            hours += 12
        if period == "AM" and hours == 12:
            hours = 0
    # Without a meridiem the value is already 24-hour
    elif hours > 23:
        raise ValueError(f"Invalid 24-hour time: {value!r}")
    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    """Format minutes since midnight as "2:30 PM"."""
    hours, mins = divmod(minutes, 60)
    period = "PM" if hours >= 12 else "AM"
    display_hour = hours - 12 if hours > 12 else (12 if hours == 0 else hours)
    return f"{display_hour}:{mins:02d} {period}"


def to_24_hour(value: str) -> str:
    """Convert any accepted time-of-day text to "HH:MM"."""
    hours, mins = divmod(to_minutes(value), 60)
    return f"{hours:02d}:{mins:02d}"


def day_of_week(day: date) -> int:
    """Weekday in the store convention: 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def parse_day(value: Union[date, str]) -> date:
    """Parse a YYYY-MM-DD calendar day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except (ValueError, AttributeError):
        raise ValueError(f"Invalid date: {value!r}") from None


def local_now(time_zone: Optional[str] = None, now: Optional[datetime] = None) -> datetime:
    """Current instant expressed in the business zone."""
    zone = resolve_zone(time_zone)
    current = to_datetime(now, time_zone) if now is not None else datetime.now(timezone.utc)
    return current.astimezone(zone)
