"""DateTime helpers for calendar event sync.

Every helper here is pure: "now" is always passed in by the caller, except for
``now_utc`` which exists for the outer orchestration layer and model defaults.
"""

import logging
from datetime import UTC, date, datetime, time, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def now_utc() -> datetime:
    """Return the current instant in UTC."""
    return datetime.now(UTC)


def ensure_timezone_aware(dt: datetime, default_tz: Optional[tzinfo] = None) -> datetime:
    """Ensure datetime is timezone-aware.

    Args:
        dt: Datetime to make timezone-aware
        default_tz: Zone assumed for naive values (UTC when omitted)

    Returns:
        Timezone-aware datetime
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=default_tz or UTC)
    return dt


def resolve_timezone(name: Optional[str]) -> Optional[tzinfo]:
    """Look up an IANA zone name, returning None for empty or unknown names."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using host local time", name)
        return None


def to_local(dt: datetime, timezone_name: Optional[str] = None) -> datetime:
    """Convert an aware datetime to the display zone (host local time when unset)."""
    tz = resolve_timezone(timezone_name)
    if tz is None:
        return ensure_timezone_aware(dt).astimezone()
    return ensure_timezone_aware(dt).astimezone(tz)


def as_datetime(value: Union[datetime, date], default_tz: Optional[tzinfo] = None) -> datetime:
    """Coerce an iCalendar DATE or DATE-TIME value to an aware datetime.

    DATE values are anchored at midnight in ``default_tz``.
    """
    if isinstance(value, datetime):
        return ensure_timezone_aware(value, default_tz)
    return datetime.combine(value, time.min, tzinfo=default_tz or UTC)


def day_key(value: Union[datetime, date], tz: Optional[tzinfo] = None) -> date:
    """Whole-day key used to match occurrences against EXDATEs and overrides.

    Datetimes are converted to ``tz`` first so both sides of a comparison land
    on the same calendar day; plain dates are used as-is.
    """
    if isinstance(value, datetime):
        aware = ensure_timezone_aware(value)
        return (aware.astimezone(tz) if tz is not None else aware).date()
    return value


def format_duration(minutes: int) -> str:
    """Render a duration as "{h}h {m}m", omitting zero parts, "0m" when empty.

    >>> format_duration(150)
    '2h 30m'
    >>> format_duration(120)
    '2h'
    >>> format_duration(0)
    '0m'
    """
    if minutes <= 0:
        return "0m"
    hours, mins = divmod(minutes, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if mins:
        parts.append(f"{mins}m")
    return " ".join(parts)


def format_short_date(dt: datetime) -> str:
    """en-US short date, e.g. "Mon, Jan 15"."""
    return f"{dt:%a}, {dt:%b} {dt.day}"


def format_12h_time(dt: datetime) -> str:
    """Two-digit 12-hour clock time, e.g. "09:05 AM"."""
    return dt.strftime("%I:%M %p")


def parse_12h_time(value: str) -> tuple[int, int]:
    """Parse "hh:mm AM/PM" into 24-hour (hours, minutes).

    PM adds 12 hours unless the hour is already 12; 12 AM becomes hour 0.

    Raises:
        ValueError: If the value is not in "hh:mm AM/PM" form
    """
    clock, _, period = value.strip().partition(" ")
    hours_str, _, minutes_str = clock.partition(":")
    hours, minutes = int(hours_str), int(minutes_str)
    period = period.strip().upper()

    if period == "PM" and hours != 12:
        hours += 12
    elif period == "AM" and hours == 12:
        hours = 0

    return hours, minutes
