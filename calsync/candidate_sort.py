"""Presentation order for candidates offered for manual selection."""

import functools
from datetime import datetime
from typing import Iterable

from .datetime_utils import parse_12h_time
from .event_record import DISPLAY_NAME_SEPARATOR, EventRecord
from .feed_processor import sort_by_start

# Display names carry no year; a leap year keeps "Feb 29" parseable
_LABEL_YEAR = 2000


def sort_candidates(records: Iterable[EventRecord]) -> list[EventRecord]:
    """Sort candidates by start instant, ascending."""
    return sort_by_start(records)


def _label_date(label: str) -> datetime:
    date_part = label.split(DISPLAY_NAME_SEPARATOR)[0]
    # "Mon, Jan 15" -> "Jan 15"
    _, _, month_day = date_part.partition(", ")
    return datetime.strptime(f"{month_day.strip()} {_LABEL_YEAR}", "%b %d %Y")


def _label_time(label: str) -> tuple[int, int]:
    fields = label.split(DISPLAY_NAME_SEPARATOR)
    if len(fields) < 2:
        raise ValueError(f"Display name has no time field: {label!r}")
    return parse_12h_time(fields[1])


def compare_display_names(a: str, b: str) -> int:
    """Order two display names by calendar date, then by 12-hour wall-clock time.

    Labels carry no year, so candidates spanning a year boundary order by
    month and day only.

    Raises:
        ValueError: If either label is not a display name
    """
    date_a, date_b = _label_date(a), _label_date(b)
    if date_a != date_b:
        return -1 if date_a < date_b else 1

    time_a, time_b = _label_time(a), _label_time(b)
    if time_a != time_b:
        return -1 if time_a < time_b else 1
    return 0


def sort_display_names(labels: Iterable[str]) -> list[str]:
    """Sort display-name labels as the candidate list has always shown them."""
    return sorted(labels, key=functools.cmp_to_key(compare_display_names))
