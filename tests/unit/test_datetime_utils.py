"""Unit tests for calsync.datetime_utils module."""

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

import pytest

from calsync.datetime_utils import (
    as_datetime,
    day_key,
    ensure_timezone_aware,
    format_12h_time,
    format_duration,
    format_short_date,
    parse_12h_time,
    resolve_timezone,
    to_local,
)

pytestmark = [pytest.mark.unit, pytest.mark.fast]


@pytest.mark.parametrize(
    "minutes,expected",
    [(150, "2h 30m"), (120, "2h"), (45, "45m"), (0, "0m"), (-10, "0m"), (61, "1h 1m")],
)
def test_format_duration(minutes, expected):
    assert format_duration(minutes) == expected


@pytest.mark.parametrize(
    "value,expected",
    [
        ("09:05 AM", (9, 5)),
        ("12:00 AM", (0, 0)),
        ("12:30 PM", (12, 30)),
        ("01:15 PM", (13, 15)),
        ("11:59 pm", (23, 59)),
    ],
)
def test_parse_12h_time(value, expected):
    assert parse_12h_time(value) == expected


def test_parse_12h_time_rejects_garbage():
    with pytest.raises(ValueError):
        parse_12h_time("noon")


def test_format_helpers():
    dt = datetime(2024, 1, 15, 14, 5, tzinfo=UTC)

    assert format_short_date(dt) == "Mon, Jan 15"
    assert format_12h_time(dt) == "02:05 PM"


def test_ensure_timezone_aware():
    naive = datetime(2024, 1, 15, 9, 0)
    berlin = ZoneInfo("Europe/Berlin")

    assert ensure_timezone_aware(naive).tzinfo is UTC
    assert ensure_timezone_aware(naive, berlin).tzinfo is berlin
    aware = datetime(2024, 1, 15, 9, 0, tzinfo=berlin)
    assert ensure_timezone_aware(aware) is aware


def test_resolve_timezone_unknown_name_returns_none(caplog):
    assert resolve_timezone("Mars/Olympus_Mons") is None
    assert resolve_timezone(None) is None
    assert "Unknown timezone" in caplog.text


def test_to_local_converts_to_named_zone():
    dt = datetime(2024, 1, 15, 23, 0, tzinfo=UTC)

    local = to_local(dt, "Asia/Tokyo")

    assert (local.day, local.hour) == (16, 8)


def test_as_datetime_anchors_dates_at_midnight():
    berlin = ZoneInfo("Europe/Berlin")

    assert as_datetime(date(2024, 1, 15)) == datetime(2024, 1, 15, tzinfo=UTC)
    assert as_datetime(date(2024, 1, 15), berlin) == datetime(2024, 1, 15, tzinfo=berlin)


def test_day_key_uses_given_zone():
    late_utc = datetime(2024, 1, 15, 23, 30, tzinfo=UTC)

    assert day_key(late_utc) == date(2024, 1, 15)
    assert day_key(late_utc, ZoneInfo("Asia/Tokyo")) == date(2024, 1, 16)
    assert day_key(date(2024, 1, 15)) == date(2024, 1, 15)
