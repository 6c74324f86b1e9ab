"""Shared fixtures for calsync tests: fixed clock, settings factories and ICS data."""

import os
from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Optional

import pytest

from calsync.event_record import EventRecord
from calsync.models import (
    Attendee,
    EventDefinition,
    EventStatus,
    ParticipationStatus,
    SelectionSettings,
)

FIXED_NOW = datetime(2024, 1, 15, 10, 0, 0, tzinfo=UTC)


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: fast, isolated tests of a single module")
    config.addinivalue_line("markers", "integration: tests spanning several modules")
    config.addinivalue_line("markers", "fast: tests that run in well under a second")


@pytest.fixture
def fixed_now() -> datetime:
    """Deterministic reference instant: Monday 2024-01-15 10:00 UTC."""
    return FIXED_NOW


@pytest.fixture
def settings() -> SelectionSettings:
    """Default selection settings rendered in UTC so formatting is host independent."""
    return SelectionSettings(timezone="UTC")


@pytest.fixture
def owner_settings() -> SelectionSettings:
    """Settings with an owner email and one ignored title."""
    return SelectionSettings(
        owner_email="me@example.com",
        ignored_titles=("Focus Time",),
        timezone="UTC",
    )


@pytest.fixture
def make_definition() -> Callable[..., EventDefinition]:
    """Factory for EventDefinitions starting relative to FIXED_NOW."""

    def _make(
        summary: str = "Team Sync",
        start_offset: timedelta = timedelta(hours=1),
        duration: timedelta = timedelta(hours=1),
        status: EventStatus = EventStatus.CONFIRMED,
        attendees: Optional[list[Attendee]] = None,
        **kwargs: Any,
    ) -> EventDefinition:
        start = FIXED_NOW + start_offset
        return EventDefinition(
            uid=kwargs.pop("uid", f"{summary.lower().replace(' ', '-')}@example.com"),
            summary=summary,
            start=start,
            end=start + duration,
            status=status,
            attendees=attendees or [],
            **kwargs,
        )

    return _make


@pytest.fixture
def make_record(
    make_definition: Callable[..., EventDefinition], settings: SelectionSettings
) -> Callable[..., EventRecord]:
    """Factory for EventRecords; pass ``settings=`` to override the default snapshot."""

    def _make(summary: str = "Team Sync", **kwargs: Any) -> EventRecord:
        record_settings = kwargs.pop("settings", settings)
        return EventRecord(definition=make_definition(summary, **kwargs), settings=record_settings)

    return _make


@pytest.fixture
def owner_attendee() -> Attendee:
    """The configured owner, accepted."""
    return Attendee(
        name="Me",
        status=ParticipationStatus.ACCEPTED,
        address="mailto:me@example.com",
    )


@pytest.fixture
def clean_calsync_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Remove CALSYNC_* variables so host configuration cannot leak into tests."""
    for key in list(os.environ):
        if key.startswith("CALSYNC_"):
            monkeypatch.delenv(key, raising=False)
    yield


# ==================== ICS Test Data Fixtures ====================


@pytest.fixture
def sample_ics_simple() -> str:
    """One event: "Team Meeting" on 2024-01-15 10:30-11:30 UTC with two attendees."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//calsync Test//EN
X-WR-CALNAME:Work
BEGIN:VEVENT
UID:simple-001@calsync.test
DTSTART:20240115T103000Z
DTEND:20240115T113000Z
SUMMARY:Team Meeting
ATTENDEE;CN=Me;PARTSTAT=ACCEPTED:mailto:me@example.com
ATTENDEE;CN=Alex;PARTSTAT=NEEDS-ACTION:mailto:alex@example.com
DTSTAMP:20240115T090000Z
END:VEVENT
END:VCALENDAR"""


@pytest.fixture
def sample_ics_recurring() -> str:
    """Daily Standup at 09:00-09:15 UTC, COUNT=5, starting 2024-01-15."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//calsync Test//EN
BEGIN:VEVENT
UID:standup-002@calsync.test
DTSTART:20240115T090000Z
DTEND:20240115T091500Z
SUMMARY:Daily Standup
RRULE:FREQ=DAILY;COUNT=5
DTSTAMP:20240115T080000Z
END:VEVENT
END:VCALENDAR"""


@pytest.fixture
def sample_ics_with_overrides() -> str:
    """Daily series with an EXDATE on Jan 16 and a moved, renamed Jan 17 occurrence."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//calsync Test//EN
BEGIN:VEVENT
UID:series-003@calsync.test
DTSTART:20240115T140000Z
DTEND:20240115T143000Z
SUMMARY:Planning
RRULE:FREQ=DAILY;COUNT=4
EXDATE:20240116T140000Z
DTSTAMP:20240110T080000Z
END:VEVENT
BEGIN:VEVENT
UID:series-003@calsync.test
RECURRENCE-ID:20240117T140000Z
DTSTART:20240117T160000Z
DTEND:20240117T170000Z
SUMMARY:Planning (moved)
DTSTAMP:20240110T080000Z
END:VEVENT
END:VCALENDAR"""


@pytest.fixture
def sample_ics_mixed() -> str:
    """An event, a to-do, an all-day event without DTEND and an event missing DTSTART."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//calsync Test//EN
X-WR-TIMEZONE:UTC
BEGIN:VEVENT
UID:mixed-001@calsync.test
DTSTART:20240115T120000Z
DURATION:PT45M
SUMMARY:Lunch: Team/Product
STATUS:TENTATIVE
END:VEVENT
BEGIN:VTODO
UID:todo-001@calsync.test
SUMMARY:Write report
END:VTODO
BEGIN:VEVENT
UID:allday-001@calsync.test
DTSTART;VALUE=DATE:20240116
SUMMARY:Offsite
END:VEVENT
BEGIN:VEVENT
UID:broken-001@calsync.test
SUMMARY:No start
END:VEVENT
END:VCALENDAR"""
