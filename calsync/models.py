"""Data models for calendar event sync."""

import re
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .datetime_utils import ensure_timezone_aware, now_utc

# Placeholder attendee used when a feed exposes no attendee data for an event
NO_ATTENDEES_NAME = "Not visible for this event from ICS. Check your URL options."
NO_ATTENDEES_ADDRESS = "no-attendees"

_MAILTO_RE = re.compile(r"mailto:(.*)", re.IGNORECASE)
_BARE_EMAIL_RE = re.compile(r"^([^@\s]+@[^\s]+)$")


def extract_email(token: Optional[str]) -> Optional[str]:
    """Extract an email from a raw address token.

    Accepts ``mailto:user@example.com`` or a bare ``user@example.com``.

    Returns:
        The email address, or None when the token holds neither form
    """
    if not token:
        return None
    match = _MAILTO_RE.search(token) or _BARE_EMAIL_RE.match(token)
    if not match:
        return None
    return match.group(1).strip() or None


class ParticipationStatus(str, Enum):
    """Attendee participation status (iCalendar PARTSTAT)."""

    ACCEPTED = "accepted"
    DECLINED = "declined"
    TENTATIVE = "tentative"
    NEEDS_ACTION = "needs-action"
    UNKNOWN = "unknown"


class EventStatus(str, Enum):
    """Event status (iCalendar STATUS)."""

    CONFIRMED = "confirmed"
    TENTATIVE = "tentative"
    CANCELLED = "cancelled"


class ItemKind(str, Enum):
    """Kinds of top-level items found in a parsed calendar."""

    EVENT = "event"
    TODO = "todo"
    FREEBUSY = "freebusy"
    METADATA = "metadata"


class Attendee(BaseModel):
    """Calendar event attendee."""

    name: Optional[str] = Field(default=None, description="Display name (CN)")
    status: ParticipationStatus = Field(
        default=ParticipationStatus.UNKNOWN, description="Participation status"
    )
    address: str = Field(default="", description="Raw address token, e.g. mailto:a@b.com")

    model_config = ConfigDict(frozen=True)

    @property
    def email(self) -> Optional[str]:
        """Email extracted from the raw address token, if it holds one."""
        return extract_email(self.address)

    @property
    def is_declined(self) -> bool:
        return self.status == ParticipationStatus.DECLINED


NO_ATTENDEES_PLACEHOLDER = Attendee(
    name=NO_ATTENDEES_NAME,
    status=ParticipationStatus.UNKNOWN,
    address=NO_ATTENDEES_ADDRESS,
)


class EventDefinition(BaseModel):
    """One VEVENT as produced by the ICS parser.

    A definition with ``rrule`` set is a recurrence base and is always expanded
    before reaching selection. A definition with ``recurrence_id`` set is an
    override of a single recurrence instance and is never a top-level event.
    """

    uid: Optional[str] = Field(default=None, description="Stable event identifier")
    summary: str = Field(default="", description="Event title")
    start: datetime = Field(..., description="Start instant")
    end: datetime = Field(..., description="End instant")
    status: EventStatus = Field(default=EventStatus.CONFIRMED, description="Event status")
    attendees: list[Attendee] = Field(default_factory=list, description="Normalized attendees")

    # Recurrence
    rrule: Optional[str] = Field(default=None, description="RRULE value, e.g. FREQ=DAILY;COUNT=5")
    exdates: list[Union[datetime, date]] = Field(
        default_factory=list, description="Excluded occurrence instants"
    )
    recurrences: dict[datetime, "EventDefinition"] = Field(
        default_factory=dict, description="Overrides keyed by their original instant"
    )
    recurrence_id: Optional[datetime] = Field(
        default=None, description="Original instant this definition overrides"
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("start", "end", "recurrence_id")
    @classmethod
    def _aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        return ensure_timezone_aware(value)

    @property
    def is_recurring(self) -> bool:
        return bool(self.rrule)

    @property
    def is_override(self) -> bool:
        return self.recurrence_id is not None


EventDefinition.model_rebuild()


class CalendarItem(BaseModel):
    """A kind-tagged top-level item from a parsed feed."""

    kind: ItemKind
    component_name: str = Field(default="", description="iCalendar component name")
    definition: Optional[EventDefinition] = Field(
        default=None, description="Populated for EVENT items"
    )


class SelectionSettings(BaseModel):
    """Read-only snapshot of the user's selection settings."""

    owner_email: Optional[str] = Field(
        default=None, description="Calendar owner's email; None means attend everything"
    )
    ignored_titles: tuple[str, ...] = Field(
        default=(), description="Exact, case-sensitive titles to ignore"
    )
    future_hour_limit: float = Field(default=4, description="Hours ahead that count as upcoming")
    recent_hour_limit: float = Field(default=2, description="Hours back that count as recent")
    selectable_past_days: float = Field(default=1, description="Days back offered for selection")
    selectable_future_days: float = Field(
        default=3, description="Days ahead offered for selection"
    )
    timezone: Optional[str] = Field(
        default=None, description="IANA zone for titles and display names (None: host local)"
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("owner_email")
    @classmethod
    def _blank_email_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class ICSSource(BaseModel):
    """Configuration for one ICS feed."""

    url: str = Field(..., description="ICS calendar URL")
    timeout: int = Field(default=30, description="HTTP timeout in seconds")
    custom_headers: dict[str, str] = Field(default_factory=dict, description="Extra HTTP headers")


class ICSResponse(BaseModel):
    """Successful response from an ICS fetch."""

    url: str
    content: str
    status_code: int = 200
    headers: dict[str, str] = Field(default_factory=dict)
    fetch_time: datetime = Field(default_factory=now_utc)

    @property
    def content_length(self) -> int:
        return len(self.content.encode("utf-8"))


class ICSParseResult(BaseModel):
    """Result of parsing one feed's ICS text."""

    items: list[CalendarItem] = Field(default_factory=list)
    calendar_name: Optional[str] = None
    timezone: Optional[str] = None
    prodid: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def event_count(self) -> int:
        return sum(1 for item in self.items if item.kind == ItemKind.EVENT)


class FeedResult(BaseModel):
    """Outcome of fetching and processing a single feed."""

    url: str
    records: list[Any] = Field(default_factory=list, description="Time-sorted EventRecords")
    error: Optional[Exception] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def succeeded(self) -> bool:
        return self.error is None


class SyncOutcome(BaseModel):
    """What a sync or listing operation produced, for the caller to report."""

    event: Optional[Any] = Field(default=None, description="Selected EventRecord, if any")
    candidates: list[Any] = Field(default_factory=list, description="Selectable EventRecords")
    message: str = ""
    failures: list[FeedResult] = Field(default_factory=list, description="Feeds that failed")
    note_path: Optional[Path] = Field(default=None, description="Note path after syncing")
