"""Concrete event occurrences with classification and formatting."""

import re
from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict

from .datetime_utils import format_12h_time, format_duration, format_short_date, to_local
from .models import (
    NO_ATTENDEES_PLACEHOLDER,
    Attendee,
    EventDefinition,
    EventStatus,
    SelectionSettings,
)

ATTENDEES_HEADING = "## Attendees:"
TITLE_GLYPH = "📆"
DISPLAY_NAME_SEPARATOR = " | "

# Characters the note store does not accept in file names
_ILLEGAL_TITLE_CHARS = re.compile(r"[/:]")


def normalize_title(summary: str) -> str:
    """Replace every "/" and ":" with a space; runs of spaces are kept."""
    return _ILLEGAL_TITLE_CHARS.sub(" ", summary)


class EventRecord(BaseModel):
    """One concrete event occurrence viewed through the user's settings.

    Every time classification takes ``now`` explicitly so results depend only
    on the inputs.
    """

    definition: EventDefinition
    settings: SelectionSettings

    model_config = ConfigDict(frozen=True)

    @property
    def summary(self) -> str:
        return self.definition.summary

    @property
    def start(self) -> datetime:
        return self.definition.start

    @property
    def end(self) -> datetime:
        return self.definition.end

    @property
    def attendees(self) -> list[Attendee]:
        """Attendees, never empty: a placeholder stands in when the feed has none."""
        return self.definition.attendees or [NO_ATTENDEES_PLACEHOLDER]

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def is_attending(self) -> bool:
        """True when no owner email is set, or the owner is listed and has not declined.

        With an owner email configured and no attendee data in the feed, only
        the placeholder is checked, so the result is False.
        """
        owner = self.settings.owner_email
        if not owner:
            return True

        return any(
            owner in (attendee.name, attendee.address, attendee.email)
            and not attendee.is_declined
            for attendee in self.attendees
        )

    def is_ignored(self) -> bool:
        return self.summary in self.settings.ignored_titles

    def is_cancelled(self) -> bool:
        return self.definition.status == EventStatus.CANCELLED

    def is_actively_occurring(self, now: datetime) -> bool:
        return self.start <= now <= self.end

    def is_upcoming(self, now: datetime) -> bool:
        limit = now + timedelta(hours=self.settings.future_hour_limit)
        return now < self.start <= limit

    def is_recent(self, now: datetime) -> bool:
        limit = now - timedelta(hours=self.settings.recent_hour_limit)
        return limit <= self.end < now

    def duration_label(self) -> str:
        return format_duration(int(self.duration.total_seconds() // 60))

    def normalized_title(self) -> str:
        return normalize_title(self.summary)

    def generate_title(self) -> str:
        """File-safe note title, e.g. "📆 2024-01-15, Team Sync"."""
        local_start = to_local(self.start, self.settings.timezone)
        return f"{TITLE_GLYPH} {local_start:%Y-%m-%d}, {self.normalized_title()}"

    def generate_display_name(self) -> str:
        """Pipe-delimited "date | time | duration | title" label.

        ``candidate_sort.compare_display_names`` parses this exact layout.
        """
        local_start = to_local(self.start, self.settings.timezone)
        return DISPLAY_NAME_SEPARATOR.join(
            (
                format_short_date(local_start),
                format_12h_time(local_start),
                self.duration_label(),
                self.normalized_title(),
            )
        )

    def generate_attendees_markdown(self) -> str:
        """Markdown block listing attendees under an "## Attendees:" heading."""
        lines = [ATTENDEES_HEADING]
        for attendee in self.attendees:
            lines.append(f"- {attendee.name or attendee.email or 'Unknown'}")
        return "\n".join(lines) + "\n"
