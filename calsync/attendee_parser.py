"""Attendee normalization for ICS calendar processing.

Providers expose attendee data under different field names and shapes. This
module is the single place that knows about those variants: it picks the first
field present, then normalizes every entry into an ``Attendee`` once, so the
rest of the package never branches on provider shape.
"""

import logging
from typing import Any, Optional

from .models import Attendee, ParticipationStatus

logger = logging.getLogger(__name__)

# Field names probed in order; icalendar components match these case-insensitively
ATTENDEE_FIELD_VARIANTS = ("ATTENDEE", "attendee", "attendees", "attendeeList")

_PARTSTAT_MAP = {
    "ACCEPTED": ParticipationStatus.ACCEPTED,
    "DECLINED": ParticipationStatus.DECLINED,
    "TENTATIVE": ParticipationStatus.TENTATIVE,
    "NEEDS-ACTION": ParticipationStatus.NEEDS_ACTION,
}


class AttendeeParser:
    """Normalizes raw attendee data into ``Attendee`` models."""

    def parse_attendee(self, raw: Any) -> Optional[Attendee]:
        """Parse one attendee entry.

        Args:
            raw: An icalendar ``vCalAddress``, a ``{"params": ..., "val": ...}``
                mapping, or a plain address string

        Returns:
            Parsed Attendee or None
        """
        try:
            if isinstance(raw, dict):
                params = raw.get("params") or {}
                address = raw.get("val") or raw.get("value") or ""
            else:
                params = getattr(raw, "params", None) or {}
                address = str(raw) if raw is not None else ""

            name = params.get("CN")
            partstat = str(params.get("PARTSTAT", "")).upper()

            return Attendee(
                name=str(name) if name else None,
                status=_PARTSTAT_MAP.get(partstat, ParticipationStatus.UNKNOWN),
                address=str(address),
            )

        except Exception as e:
            logger.debug("Failed to parse attendee: %s", e)
            return None

    def find_attendee_field(self, source: Any) -> Any:
        """Return the first attendee field present on ``source``, or None."""
        for field_name in ATTENDEE_FIELD_VARIANTS:
            try:
                value = source.get(field_name)
            except AttributeError:
                value = getattr(source, field_name, None)
            if value is not None:
                return value
        return None

    def parse_attendees(self, source: Any) -> list[Attendee]:
        """Parse all attendees from a VEVENT component or event mapping.

        Args:
            source: iCalendar component (e.g. VEVENT) or mapping

        Returns:
            List of parsed Attendee objects, empty when the feed exposes none
        """
        raw = self.find_attendee_field(source)
        if raw is None:
            return []

        entries = raw if isinstance(raw, list) else [raw]

        attendees = []
        for entry in entries:
            # Some feeds nest lists of attendees
            for item in entry if isinstance(entry, list) else [entry]:
                attendee = self.parse_attendee(item)
                if attendee:
                    attendees.append(attendee)

        return attendees
