"""iCalendar feed parser for calendar event sync."""

import logging
from collections import defaultdict
from typing import Any, Optional

from icalendar import Calendar

from .datetime_utils import resolve_timezone
from .event_parser import EventComponentParser
from .exceptions import ICSParseError
from .models import CalendarItem, EventDefinition, ICSParseResult, ItemKind

logger = logging.getLogger(__name__)

_COMPONENT_KINDS = {
    "VEVENT": ItemKind.EVENT,
    "VTODO": ItemKind.TODO,
    "VFREEBUSY": ItemKind.FREEBUSY,
}


class ICSParser:
    """Parses ICS text into kind-tagged calendar items."""

    def __init__(self, event_parser: Optional[EventComponentParser] = None) -> None:
        self._event_parser = event_parser or EventComponentParser()

    def parse_ics_content(self, ics_content: str, source_url: Optional[str] = None) -> ICSParseResult:
        """Parse ICS content into calendar items.

        Recurrence overrides (VEVENTs carrying RECURRENCE-ID) are attached to
        their base event's ``recurrences`` map and are also returned as items
        of their own, flagged through ``recurrence_id``.

        Args:
            ics_content: Raw ICS file content
            source_url: Optional source URL, used for log context only

        Returns:
            Parse result with items and calendar metadata

        Raises:
            ICSParseError: If the content is empty or not valid iCalendar data
        """
        if not ics_content or not ics_content.strip():
            raise ICSParseError("Empty ICS content")

        try:
            calendar = Calendar.from_ical(ics_content)
        except Exception as e:
            logger.warning("Could not parse calendar data from %s: %s", source_url, e)
            raise ICSParseError(f"Invalid iCalendar content: {e}") from e

        if isinstance(calendar, list):
            # Multiple VCALENDAR blocks in one file; the first one wins
            if not calendar:
                raise ICSParseError("No VCALENDAR found in content")
            calendar = calendar[0]

        if str(calendar.name).upper() != "VCALENDAR":
            raise ICSParseError(f"Expected VCALENDAR, found {calendar.name}")

        timezone_name = self._get_calendar_property(calendar, "X-WR-TIMEZONE")
        default_tz = resolve_timezone(timezone_name)

        items: list[CalendarItem] = [
            CalendarItem(kind=ItemKind.METADATA, component_name=str(calendar.name))
        ]
        warnings: list[str] = []

        for component in calendar.subcomponents:
            name = str(component.name).upper()
            kind = _COMPONENT_KINDS.get(name, ItemKind.METADATA)

            if kind != ItemKind.EVENT:
                items.append(CalendarItem(kind=kind, component_name=name))
                continue

            try:
                definition = self._event_parser.parse_event_component(component, default_tz)
            except Exception as e:
                warning = f"Failed to parse event: {e}"
                warnings.append(warning)
                logger.warning(warning)
                continue

            if definition is not None:
                items.append(CalendarItem(kind=kind, component_name=name, definition=definition))

        items = self._link_recurrence_overrides(items)

        result = ICSParseResult(
            items=items,
            calendar_name=self._get_calendar_property(calendar, "X-WR-CALNAME"),
            timezone=timezone_name,
            prodid=self._get_calendar_property(calendar, "PRODID"),
            warnings=warnings,
        )
        logger.debug(
            "Parsed %d items (%d events) from %s", len(items), result.event_count, source_url
        )
        return result

    def _link_recurrence_overrides(self, items: list[CalendarItem]) -> list[CalendarItem]:
        """Attach override definitions to their recurrence base by UID."""
        overrides: dict[str, list[EventDefinition]] = defaultdict(list)
        for item in items:
            definition = item.definition
            if definition is not None and definition.is_override and definition.uid:
                overrides[definition.uid].append(definition)

        if not overrides:
            return items

        linked = []
        for item in items:
            definition = item.definition
            if (
                definition is not None
                and definition.is_recurring
                and not definition.is_override
                and definition.uid in overrides
            ):
                recurrences = {ov.recurrence_id: ov for ov in overrides[definition.uid]}
                item = item.model_copy(
                    update={"definition": definition.model_copy(update={"recurrences": recurrences})}
                )
            linked.append(item)
        return linked

    def _get_calendar_property(self, calendar: Any, name: str) -> Optional[str]:
        value = calendar.get(name)
        return str(value) if value is not None else None
