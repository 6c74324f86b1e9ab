"""VEVENT component parsing for ICS calendar processing."""

import logging
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Optional, Union

from icalendar import Event as ICalEvent

from .attendee_parser import AttendeeParser
from .datetime_utils import as_datetime
from .models import EventDefinition, EventStatus

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "CONFIRMED": EventStatus.CONFIRMED,
    "TENTATIVE": EventStatus.TENTATIVE,
    "CANCELLED": EventStatus.CANCELLED,
}


class EventComponentParser:
    """Parser for iCalendar VEVENT components into EventDefinition objects."""

    def __init__(self, attendee_parser: Optional[AttendeeParser] = None):
        self.attendee_parser = attendee_parser or AttendeeParser()

    def parse_event_component(
        self,
        component: ICalEvent,
        default_tz: Optional[tzinfo] = None,
    ) -> Optional[EventDefinition]:
        """Parse a single VEVENT component into an EventDefinition.

        Args:
            component: iCalendar VEVENT component
            default_tz: Zone for DATE and floating values (UTC when None)

        Returns:
            Parsed EventDefinition or None if the component has no usable start
        """
        uid = str(component.get("UID")) if component.get("UID") else None

        try:
            start, end = self._parse_event_times(component, default_tz)
        except ValueError as e:
            logger.warning("Event %s %s, skipping", uid, e)
            return None

        recurrence_id = None
        if component.get("RECURRENCE-ID") is not None:
            recurrence_id = as_datetime(component.decoded("RECURRENCE-ID"), default_tz)

        return EventDefinition(
            uid=uid,
            summary=str(component.get("SUMMARY", "")),
            start=start,
            end=end,
            status=self._parse_status(component.get("STATUS")),
            attendees=self.attendee_parser.parse_attendees(component),
            rrule=self._parse_rrule(component.get("RRULE")),
            exdates=self.collect_exdates(component, default_tz),
            recurrence_id=recurrence_id,
        )

    def _parse_event_times(
        self, component: ICalEvent, default_tz: Optional[tzinfo]
    ) -> tuple[datetime, datetime]:
        """Decode DTSTART and DTEND, deriving a missing end.

        Raises:
            ValueError: If DTSTART is missing
        """
        if component.get("DTSTART") is None:
            raise ValueError("missing DTSTART")

        raw_start = component.decoded("DTSTART")
        is_all_day = not isinstance(raw_start, datetime)
        start = as_datetime(raw_start, default_tz)

        if component.get("DTEND") is not None:
            end = as_datetime(component.decoded("DTEND"), default_tz)
        elif component.get("DURATION") is not None:
            end = start + component.decoded("DURATION")
        else:
            end = start + (timedelta(days=1) if is_all_day else timedelta(hours=1))

        return start, end

    def _parse_status(self, status_prop: Any) -> EventStatus:
        if status_prop is None:
            return EventStatus.CONFIRMED
        return _STATUS_MAP.get(str(status_prop).upper(), EventStatus.CONFIRMED)

    def _parse_rrule(self, rrule_prop: Any) -> Optional[str]:
        """Render the RRULE property back to its text form."""
        if not rrule_prop:
            return None
        if isinstance(rrule_prop, list):
            # Multiple RRULEs are rare; the first one defines the series
            rrule_prop = rrule_prop[0]
        if hasattr(rrule_prop, "to_ical"):
            return rrule_prop.to_ical().decode("utf-8")
        return str(rrule_prop)

    def collect_exdates(
        self, component: ICalEvent, default_tz: Optional[tzinfo] = None
    ) -> list[Union[datetime, date]]:
        """Collect EXDATE values from a VEVENT component.

        icalendar returns either a single ``vDDDLists`` or a list of them when
        the property repeats; each holds one or more comma-separated values.
        DATE values are kept as dates so they match on whole days.
        """
        exdate_props = component.get("EXDATE")
        if exdate_props is None:
            return []
        if not isinstance(exdate_props, list):
            exdate_props = [exdate_props]

        exdates: list[Union[datetime, date]] = []
        for prop in exdate_props:
            for value in getattr(prop, "dts", []):
                dt = value.dt
                if isinstance(dt, datetime):
                    exdates.append(as_datetime(dt, default_tz))
                elif isinstance(dt, date):
                    exdates.append(dt)
                else:
                    logger.debug("Skipping unsupported EXDATE value %r", dt)
        return exdates
