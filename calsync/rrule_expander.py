"""RRULE expansion for recurring calendar events."""

import logging
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Iterable, Optional, Union

from dateutil.rrule import rrulestr

from .datetime_utils import day_key, ensure_timezone_aware
from .event_record import EventRecord
from .exceptions import RecurrenceRuleError
from .models import EventDefinition, SelectionSettings

logger = logging.getLogger(__name__)

# Recurring events are never expanded further ahead of "now" than this
EXPANSION_HORIZON = timedelta(days=30)


def _build_rule(rule_string: str, anchor: datetime) -> tuple[Any, bool]:
    """Parse an RRULE anchored at ``anchor``.

    dateutil rejects a floating UNTIL combined with an aware DTSTART; such rules
    are retried against the anchor's wall-clock time.

    Returns:
        (rule, floating) where floating means occurrences come back naive
    """
    try:
        return rrulestr(rule_string, dtstart=anchor), False
    except ValueError:
        if anchor.tzinfo is None:
            raise
        logger.debug("Retrying RRULE %r with floating DTSTART", rule_string)
        return rrulestr(rule_string, dtstart=anchor.replace(tzinfo=None)), True


def expand_occurrences(
    rule_string: str,
    anchor: datetime,
    lower: datetime,
    upper: datetime,
    exclusions: Iterable[Union[datetime, date]] = (),
) -> list[datetime]:
    """Expand a recurrence rule into occurrence instants within [lower, upper].

    Both bounds are inclusive. Occurrences whose calendar day (in the anchor's
    zone) matches an exclusion are dropped; EXDATEs often lack the original
    time of day, so matching is done on whole days.

    Args:
        rule_string: RRULE value, e.g. "FREQ=WEEKLY;BYDAY=MO"
        anchor: DTSTART of the series
        lower: Inclusive lower bound
        upper: Inclusive upper bound
        exclusions: EXDATE values

    Returns:
        Sorted, timezone-aware occurrence instants

    Raises:
        RecurrenceRuleError: If the rule cannot be parsed or expanded
    """
    anchor = ensure_timezone_aware(anchor)
    zone: Optional[tzinfo] = anchor.tzinfo

    try:
        rule, floating = _build_rule(rule_string, anchor)
        if floating:
            window_lower = lower.astimezone(zone).replace(tzinfo=None)
            window_upper = upper.astimezone(zone).replace(tzinfo=None)
        else:
            window_lower, window_upper = lower, upper
        raw_occurrences = rule.between(window_lower, window_upper, inc=True)
    except Exception as e:
        raise RecurrenceRuleError(f"Invalid recurrence rule {rule_string!r}: {e}") from e

    excluded_days = {day_key(ex, zone) for ex in exclusions}

    occurrences = []
    for occurrence in raw_occurrences:
        if occurrence.tzinfo is None:
            occurrence = occurrence.replace(tzinfo=zone)
        if day_key(occurrence, zone) in excluded_days:
            continue
        occurrences.append(occurrence)

    return occurrences


class RecurrenceExpander:
    """Expands recurrence bases into concrete, filtered EventRecords."""

    def __init__(
        self,
        settings: SelectionSettings,
        horizon: timedelta = EXPANSION_HORIZON,
    ):
        self.settings = settings
        self.horizon = horizon

    def expand_event(
        self,
        base_event: EventDefinition,
        minimum_processing_instant: datetime,
        now: datetime,
    ) -> list[EventRecord]:
        """Expand one recurrence base within [minimum_processing_instant, now + horizon].

        Occurrences with an override (RECURRENCE-ID on the same day) are replaced
        wholesale by the override. The result is then filtered: declined,
        ignored and cancelled occurrences are dropped, since overrides may carry
        a status the base does not.

        Args:
            base_event: Definition carrying an RRULE
            minimum_processing_instant: Lower bound of the expansion window
            now: Reference instant; the upper bound is now + horizon

        Returns:
            EventRecords for surviving occurrences, in occurrence order
        """
        if not base_event.rrule or base_event.is_override:
            return []

        upper = now + self.horizon
        if minimum_processing_instant > upper:
            return []

        try:
            occurrences = expand_occurrences(
                base_event.rrule,
                base_event.start,
                minimum_processing_instant,
                upper,
                base_event.exdates,
            )
        except RecurrenceRuleError as e:
            logger.warning("Skipping recurring event %r: %s", base_event.summary, e)
            return []

        overrides = self._index_overrides(base_event)
        zone = base_event.start.tzinfo

        records = []
        for occurrence in occurrences:
            override = overrides.get(day_key(occurrence, zone))
            if override is not None:
                record = EventRecord(definition=override, settings=self.settings)
            else:
                record = self._create_basic_occurrence(base_event, occurrence)

            if self._is_valid_occurrence(record):
                records.append(record)

        logger.debug(
            "Expanded %r: %d occurrences, %d kept",
            base_event.summary,
            len(occurrences),
            len(records),
        )
        return records

    def _index_overrides(self, base_event: EventDefinition) -> dict[date, EventDefinition]:
        zone = base_event.start.tzinfo
        return {
            day_key(original, zone): override
            for original, override in base_event.recurrences.items()
        }

    def _create_basic_occurrence(
        self, base_event: EventDefinition, occurrence: datetime
    ) -> EventRecord:
        """Clone the base at ``occurrence``, preserving its duration exactly."""
        duration = base_event.end - base_event.start
        clone = base_event.model_copy(
            update={
                "start": occurrence,
                "end": occurrence + duration,
                "rrule": None,
                "exdates": [],
                "recurrences": {},
            }
        )
        return EventRecord(definition=clone, settings=self.settings)

    def _is_valid_occurrence(self, record: EventRecord) -> bool:
        return record.is_attending() and not record.is_ignored() and not record.is_cancelled()
