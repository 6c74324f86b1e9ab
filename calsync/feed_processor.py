"""Turns one feed's parsed items into a time-sorted list of EventRecords."""

import logging
from datetime import datetime
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from .datetime_utils import ensure_timezone_aware
from .event_record import EventRecord
from .models import CalendarItem, ItemKind, SelectionSettings
from .rrule_expander import RecurrenceExpander

logger = logging.getLogger(__name__)

# Events that started before now minus this are never surfaced
MINIMUM_PROCESSING_AGE = relativedelta(months=2)


def minimum_processing_instant(now: datetime) -> datetime:
    """Oldest start instant (or expansion lower bound) considered for ``now``."""
    return ensure_timezone_aware(now) - MINIMUM_PROCESSING_AGE


def sort_by_start(records: Iterable[EventRecord]) -> list[EventRecord]:
    """Sort ascending by start; ties keep their incoming order."""
    return sorted(records, key=lambda record: record.start)


class FeedProcessor:
    """Partitions a feed's items, expands recurrences and applies the age cutoff.

    Non-recurring events are filtered on age only; attendance and ignore
    filtering for them happens at selection time. Recurring occurrences are
    additionally filtered during expansion because overrides can carry
    cancellation or decline markers.
    """

    def __init__(
        self,
        settings: SelectionSettings,
        expander: Optional[RecurrenceExpander] = None,
    ) -> None:
        self.settings = settings
        self.expander = expander or RecurrenceExpander(settings)

    def process(self, items: Iterable[CalendarItem], now: datetime) -> list[EventRecord]:
        """Process parsed items into EventRecords sorted by start.

        Args:
            items: Kind-tagged items from one feed (non-events are skipped)
            now: Reference instant

        Returns:
            EventRecords sorted by start instant, stable on ties
        """
        now = ensure_timezone_aware(now)
        minimum = minimum_processing_instant(now)

        records: list[EventRecord] = []
        skipped = 0
        expanded = 0

        for item in items:
            definition = item.definition
            if item.kind != ItemKind.EVENT or definition is None:
                skipped += 1
                continue

            # Overrides are reached through their base's recurrences only
            if definition.is_override:
                continue

            if definition.is_recurring:
                instances = self.expander.expand_event(definition, minimum, now)
                expanded += len(instances)
                records.extend(instances)
            elif definition.start >= minimum:
                records.append(EventRecord(definition=definition, settings=self.settings))

        logger.debug(
            "Processed feed: %d records (%d from recurrences), %d non-event items skipped",
            len(records),
            expanded,
            skipped,
        )
        return sort_by_start(records)
