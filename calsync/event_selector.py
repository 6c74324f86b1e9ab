"""Relevance selection: the closest event for quick sync, or candidates to pick from."""

import datetime
import logging
from typing import Optional, Sequence

from .datetime_utils import ensure_timezone_aware
from .event_record import EventRecord
from .models import SelectionSettings

logger = logging.getLogger(__name__)


class RelevanceSelector:
    """Chooses events relative to a caller-supplied "now"."""

    def __init__(self, settings: SelectionSettings):
        """Initialize relevance selector.

        Args:
            settings: Snapshot providing the selectable past/future day windows
        """
        self.settings = settings

    def _relevant(self, events: Sequence[EventRecord]) -> list[EventRecord]:
        return [ev for ev in events if ev.is_attending() and not ev.is_ignored()]

    def find_closest_event(
        self,
        events: Sequence[EventRecord],
        now: datetime.datetime,
    ) -> Optional[EventRecord]:
        """Find the event closest to ``now``.

        Business rules, over attended and non-ignored events:
        1. The first actively occurring event in list order wins outright
        2. Else the upcoming event with the earliest start
        3. Else the recent event with the latest end
        4. Else None

        Args:
            events: EventRecords sorted by start
            now: Current time

        Returns:
            The closest EventRecord, or None
        """
        now = ensure_timezone_aware(now)
        relevant = self._relevant(events)

        for ev in relevant:
            if ev.is_actively_occurring(now):
                logger.debug("Closest event is in progress: %r", ev.summary)
                return ev

        upcoming = [ev for ev in relevant if ev.is_upcoming(now)]
        if upcoming:
            # min() keeps the first of equal starts
            selected = min(upcoming, key=lambda ev: ev.start)
            logger.debug("Closest event is upcoming: %r", selected.summary)
            return selected

        recent = [ev for ev in relevant if ev.is_recent(now)]
        if recent:
            selected = max(recent, key=lambda ev: ev.end)
            logger.debug("Closest event ended recently: %r", selected.summary)
            return selected

        logger.debug("No relevant event near %s among %d events", now, len(events))
        return None

    def get_selectable_events(
        self,
        events: Sequence[EventRecord],
        now: datetime.datetime,
    ) -> list[EventRecord]:
        """Attended, non-ignored events starting within the selectable window.

        The window is [now - selectable_past_days, now + selectable_future_days],
        inclusive. Input order is preserved.
        """
        now = ensure_timezone_aware(now)
        past_limit = now - datetime.timedelta(days=self.settings.selectable_past_days)
        future_limit = now + datetime.timedelta(days=self.settings.selectable_future_days)

        return [ev for ev in self._relevant(events) if past_limit <= ev.start <= future_limit]
