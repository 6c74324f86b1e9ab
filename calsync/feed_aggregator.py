"""Merges per-feed EventRecord lists into one time-ordered sequence."""

import logging
from itertools import chain
from typing import Iterable, Sequence

from .event_record import EventRecord
from .feed_processor import sort_by_start
from .models import FeedResult

logger = logging.getLogger(__name__)


class MultiFeedAggregator:
    """Interleaves records from several feeds by start instant."""

    def merge(self, feed_records: Iterable[Sequence[EventRecord]]) -> list[EventRecord]:
        """Concatenate per-feed lists in feed order, then sort stably by start.

        Records that start at the same instant keep feed order, then their
        order within the feed.
        """
        return sort_by_start(chain.from_iterable(feed_records))

    def merge_results(self, results: Iterable[FeedResult]) -> list[EventRecord]:
        """Merge the records of successful feeds; failed feeds contribute nothing."""
        successful = []
        for result in results:
            if result.succeeded:
                successful.append(result.records)
            else:
                logger.debug("Leaving out failed feed %s", result.url)
        merged = self.merge(successful)
        logger.debug("Merged %d feeds into %d records", len(successful), len(merged))
        return merged
