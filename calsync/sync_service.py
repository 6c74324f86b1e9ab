"""Sync orchestration: feeds in, one event or a candidate list out."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

import httpx

from .candidate_sort import sort_candidates
from .config_manager import SyncConfig
from .datetime_utils import ensure_timezone_aware, now_utc
from .event_record import EventRecord
from .event_selector import RelevanceSelector
from .exceptions import (
    ConfigurationError,
    FeedNotFoundError,
    ICSParseError,
)
from .feed_aggregator import MultiFeedAggregator
from .feed_processor import FeedProcessor
from .fetch_orchestrator import FetchOrchestrator
from .fetcher import ICSFetcher
from .models import FeedResult, SelectionSettings, SyncOutcome
from .note_writer import NoteWriter

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = (
    "Couldn't sync with calendar events. Make sure your ICS URL is correct in the settings."
)
MISSING_URL_MESSAGE = (
    "No ICS URL configured. Set CALSYNC_ICS_URL or ics_urls in config.yaml."
)
NO_CLOSEST_EVENT_MESSAGE = "No relevant events found to sync with."
NO_SELECTABLE_EVENTS_MESSAGE = "No events found for the specified time range."


def user_message(error: BaseException) -> str:
    """Map a failure to the single actionable message shown to the user."""
    if isinstance(error, FeedNotFoundError):
        return NOT_FOUND_MESSAGE
    if isinstance(error, ConfigurationError):
        return str(error)
    if isinstance(error, ICSParseError):
        return f"Couldn't parse calendar data: {error}"
    return f"Couldn't sync with calendar event: {error}"


def resolve_closest_event(
    feed_results: Iterable[FeedResult],
    now: datetime,
    settings: SelectionSettings,
) -> Optional[EventRecord]:
    """Merge successful feeds and pick the closest event to ``now``."""
    records = MultiFeedAggregator().merge_results(feed_results)
    return RelevanceSelector(settings).find_closest_event(records, ensure_timezone_aware(now))


def resolve_selectable_events(
    feed_results: Iterable[FeedResult],
    now: datetime,
    settings: SelectionSettings,
) -> list[EventRecord]:
    """Merge successful feeds and return the selectable window in presentation order."""
    records = MultiFeedAggregator().merge_results(feed_results)
    selectable = RelevanceSelector(settings).get_selectable_events(
        records, ensure_timezone_aware(now)
    )
    return sort_candidates(selectable)


class CalendarSyncService:
    """Runs one sync or listing operation per call against fresh feed data."""

    def __init__(
        self,
        config: SyncConfig,
        client: Optional[httpx.AsyncClient] = None,
        note_writer: Optional[NoteWriter] = None,
    ) -> None:
        """Initialize sync service.

        Args:
            config: Loaded configuration; its selection settings are captured per call
            client: Optional HTTP client shared by every fetch (owned by the caller)
            note_writer: Writer used when a note path is given
        """
        self.config = config
        self.client = client
        self.note_writer = note_writer or NoteWriter()

    async def fetch_feeds(self, now: datetime) -> list[FeedResult]:
        """Fetch, parse and process every configured feed.

        Raises:
            ConfigurationError: No feed URL is configured (before any network call)
            CalendarSyncError: Every feed failed; the first failure is raised
        """
        urls = [url for url in self.config.ics_urls if url.strip()]
        if not urls:
            raise ConfigurationError(MISSING_URL_MESSAGE)

        settings = self.config.selection
        async with ICSFetcher(self.config, client=self.client) as fetcher:
            orchestrator = FetchOrchestrator(
                fetcher,
                FeedProcessor(settings),
                fetch_concurrency=self.config.fetch_concurrency,
                request_timeout=self.config.request_timeout,
            )
            results = await orchestrator.fetch_all_sources(urls, now)

        failures = [result for result in results if not result.succeeded]
        if failures and len(failures) == len(results):
            raise failures[0].error

        for failure in failures:
            logger.warning("Continuing without %s: %s", failure.url, user_message(failure.error))
        return results

    async def sync_closest(
        self, now: Optional[datetime] = None, note_path: Optional[Path] = None
    ) -> SyncOutcome:
        """Find the closest event and, when ``note_path`` is given, sync it into the note."""
        now = ensure_timezone_aware(now) if now is not None else now_utc()
        settings = self.config.selection

        results = await self.fetch_feeds(now)
        failures = [result for result in results if not result.succeeded]

        event = resolve_closest_event(results, now, settings)
        if event is None:
            logger.info("No relevant event found at %s", now.isoformat())
            return SyncOutcome(message=NO_CLOSEST_EVENT_MESSAGE, failures=failures)

        outcome = SyncOutcome(event=event, message=event.generate_title(), failures=failures)
        if note_path is not None:
            outcome.note_path = self.note_writer.sync_note(note_path, event)
        return outcome

    async def list_selectable(self, now: Optional[datetime] = None) -> SyncOutcome:
        """List events in the selectable window, in presentation order."""
        now = ensure_timezone_aware(now) if now is not None else now_utc()
        settings = self.config.selection

        results = await self.fetch_feeds(now)
        failures = [result for result in results if not result.succeeded]

        candidates = resolve_selectable_events(results, now, settings)
        message = "" if candidates else NO_SELECTABLE_EVENTS_MESSAGE
        return SyncOutcome(candidates=candidates, message=message, failures=failures)

    def sync_selected(self, record: EventRecord, note_path: Path) -> SyncOutcome:
        """Sync a candidate the user picked into the note."""
        new_path = self.note_writer.sync_note(note_path, record)
        return SyncOutcome(event=record, message=record.generate_title(), note_path=new_path)
