"""Fetch orchestration across multiple ICS feeds."""

import asyncio
import logging
from datetime import datetime
from typing import Optional, Sequence

from .exceptions import CalendarSyncError, FeedFetchError
from .feed_processor import FeedProcessor
from .fetcher import ICSFetcher
from .ics_parser import ICSParser
from .models import FeedResult, ICSSource

logger = logging.getLogger(__name__)


class FetchOrchestrator:
    """Fetches, parses and processes several feeds with bounded concurrency.

    Each feed is isolated: a failing feed yields a FeedResult carrying the
    error while the others carry on.
    """

    def __init__(
        self,
        fetcher: ICSFetcher,
        processor: FeedProcessor,
        parser: Optional[ICSParser] = None,
        fetch_concurrency: int = 2,
        request_timeout: int = 30,
    ):
        """Initialize fetch orchestrator.

        Args:
            fetcher: Entered ICSFetcher used for every feed
            processor: FeedProcessor turning parsed items into EventRecords
            parser: ICS parser (a default one is created when omitted)
            fetch_concurrency: Maximum number of feeds fetched at once
            request_timeout: Per-request timeout in seconds
        """
        self.fetcher = fetcher
        self.processor = processor
        self.parser = parser or ICSParser()
        self.fetch_concurrency = max(1, fetch_concurrency)
        self.request_timeout = request_timeout

    async def fetch_all_sources(self, urls: Sequence[str], now: datetime) -> list[FeedResult]:
        """Fetch and process every feed.

        Args:
            urls: Feed URLs in configuration order
            now: Reference instant passed to the feed processor

        Returns:
            One FeedResult per URL, in the same order as ``urls``
        """
        if not urls:
            logger.error("No sources configured, skipping fetch")
            return []

        semaphore = asyncio.Semaphore(self.fetch_concurrency)
        tasks = [
            asyncio.create_task(self._fetch_and_process_source(semaphore, url, now))
            for url in urls
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        results = []
        for url, outcome in zip(urls, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error("Source %s failed unexpectedly: %s", url, outcome)
                error = FeedFetchError(f"Unexpected error: {outcome}", url=url)
                error.__cause__ = outcome
                outcome = FeedResult(url=url, error=error)
            results.append(outcome)

        failed = sum(1 for result in results if not result.succeeded)
        logger.debug("Fetched %d sources (%d failed)", len(results), failed)
        return results

    async def _fetch_and_process_source(
        self, semaphore: asyncio.Semaphore, url: str, now: datetime
    ) -> FeedResult:
        async with semaphore:
            try:
                response = await self.fetcher.fetch_ics(
                    ICSSource(url=url, timeout=self.request_timeout)
                )
                parsed = self.parser.parse_ics_content(response.content, source_url=url)
            except CalendarSyncError as e:
                logger.error("Source %s failed: %s", url, e)
                return FeedResult(url=url, error=e)

        for warning in parsed.warnings:
            logger.warning("Source %s: %s", url, warning)

        records = self.processor.process(parsed.items, now)
        logger.debug("Source %s returned %d records", url, len(records))
        return FeedResult(url=url, records=records)
