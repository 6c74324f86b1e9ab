"""HTTP client for downloading ICS calendar feeds."""

import asyncio
import logging
import random
from typing import Any, NoReturn, Optional
from urllib.parse import urlparse

import httpx

from . import __version__
from .exceptions import (
    FeedAuthError,
    FeedFetchError,
    FeedNetworkError,
    FeedNotFoundError,
    FeedTimeoutError,
)
from .models import ICSResponse, ICSSource

logger = logging.getLogger(__name__)

# Backoff calculation constants
MAX_BACKOFF_SECONDS = 30.0
JITTER_MIN_FACTOR = 0.1
JITTER_MAX_FACTOR = 0.3

DEFAULT_HEADERS = {
    "User-Agent": f"calsync/{__version__}",
    "Accept": "text/calendar, text/plain;q=0.9, */*;q=0.5",
}


def _raise_client_not_initialized() -> NoReturn:
    raise FeedFetchError("HTTP client not initialized")


class ICSFetcher:
    """Async HTTP client for downloading ICS calendar feeds."""

    def __init__(self, settings: Any, client: Optional[httpx.AsyncClient] = None) -> None:
        """Initialize ICS fetcher.

        Args:
            settings: Object exposing request_timeout, max_retries and retry_backoff_factor
            client: Optional externally owned HTTP client; it is never closed here
        """
        self.settings = settings
        self.client: Optional[httpx.AsyncClient] = client
        self._owns_client = client is None

        logger.debug("ICS fetcher initialized (external client: %s)", not self._owns_client)

    async def __aenter__(self) -> "ICSFetcher":
        await self._ensure_client()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self._close_client()

    async def _close_client(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self.client is not None and self._owns_client:
            if not self.client.is_closed:
                await self.client.aclose()
                logger.debug("Closed HTTP client")
            self.client = None

    async def _ensure_client(self) -> None:
        if self.client is None or self.client.is_closed:
            request_timeout = getattr(self.settings, "request_timeout", 30)
            timeout = httpx.Timeout(connect=10.0, read=request_timeout, write=10.0, pool=30.0)
            limits = httpx.Limits(max_connections=10, max_keepalive_connections=5)

            self.client = httpx.AsyncClient(
                limits=limits,
                timeout=timeout,
                follow_redirects=True,
                verify=True,
                headers=DEFAULT_HEADERS,
            )
            self._owns_client = True

    def _validate_url(self, url: str) -> bool:
        """Basic URL validation: HTTP(S) scheme and a hostname.

        Calendar apps hand out ``webcal://`` links; those are rewritten to
        https by ``normalize_feed_url`` before reaching this check.
        """
        try:
            parsed = urlparse(url)
        except ValueError as e:
            logger.debug("URL validation error for %s: %s", url, e)
            return False

        if parsed.scheme not in ("http", "https"):
            logger.debug("Blocked non-HTTP(S) URL: %s", url)
            return False

        if not parsed.hostname:
            logger.debug("Blocked URL with missing hostname: %s", url)
            return False

        return True

    async def fetch_ics(self, source: ICSSource) -> ICSResponse:
        """Download ICS content from a feed.

        Network failures and timeouts are retried with exponential backoff and
        jitter; HTTP status errors are not retried.

        Args:
            source: Feed to download

        Returns:
            ICSResponse with non-empty content

        Raises:
            FeedNotFoundError: HTTP 404, usually a wrong or revoked feed URL
            FeedAuthError: HTTP 401/403
            FeedTimeoutError: The feed did not answer in time on any attempt
            FeedNetworkError: DNS, connection or TLS failure on every attempt
            FeedFetchError: Invalid URL, other HTTP status, or empty body
        """
        url = normalize_feed_url(source.url)
        if not self._validate_url(url):
            raise FeedFetchError(f"Invalid calendar URL: {source.url}", url=source.url)

        await self._ensure_client()

        headers = dict(source.custom_headers)

        try:
            logger.debug("Fetching ICS from %s", url)
            response = await self._make_request_with_retry(url, headers, source.timeout)

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error("HTTP error fetching ICS from %s: %s", url, status)

            if status == 404:
                raise FeedNotFoundError(
                    "Calendar feed not found (HTTP 404)", url=url, status_code=status
                ) from e
            if status in (401, 403):
                raise FeedAuthError(
                    f"Access to calendar feed denied (HTTP {status})", url=url, status_code=status
                ) from e
            raise FeedFetchError(
                f"HTTP {status}: {e.response.reason_phrase}", url=url, status_code=status
            ) from e

        except httpx.TimeoutException as e:
            logger.error("Timeout fetching ICS from %s", url)
            raise FeedTimeoutError(f"Request timeout after {source.timeout}s", url=url) from e

        except httpx.NetworkError as e:
            logger.error("Network error fetching ICS from %s: %s", url, e)
            raise FeedNetworkError(f"Network error: {e}", url=url) from e

        except FeedFetchError:
            raise

        except Exception as e:
            logger.exception("Unexpected error fetching ICS from %s", url)
            raise FeedFetchError(f"Unexpected error: {e}", url=url) from e

        return self._create_response(url, response)

    def _calculate_backoff(self, attempt: int, corruption_detected: bool, backoff_factor: float) -> float:
        """Calculate exponential backoff time with jitter.

        Args:
            attempt: Current retry attempt number (0-indexed)
            corruption_detected: Whether broken-connection errors were seen
            backoff_factor: Base factor for exponential backoff calculation

        Returns:
            Backoff time in seconds including jitter
        """
        base_backoff = backoff_factor**attempt

        if corruption_detected:
            base_backoff = min(base_backoff * 2, MAX_BACKOFF_SECONDS)

        jitter = random.uniform(JITTER_MIN_FACTOR, JITTER_MAX_FACTOR) * base_backoff  # nosec B311
        return base_backoff + jitter

    async def _make_request_with_retry(
        self, url: str, headers: dict[str, str], timeout: int
    ) -> httpx.Response:
        max_retries = int(getattr(self.settings, "max_retries", 3))
        backoff_factor = float(getattr(self.settings, "retry_backoff_factor", 1.5))
        corruption_detected = False

        attempt = 0
        while True:
            if self.client is None:
                _raise_client_not_initialized()

            try:
                response = await self.client.get(url, headers=headers, timeout=timeout)
                response.raise_for_status()

                logger.debug(
                    "Fetched ICS from %s (attempt %d) - %d bytes",
                    url,
                    attempt + 1,
                    len(response.content),
                )
                return response

            except httpx.HTTPStatusError:
                # Not found, auth errors etc. will not improve on retry
                raise

            except (httpx.TimeoutException, httpx.NetworkError) as e:
                message = str(e)
                if any(
                    marker in message
                    for marker in ("Connection broken", "Broken pipe", "Connection reset")
                ):
                    corruption_detected = True

                if attempt >= max_retries:
                    logger.error("All %d attempts failed for %s", attempt + 1, url)
                    raise

                backoff_time = self._calculate_backoff(attempt, corruption_detected, backoff_factor)
                logger.warning(
                    "Request failed (attempt %d/%d), retrying in %.1fs: %s",
                    attempt + 1,
                    max_retries + 1,
                    backoff_time,
                    e,
                )
                await asyncio.sleep(backoff_time)
                attempt += 1

    def _create_response(self, url: str, http_response: httpx.Response) -> ICSResponse:
        headers = dict(http_response.headers)
        content = http_response.text
        content_type = headers.get("content-type", "").lower()

        if content_type and not any(ct in content_type for ct in ("text/calendar", "text/plain")):
            logger.warning("Unexpected content type from %s: %s", url, content_type)

        if not content or not content.strip():
            raise FeedFetchError(
                "Empty content received", url=url, status_code=http_response.status_code
            )

        if "BEGIN:VCALENDAR" not in content:
            logger.warning("Content from %s does not appear to be ICS", url)

        return ICSResponse(
            url=url,
            content=content,
            status_code=http_response.status_code,
            headers=headers,
        )


def normalize_feed_url(url: str) -> str:
    """Trim whitespace and rewrite ``webcal://`` subscription links to https."""
    url = url.strip()
    if url.lower().startswith("webcal://"):
        return "https://" + url[len("webcal://") :]
    return url
