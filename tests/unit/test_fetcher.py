"""Unit tests for calsync.fetcher module, using httpx.MockTransport instead of the network."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from calsync import __version__
from calsync.exceptions import (
    FeedAuthError,
    FeedFetchError,
    FeedNetworkError,
    FeedNotFoundError,
    FeedTimeoutError,
)
from calsync.fetcher import ICSFetcher, normalize_feed_url
from calsync.models import ICSSource

pytestmark = pytest.mark.unit

FEED_URL = "https://calendar.example.com/secret/basic.ics"
ICS_BODY = "BEGIN:VCALENDAR\nVERSION:2.0\nEND:VCALENDAR\n"


@pytest.fixture
def fetch_settings() -> SimpleNamespace:
    return SimpleNamespace(request_timeout=5, max_retries=2, retry_backoff_factor=1.5)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestURLHandling:
    def setup_method(self):
        self.fetcher = ICSFetcher(SimpleNamespace())

    @pytest.mark.parametrize(
        "url,allowed",
        [
            ("https://example.com/calendar.ics", True),
            ("http://example.com/calendar.ics", True),
            ("ftp://example.com/file.ics", False),
            ("file:///etc/passwd", False),
            ("http:///calendar.ics", False),
            ("not-a-url", False),
            ("", False),
        ],
    )
    def test_validate_url(self, url, allowed):
        assert self.fetcher._validate_url(url) is allowed

    def test_normalize_feed_url_rewrites_webcal(self):
        assert normalize_feed_url(" webcal://example.com/a.ics ") == "https://example.com/a.ics"
        assert normalize_feed_url("https://example.com/a.ics") == "https://example.com/a.ics"


class TestFetchICS:
    """Tests for ICSFetcher.fetch_ics."""

    @pytest.mark.asyncio
    async def test_success_returns_content(self, fetch_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["X-Test"] == "1"
            return httpx.Response(200, text=ICS_BODY, headers={"content-type": "text/calendar"})

        async with _client(handler) as client:
            fetcher = ICSFetcher(fetch_settings, client=client)
            response = await fetcher.fetch_ics(
                ICSSource(url=FEED_URL, custom_headers={"X-Test": "1"})
            )

        assert response.content == ICS_BODY
        assert response.status_code == 200
        assert response.content_length == len(ICS_BODY)

    @pytest.mark.asyncio
    async def test_webcal_url_is_fetched_over_https(self, fetch_settings):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, text=ICS_BODY)

        async with _client(handler) as client:
            await ICSFetcher(fetch_settings, client=client).fetch_ics(
                ICSSource(url="webcal://calendar.example.com/x.ics")
            )

        assert seen == ["https://calendar.example.com/x.ics"]

    @pytest.mark.asyncio
    async def test_404_raises_not_found(self, fetch_settings):
        async with _client(lambda request: httpx.Response(404)) as client:
            fetcher = ICSFetcher(fetch_settings, client=client)
            with pytest.raises(FeedNotFoundError) as exc_info:
                await fetcher.fetch_ics(ICSSource(url=FEED_URL))

        assert exc_info.value.status_code == 404
        assert exc_info.value.url == FEED_URL

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_status_raises_auth_error(self, fetch_settings, status):
        async with _client(lambda request: httpx.Response(status)) as client:
            with pytest.raises(FeedAuthError):
                await ICSFetcher(fetch_settings, client=client).fetch_ics(ICSSource(url=FEED_URL))

    @pytest.mark.asyncio
    async def test_server_error_is_not_retried(self, fetch_settings):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500)

        async with _client(handler) as client:
            with pytest.raises(FeedFetchError) as exc_info:
                await ICSFetcher(fetch_settings, client=client).fetch_ics(ICSSource(url=FEED_URL))

        assert len(calls) == 1
        assert exc_info.value.status_code == 500
        assert not isinstance(exc_info.value, FeedNotFoundError)

    @pytest.mark.asyncio
    async def test_network_error_is_retried_then_succeeds(self, fetch_settings):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                raise httpx.ConnectError("Connection reset by peer", request=request)
            return httpx.Response(200, text=ICS_BODY)

        with patch("calsync.fetcher.asyncio.sleep", new_callable=AsyncMock) as sleep:
            async with _client(handler) as client:
                response = await ICSFetcher(fetch_settings, client=client).fetch_ics(
                    ICSSource(url=FEED_URL)
                )

        assert response.content == ICS_BODY
        assert len(calls) == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_network_error_after_all_retries_raises(self, fetch_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Name or service not known", request=request)

        with patch("calsync.fetcher.asyncio.sleep", new_callable=AsyncMock):
            async with _client(handler) as client:
                with pytest.raises(FeedNetworkError):
                    await ICSFetcher(fetch_settings, client=client).fetch_ics(
                        ICSSource(url=FEED_URL)
                    )

    @pytest.mark.asyncio
    async def test_timeout_raises_timeout_error(self, fetch_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with patch("calsync.fetcher.asyncio.sleep", new_callable=AsyncMock) as sleep:
            async with _client(handler) as client:
                with pytest.raises(FeedTimeoutError):
                    await ICSFetcher(fetch_settings, client=client).fetch_ics(
                        ICSSource(url=FEED_URL)
                    )

        assert sleep.await_count == fetch_settings.max_retries

    @pytest.mark.asyncio
    async def test_empty_body_raises(self, fetch_settings):
        async with _client(lambda request: httpx.Response(200, text="  ")) as client:
            with pytest.raises(FeedFetchError, match="Empty content"):
                await ICSFetcher(fetch_settings, client=client).fetch_ics(ICSSource(url=FEED_URL))

    @pytest.mark.asyncio
    async def test_invalid_url_raises_without_request(self, fetch_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with _client(handler) as client:
            with pytest.raises(FeedFetchError, match="Invalid calendar URL"):
                await ICSFetcher(fetch_settings, client=client).fetch_ics(
                    ICSSource(url="ftp://example.com/cal.ics")
                )


class TestClientLifecycle:
    @pytest.mark.asyncio
    async def test_external_client_is_not_closed(self, fetch_settings):
        client = _client(lambda request: httpx.Response(200, text=ICS_BODY))

        async with ICSFetcher(fetch_settings, client=client):
            pass

        assert client.is_closed is False
        await client.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_is_closed_on_exit(self, fetch_settings):
        fetcher = ICSFetcher(fetch_settings)

        async with fetcher:
            assert fetcher.client is not None

        assert fetcher.client is None

    @pytest.mark.asyncio
    async def test_owned_client_identifies_as_calsync_version(self, fetch_settings):
        async with ICSFetcher(fetch_settings) as fetcher:
            assert fetcher.client.headers["User-Agent"] == f"calsync/{__version__}"


def test_calculate_backoff_grows_and_caps(fetch_settings):
    fetcher = ICSFetcher(fetch_settings)

    first = fetcher._calculate_backoff(0, False, 2.0)
    third = fetcher._calculate_backoff(2, False, 2.0)
    capped = fetcher._calculate_backoff(10, True, 2.0)

    assert 1.1 <= first <= 1.3
    assert 4.4 <= third <= 5.2
    assert capped <= 30.0 * 1.3
