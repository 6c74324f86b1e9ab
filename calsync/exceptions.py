"""Exception hierarchy for calendar event sync.

Every failure the sync layer reports to the user derives from
``CalendarSyncError`` so callers can handle them in one place and map them to
a single actionable message.
"""

from typing import Optional


class CalendarSyncError(Exception):
    """Base exception for all calendar sync errors."""


class ConfigurationError(CalendarSyncError):
    """Required configuration is missing or invalid.

    Raised when no ICS feed URL is configured. Raised before any network call
    and surfaced to the user verbatim.
    """


class FeedFetchError(CalendarSyncError):
    """Fetching an ICS feed failed.

    Attributes:
        url: The feed URL that failed
        status_code: HTTP status code when the server answered, else None
    """

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class FeedNotFoundError(FeedFetchError):
    """The feed URL answered HTTP 404; usually a wrong or revoked secret URL."""


class FeedAuthError(FeedFetchError):
    """The feed URL answered HTTP 401 or 403."""


class FeedNetworkError(FeedFetchError):
    """DNS, connection or TLS failure while fetching a feed."""


class FeedTimeoutError(FeedFetchError):
    """The feed did not answer within the configured timeout."""


class ICSParseError(CalendarSyncError):
    """Feed text could not be parsed as calendar data."""


class RecurrenceRuleError(CalendarSyncError):
    """A recurrence rule could not be parsed or expanded.

    Never fatal: the expander logs it and yields zero occurrences for that event.
    """


class NoteSyncError(CalendarSyncError):
    """The note could not be updated or renamed."""
