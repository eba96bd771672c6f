"""Exception types raised by MC Server Link."""

from __future__ import annotations


class McServerLinkError(Exception):
    """Base class for all errors raised by this package."""


class NetworkUnavailableError(McServerLinkError):
    """Connection or DNS failure."""


class RequestTimeoutError(McServerLinkError):
    """Request exceeded its deadline."""


class ParseError(McServerLinkError):
    """Response body did not have the expected shape."""


class HistoryNotConfiguredError(McServerLinkError):
    """No history backend URL has been configured."""

    def __init__(self) -> None:
        super().__init__("History server address is not configured")


class HttpStatusError(McServerLinkError):
    """Remote service answered with a non-success status code."""

    def __init__(self, code: int, message: str | None = None) -> None:
        self.code = code
        super().__init__(message or f"Request failed with HTTP {code}")

    @property
    def user_message(self) -> str:
        """Get user facing text for the status code."""
        if self.code == 403:
            return "Too many requests, please try again later"
        if self.code == 404:
            return "Not found"
        return f"Server returned an error ({self.code})"


class StatusFetchError(HttpStatusError):
    """Status lookup API returned a non-200 response."""

    def __init__(self, code: int) -> None:
        super().__init__(code, f"Failed to load server status: {code}")


class HistoryFetchError(HttpStatusError):
    """History API returned a non-200 response."""

    def __init__(self, code: int) -> None:
        super().__init__(code, f"Failed to load history: {code}")


class ReleaseCheckError(McServerLinkError):
    """Latest release information could not be retrieved."""
