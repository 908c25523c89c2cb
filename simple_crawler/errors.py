"""
Exception hierarchy for the crawler core.
"""

from typing import Optional


class CrawlerError(Exception):
    """Base class for crawler errors."""
    pass


class ConfigurationError(CrawlerError, ValueError):
    """Invalid settings or data structure sizing, raised at construction time."""
    pass


class FetchError(CrawlerError):
    """A page could not be fetched. The item is dropped, the crawl continues."""

    def __init__(self, url: str, message: str = ""):
        self.url = url
        super().__init__(message or f"Failed to fetch {url}")


class FetchTimeoutError(FetchError):
    """Request exceeded the configured timeout."""

    def __init__(self, url: str, timeout: Optional[float] = None):
        self.timeout = timeout
        super().__init__(url, f"Request timeout after {timeout}s: {url}" if timeout else f"Request timeout: {url}")


class TransportError(FetchError):
    """Connection, protocol or content transfer failure."""
    pass


class NonSuccessStatusError(FetchError):
    """Server answered with an error status code."""

    def __init__(self, url: str, status_code: int):
        self.status_code = status_code
        super().__init__(url, f"HTTP {status_code}: {url}")


class ParseError(CrawlerError):
    """Malformed content; treated as a page without links."""
    pass
