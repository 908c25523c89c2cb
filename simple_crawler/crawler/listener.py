"""
Observer hooks the crawler calls while it runs.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..storage.link_storage import LinkStorage


class CrawlListener:
    """
    Receives crawl events. Subclass and override the hooks you need;
    each hook may also be written as a coroutine.
    """

    def on_page_fetched(self, url: str, depth: int, html: str):
        """A page was fetched and decoded."""
        pass

    def on_link_discovered(self, url: str, depth: int, text: str) -> bool:
        """A link passed the built-in filters. Return False to keep it out of the frontier."""
        return True

    def on_error(self, url: str, error: Exception):
        """A page could not be fetched or processed."""
        pass


class LinkStorageListener(CrawlListener):
    """Admits a link only when the storage accepts it as new."""

    def __init__(self, storage: "LinkStorage"):
        self.storage = storage
        self.logger = logging.getLogger(__name__)

    def on_link_discovered(self, url: str, depth: int, text: str) -> bool:
        return self.storage.try_add(url)

    def on_error(self, url: str, error: Exception):
        self.logger.info(f"Crawl error on {url}: {error}")
