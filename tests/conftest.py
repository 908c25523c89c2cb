"""
Shared fixtures: an in-memory fetcher and a listener that records events.
"""

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from simple_crawler.crawler.fetcher import FetchResult
from simple_crawler.crawler.listener import CrawlListener
from simple_crawler.errors import FetchError, NonSuccessStatusError


class FakeFetcher:
    """Serves pages from a dict; unknown URLs answer 404."""

    def __init__(self, pages: Dict[str, str], errors: Optional[Dict[str, FetchError]] = None,
                 block: Optional[asyncio.Event] = None):
        self.pages = pages
        self.errors = errors or {}
        self.block = block
        self.requested: List[str] = []
        self.started = False
        self.closed = False

    async def start(self):
        self.started = True

    async def close(self):
        self.closed = True

    async def fetch(self, url: str) -> FetchResult:
        self.requested.append(url)
        if self.block is not None:
            await self.block.wait()
        await asyncio.sleep(0)
        if url in self.errors:
            raise self.errors[url]
        if url not in self.pages:
            raise NonSuccessStatusError(url, 404)
        html = self.pages[url]
        body = html.encode('utf-8')
        return FetchResult(url=url, status_code=200, body=body, content=html, response_url=url)


class RecordingListener(CrawlListener):
    def __init__(self, admit: bool = True):
        self.admit = admit
        self.pages: List[Tuple[str, int]] = []
        self.links: List[Tuple[str, int, str]] = []
        self.errors: List[Tuple[str, Exception]] = []

    def on_page_fetched(self, url, depth, html):
        self.pages.append((url, depth))

    def on_link_discovered(self, url, depth, text):
        self.links.append((url, depth, text))
        return self.admit

    def on_error(self, url, error):
        self.errors.append((url, error))


def page(*hrefs: str) -> str:
    anchors = ''.join(f'<a href="{href}">link {i}</a>' for i, href in enumerate(hrefs))
    return f'<html><body>{anchors}</body></html>'


@pytest.fixture
def recording_listener():
    return RecordingListener()
