"""
URL Frontier holding the URLs waiting to be crawled.
A single FIFO shared by every worker of one crawl run.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, Optional


@dataclass(frozen=True)
class UrlWorkItem:
    """A URL to crawl and its distance in link-hops from the seed."""
    url: str
    depth: int

    def child(self, url: str) -> 'UrlWorkItem':
        """Work item for a link found on this page."""
        return UrlWorkItem(url=url, depth=self.depth + 1)


class URLFrontier:
    """
    Thread-safe FIFO of pending work items.

    ``count`` is read under the same lock that guards ``enqueue`` and
    ``dequeue``, so it never under-reports an item that has been enqueued.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._queue: Deque[UrlWorkItem] = deque()
        self._lock = threading.Lock()
        self._total_enqueued = 0
        self._total_dequeued = 0

    def enqueue(self, item: UrlWorkItem) -> None:
        """Append an item at the tail of the queue."""
        with self._lock:
            self._queue.append(item)
            self._total_enqueued += 1
        self.logger.debug(f"Added URL to frontier: {item.url} (depth {item.depth})")

    def enqueue_all(self, items: Iterable[UrlWorkItem]) -> int:
        """Add multiple items. Returns count of added items."""
        added_count = 0
        for item in items:
            self.enqueue(item)
            added_count += 1
        return added_count

    def dequeue(self) -> Optional[UrlWorkItem]:
        """Remove and return the oldest item, or None when the queue is empty."""
        with self._lock:
            if not self._queue:
                return None
            item = self._queue.popleft()
            self._total_dequeued += 1
        self.logger.debug(f"Retrieved URL from frontier: {item.url}")
        return item

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._queue)

    def __len__(self) -> int:
        return self.count

    def is_empty(self) -> bool:
        """Check if the frontier is empty."""
        return self.count == 0

    def get_stats(self) -> Dict[str, int]:
        """Get frontier statistics."""
        with self._lock:
            return {
                'total_queued': len(self._queue),
                'total_enqueued': self._total_enqueued,
                'total_dequeued': self._total_dequeued,
            }
