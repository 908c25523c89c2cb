"""
Sinks recording the links discovered by a crawl.
"""

import logging
import sys
import threading
from pathlib import Path
from typing import Optional, TextIO, Union

from ..crawler.bloom_filter import BloomFilter, best_error_rate

# small stores get a tighter filter than the 1/capacity default
MAX_FILTER_ERROR_RATE = 0.001


class LinkStorage:
    """
    Abstract base class for link sinks.

    ``try_add`` records a URL once and returns True, or returns False when the
    URL was already recorded or the sink has reached ``max_link_count``.
    """

    def __init__(self, max_link_count: int = 200000):
        self.max_link_count = max_link_count
        self.link_count = 0
        self.logger = logging.getLogger(__name__)
        self._filter: BloomFilter[str] = BloomFilter(
            max_link_count, min(best_error_rate(max_link_count), MAX_FILTER_ERROR_RATE)
        )
        self._lock = threading.Lock()

    @property
    def is_full(self) -> bool:
        return self.link_count >= self.max_link_count

    def try_add(self, url: str) -> bool:
        with self._lock:
            if url in self._filter:
                return False
            if self.is_full:
                return False
            self._filter.add(url)
            self.link_count += 1
            self.write(url)

        if self.link_count % 100 == 0:
            self.logger.info(f"Found {self.link_count} links ...")
        if self.is_full:
            self.logger.warning(f"Link storage reached its limit of {self.max_link_count} links")
        return True

    def write(self, url: str):
        """Persist one newly recorded URL."""
        raise NotImplementedError

    def close(self):
        """Release any resources held by the sink."""
        pass


class ConsoleLinkStorage(LinkStorage):
    """Writes each new link to a text stream, stdout by default."""

    def __init__(self, max_link_count: int = 200000, stream: Optional[TextIO] = None):
        super().__init__(max_link_count)
        self.stream = stream or sys.stdout

    def write(self, url: str):
        print(url, file=self.stream, flush=True)


class FileLinkStorage(LinkStorage):
    """Appends each new link as one line of a text file."""

    def __init__(self, file_name: Union[str, Path], max_link_count: int = 200000):
        super().__init__(max_link_count)
        self.file_path = Path(file_name)
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        self._file: Optional[TextIO] = None

    def write(self, url: str):
        if self._file is None:
            self._file = open(self.file_path, 'a', encoding='utf-8')
        self._file.write(f"{url}\n")
        self._file.flush()

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None
            self.logger.info(f"Saved {self.link_count} links to {self.file_path}")
