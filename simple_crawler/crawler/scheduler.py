"""
Crawler scheduler that runs the worker pool and coordinates the crawl process.
"""

import asyncio
import inspect
import logging
import random
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .bloom_filter import BloomFilter
from .fetcher import WebFetcher
from .filters import LinkFilter
from .listener import CrawlListener
from .parser import LinkExtractor
from .url_frontier import URLFrontier, UrlWorkItem
from ..errors import FetchError, ParseError
from ..utils.config import CrawlSettings
from ..utils.logger import CrawlerLogAdapter, get_crawler_logger
from ..utils.monitoring import CrawlerMonitor


WEB_URL_PATTERN = re.compile(r'^(http|https)://([\w-]+\.)+[\w-]+(/[\w\- ./?%&=]*)?', re.IGNORECASE)


@dataclass
class CrawlStats:
    """Statistics for crawl operations."""
    start_time: float
    pages_fetched: int = 0
    links_enqueued: int = 0
    errors: int = 0
    total_bytes_downloaded: int = 0
    average_fetch_time: float = 0.0

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.pages_fetched / elapsed_minutes if elapsed_minutes > 0 else 0


class CrawlerScheduler:
    """
    Runs ``settings.thread_count`` workers over one shared frontier.

    Each worker repeatedly dequeues a URL, fetches it, queues the admissible
    links it contains one level deeper and publishes the page to the
    listener. A worker that finds the frontier empty marks itself idle; once
    every worker is idle at the same time the crawl is finished.
    """

    def __init__(self, settings: CrawlSettings, listener: Optional[CrawlListener] = None,
                 fetcher: Optional[WebFetcher] = None, monitor: Optional[CrawlerMonitor] = None,
                 stats_interval: float = 30.0):
        self.settings = settings
        self.listener = listener or CrawlListener()
        self.fetcher = fetcher or WebFetcher.from_settings(settings)
        self.monitor = monitor
        self.stats_interval = stats_interval
        self.logger = logging.getLogger(__name__)

        # Components
        self.frontier = URLFrontier()
        self.link_filter = LinkFilter(settings)
        self.extractor = LinkExtractor()
        self.seen: Optional[BloomFilter[str]] = (
            BloomFilter(settings.filter_capacity) if settings.dedup_links else None
        )

        # Crawl state
        self.stats = CrawlStats(start_time=time.time())
        self.is_running = False
        self.workers: List[asyncio.Task] = []
        self.worker_status: List[bool] = [False] * settings.thread_count
        self._stop_event = asyncio.Event()
        self._random = random.Random()

    def add_seed_urls(self) -> int:
        """Queue every well-formed seed address at depth 1."""
        added_count = 0
        for seed in self.settings.seeds_address:
            if not WEB_URL_PATTERN.match(seed):
                self.logger.warning(f"Ignoring malformed seed address: {seed}")
                continue
            self.frontier.enqueue(UrlWorkItem(url=seed, depth=1))
            if self.seen is not None:
                self.seen.add(seed)
            added_count += 1

        self.logger.info(f"Added {added_count} seed URLs to frontier")
        return added_count

    async def crawl(self) -> CrawlStats:
        """
        Run the crawl until every worker is idle or stop() is called.

        Calling crawl() while a crawl is already running logs a warning and
        returns the current statistics.
        """
        if self.is_running:
            self.logger.warning("Crawler is already running")
            return self.stats

        self.is_running = True
        self._stop_event.clear()
        self.stats = CrawlStats(start_time=time.time())
        self.worker_status = [False] * self.settings.thread_count
        stats_task: Optional[asyncio.Task] = None

        try:
            await self.fetcher.start()
            self.add_seed_urls()

            self.workers = [
                asyncio.create_task(self._worker(i), name=f"crawler-worker-{i}")
                for i in range(self.settings.thread_count)
            ]
            stats_task = asyncio.create_task(self._stats_reporter())

            self.logger.info(f"Started crawling with {len(self.workers)} workers")

            await asyncio.gather(*self.workers, return_exceptions=True)

            self._log_final_stats()

        finally:
            if stats_task:
                stats_task.cancel()
                await asyncio.gather(stats_task, return_exceptions=True)
            await self._cleanup_workers()
            await self.fetcher.close()
            self.is_running = False

        return self.stats

    async def stop(self):
        """Stop the crawl: running workers are cancelled and in-flight fetches abandoned."""
        self.logger.info("Stopping crawler...")
        self._stop_event.set()
        await self._cleanup_workers()

    async def _worker(self, index: int):
        """
        Worker coroutine that processes URLs from the frontier.
        """
        logger = get_crawler_logger(__name__, worker=index)
        logger.debug("started")

        while not self._stop_event.is_set():
            if self.frontier.count == 0:
                self.worker_status[index] = True
                self._update_idle_workers()
                if all(self.worker_status):
                    break
                await self._pause(self.settings.idle_backoff)
                continue

            self.worker_status[index] = False

            url_task = self.frontier.dequeue()
            if url_task is None:
                continue

            try:
                await self._process_url(url_task, logger)
            except Exception as e:
                logger.error(f"Error processing {url_task.url}: {e}", exc_info=True)
                self.stats.errors += 1
                if self.monitor:
                    self.monitor.record_error(type(e).__name__)
                await self._call_listener(self.listener.on_error, url_task.url, e)

        logger.debug("finished")

    async def _process_url(self, url_task: UrlWorkItem, logger: CrawlerLogAdapter):
        """Fetch one page, queue its links and publish it."""
        if self.settings.auto_speed_limit:
            await self._pause(self._random.uniform(*self.settings.speed_limit_range))
            if self._stop_event.is_set():
                return

        try:
            fetch_result = await self.fetcher.fetch(url_task.url)
        except FetchError as e:
            logger.warning(f"Failed to fetch {url_task.url}: {e}")
            self.stats.errors += 1
            if self.monitor:
                self.monitor.record_error(type(e).__name__)
            await self._call_listener(self.listener.on_error, url_task.url, e)
            return

        self._record_fetch(fetch_result.fetch_time, len(fetch_result.body))
        if self.monitor:
            self.monitor.record_page_fetched(url_task.url, len(fetch_result.body), fetch_result.fetch_time)

        html = fetch_result.content or ''

        if self._below_depth_limit(url_task):
            added_count = await self._queue_new_urls(url_task, html, logger)
            logger.debug(f"Queued {added_count} new URLs from {url_task.url}")
        else:
            logger.debug(f"Depth limit reached, not following links on {url_task.url}")

        await self._call_listener(self.listener.on_page_fetched, url_task.url, url_task.depth, html)

    def _below_depth_limit(self, url_task: UrlWorkItem) -> bool:
        depth = self.settings.depth
        return not (depth > 0 and url_task.depth >= depth)

    async def _queue_new_urls(self, url_task: UrlWorkItem, html: str, logger: CrawlerLogAdapter) -> int:
        """Run the links of a page through the filters and queue the survivors."""
        try:
            links = self.extractor.extract(url_task.url, html)
        except ParseError as e:
            logger.warning(f"No links taken from {url_task.url}: {e}")
            return 0

        added_count = 0
        for url, text in links:
            reason = self.link_filter.rejection_reason(url, url_task.url)
            if reason is None and self.seen is not None and url in self.seen:
                reason = 'duplicate'
            if reason:
                self._record_rejection(url, reason)
                continue

            child = url_task.child(url)
            admitted = await self._call_listener(self.listener.on_link_discovered, url, child.depth, text)
            if not admitted:
                self._record_rejection(url, 'listener')
                continue

            if self.seen is not None:
                self.seen.add(url)
            self.frontier.enqueue(child)
            self.stats.links_enqueued += 1
            if self.monitor:
                self.monitor.record_link_enqueued(url)
            added_count += 1

        return added_count

    async def _call_listener(self, hook: Callable, *args) -> Any:
        """Invoke a listener hook, plain or coroutine. Failures are logged, not raised."""
        try:
            result = hook(*args)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as e:
            self.logger.error(f"Listener hook {getattr(hook, '__name__', hook)} failed: {e}", exc_info=True)
            return None

    async def _pause(self, delay: float):
        """Sleep for delay seconds, waking early when the crawl is stopped."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    def _record_fetch(self, fetch_time: float, size: int):
        self.stats.pages_fetched += 1
        self.stats.total_bytes_downloaded += size
        self.stats.average_fetch_time = (
            (self.stats.average_fetch_time * (self.stats.pages_fetched - 1) + fetch_time)
            / self.stats.pages_fetched
        )

    def _record_rejection(self, url: str, reason: str):
        self.logger.debug(f"Rejected {url} ({reason})")
        if self.monitor:
            self.monitor.record_link_rejected(url, reason)

    def _update_idle_workers(self):
        if self.monitor:
            self.monitor.update_idle_workers(sum(self.worker_status))

    async def _stats_reporter(self):
        """Periodically log crawl statistics."""
        while True:
            await asyncio.sleep(self.stats_interval)
            self._log_current_stats()

    def _log_current_stats(self):
        """Log current crawl statistics."""
        queued = self.frontier.count
        if self.monitor:
            self.monitor.update_queue_size(queued)
            if self.seen is not None:
                self.monitor.update_filter_fill_ratio(self.seen.truthiness)

        self.logger.info(
            f"Crawl Progress: "
            f"Fetched={self.stats.pages_fetched}, "
            f"Enqueued={self.stats.links_enqueued}, "
            f"Queued={queued}, "
            f"Idle={sum(self.worker_status)}/{len(self.worker_status)}, "
            f"Errors={self.stats.errors}, "
            f"Rate={self.stats.pages_per_minute:.1f} pages/min"
        )

    def _log_final_stats(self):
        """Log final crawl statistics."""
        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"Pages fetched: {self.stats.pages_fetched}")
        self.logger.info(f"Links enqueued: {self.stats.links_enqueued}")
        self.logger.info(f"Errors: {self.stats.errors}")
        self.logger.info(f"Total time: {self.stats.elapsed_time:.2f} seconds")
        self.logger.info(f"Average fetch time: {self.stats.average_fetch_time:.2f}s")
        self.logger.info(f"Data downloaded: {self.stats.total_bytes_downloaded / 1024 / 1024:.1f} MB")
        self.logger.info(f"URLs remaining in queue: {self.frontier.count}")
        if self.seen is not None:
            self.logger.info(f"Seen-URL filter fill ratio: {self.seen.truthiness:.4f}")

    async def _cleanup_workers(self):
        """Cancel and cleanup worker tasks."""
        current = asyncio.current_task()
        pending = [worker for worker in self.workers if worker is not current]
        for worker in pending:
            if not worker.done():
                worker.cancel()

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self.workers = [worker for worker in self.workers if worker is current]

    def get_stats(self) -> Dict:
        """Get current crawl statistics."""
        return {
            'pages_fetched': self.stats.pages_fetched,
            'links_enqueued': self.stats.links_enqueued,
            'errors': self.stats.errors,
            'elapsed_time': self.stats.elapsed_time,
            'pages_per_minute': self.stats.pages_per_minute,
            'average_fetch_time': self.stats.average_fetch_time,
            'total_bytes_downloaded': self.stats.total_bytes_downloaded,
            'urls_in_queue': self.frontier.count,
            'idle_workers': sum(self.worker_status),
            'is_running': self.is_running
        }
