"""
Prometheus metrics for the crawler.
"""

import time
import logging
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server


class MetricsCollector:
    """Owns the Prometheus metrics of one crawler process."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.logger = logging.getLogger(__name__)
        self.registry = registry or CollectorRegistry()

        self.pages_fetched = Counter(
            'crawler_pages_fetched_total',
            'Total number of pages fetched and decoded',
            registry=self.registry
        )
        self.links_enqueued = Counter(
            'crawler_links_enqueued_total',
            'Total number of links admitted to the frontier',
            registry=self.registry
        )
        self.links_rejected = Counter(
            'crawler_links_rejected_total',
            'Total number of links rejected by a filter',
            ['reason'],
            registry=self.registry
        )
        self.errors = Counter(
            'crawler_errors_total',
            'Total number of crawl errors',
            ['error_type'],
            registry=self.registry
        )
        self.bytes_downloaded = Counter(
            'crawler_bytes_downloaded_total',
            'Total bytes downloaded after decompression',
            registry=self.registry
        )
        self.fetch_time = Histogram(
            'crawler_fetch_time_seconds',
            'Time spent fetching a page',
            registry=self.registry
        )
        self.queue_size = Gauge(
            'crawler_queue_size',
            'Number of URLs in the frontier',
            registry=self.registry
        )
        self.idle_workers = Gauge(
            'crawler_idle_workers',
            'Number of workers that observed an empty frontier',
            registry=self.registry
        )
        self.filter_fill_ratio = Gauge(
            'crawler_bloom_filter_fill_ratio',
            'Fraction of bits set in the seen-URL filter',
            registry=self.registry
        )

    def start_server(self, port: int):
        """Expose the metrics over HTTP."""
        try:
            start_http_server(port, registry=self.registry)
            self.logger.info(f"Prometheus metrics server started on port {port}")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")

    def value(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Current sample value, 0.0 when it has not been recorded."""
        sample = self.registry.get_sample_value(name, labels or {})
        return sample if sample is not None else 0.0


class CrawlerMonitor:
    """High-level monitoring interface used by the scheduler."""

    def __init__(self, metrics_collector: Optional[MetricsCollector] = None):
        self.metrics = metrics_collector or MetricsCollector()
        self.logger = logging.getLogger(__name__)
        self.start_time = time.time()

    def record_page_fetched(self, url: str, size: int, fetch_time: float):
        self.metrics.pages_fetched.inc()
        self.metrics.bytes_downloaded.inc(size)
        self.metrics.fetch_time.observe(fetch_time)

    def record_link_enqueued(self, url: str):
        self.metrics.links_enqueued.inc()

    def record_link_rejected(self, url: str, reason: str):
        self.metrics.links_rejected.labels(reason=reason).inc()

    def record_error(self, error_type: str):
        self.metrics.errors.labels(error_type=error_type).inc()

    def update_queue_size(self, size: int):
        self.metrics.queue_size.set(size)

    def update_idle_workers(self, count: int):
        self.metrics.idle_workers.set(count)

    def update_filter_fill_ratio(self, ratio: float):
        self.metrics.filter_fill_ratio.set(ratio)

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the main counters."""
        runtime = time.time() - self.start_time
        pages = self.metrics.value('crawler_pages_fetched_total')
        return {
            'runtime_seconds': runtime,
            'pages_fetched': pages,
            'links_enqueued': self.metrics.value('crawler_links_enqueued_total'),
            'queue_size': self.metrics.value('crawler_queue_size'),
            'pages_per_minute': pages / (runtime / 60) if runtime > 0 else 0,
        }


def initialize_monitoring(enable_server: bool = False, prometheus_port: int = 8000) -> CrawlerMonitor:
    """Create a monitor, optionally exposing its metrics over HTTP."""
    monitor = CrawlerMonitor(MetricsCollector())
    if enable_server:
        monitor.metrics.start_server(prometheus_port)
    return monitor
