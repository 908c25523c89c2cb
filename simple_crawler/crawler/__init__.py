"""
Web crawler core components.
"""

from .bloom_filter import BloomFilter
from .url_frontier import URLFrontier, UrlWorkItem
from .fetcher import WebFetcher, FetchResult, decode_content
from .parser import LinkExtractor
from .filters import LinkFilter, registrable_domain
from .listener import CrawlListener, LinkStorageListener
from .scheduler import CrawlerScheduler, CrawlStats

__all__ = [
    'BloomFilter',
    'URLFrontier', 'UrlWorkItem',
    'WebFetcher', 'FetchResult', 'decode_content',
    'LinkExtractor',
    'LinkFilter', 'registrable_domain',
    'CrawlListener', 'LinkStorageListener',
    'CrawlerScheduler', 'CrawlStats'
]
