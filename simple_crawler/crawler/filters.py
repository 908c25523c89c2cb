"""
Admission policy applied to every link found on a page.
"""

import re
from typing import List, Optional, Pattern
from urllib.parse import urlparse

from ..utils.config import CrawlSettings


def registrable_domain(url: str) -> str:
    """
    Host of a URL without its leftmost label.

    ``www.example.com`` and ``shop.example.com`` both give ``example.com``.
    """
    host = (urlparse(url).hostname or '').lower()
    labels = host.split('.')
    return '.'.join(labels[1:])


class LinkFilter:
    """
    Built-in link filters, applied in order: escape suffixes, href keywords,
    host lock, regular expression allow-list.
    """

    def __init__(self, settings: CrawlSettings):
        self.escape_links = [suffix.lower() for suffix in settings.escape_links]
        self.href_keywords = list(settings.href_keywords)
        self.lock_host = settings.lock_host
        self.regular_expressions: List[Pattern] = [
            re.compile(pattern, re.IGNORECASE) for pattern in settings.regular_filter_expressions
        ]

    def is_escaped(self, url: str) -> bool:
        url = url.lower()
        return any(url.endswith(suffix) for suffix in self.escape_links)

    def matches_keywords(self, url: str) -> bool:
        if not self.href_keywords:
            return True
        return any(keyword in url for keyword in self.href_keywords)

    def is_same_site(self, url: str, page_url: str) -> bool:
        if not self.lock_host:
            return True
        return registrable_domain(url) == registrable_domain(page_url)

    def matches_regular(self, url: str) -> bool:
        if not self.regular_expressions:
            return True
        return any(pattern.search(url) for pattern in self.regular_expressions)

    def rejection_reason(self, url: str, page_url: str) -> Optional[str]:
        """Name of the first filter rejecting url, or None when it is admissible."""
        if self.is_escaped(url):
            return 'escape_suffix'
        if not self.matches_keywords(url):
            return 'keyword'
        if not self.is_same_site(url, page_url):
            return 'host_lock'
        if not self.matches_regular(url):
            return 'regular_expression'
        return None
