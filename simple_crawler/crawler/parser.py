"""
Link extraction from fetched HTML pages.
"""

import re
import logging
from typing import Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from ..errors import ParseError


# Encoded sequences decoded before resolving, in this order
_HREF_REPLACEMENTS = (
    ('%3f', '?'),
    ('%3d', '='),
    ('%2f', '/'),
    ('&amp;', '&'),
)

_EXCLUDED_PREFIXES = ('#', 'mailto:', 'tel:', 'javascript:')


class LinkExtractor:
    """
    Extracts outbound links from a page as (absolute url, anchor text) pairs.
    """

    def __init__(self, parser: str = 'lxml'):
        self.parser = parser
        self.logger = logging.getLogger(__name__)
        self.whitespace_pattern = re.compile(r'\s+')

    def extract(self, base_url: str, html: str) -> List[Tuple[str, str]]:
        """
        Extract links from a page.

        Args:
            base_url: URL the page was fetched from, used to resolve relative links
            html: Decoded page content

        Returns:
            List of (absolute url, anchor text), one entry per distinct href

        Raises:
            ParseError: if the document cannot be parsed at all
        """
        anchors = self._find_anchors(html)

        links = []
        for href, text in anchors.items():
            url = self.resolve(base_url, href)
            if url:
                links.append((url, text))

        self.logger.debug(f"Extracted {len(links)} links from {base_url} ({len(anchors)} anchors)")
        return links

    def _find_anchors(self, html: str) -> Dict[str, str]:
        """Map of raw href to anchor text; a repeated href keeps the last text."""
        try:
            soup = BeautifulSoup(html or '', self.parser)
        except Exception as e:
            raise ParseError(f"Could not parse document: {e}") from e

        anchors: Dict[str, str] = {}
        for link in soup.find_all('a', href=True):
            href = link['href']
            if isinstance(href, list):
                href = ' '.join(href)
            anchors[href] = self._clean_text(link.get_text())
        return anchors

    @staticmethod
    def normalize_href(href: str) -> Optional[str]:
        """
        Decode the escaped separators in an href and drop non-navigational links.

        Returns None for empty hrefs, fragments and mailto/tel/javascript links.
        """
        if href is None:
            return None

        url = href.strip()
        for encoded, decoded in _HREF_REPLACEMENTS:
            url = url.replace(encoded, decoded)

        if not url or url.lower().startswith(_EXCLUDED_PREFIXES):
            return None

        return url

    def resolve(self, base_url: str, href: str) -> Optional[str]:
        """Absolute http(s) URL for an href found on base_url, or None."""
        url = self.normalize_href(href)
        if url is None:
            return None

        try:
            absolute_url = urljoin(base_url, url)
            parsed = urlparse(absolute_url)
        except ValueError as e:
            self.logger.debug(f"Skipping malformed href {href!r} on {base_url}: {e}")
            return None

        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            return None

        return absolute_url

    def _clean_text(self, text: str) -> str:
        """Collapse whitespace in anchor text."""
        if not text:
            return ""
        return self.whitespace_pattern.sub(' ', text.strip())
