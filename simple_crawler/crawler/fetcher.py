"""
Web page fetcher: one HTTP GET per URL, gzip inflation and charset resolution.
"""

import asyncio
import codecs
import logging
import re
import time
import zlib
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import aiohttp
from aiohttp import ClientSession, ClientTimeout, ClientError
from aiohttp.abc import AbstractCookieJar

from ..errors import FetchTimeoutError, NonSuccessStatusError, TransportError
from ..utils.config import CrawlSettings


FALLBACK_ENCODING = 'iso-8859-1'

META_CHARSET_PATTERN = re.compile(
    r'<meta[^>]*?charset\s*=\s*["\']?\s*([\w.:-]+)',
    re.IGNORECASE
)


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    url: str
    status_code: int
    body: bytes = b''
    content: Optional[str] = None
    content_encoding: Optional[str] = None
    charset: Optional[str] = None
    response_url: Optional[str] = None
    set_cookie: Tuple[str, ...] = ()
    fetch_time: float = 0.0


def _known_encoding(name: Optional[str]) -> Optional[str]:
    """Canonical name of a text codec, or None for unknown and bytes-to-bytes codecs."""
    if not name:
        return None
    try:
        info = codecs.lookup(name.strip().strip('"\''))
    except LookupError:
        return None
    # hex, base64, rot13, zlib and friends are registered codecs but not charsets
    if not getattr(info, '_is_text_encoding', True):
        return None
    return info.name


def detect_charset(body: bytes) -> Optional[str]:
    """Charset named by a <meta> tag in the document, if any."""
    html = body.decode(FALLBACK_ENCODING)
    match = META_CHARSET_PATTERN.search(html)
    if match:
        return match.group(1)
    return None


def decode_content(body: bytes, declared_charset: Optional[str] = None) -> str:
    """
    Decode a response body to text.

    A charset embedded in the document wins over the one declared in the
    HTTP headers; unknown or missing charsets fall back to ISO-8859-1.
    """
    logger = logging.getLogger(__name__)

    embedded = detect_charset(body)
    encoding = _known_encoding(embedded)
    if embedded and not encoding:
        logger.debug(f"Ignoring unknown embedded charset: {embedded}")

    if not encoding:
        encoding = _known_encoding(declared_charset)

    return body.decode(encoding or FALLBACK_ENCODING, errors='replace')


def _decompress(body: bytes, wbits: int, max_bytes: Optional[int], url: str) -> bytes:
    decompressor = zlib.decompressobj(wbits=wbits)
    if max_bytes is None:
        return decompressor.decompress(body) + decompressor.flush()

    data = decompressor.decompress(body, max_bytes + 1)
    if len(data) <= max_bytes:
        data += decompressor.flush()
    if len(data) > max_bytes:
        raise TransportError(url, f"Inflated content exceeded size limit of {max_bytes} bytes")
    return data


def inflate(body: bytes, content_encoding: Optional[str],
            max_bytes: Optional[int] = None, url: str = '') -> bytes:
    """
    Undo gzip/deflate transfer compression.

    Output larger than max_bytes raises TransportError without being
    inflated any further.
    """
    encoding = (content_encoding or '').strip().lower()
    if encoding in ('gzip', 'x-gzip'):
        return _decompress(body, 16 + zlib.MAX_WBITS, max_bytes, url)
    if encoding == 'deflate':
        try:
            return _decompress(body, zlib.MAX_WBITS, max_bytes, url)
        except zlib.error:
            # raw deflate stream without zlib header
            return _decompress(body, -zlib.MAX_WBITS, max_bytes, url)
    return body


class WebFetcher:
    """
    Fetches web pages with a shared cookie jar, timeouts and error handling.
    """

    def __init__(self, user_agent: str, request_timeout: float = 15.0,
                 keep_cookie: bool = True, max_content_bytes: int = 10 * 1024 * 1024):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.keep_cookie = keep_cookie
        self.max_content_bytes = max_content_bytes

        self.logger = logging.getLogger(__name__)

        # Session management
        self.session: Optional[ClientSession] = None
        self.cookie_jar: Optional[AbstractCookieJar] = None

        # Statistics
        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'total_bytes_downloaded': 0
        }

    @classmethod
    def from_settings(cls, settings: CrawlSettings) -> 'WebFetcher':
        return cls(
            user_agent=settings.user_agent,
            request_timeout=settings.timeout,
            keep_cookie=settings.keep_cookie,
            max_content_bytes=settings.max_content_bytes
        )

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            timeout = ClientTimeout(total=self.request_timeout)
            headers = {
                'User-Agent': self.user_agent,
                'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
                'Accept-Encoding': 'gzip, deflate',
            }

            # one jar per crawl run, shared by every worker
            if self.keep_cookie:
                self.cookie_jar = aiohttp.CookieJar(unsafe=True)
            else:
                self.cookie_jar = aiohttp.DummyCookieJar()

            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
                cookie_jar=self.cookie_jar,
                auto_decompress=False,
                connector=aiohttp.TCPConnector(limit=256)
            )
            self.logger.info("WebFetcher session started")

    async def close(self):
        """Close the fetcher session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("WebFetcher session closed")

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch a single URL, following redirects.

        Args:
            url: The URL to fetch

        Returns:
            FetchResult with the inflated body and its decoded text

        Raises:
            FetchTimeoutError: the request exceeded the configured timeout
            NonSuccessStatusError: the server answered with status >= 400
            TransportError: connection, protocol or decoding failure
        """
        if self.session is None:
            raise RuntimeError("WebFetcher.start() must be called before fetch()")

        start_time = time.time()
        self.stats['total_requests'] += 1

        try:
            async with self.session.get(url, allow_redirects=True) as response:
                if response.status >= 400:
                    raise NonSuccessStatusError(url, response.status)

                content_encoding = response.headers.get('Content-Encoding')
                raw = await self._read_content_safely(response)
                body = inflate(raw, content_encoding, self.max_content_bytes, url)
                content = decode_content(body, response.charset)

                result = FetchResult(
                    url=url,
                    status_code=response.status,
                    body=body,
                    content=content,
                    content_encoding=content_encoding,
                    charset=response.charset,
                    response_url=str(response.url),
                    set_cookie=tuple(response.headers.getall('Set-Cookie', ())),
                    fetch_time=time.time() - start_time
                )

        except NonSuccessStatusError as e:
            self.stats['failed_requests'] += 1
            self.logger.warning(f"Error status fetching {url}: {e.status_code}")
            raise

        except TransportError:
            self.stats['failed_requests'] += 1
            raise

        except asyncio.TimeoutError as e:
            self.stats['failed_requests'] += 1
            self.logger.warning(f"Timeout fetching {url}")
            raise FetchTimeoutError(url, self.request_timeout) from e

        except ClientError as e:
            self.stats['failed_requests'] += 1
            self.logger.warning(f"Client error fetching {url}: {e}")
            raise TransportError(url, f"Client error: {e}") from e

        except (OSError, EOFError, zlib.error) as e:
            self.stats['failed_requests'] += 1
            self.logger.warning(f"Transport error fetching {url}: {e}")
            raise TransportError(url, f"Transport error: {e}") from e

        self.stats['successful_requests'] += 1
        self.stats['total_bytes_downloaded'] += len(result.body)
        self.logger.debug(f"Fetched {url}: {result.status_code} ({len(result.body)} bytes)")
        return result

    async def _read_content_safely(self, response) -> bytes:
        """
        Read the raw response body, refusing bodies larger than max_content_bytes.
        """
        content_length = response.headers.get('Content-Length')
        if content_length and content_length.isdigit() and int(content_length) > self.max_content_bytes:
            raise TransportError(str(response.url), f"Content too large ({content_length} bytes)")

        content_bytes = bytearray()
        async for chunk in response.content.iter_chunked(8192):
            content_bytes.extend(chunk)
            if len(content_bytes) > self.max_content_bytes:
                raise TransportError(str(response.url), "Content exceeded size limit during reading")

        return bytes(content_bytes)

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()
