import asyncio
import gzip
import zlib

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer, unused_port

from simple_crawler.crawler.fetcher import WebFetcher, decode_content, detect_charset, inflate
from simple_crawler.errors import FetchTimeoutError, NonSuccessStatusError, TransportError


GREETING = '<html><head><meta charset="windows-1251"></head><body>Привет, мир</body></html>'


async def plain(request):
    return web.Response(body=b'<a href="/next">next</a>', headers={'Content-Type': 'text/html; charset=utf-8'})


async def gzipped(request):
    body = gzip.compress('<p>café</p>'.encode('utf-8'))
    return web.Response(body=body, headers={
        'Content-Type': 'text/html; charset=utf-8',
        'Content-Encoding': 'gzip',
    })


async def cyrillic(request):
    return web.Response(body=GREETING.encode('cp1251'), headers={'Content-Type': 'text/html'})


async def missing(request):
    raise web.HTTPNotFound()


async def moved(request):
    raise web.HTTPFound('/plain')


async def set_cookie(request):
    response = web.Response(text='ok')
    response.set_cookie('session', 'abc')
    return response


async def echo_cookie(request):
    return web.Response(text=request.cookies.get('session', 'none'))


async def slow(request):
    await asyncio.sleep(1)
    return web.Response(text='late')


async def huge(request):
    return web.Response(body=b'x' * 4096)


async def bomb(request):
    return web.Response(body=gzip.compress(b"\0" * (20 * 1024 * 1024)), headers={
        'Content-Type': 'text/html',
        'Content-Encoding': 'gzip',
    })


@pytest_asyncio.fixture
async def server():
    app = web.Application()
    app.router.add_get('/plain', plain)
    app.router.add_get('/gzip', gzipped)
    app.router.add_get('/cyrillic', cyrillic)
    app.router.add_get('/missing', missing)
    app.router.add_get('/moved', moved)
    app.router.add_get('/set-cookie', set_cookie)
    app.router.add_get('/echo-cookie', echo_cookie)
    app.router.add_get('/slow', slow)
    app.router.add_get('/huge', huge)
    app.router.add_get('/bomb', bomb)

    test_server = TestServer(app)
    await test_server.start_server()
    yield test_server
    await test_server.close()


@pytest_asyncio.fixture
async def fetcher():
    async with WebFetcher(user_agent="test-agent", request_timeout=5.0) as web_fetcher:
        yield web_fetcher


def test_embedded_charset_wins_over_header():
    body = GREETING.encode('cp1251')

    assert decode_content(body, 'utf-8') == GREETING


def test_header_charset_used_without_meta():
    assert decode_content('<p>über</p>'.encode('utf-8'), 'utf-8') == '<p>über</p>'


def test_unknown_charset_falls_back_to_latin1():
    body = '<meta charset="no-such-charset"><p>é</p>'.encode('iso-8859-1')

    assert decode_content(body, 'also-bogus') == '<meta charset="no-such-charset"><p>é</p>'


def test_missing_charset_falls_back_to_latin1():
    assert decode_content(b'caf\xe9', None) == 'café'


def test_detect_charset_http_equiv_form():
    body = b'<meta http-equiv="Content-Type" content="text/html; charset=GB2312">'

    assert detect_charset(body) == 'GB2312'
    assert detect_charset(b'<p>no meta</p>') is None


def test_inflate_gzip_and_deflate():
    payload = b'<html>compressed</html>'

    assert inflate(gzip.compress(payload), 'gzip') == payload
    assert inflate(gzip.compress(payload), 'X-GZIP') == payload
    assert inflate(zlib.compress(payload), 'deflate') == payload
    raw = zlib.compressobj(wbits=-zlib.MAX_WBITS)
    assert inflate(raw.compress(payload) + raw.flush(), 'deflate') == payload
    assert inflate(payload, None) == payload


@pytest.mark.parametrize("charset", ["hex", "base64", "rot13", "zlib"])
def test_non_text_codecs_are_not_charsets(charset):
    body = f'<meta charset="{charset}"><p>café</p>'.encode('utf-8')

    assert decode_content(body, 'utf-8') == f'<meta charset="{charset}"><p>café</p>'
    assert decode_content(b'caf\xe9', charset) == 'café'


def test_inflate_refuses_oversized_output():
    bomb = gzip.compress(b'\0' * (20 * 1024 * 1024))

    with pytest.raises(TransportError):
        inflate(bomb, 'gzip', max_bytes=1024 * 1024, url="https://www.example.com/")
    with pytest.raises(TransportError):
        inflate(zlib.compress(b'\0' * 4096), 'deflate', max_bytes=1024)


def test_inflate_allows_output_at_limit():
    payload = b'a' * 1024

    assert inflate(gzip.compress(payload), 'gzip', max_bytes=1024) == payload


@pytest.mark.asyncio
async def test_fetch_plain_page(server, fetcher):
    result = await fetcher.fetch(str(server.make_url('/plain')))

    assert result.status_code == 200
    assert result.content == '<a href="/next">next</a>'
    assert result.charset == 'utf-8'
    assert fetcher.get_stats()['successful_requests'] == 1


@pytest.mark.asyncio
async def test_fetch_inflates_gzip_body(server, fetcher):
    result = await fetcher.fetch(str(server.make_url('/gzip')))

    assert result.content_encoding == 'gzip'
    assert result.content == '<p>café</p>'


@pytest.mark.asyncio
async def test_fetch_uses_embedded_charset(server, fetcher):
    result = await fetcher.fetch(str(server.make_url('/cyrillic')))

    assert 'Привет, мир' in result.content


@pytest.mark.asyncio
async def test_error_status_raises(server, fetcher):
    with pytest.raises(NonSuccessStatusError) as excinfo:
        await fetcher.fetch(str(server.make_url('/missing')))

    assert excinfo.value.status_code == 404
    assert fetcher.get_stats()['failed_requests'] == 1


@pytest.mark.asyncio
async def test_redirects_are_followed(server, fetcher):
    result = await fetcher.fetch(str(server.make_url('/moved')))

    assert result.status_code == 200
    assert result.response_url.endswith('/plain')


@pytest.mark.asyncio
async def test_cookies_are_kept_between_requests(server, fetcher):
    first = await fetcher.fetch(str(server.make_url('/set-cookie')))
    result = await fetcher.fetch(str(server.make_url('/echo-cookie')))

    assert any(header.startswith('session=abc') for header in first.set_cookie)
    assert result.content == 'abc'


@pytest.mark.asyncio
async def test_cookies_dropped_when_disabled(server):
    async with WebFetcher(user_agent="test-agent", keep_cookie=False) as no_cookies:
        await no_cookies.fetch(str(server.make_url('/set-cookie')))
        result = await no_cookies.fetch(str(server.make_url('/echo-cookie')))

    assert result.content == 'none'


@pytest.mark.asyncio
async def test_timeout_raises_fetch_timeout(server):
    async with WebFetcher(user_agent="test-agent", request_timeout=0.2) as impatient:
        with pytest.raises(FetchTimeoutError):
            await impatient.fetch(str(server.make_url('/slow')))


@pytest.mark.asyncio
async def test_oversized_body_is_refused(server):
    async with WebFetcher(user_agent="test-agent", max_content_bytes=1024) as small:
        with pytest.raises(TransportError):
            await small.fetch(str(server.make_url('/huge')))

        assert small.get_stats()['failed_requests'] == 1


@pytest.mark.asyncio
async def test_connection_refused_raises_transport_error(fetcher):
    with pytest.raises(TransportError):
        await fetcher.fetch(f"http://127.0.0.1:{unused_port()}/")


@pytest.mark.asyncio
async def test_fetch_requires_started_session():
    with pytest.raises(RuntimeError):
        await WebFetcher(user_agent="test-agent").fetch("http://127.0.0.1/")


@pytest.mark.asyncio
async def test_gzip_bomb_is_refused(server):
    async with WebFetcher(user_agent="test-agent", max_content_bytes=1024 * 1024) as small:
        with pytest.raises(TransportError):
            await small.fetch(str(server.make_url('/bomb')))
