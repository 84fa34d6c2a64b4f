"""Tests for WebFetcher against a local aiohttp server."""

import asyncio
import socket

import pytest
from aiohttp import web

from spiderrank.crawler.fetcher import FetchError, FetchResult, WebFetcher


async def serve_page(request):
    return web.Response(text="<html><body>hello</body></html>", content_type="text/html")


async def serve_koi8(request):
    return web.Response(body="<p>Москва</p>".encode("koi8-r"), content_type="text/html",
                        charset="koi8-r")


async def serve_redirect(request):
    raise web.HTTPFound("/page")


async def serve_missing(request):
    return web.Response(status=404, text="gone")


async def serve_image(request):
    return web.Response(body=b"\x89PNG", content_type="image/png")


async def serve_large(request):
    return web.Response(text="x" * 5000, content_type="text/plain")


async def serve_slow(request):
    await asyncio.sleep(1)
    return web.Response(text="late", content_type="text/html")


def build_app():
    app = web.Application()
    app.router.add_get("/page", serve_page)
    app.router.add_get("/redirect", serve_redirect)
    app.router.add_get("/koi8", serve_koi8)
    app.router.add_get("/missing", serve_missing)
    app.router.add_get("/image", serve_image)
    app.router.add_get("/large", serve_large)
    app.router.add_get("/slow", serve_slow)
    return app


async def fetch_all(paths, **fetcher_kwargs):
    runner = web.AppRunner(build_app())
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = runner.addresses[0][1]
    try:
        options = {"user_agent": "spiderrank-tests", "request_timeout": 5.0}
        options.update(fetcher_kwargs)
        async with WebFetcher(**options) as fetcher:
            results = {}
            for path in paths:
                results[path] = await fetcher.fetch(f"http://127.0.0.1:{port}{path}")
            return port, results, fetcher.get_stats()
    finally:
        await runner.cleanup()


def test_fetches_html_and_follows_redirects():
    port, results, stats = asyncio.run(fetch_all(["/page", "/redirect"]))

    page = results["/page"]
    assert page.ok
    assert page.content == b"<html><body>hello</body></html>"
    assert page.content_type.startswith("text/html")

    redirected = results["/redirect"]
    assert redirected.ok
    assert redirected.url == f"http://127.0.0.1:{port}/redirect"
    assert redirected.final_url == f"http://127.0.0.1:{port}/page"
    assert stats["successful_requests"] == 2


def test_unsuccessful_responses_are_results_not_exceptions():
    _, results, stats = asyncio.run(fetch_all(["/missing", "/image"]))

    missing = results["/missing"]
    assert not missing.ok
    assert missing.status_code == 404
    assert missing.error == "HTTP 404"
    with pytest.raises(FetchError) as excinfo:
        missing.raise_for_status()
    assert excinfo.value.status_code == 404

    assert results["/image"].error == "Non-text content type"
    assert stats["failed_requests"] == 2


def test_body_over_size_cap_is_rejected():
    _, results, _ = asyncio.run(fetch_all(["/large"], max_content_bytes=1000))
    assert results["/large"].error == "Content too large"
    assert results["/large"].content is None


def test_request_timeout():
    _, results, _ = asyncio.run(fetch_all(["/slow"], request_timeout=0.2))
    assert results["/slow"].error == "Request timeout"
    assert results["/slow"].status_code == 0


def test_connection_refused_is_client_error():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        closed_port = sock.getsockname()[1]

    async def scenario():
        async with WebFetcher(user_agent="spiderrank-tests", request_timeout=2.0) as fetcher:
            return await fetcher.fetch(f"http://127.0.0.1:{closed_port}/")

    result = asyncio.run(scenario())
    assert result.error.startswith("Client error")


def test_fetch_requires_started_session():
    fetcher = WebFetcher(user_agent="spiderrank-tests")
    with pytest.raises(RuntimeError):
        asyncio.run(fetcher.fetch("http://127.0.0.1/"))


def test_fetch_result_ok_rules():
    assert FetchResult(url="u", status_code=200, content=b"").ok
    assert not FetchResult(url="u", status_code=200).ok
    assert not FetchResult(url="u", status_code=301, content=b"x").ok
    with pytest.raises(FetchError, match="boom"):
        FetchResult(url="u", status_code=0, error="boom").raise_for_status()


def test_header_charset_is_reported():
    _, results, _ = asyncio.run(fetch_all(["/koi8"]))
    result = results["/koi8"]
    assert result.encoding == "koi8-r"
    assert result.content.decode(result.encoding) == "<p>Москва</p>"
