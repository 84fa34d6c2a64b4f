import asyncio
import random
from collections import Counter
from typing import Dict, Iterable, Optional

import pytest

from spiderrank.crawler.fetcher import FetchResult
from spiderrank.crawler.parser import ContentParser
from spiderrank.utils.config import Config, StorageConfig, LoggingConfig

SITE = "http://site.test"


def url(name: str) -> str:
    return f"{SITE}/{name}"


def html_page(body: str = "", links: Iterable[str] = (), title: Optional[str] = None,
              paywall: bool = False, description: str = "", lang: Optional[str] = None) -> str:
    """Minimal HTML document. Anchors carry no text so they add no terms."""
    anchors = "".join(f'<a href="{link}"></a>' for link in links)
    head = f"<title>{title}</title>" if title else ""
    if description:
        head += f'<meta name="description" content="{description}">'
    wall = '<div class="paywall">Subscribe to read</div>' if paywall else ""
    lang_attr = f' lang="{lang}"' if lang else ""
    return (f"<html{lang_attr}><head>{head}</head>"
            f"<body><p>{body}</p>{wall}{anchors}</body></html>")


class Hang:
    """Marks a page whose fetch never finishes on its own."""


class FakeFetcher:
    """
    In-memory stand-in for WebFetcher.

    ``pages`` maps URL -> HTML string, raw bytes, an int HTTP status, or
    ``Hang``. ``encodings`` gives the header charset reported for a URL.
    Records how often each URL is fetched and the peak number of concurrent
    fetches.
    """

    def __init__(self, pages: Dict[str, object], max_delay: float = 0.0, seed: int = 0,
                 redirects: Optional[Dict[str, str]] = None,
                 encodings: Optional[Dict[str, str]] = None):
        self.pages = pages
        self.encodings = encodings or {}
        self.max_delay = max_delay
        self.redirects = redirects or {}
        self.random = random.Random(seed)
        self.calls = Counter()
        self.active = 0
        self.max_active = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def fetch(self, url: str) -> FetchResult:
        self.calls[url] += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.max_delay:
                await asyncio.sleep(self.random.uniform(0, self.max_delay))

            final_url = self.redirects.get(url, url)
            page = self.pages.get(final_url, 404)

            if page is Hang:
                await asyncio.sleep(3600)
            if isinstance(page, int):
                return FetchResult(url=url, status_code=page, final_url=final_url,
                                   error=f"HTTP {page}")
            content = page if isinstance(page, bytes) else page.encode('utf-8')
            return FetchResult(url=url, status_code=200, final_url=final_url,
                               content=content, content_type='text/html',
                               encoding=self.encodings.get(final_url))
        finally:
            self.active -= 1

    def get_stats(self):
        return {'total_requests': sum(self.calls.values())}


@pytest.fixture
def parser():
    return ContentParser()


@pytest.fixture
def abc_web():
    """A links to B and C, B links to C, C links nowhere."""
    return {
        url("a"): html_page("alpha page about search engines", [url("b"), url("c")], title="A"),
        url("b"): html_page("bravo page about ranking", [url("c")], title="B"),
        url("c"): html_page("charlie page about crawling", [], title="C"),
    }


@pytest.fixture
def file_config(tmp_path):
    config = Config(
        storage=StorageConfig(type="file", file={"data_directory": str(tmp_path / "data")}),
        logging=LoggingConfig(file=str(tmp_path / "logs" / "spiderrank.log")),
    )
    config.crawler.seed_urls = [url("a")]
    config.crawler.page_limit = 10
    config.crawler.concurrency = 2
    return config
