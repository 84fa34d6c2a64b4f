"""
Web page fetcher built on an aiohttp client session.
"""

import asyncio
import aiohttp
import logging
import time
from typing import Optional, Dict
from dataclasses import dataclass
from aiohttp import ClientSession, ClientTimeout, ClientError


class FetchError(Exception):
    """A fetch that produced no usable document."""

    def __init__(self, url: str, reason: str, status_code: int = 0):
        super().__init__(f"{reason} ({url})")
        self.url = url
        self.reason = reason
        self.status_code = status_code


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    url: str
    status_code: int
    final_url: Optional[str] = None
    content: Optional[bytes] = None
    error: Optional[str] = None
    fetch_time: float = 0.0
    content_type: Optional[str] = None
    encoding: Optional[str] = None

    @property
    def ok(self) -> bool:
        """True when the response is usable for extraction."""
        return (
            self.error is None
            and 200 <= self.status_code < 300
            and self.content is not None
        )

    def raise_for_status(self):
        """Raise FetchError unless the result is usable."""
        if not self.ok:
            reason = self.error or f"HTTP {self.status_code}"
            raise FetchError(self.url, reason, self.status_code)


class WebFetcher:
    """
    Fetches web pages over a shared session, following redirects.

    Failures never raise; they come back as a ``FetchResult`` with ``error`` set
    so the caller can treat every unsuccessful outcome the same way.
    """

    TEXT_TYPES = (
        'text/html',
        'text/plain',
        'application/xhtml+xml',
        'application/xml',
        'text/xml',
    )

    def __init__(self, user_agent: str, request_timeout: float = 10.0,
                 max_concurrent_requests: int = 10,
                 max_content_bytes: int = 10 * 1024 * 1024):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_concurrent_requests = max_concurrent_requests
        self.max_content_bytes = max_content_bytes

        self.logger = logging.getLogger(__name__)

        self.session: Optional[ClientSession] = None
        self.semaphore = asyncio.Semaphore(max_concurrent_requests)

        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            timeout = ClientTimeout(total=self.request_timeout)
            headers = {'User-Agent': self.user_agent}

            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
                connector=aiohttp.TCPConnector(
                    limit=self.max_concurrent_requests * 2,
                    limit_per_host=10,
                    ttl_dns_cache=300,
                    use_dns_cache=True
                )
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
        Fetch a single URL.

        Args:
            url: The URL to fetch

        Returns:
            FetchResult with the body bytes and post-redirect URL, or an error
        """
        if self.session is None:
            raise RuntimeError("WebFetcher.start() must be called before fetch()")

        start_time = time.time()

        async with self.semaphore:
            self.stats['total_requests'] += 1
            try:
                async with self.session.get(url, allow_redirects=True) as response:
                    content_type = response.headers.get('content-type', '').lower()
                    final_url = str(response.url)

                    if not 200 <= response.status < 300:
                        self.stats['failed_requests'] += 1
                        return FetchResult(
                            url=url,
                            status_code=response.status,
                            final_url=final_url,
                            content_type=content_type,
                            error=f"HTTP {response.status}",
                            fetch_time=time.time() - start_time
                        )

                    if not self._is_text_content(content_type):
                        self.stats['failed_requests'] += 1
                        self.logger.debug(f"Skipping non-text content: {url} ({content_type})")
                        return FetchResult(
                            url=url,
                            status_code=response.status,
                            final_url=final_url,
                            content_type=content_type,
                            error="Non-text content type",
                            fetch_time=time.time() - start_time
                        )

                    content = await self._read_content_safely(response)
                    if content is None:
                        self.stats['failed_requests'] += 1
                        return FetchResult(
                            url=url,
                            status_code=response.status,
                            final_url=final_url,
                            content_type=content_type,
                            error="Content too large",
                            fetch_time=time.time() - start_time
                        )

                    self.stats['total_bytes_downloaded'] += len(content)
                    self.stats['successful_requests'] += 1
                    self.logger.debug(f"Fetched {url}: {response.status} ({len(content)} bytes)")

                    return FetchResult(
                        url=url,
                        status_code=response.status,
                        final_url=final_url,
                        content=content,
                        content_type=content_type,
                        encoding=response.charset,
                        fetch_time=time.time() - start_time
                    )

            except asyncio.TimeoutError:
                error_msg = "Request timeout"
                self.logger.warning(f"Timeout fetching {url}")

            except ClientError as e:
                error_msg = f"Client error: {e}"
                self.logger.warning(f"Client error fetching {url}: {e}")

            except ValueError as e:
                # yarl rejects some malformed URLs before any I/O happens
                error_msg = f"Invalid URL: {e}"
                self.logger.warning(f"Invalid URL {url}: {e}")

            self.stats['failed_requests'] += 1
            return FetchResult(
                url=url,
                status_code=0,
                error=error_msg,
                fetch_time=time.time() - start_time
            )

    def _is_text_content(self, content_type: str) -> bool:
        """Check if content type is markup or text."""
        if not content_type:
            return True
        return any(text_type in content_type for text_type in self.TEXT_TYPES)

    async def _read_content_safely(self, response: aiohttp.ClientResponse) -> Optional[bytes]:
        """
        Read the response body, giving up once it exceeds the size cap.

        Returns:
            Body bytes, or None if the body is larger than ``max_content_bytes``
        """
        content_length = response.headers.get('content-length')
        if content_length and content_length.isdigit() and int(content_length) > self.max_content_bytes:
            self.logger.warning(f"Content too large ({content_length} bytes): {response.url}")
            return None

        chunks = []
        size = 0
        async for chunk in response.content.iter_chunked(8192):
            size += len(chunk)
            if size > self.max_content_bytes:
                self.logger.warning(f"Content exceeded size limit during reading: {response.url}")
                return None
            chunks.append(chunk)

        return b''.join(chunks)

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()
