"""
URL frontier: the FIFO queue of URLs awaiting a fetch plus the visited set
that guarantees each URL is dispatched at most once per crawl.
"""

import asyncio
import logging
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Set
from urllib.parse import urlparse


class InvalidSeedURLError(ValueError):
    """Raised when a seed URL cannot start a crawl."""
    pass


def validate_seed_url(url: str) -> str:
    """Return the stripped seed if it is an absolute http(s) URL."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidSeedURLError(f"Seed URL must be a non-empty string: {url!r}")

    try:
        parsed = urlparse(url.strip())
    except ValueError as e:
        raise InvalidSeedURLError(f"Malformed seed URL {url!r}: {e}") from e

    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise InvalidSeedURLError(f"Seed URL must be an absolute http(s) URL: {url!r}")

    return url.strip()


class URLFrontier:
    """
    Breadth-first frontier with at-most-once admission.

    Duplicates are allowed in the queue; they are discarded when dequeued.
    ``get_next_url`` pops and marks visited inside a single critical section,
    so no URL can be handed to two tasks.
    """

    def __init__(self, seed_urls: Iterable[str] = ()):
        self.logger = logging.getLogger(__name__)
        self._queue: Deque[str] = deque(seed_urls)
        self._visited: Set[str] = set()
        self._lock = asyncio.Lock()
        self.duplicates_discarded = 0

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def visited_count(self) -> int:
        return len(self._visited)

    @property
    def visited(self) -> Set[str]:
        return set(self._visited)

    def is_empty(self) -> bool:
        return not self._queue

    def is_visited(self, url: str) -> bool:
        return url in self._visited

    async def add_urls(self, urls: Iterable[str]) -> int:
        """Append URLs to the back of the queue. Returns count appended."""
        async with self._lock:
            before = len(self._queue)
            self._queue.extend(urls)
            added = len(self._queue) - before
        if added:
            self.logger.debug(f"Queued {added} URLs (frontier size {len(self._queue)})")
        return added

    async def get_next_url(self) -> Optional[str]:
        """
        Dequeue the next unvisited URL and mark it visited.

        Returns None once the queue holds nothing but already-visited URLs.
        """
        async with self._lock:
            while self._queue:
                url = self._queue.popleft()
                if url in self._visited:
                    self.duplicates_discarded += 1
                    continue
                self._visited.add(url)
                return url
        return None

    def get_stats(self) -> Dict[str, int]:
        """Get frontier statistics."""
        return {
            'total_queued': len(self._queue),
            'total_visited': len(self._visited),
            'duplicates_discarded': self.duplicates_discarded,
        }

    def snapshot(self) -> List[str]:
        """Copy of the queue, front first."""
        return list(self._queue)
