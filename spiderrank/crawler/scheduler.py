"""
Crawl scheduler: admits URLs from the frontier into a bounded pool of
fetch+extract tasks and folds their results into the crawl accumulators.
"""

import asyncio
import logging
import time
from typing import Dict, Iterable, List, Optional, Set
from dataclasses import dataclass, field

from .url_frontier import URLFrontier, InvalidSeedURLError, validate_seed_url
from .fetcher import FetchError
from .parser import ContentParser, ExtractionError, ScrapeResult
from ..indexer.crawl_data import CrawlData
from ..utils.logger import get_crawler_logger
from ..utils.monitoring import CrawlerMonitor

DEFAULT_TASK_TIMEOUT = 15.0


@dataclass
class CrawlStats:
    """Statistics for one crawl run."""
    start_time: float
    dispatched: int = 0
    succeeded: int = 0
    partial: int = 0
    failed: int = 0
    timed_out: int = 0
    duplicates_skipped: int = 0
    links_discovered: int = 0
    total_bytes_downloaded: int = 0
    end_time: Optional[float] = None

    @property
    def elapsed_time(self) -> float:
        return (self.end_time or time.time()) - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.succeeded / elapsed_minutes if elapsed_minutes > 0 else 0

    def to_dict(self) -> Dict:
        return {
            'dispatched': self.dispatched,
            'succeeded': self.succeeded,
            'partial': self.partial,
            'failed': self.failed,
            'timed_out': self.timed_out,
            'duplicates_skipped': self.duplicates_skipped,
            'links_discovered': self.links_discovered,
            'total_bytes_downloaded': self.total_bytes_downloaded,
            'elapsed_time': self.elapsed_time,
            'pages_per_minute': self.pages_per_minute,
        }


@dataclass
class CrawlOutcome:
    """Everything a crawl hands to the scoring phase."""
    results: List[ScrapeResult]
    crawl_data: CrawlData
    stats: CrawlStats
    visited: Set[str] = field(default_factory=set)


class CrawlScheduler:
    """
    Coordinates a single crawl run.

    One coordinating loop admits URLs; each admitted URL becomes an asyncio
    task that fetches, extracts and records its own page. At most
    ``concurrency`` tasks run at once and at most ``page_limit`` URLs are ever
    admitted. A failing page never stops the crawl.
    """

    def __init__(self, fetcher, parser: ContentParser, page_limit: int = 200,
                 concurrency: int = 10, task_timeout: float = DEFAULT_TASK_TIMEOUT,
                 monitor: Optional[CrawlerMonitor] = None):
        if page_limit < 1:
            raise ValueError("page_limit must be at least 1")
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self.fetcher = fetcher
        self.parser = parser
        self.page_limit = page_limit
        self.concurrency = concurrency
        self.task_timeout = task_timeout
        self.monitor = monitor or CrawlerMonitor()

        self.logger = logging.getLogger(__name__)
        self.page_log = get_crawler_logger(__name__)
        self._data_lock = asyncio.Lock()

    async def crawl(self, seed_urls: Iterable[str]) -> CrawlOutcome:
        """
        Crawl breadth-first from the seeds.

        Raises:
            InvalidSeedURLError: if any seed is not an absolute http(s) URL
        """
        seeds = [validate_seed_url(url) for url in seed_urls]
        if not seeds:
            raise InvalidSeedURLError("At least one seed URL is required")

        frontier = URLFrontier(seeds)
        crawl_data = CrawlData()
        results: List[ScrapeResult] = []
        stats = CrawlStats(start_time=time.time())
        in_flight: Set[asyncio.Task] = set()

        self.logger.info(f"Starting crawl: {len(seeds)} seeds, page_limit={self.page_limit}, "
                         f"concurrency={self.concurrency}, timeout={self.task_timeout}s")

        while frontier.visited_count < self.page_limit and (not frontier.is_empty() or in_flight):
            while len(in_flight) < self.concurrency and frontier.visited_count < self.page_limit:
                url = await frontier.get_next_url()
                if url is None:
                    break
                stats.dispatched += 1
                self.monitor.record_dispatch(url)
                self.logger.info(f"Crawling: {url}")
                in_flight.add(asyncio.create_task(
                    self._process_url(url, frontier, crawl_data, results, stats)
                ))

            self.monitor.update_frontier(len(frontier), len(in_flight))
            if not in_flight:
                # Only already-visited URLs were left in the frontier
                continue

            done, in_flight = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
            self._collect(done)

        if in_flight:
            self.logger.info(f"Page limit reached, waiting for {len(in_flight)} in-flight tasks")
            done, _ = await asyncio.wait(in_flight)
            self._collect(done)

        stats.end_time = time.time()
        stats.duplicates_skipped += frontier.duplicates_discarded
        self.monitor.update_frontier(len(frontier), 0)
        crawl_data.freeze()
        self._log_final_stats(stats, frontier, crawl_data)

        return CrawlOutcome(
            results=results,
            crawl_data=crawl_data,
            stats=stats,
            visited=frontier.visited,
        )

    async def _process_url(self, url: str, frontier: URLFrontier, crawl_data: CrawlData,
                           results: List[ScrapeResult], stats: CrawlStats):
        """Fetch, extract and record one page. Never raises."""
        start_time = time.time()
        try:
            result = await asyncio.wait_for(self._scrape(url, stats), timeout=self.task_timeout)

        except asyncio.TimeoutError:
            stats.timed_out += 1
            self.monitor.record_error('timeout')
            self.page_log.log_url_event(logging.WARNING, url, 'timeout',
                                        f"  > Timed out after {self.task_timeout}s: {url}")
            return

        except FetchError as e:
            stats.failed += 1
            self.monitor.record_error('fetch')
            self.page_log.log_url_event(logging.WARNING, url, 'fetch_error',
                                        f"  > Failed to fetch {url}: {e.reason}")
            return

        except ExtractionError as e:
            stats.failed += 1
            self.monitor.record_error('extract')
            self.page_log.log_url_event(logging.WARNING, url, 'extract_error',
                                        f"  > Failed to extract {url}: {e}")
            return

        except Exception as e:
            stats.failed += 1
            self.monitor.record_error('unexpected')
            self.logger.error(f"Unexpected error processing {url}: {e}", exc_info=True)
            return

        async with self._data_lock:
            if crawl_data.is_recorded(result.url):
                stats.duplicates_skipped += 1
                self.logger.debug(f"  > {url} resolved to already recorded {result.url}")
                return
            crawl_data.add_result(result)
            results.append(result)

        stats.succeeded += 1
        stats.links_discovered += len(result.links)
        if result.is_partial:
            stats.partial += 1
            self.page_log.log_url_event(
                logging.INFO, url, 'partial',
                f"  > Partially scraped metadata from {url} (paywall detected). "
                f"Found {len(result.links)} links."
            )
        else:
            self.page_log.log_url_event(
                logging.INFO, url, 'ok',
                f"  > Indexed {url}: {len(result.body_text)} chars, {len(result.links)} links."
            )
        self.monitor.record_page_crawled(url, time.time() - start_time, result.is_partial)

        await frontier.add_urls(result.links)

    async def _scrape(self, url: str, stats: CrawlStats) -> ScrapeResult:
        fetch_result = await self.fetcher.fetch(url)
        fetch_result.raise_for_status()
        stats.total_bytes_downloaded += len(fetch_result.content)
        return self.parser.parse(fetch_result.content, fetch_result.final_url or url,
                                 encoding=fetch_result.encoding)

    def _collect(self, done: Iterable[asyncio.Task]):
        for task in done:
            # _process_url swallows page errors; anything left is a bug
            task.result()

    def _log_final_stats(self, stats: CrawlStats, frontier: URLFrontier, crawl_data: CrawlData):
        frontier_stats = frontier.get_stats()
        data_stats = crawl_data.get_stats()

        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"URLs dispatched: {stats.dispatched}")
        self.logger.info(f"Pages recorded: {stats.succeeded} ({stats.partial} partial)")
        self.logger.info(f"Failures: {stats.failed}, timeouts: {stats.timed_out}")
        self.logger.info(f"Duplicates skipped: {stats.duplicates_skipped}")
        self.logger.info(f"Total time: {stats.elapsed_time:.2f} seconds")
        self.logger.info(f"Average rate: {stats.pages_per_minute:.1f} pages/min")
        self.logger.info(f"Data downloaded: {stats.total_bytes_downloaded / 1024 / 1024:.1f} MB")
        self.logger.info(f"URLs remaining in frontier: {frontier_stats['total_queued']}")
        self.logger.info(f"Crawl data: {data_stats}")
