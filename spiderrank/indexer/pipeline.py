"""
Indexing run: crawl, then score, then persist.

The crawl finishes completely before any scoring starts; scoring reads the
frozen crawl data only.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..crawler.fetcher import WebFetcher
from ..crawler.parser import ContentParser
from ..crawler.scheduler import CrawlScheduler, CrawlOutcome
from ..crawler.url_frontier import InvalidSeedURLError, validate_seed_url
from ..storage.index_store import IndexStoreManager, IndexedDocument
from ..utils.config import Config
from ..utils.monitoring import CrawlerMonitor
from .pagerank import run_pagerank, PageRankResult
from .scored_index import ScoredIndex
from .tfidf import score


@dataclass
class IndexingReport:
    """What one indexing run produced."""
    outcome: CrawlOutcome
    pagerank: PageRankResult
    index: ScoredIndex
    documents_stored: int


class IndexingPipeline:
    """Runs crawl, authority scoring, relevance scoring and persistence."""

    def __init__(self, config: Config, monitor: Optional[CrawlerMonitor] = None,
                 fetcher=None, parser: Optional[ContentParser] = None):
        self.config = config
        self.monitor = monitor or CrawlerMonitor()
        self.fetcher = fetcher
        self.parser = parser or ContentParser.from_domains(
            config.crawler.allowed_domains,
            config.crawler.blocked_domains
        )
        self.logger = logging.getLogger(__name__)

    def _build_fetcher(self) -> WebFetcher:
        crawler = self.config.crawler
        return WebFetcher(
            user_agent=crawler.user_agent,
            request_timeout=crawler.request_timeout,
            max_concurrent_requests=crawler.concurrency,
            max_content_bytes=crawler.max_content_bytes
        )

    async def run(self, seed_urls: Optional[Iterable[str]] = None) -> IndexingReport:
        """
        Execute a full indexing run.

        Raises:
            InvalidSeedURLError: a seed URL is malformed (before any fetch)
            IndexStoreError: storage is unreachable, or results cannot be saved
        """
        seeds = [validate_seed_url(url) for url in (seed_urls or self.config.crawler.seed_urls)]
        if not seeds:
            raise InvalidSeedURLError("At least one seed URL is required")

        store = IndexStoreManager(self.config.storage)
        try:
            await store.initialize()
            outcome = await self._crawl(seeds)

            self.logger.info("=== CALCULATING AUTHORITY ===")
            ranking = self.config.ranking
            pagerank = run_pagerank(
                outcome.crawl_data.link_graph,
                damping=ranking.damping,
                max_iterations=ranking.max_iterations,
                convergence_threshold=ranking.convergence_threshold
            )
            self.monitor.record_pagerank(pagerank.iterations)
            self.logger.info(f"PageRank over {len(pagerank.ranks)} nodes: "
                             f"{pagerank.iterations} iterations, converged={pagerank.converged}")

            self.logger.info("=== SCORING TERMS ===")
            index = score(outcome.crawl_data, pagerank.ranks, ranking.fallback_authority)
            self.monitor.record_index_size(len(index))

            documents = [
                IndexedDocument.from_scrape_result(
                    result, pagerank.ranks.get(result.url, ranking.fallback_authority)
                )
                for result in outcome.results
            ]

            self.logger.info("=== SAVING INDEX ===")
            await store.clear()
            stored = await store.store_documents(documents)
            await store.store_scored_index(index)
        finally:
            await store.close()

        return IndexingReport(outcome=outcome, pagerank=pagerank, index=index,
                              documents_stored=stored)

    async def _crawl(self, seeds) -> CrawlOutcome:
        crawler = self.config.crawler
        fetcher = self.fetcher or self._build_fetcher()

        async with fetcher:
            scheduler = CrawlScheduler(
                fetcher,
                self.parser,
                page_limit=crawler.page_limit,
                concurrency=crawler.concurrency,
                task_timeout=crawler.task_timeout,
                monitor=self.monitor
            )
            outcome = await scheduler.crawl(seeds)

        self.logger.info(f"Fetcher stats: {fetcher.get_stats()}")
        return outcome
