"""
Accumulators filled during a crawl: the link graph and per-page term statistics.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Set

from .text import count_terms

if TYPE_CHECKING:
    from ..crawler.parser import ScrapeResult

LinkGraph = Dict[str, Set[str]]


class CrawlDataFrozenError(RuntimeError):
    """Raised when a result is recorded after scoring has started."""
    pass


@dataclass
class CrawlData:
    """
    Raw material for scoring.

    ``page_term_counts`` and ``doc_frequencies`` only ever see non-partial
    pages. ``link_graph`` has an entry (possibly empty) for every non-partial
    page. The first result recorded for a canonical URL wins; later results
    for the same URL (two requests redirected to one page) are ignored.
    """
    page_term_counts: Dict[str, Counter] = field(default_factory=dict)
    doc_frequencies: Counter = field(default_factory=Counter)
    link_graph: LinkGraph = field(default_factory=dict)
    partial_pages: Set[str] = field(default_factory=set)
    frozen: bool = False

    def __post_init__(self):
        self.logger = logging.getLogger(__name__)

    @property
    def total_docs(self) -> int:
        """Number of non-partial pages."""
        return len(self.page_term_counts)

    def is_recorded(self, url: str) -> bool:
        return url in self.page_term_counts or url in self.partial_pages

    def add_result(self, result: 'ScrapeResult') -> bool:
        """
        Fold one page into the accumulators.

        Returns True if the page now counts as a document for scoring.
        """
        if self.frozen:
            raise CrawlDataFrozenError(f"Cannot record {result.url}: crawl data is frozen")

        if self.is_recorded(result.url):
            self.logger.debug(f"Already recorded {result.url}, ignoring repeat result")
            return False

        if result.is_partial:
            self.partial_pages.add(result.url)
            return False

        counts = count_terms(result.body_text)
        self.page_term_counts[result.url] = counts
        self.doc_frequencies.update(counts.keys())
        self.link_graph[result.url] = set(result.links)
        return True

    def freeze(self) -> 'CrawlData':
        self.frozen = True
        return self

    def get_stats(self) -> Dict[str, int]:
        return {
            'documents': self.total_docs,
            'partial_pages': len(self.partial_pages),
            'distinct_terms': len(self.doc_frequencies),
            'graph_nodes': len(self.link_graph),
            'graph_edges': sum(len(targets) for targets in self.link_graph.values()),
        }
