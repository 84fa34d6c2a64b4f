"""
Relevance scoring (TF-IDF) and its combination with authority scores.
"""

import logging
import math
from typing import Dict, Mapping

from .crawl_data import CrawlData
from .scored_index import ScoredIndex

FALLBACK_AUTHORITY = 0.1

logger = logging.getLogger(__name__)

RelevanceScores = Dict[str, Dict[str, float]]


def inverse_document_frequency(total_docs: int, doc_frequency: int) -> float:
    """log10(N / df); a missing or zero df counts as 1."""
    return math.log10(total_docs / max(doc_frequency, 1))


def relevance_scores(crawl_data: CrawlData) -> RelevanceScores:
    """
    TF-IDF for every (term, page) pair of the non-partial pages.

    tf is the term's share of the page's terms; idf is log10(N / df) with N the
    number of non-partial pages.
    """
    total_docs = crawl_data.total_docs
    relevance: RelevanceScores = {}
    if total_docs == 0:
        return relevance

    for url, term_counts in crawl_data.page_term_counts.items():
        total_terms = sum(term_counts.values())
        if total_terms == 0:
            continue

        for term, count in term_counts.items():
            tf = count / total_terms
            idf = inverse_document_frequency(total_docs, crawl_data.doc_frequencies.get(term, 1))
            relevance.setdefault(term, {})[url] = tf * idf

    return relevance


def combine(relevance: Mapping[str, Mapping[str, float]],
            authority: Mapping[str, float],
            fallback_authority: float = FALLBACK_AUTHORITY) -> ScoredIndex:
    """Multiply each relevance score by its page's authority."""
    index = ScoredIndex()
    for term, postings in relevance.items():
        for url, score in postings.items():
            index.add(term, url, score * authority.get(url, fallback_authority))
    return index


def score(crawl_data: CrawlData, authority: Mapping[str, float],
          fallback_authority: float = FALLBACK_AUTHORITY) -> ScoredIndex:
    """Build the final ScoredIndex from frozen crawl data and authority scores."""
    index = combine(relevance_scores(crawl_data), authority, fallback_authority)
    logger.info(f"Scored {len(index)} terms across {crawl_data.total_docs} documents")
    return index
