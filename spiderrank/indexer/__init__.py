"""
Scoring: link graph and term accumulators, PageRank, TF-IDF and the scored index.
"""

from .crawl_data import CrawlData, LinkGraph
from .pagerank import calculate_authority, run_pagerank, PageRankResult
from .tfidf import score, relevance_scores, combine
from .scored_index import ScoredIndex

__all__ = [
    'CrawlData', 'LinkGraph',
    'calculate_authority', 'run_pagerank', 'PageRankResult',
    'score', 'relevance_scores', 'combine',
    'ScoredIndex',
]
