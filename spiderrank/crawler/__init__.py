"""
Crawler components: frontier, fetcher, extractor and scheduler.
"""

from .url_frontier import URLFrontier, InvalidSeedURLError
from .fetcher import WebFetcher, FetchResult, FetchError
from .parser import ContentParser, ExtractionRules, ExtractionError, ScrapeResult
from .scheduler import CrawlScheduler, CrawlOutcome, CrawlStats

__all__ = [
    'URLFrontier', 'InvalidSeedURLError',
    'WebFetcher', 'FetchResult', 'FetchError',
    'ContentParser', 'ExtractionRules', 'ExtractionError', 'ScrapeResult',
    'CrawlScheduler', 'CrawlOutcome', 'CrawlStats',
]
