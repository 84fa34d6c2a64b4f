"""
SpiderRank

A small search engine: a concurrent crawler feeding PageRank authority and
TF-IDF relevance into a ranked, queryable index.
"""

__version__ = "1.0.0"
__description__ = "Concurrent crawler with PageRank and TF-IDF ranking"
