"""
The final ranked structure: term -> URL -> combined score.
"""

import json
from collections import defaultdict
from typing import Any, Dict, Iterator, List, Mapping, Tuple

from .text import tokenize

DEFAULT_TOP_K = 10


class ScoredIndex:
    """Term-to-URL score table with a summed-score query."""

    def __init__(self, scores: Mapping[str, Mapping[str, float]] = None):
        self.scores: Dict[str, Dict[str, float]] = {
            term: dict(postings) for term, postings in (scores or {}).items()
        }

    def __len__(self) -> int:
        return len(self.scores)

    def __contains__(self, term: str) -> bool:
        return term in self.scores

    def __iter__(self) -> Iterator[str]:
        return iter(self.scores)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ScoredIndex):
            return NotImplemented
        return self.scores == other.scores

    def add(self, term: str, url: str, score: float):
        self.scores.setdefault(term, {})[url] = score

    def get(self, term: str) -> Dict[str, float]:
        return self.scores.get(term, {})

    @property
    def urls(self) -> set:
        return {url for postings in self.scores.values() for url in postings}

    def search(self, query: str, top_k: int = DEFAULT_TOP_K) -> List[Tuple[str, float]]:
        """
        Rank URLs for a free-text query.

        Each URL's score is the sum of its scores for the query terms. Results
        are ordered by score, highest first, then by URL.
        """
        if top_k is not None and top_k < 1:
            raise ValueError(f"top_k must be at least 1, got {top_k}")
        totals: Dict[str, float] = defaultdict(float)
        for term in tokenize(query):
            for url, score in self.get(term).items():
                totals[url] += score

        ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:top_k] if top_k is not None else ranked

    def to_dict(self) -> Dict[str, Any]:
        return {'scores': self.scores}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ScoredIndex':
        if 'scores' not in data:
            raise ValueError("Serialized index is missing the 'scores' table")
        return cls({
            term: {url: float(score) for url, score in postings.items()}
            for term, postings in data['scores'].items()
        })

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, sort_keys=True)

    @classmethod
    def from_json(cls, payload: str) -> 'ScoredIndex':
        return cls.from_dict(json.loads(payload))
