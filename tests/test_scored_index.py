"""Tests for ScoredIndex queries and serialization."""

import json

import pytest

from spiderrank.indexer.scored_index import ScoredIndex


@pytest.fixture
def index():
    return ScoredIndex({
        "rust": {"http://a.test/": 0.4, "http://b.test/": 0.1},
        "tokio": {"http://b.test/": 0.5, "http://c.test/": 0.05},
        "python": {"http://c.test/": 0.9},
    })


def test_search_sums_scores_across_terms(index):
    results = index.search("Rust tokio")
    assert results == [
        ("http://b.test/", pytest.approx(0.6)),
        ("http://a.test/", pytest.approx(0.4)),
        ("http://c.test/", pytest.approx(0.05)),
    ]


def test_search_top_k(index):
    assert [url for url, _ in index.search("rust tokio", top_k=1)] == ["http://b.test/"]


def test_search_ties_break_by_url():
    index = ScoredIndex({"same": {"http://z.test/": 0.2, "http://a.test/": 0.2}})
    assert [url for url, _ in index.search("same")] == ["http://a.test/", "http://z.test/"]


def test_search_unknown_terms(index):
    assert index.search("haskell") == []
    assert index.search("") == []


def test_json_round_trip_is_exact():
    original = ScoredIndex({
        "pagerank": {"http://a.test/x": 0.1 + 0.2, "http://b.test/y": 1e-17},
        "crawler": {"http://a.test/x": 0.0, "http://ünïcode.test/": 2 / 3},
    })
    restored = ScoredIndex.from_json(original.to_json())

    assert restored == original
    for term in original:
        assert restored.get(term) == original.get(term)


def test_serialized_shape():
    payload = json.loads(ScoredIndex({"word": {"u": 1.5}}).to_json())
    assert payload == {"scores": {"word": {"u": 1.5}}}


def test_from_dict_requires_scores_table():
    with pytest.raises(ValueError):
        ScoredIndex.from_dict({"terms": {}})


def test_urls(index):
    assert index.urls == {"http://a.test/", "http://b.test/", "http://c.test/"}


@pytest.mark.parametrize("top_k", [0, -1])
def test_search_rejects_non_positive_top_k(index, top_k):
    with pytest.raises(ValueError, match="top_k"):
        index.search("rust", top_k=top_k)
