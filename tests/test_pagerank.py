"""Tests for the authority (PageRank) computation."""

import random

import pytest

from spiderrank.indexer.pagerank import (
    calculate_authority,
    run_pagerank,
    DAMPING_FACTOR,
)


def random_graph(seed: int, nodes: int = 25, max_out: int = 5):
    rng = random.Random(seed)
    names = [f"p{i}" for i in range(nodes)]
    graph = {}
    for name in names:
        # Roughly one in five pages is dangling
        if rng.random() < 0.2:
            graph[name] = set()
        else:
            graph[name] = set(rng.sample(names, rng.randint(1, max_out)))
    # Some pages only ever appear as link targets
    graph[names[0]].update({"external-1", "external-2"})
    return graph


def test_empty_graph_gives_empty_ranks():
    assert calculate_authority({}) == {}


def test_single_page_holds_all_rank():
    ranks = calculate_authority({"x": set()})
    assert ranks == {"x": pytest.approx(1.0)}


@pytest.mark.parametrize("seed", range(8))
def test_ranks_sum_to_one(seed):
    ranks = calculate_authority(random_graph(seed))
    assert sum(ranks.values()) == pytest.approx(1.0, abs=1e-6)
    assert all(rank >= 0 for rank in ranks.values())


def test_sum_holds_when_iteration_limit_hit():
    result = run_pagerank(random_graph(3), max_iterations=2)
    assert result.iterations == 2
    assert not result.converged
    assert sum(result.ranks.values()) == pytest.approx(1.0, abs=1e-9)


def test_link_targets_are_nodes():
    ranks = calculate_authority({"a": {"b", "c"}})
    assert set(ranks) == {"a", "b", "c"}


def test_dangling_mass_is_redistributed():
    # Every page but one is a sink; without redistribution most rank leaks away
    graph = {"hub": {"s1", "s2", "s3"}, "s1": set(), "s2": set(), "s3": set()}
    ranks = calculate_authority(graph)
    assert sum(ranks.values()) == pytest.approx(1.0, abs=1e-6)
    assert ranks["s1"] == pytest.approx(ranks["s2"])
    assert ranks["s1"] > ranks["hub"]


def test_isolated_node_gets_only_random_jump_share():
    graph = {"a": {"b"}, "b": {"a"}, "x": set()}
    ranks = calculate_authority(graph)
    n = len(ranks)

    # x is the only dangling node, so x = (1-d)/n + d*x/n at the fixed point
    expected = ((1 - DAMPING_FACTOR) / n) / (1 - DAMPING_FACTOR / n)
    assert ranks["x"] == pytest.approx(expected, rel=1e-3)
    assert ranks["x"] == min(ranks.values())
    assert ranks["x"] >= (1 - DAMPING_FACTOR) / n


def test_out_degree_dilutes_authority():
    k = 3
    graph = {}
    for i in range(k):
        graph[f"s{i}"] = {"x"}
        graph[f"t{i}"] = {"y"} | {f"filler{j}" for j in range(9)}
    ranks = calculate_authority(graph)
    assert ranks["x"] > ranks["y"]


def test_chain_scenario_orders_by_inbound_links():
    ranks = calculate_authority({"A": {"B", "C"}, "B": {"C"}, "C": set()})
    assert ranks["C"] > ranks["B"] > ranks["A"]


def test_self_loop_counts_as_out_link():
    ranks = calculate_authority({"a": {"a", "b"}, "b": {"a"}})
    assert sum(ranks.values()) == pytest.approx(1.0, abs=1e-6)
    assert ranks["a"] > ranks["b"]


def test_first_iteration_reads_only_initial_ranks():
    # One synchronous step from uniform 1/3:
    # a: no in-links; b: from a (1/2); c: from a (1/2) and b (1)
    result = run_pagerank({"a": {"b", "c"}, "b": {"c"}, "c": set()}, max_iterations=1)
    d, n, r0 = DAMPING_FACTOR, 3, 1 / 3
    base = (1 - d) / n + d * r0 / n
    assert result.ranks["a"] == pytest.approx(base)
    assert result.ranks["b"] == pytest.approx(base + d * r0 / 2)
    assert result.ranks["c"] == pytest.approx(base + d * (r0 / 2 + r0))


def test_converges_within_iteration_limit():
    result = run_pagerank({"a": {"b"}, "b": {"c"}, "c": {"a"}})
    assert result.converged
    assert result.delta < 1e-4
    for rank in result.ranks.values():
        assert rank == pytest.approx(1 / 3)


def test_deterministic():
    graph = random_graph(11)
    assert calculate_authority(graph) == calculate_authority(graph)
