"""
Authority scoring: PageRank by power iteration with dangling-node correction.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Set

PageRanks = Dict[str, float]

DAMPING_FACTOR = 0.85
MAX_ITERATIONS = 100
CONVERGENCE_THRESHOLD = 1e-4

logger = logging.getLogger(__name__)


@dataclass
class PageRankResult:
    """Ranks plus how the iteration ended."""
    ranks: PageRanks = field(default_factory=dict)
    iterations: int = 0
    converged: bool = False
    delta: float = 0.0


def run_pagerank(graph: Mapping[str, Iterable[str]],
                 damping: float = DAMPING_FACTOR,
                 max_iterations: int = MAX_ITERATIONS,
                 convergence_threshold: float = CONVERGENCE_THRESHOLD) -> PageRankResult:
    """
    Compute PageRank over a link graph.

    Every URL that appears as a key or as a link target is a node. Nodes with
    no recorded outbound links are dangling; their rank is spread evenly over
    all nodes each iteration so total rank stays 1.0.

    Updates are synchronous: iteration k+1 reads only the ranks of iteration k.
    Iteration stops after the first update whose L1 change is below
    ``convergence_threshold``, or after ``max_iterations`` updates.

    Args:
        graph: Source URL -> URLs it links to
        damping: Probability of following a link rather than jumping
        max_iterations: Upper bound on updates
        convergence_threshold: L1 change that counts as converged

    Returns:
        PageRankResult with the last computed ranks
    """
    out_links: Dict[str, Set[str]] = {source: set(targets) for source, targets in graph.items()}

    universe: Set[str] = set(out_links)
    for targets in out_links.values():
        universe.update(targets)

    if not universe:
        return PageRankResult(converged=True)

    # Sorted so float summation order does not depend on hash seeds
    nodes: List[str] = sorted(universe)
    num_nodes = len(nodes)
    ranks: PageRanks = {node: 1.0 / num_nodes for node in nodes}

    incoming: Dict[str, List[str]] = {node: [] for node in nodes}
    for source in sorted(out_links):
        for target in out_links[source]:
            incoming[target].append(source)

    out_degree = {source: len(targets) for source, targets in out_links.items() if targets}
    dangling = [node for node in nodes if node not in out_degree]

    random_jump = (1.0 - damping) / num_nodes
    result = PageRankResult(ranks=ranks)

    for iteration in range(1, max_iterations + 1):
        dangling_mass = damping * sum(ranks[node] for node in dangling) / num_nodes
        base = random_jump + dangling_mass

        new_ranks = {
            node: base + damping * sum(ranks[source] / out_degree[source]
                                       for source in incoming[node])
            for node in nodes
        }
        delta = sum(abs(new_ranks[node] - ranks[node]) for node in nodes)
        ranks = new_ranks

        result.ranks = ranks
        result.iterations = iteration
        result.delta = delta
        if delta < convergence_threshold:
            result.converged = True
            break

    if not result.converged:
        logger.warning(f"PageRank did not converge after {max_iterations} iterations "
                       f"(delta={result.delta:.2e})")
    else:
        logger.debug(f"PageRank converged after {result.iterations} iterations")

    return result


def calculate_authority(graph: Mapping[str, Iterable[str]], **kwargs) -> PageRanks:
    """Authority score per URL; an empty graph gives an empty mapping."""
    return run_pagerank(graph, **kwargs).ranks
