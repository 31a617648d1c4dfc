"""Importance ranking of entries from link-graph topology.

Every entry gets an integer ``order`` from a weighted sum of seven factors,
each normalized to [0, 1] by its maximum over the corpus:

  hierarchy     BFS distance from the root entry along outbound links
  in_degree     number of entries linking here
  pagerank      PageRank (alpha 0.85, tol 1e-6, at most 100 iterations)
  betweenness   directed shortest-path betweenness centrality
  out_degree    number of entries linked from here
  total_degree  in + out
  file_depth    folder depth of ``group_path`` (root folder = 0)

  order = max(1, floor(sum(weight_k * factor_k)))

Equal orders are then spread apart by uid so that the ranking is a strict
total order that depends only on the corpus, never on input order.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field

import networkx as nx

from loregraph.config import RankingWeights
from loregraph.corpus.models import Entry
from loregraph.graph.builder import LinkGraphInput, build_link_graph, canonical_graph

logger = logging.getLogger("loregraph.ranker")

PAGERANK_ALPHA = 0.85
PAGERANK_TOLERANCE = 1e-6
PAGERANK_MAX_ITERATIONS = 100

_FACTORS = (
    "hierarchy",
    "in_degree",
    "pagerank",
    "betweenness",
    "out_degree",
    "total_degree",
    "file_depth",
)


@dataclass
class EntryFactors:
    """Raw metrics, normalized factors and scores for one entry."""

    uid: int
    raw: dict[str, float] = field(default_factory=dict)
    normalized: dict[str, float] = field(default_factory=dict)
    raw_score: float = 0.0
    base_order: int = 1
    order: int = 1


@dataclass
class RankingReport:
    """Outcome of a ranking run."""

    root_uid: int | None
    root_inferred: bool
    orders: dict[int, int]
    factors: dict[int, EntryFactors]
    node_count: int = 0
    edge_count: int = 0

    def ranked_uids(self) -> list[int]:
        """Uids from most to least important."""
        return sorted(self.orders, key=lambda uid: (-self.orders[uid], uid))


def resolve_root(graph: nx.DiGraph, root_id: int | None = None) -> int | None:
    """Pick the hierarchy root.

    An explicit root present in the graph wins.  Otherwise the node with the
    highest in-degree, then highest total degree, then smallest uid.
    """
    if root_id is not None and graph.has_node(root_id):
        return root_id
    if graph.number_of_nodes() == 0:
        return None
    return min(
        graph.nodes,
        key=lambda n: (-graph.in_degree(n), -graph.degree(n), n),
    )


def folder_depth(group_path: str) -> int:
    """Number of path segments minus one ("" and "World" are depth 0)."""
    cleaned = group_path.strip().strip("/")
    if not cleaned:
        return 0
    return len(cleaned.split("/")) - 1


def _hierarchy_depths(graph: nx.DiGraph, root: int | None) -> dict[int, int]:
    if root is None:
        return {}
    return dict(nx.single_source_shortest_path_length(graph, root))


def _pagerank(graph: nx.DiGraph) -> dict[int, float]:
    if graph.number_of_nodes() == 0:
        return {}
    try:
        return nx.pagerank(
            graph,
            alpha=PAGERANK_ALPHA,
            max_iter=PAGERANK_MAX_ITERATIONS,
            tol=PAGERANK_TOLERANCE,
            weight=None,
        )
    except nx.PowerIterationFailedConvergence:
        logger.warning(
            "PageRank did not converge in %d iterations; pagerank factor disabled",
            PAGERANK_MAX_ITERATIONS,
        )
        return {}


def _normalize(values: dict[int, float], uids: Iterable[int]) -> dict[int, float]:
    """Divide by the corpus maximum; a zero maximum counts as 1."""
    denominator = max(values.values(), default=0) or 1
    return {uid: values.get(uid, 0) / denominator for uid in uids}


def _break_ties(base_orders: dict[int, int]) -> dict[int, int]:
    """Spread equal orders apart by uid and make every order unique."""
    groups: dict[int, list[int]] = {}
    for uid, order in base_orders.items():
        groups.setdefault(order, []).append(uid)

    orders = dict(base_orders)
    for members in groups.values():
        if len(members) < 2:
            continue
        for position, uid in enumerate(sorted(members)):
            orders[uid] += position + 1

    # A shifted group can land on a neighbouring score; lift those upward.
    previous: int | None = None
    for uid in sorted(base_orders, key=lambda u: (base_orders[u], u)):
        if previous is not None and orders[uid] <= previous:
            orders[uid] = previous + 1
        previous = orders[uid]
    return orders


def rank_with_report(
    entries: Iterable[Entry],
    link_graph: LinkGraphInput | None = None,
    root_id: int | None = None,
    weights: RankingWeights | None = None,
) -> RankingReport:
    """Compute importance orders and write them to ``entry.order``.

    Args:
        entries: Entries to rank.  Mutated in place.
        link_graph: Resolved links as a DiGraph or ``{uid: [target uids]}``.
            Built from the entries' outbound links when omitted.
        root_id: Explicit hierarchy root; inferred when absent or unknown.
        weights: Factor weights (defaults from ``RankingWeights``).

    Returns:
        A RankingReport with the orders and per-entry factor breakdown.
    """
    entry_list = list(entries)
    weights = weights or RankingWeights()

    if not entry_list:
        return RankingReport(root_uid=None, root_inferred=False, orders={}, factors={})

    by_uid = {entry.uid: entry for entry in entry_list}
    uids = sorted(by_uid)

    if link_graph is None:
        link_graph = build_link_graph(entry_list)
    graph = canonical_graph(uids, link_graph)

    root = resolve_root(graph, root_id)
    inferred = root is not None and root != root_id
    if root_id is not None and not inferred:
        logger.debug("Using explicit root uid %d", root_id)
    elif root is not None:
        logger.debug("No usable explicit root; inferred root uid %d", root)

    depths = _hierarchy_depths(graph, root)
    raw: dict[str, dict[int, float]] = {
        "hierarchy": {uid: depths.get(uid, 0) for uid in uids},
        "in_degree": {uid: graph.in_degree(uid) for uid in uids},
        "pagerank": _pagerank(graph),
        "betweenness": nx.betweenness_centrality(graph, normalized=False),
        "out_degree": {uid: graph.out_degree(uid) for uid in uids},
        "total_degree": {uid: graph.degree(uid) for uid in uids},
        "file_depth": {uid: folder_depth(by_uid[uid].group_path) for uid in uids},
    }
    normalized = {name: _normalize(values, uids) for name, values in raw.items()}
    weight_map = weights.model_dump()

    factors: dict[int, EntryFactors] = {}
    base_orders: dict[int, int] = {}
    for uid in uids:
        score = 0.0
        for name in _FACTORS:
            score += weight_map[name] * normalized[name][uid]
        base = max(1, math.floor(score))
        base_orders[uid] = base
        factors[uid] = EntryFactors(
            uid=uid,
            raw={name: float(raw[name].get(uid, 0)) for name in _FACTORS},
            normalized={name: normalized[name][uid] for name in _FACTORS},
            raw_score=score,
            base_order=base,
        )

    orders = _break_ties(base_orders)
    for uid, order in orders.items():
        by_uid[uid].order = order
        factors[uid].order = order

    return RankingReport(
        root_uid=root,
        root_inferred=inferred,
        orders=orders,
        factors=factors,
        node_count=graph.number_of_nodes(),
        edge_count=graph.number_of_edges(),
    )


def rank(
    entries: Iterable[Entry],
    link_graph: LinkGraphInput | None = None,
    root_id: int | None = None,
    weights: RankingWeights | None = None,
) -> dict[int, int]:
    """Rank entries in place and return ``{uid: order}``."""
    return rank_with_report(entries, link_graph, root_id, weights).orders
