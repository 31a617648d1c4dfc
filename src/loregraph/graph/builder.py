"""Build the directed link graph over entries."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

import networkx as nx

from loregraph.corpus.links import LinkTargetIndex
from loregraph.corpus.models import Entry

logger = logging.getLogger("loregraph.graph")

LinkGraphInput = nx.DiGraph | Mapping[int, Iterable[int]]


class LinkGraphBuilder:
    """Builds the entry link graph.

    Nodes are entry uids, edges are resolved wikilinks (source -> target).
    Nodes and edges are inserted in sorted order so that every networkx
    algorithm run on the graph sees the same iteration order regardless of
    how the entries were supplied.
    """

    def __init__(self, index: LinkTargetIndex | None = None) -> None:
        self.index = index
        self.graph = nx.DiGraph()
        self._unresolved: list[tuple[int, str]] = []

    def build(self, entries: Iterable[Entry]) -> nx.DiGraph:
        """Resolve each entry's outbound links and return the graph."""
        ordered = sorted(entries, key=lambda e: e.uid)
        index = self.index or LinkTargetIndex.from_entries(ordered)

        # Reset state so reusing a builder doesn't accumulate stale data
        self.graph = nx.DiGraph()
        self._unresolved = []

        edges: set[tuple[int, int]] = set()
        for entry in ordered:
            for target in entry.outbound_links:
                uid = index.resolve(target)
                if uid is None:
                    self._unresolved.append((entry.uid, target))
                elif uid != entry.uid:
                    edges.add((entry.uid, uid))

        self.graph.add_nodes_from(entry.uid for entry in ordered)
        self.graph.add_edges_from(sorted(edges))

        logger.debug(
            "Built link graph with %d nodes and %d edges (%d unresolved links)",
            self.graph.number_of_nodes(),
            self.graph.number_of_edges(),
            len(self._unresolved),
        )
        return self.graph

    @property
    def unresolved(self) -> list[tuple[int, str]]:
        """(source uid, raw target) pairs that matched no entry."""
        return list(self._unresolved)

    def get_stats(self) -> dict:
        """Get graph statistics."""
        isolated = sum(1 for n in self.graph.nodes if self.graph.degree(n) == 0)
        return {
            "total_nodes": self.graph.number_of_nodes(),
            "total_edges": self.graph.number_of_edges(),
            "isolated_nodes": isolated,
            "unresolved_links": len(self._unresolved),
        }


def build_link_graph(
    entries: Iterable[Entry], index: LinkTargetIndex | None = None
) -> nx.DiGraph:
    """Build the link graph for a set of entries."""
    return LinkGraphBuilder(index).build(entries)


def canonical_graph(uids: Iterable[int], link_graph: LinkGraphInput | None) -> nx.DiGraph:
    """Copy a link graph onto a fixed uid set in sorted insertion order.

    Self-loops, edges to unknown uids and edge attributes are dropped.
    """
    node_ids = sorted(set(uids))
    known = set(node_ids)

    pairs: Iterable[tuple[int, int]]
    if link_graph is None:
        pairs = ()
    elif isinstance(link_graph, nx.DiGraph):
        pairs = link_graph.edges()
    else:
        pairs = ((src, dst) for src, targets in link_graph.items() for dst in targets)

    edges = {
        (src, dst) for src, dst in pairs
        if src != dst and src in known and dst in known
    }

    graph = nx.DiGraph()
    graph.add_nodes_from(node_ids)
    graph.add_edges_from(sorted(edges))
    return graph
