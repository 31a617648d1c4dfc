"""Entry link graph and importance ranking."""

from loregraph.graph.builder import LinkGraphBuilder, build_link_graph
from loregraph.graph.ranker import RankingReport, rank, rank_with_report

__all__ = ["LinkGraphBuilder", "build_link_graph", "rank", "rank_with_report", "RankingReport"]
