"""LoreGraph - graph-ranked, budgeted retrieval context for cross-linked notes."""

__version__ = "0.1.0"
