"""Budgeted, explainable context assembly."""

from loregraph.context.engine import ContextAssembler, assemble_context
from loregraph.context.models import (
    AssembledContext,
    ContentTier,
    QueryOptions,
    SelectedDocument,
    SelectedEntry,
)

__all__ = [
    "AssembledContext",
    "ContentTier",
    "ContextAssembler",
    "QueryOptions",
    "SelectedDocument",
    "SelectedEntry",
    "assemble_context",
]
