"""Query matching: lexical scoring and semantic boosts."""

from loregraph.search.lexical import (
    DocumentMatch,
    SeedMatch,
    estimate_tokens,
    score_document,
    score_entry_seed,
    tokenize,
)
from loregraph.search.semantic import cosine_similarity, semantic_boosts

__all__ = [
    "tokenize",
    "estimate_tokens",
    "score_entry_seed",
    "score_document",
    "SeedMatch",
    "DocumentMatch",
    "cosine_similarity",
    "semantic_boosts",
]
