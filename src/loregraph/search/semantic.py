"""Semantic boosts from precomputed embeddings.

Embeddings are produced outside LoreGraph; this module only compares a query
vector with per-chunk vectors and turns the best cosine similarity of each
document into an additive score boost.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

import numpy as np

from loregraph.corpus.models import ChunkEmbedding

logger = logging.getLogger("loregraph.semantic")

DEFAULT_BOOST_SCALE = 150.0


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity, 0.0 for empty, mismatched or zero vectors."""
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.size == 0 or va.shape != vb.shape:
        return 0.0
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0 or not np.isfinite(norm):
        return 0.0
    return float(np.dot(va, vb) / norm)


def semantic_boosts(
    query_embedding: Sequence[float] | None,
    chunk_embeddings: Iterable[ChunkEmbedding],
    scale: float = DEFAULT_BOOST_SCALE,
) -> dict[int, float]:
    """Map document uid -> best positive chunk similarity times ``scale``.

    A missing query vector yields no boosts, so scoring falls back to
    lexical matching alone.
    """
    if query_embedding is None or len(query_embedding) == 0:
        return {}

    best: dict[int, float] = {}
    skipped = 0
    for chunk in chunk_embeddings:
        if len(chunk.vector) != len(query_embedding):
            skipped += 1
            continue
        similarity = cosine_similarity(query_embedding, chunk.vector)
        if similarity <= 0:
            continue
        if similarity > best.get(chunk.document_uid, 0.0):
            best[chunk.document_uid] = similarity

    if skipped:
        logger.debug("Skipped %d chunk embeddings with mismatched dimensions", skipped)

    return {uid: similarity * scale for uid, similarity in sorted(best.items())}
