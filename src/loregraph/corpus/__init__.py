"""Entries, documents and link resolution.

Scope context packs are built by ``loregraph.corpus.pack``, which depends on
the graph package and is not re-exported here.
"""

from loregraph.corpus.links import LinkTargetIndex, normalize_link_target
from loregraph.corpus.loader import Corpus, load_corpus, save_corpus
from loregraph.corpus.models import ChunkEmbedding, Document, Entry, ScopeContextPack

__all__ = [
    "ChunkEmbedding",
    "Corpus",
    "Document",
    "Entry",
    "LinkTargetIndex",
    "ScopeContextPack",
    "load_corpus",
    "normalize_link_target",
    "save_corpus",
]
