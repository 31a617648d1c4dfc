"""Reading and writing corpus JSON files."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from loregraph.corpus.models import ChunkEmbedding, Document, Entry
from loregraph.exceptions import CorpusError


class Corpus(BaseModel):
    """Entries, documents and embeddings as exported by a notes parser.

    Example file::

        {
          "root_uid": 1,
          "entries": [{"uid": 1, "title": "World", "outbound_links": ["Aurelia"]}],
          "documents": [{"uid": 10, "title": "Atlas", "path": "docs/atlas.md"}],
          "chunk_embeddings": []
        }
    """

    entries: list[Entry] = Field(default_factory=list)
    documents: list[Document] = Field(default_factory=list)
    chunk_embeddings: list[ChunkEmbedding] = Field(default_factory=list)
    root_uid: int | None = None


def load_corpus(path: Path | str) -> Corpus:
    """Load and validate a corpus file."""
    corpus_path = Path(path)
    try:
        data = json.loads(corpus_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CorpusError(str(corpus_path), exc.strerror or str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise CorpusError(str(corpus_path), f"not valid JSON ({exc.msg})") from exc

    if isinstance(data, list):
        # A bare list is a list of entries
        data = {"entries": data}
    if not isinstance(data, dict):
        raise CorpusError(str(corpus_path), "expected a JSON object or list")

    try:
        corpus = Corpus(**data)
    except ValidationError as exc:
        raise CorpusError(str(corpus_path), str(exc)) from exc

    uids = [entry.uid for entry in corpus.entries]
    if len(uids) != len(set(uids)):
        raise CorpusError(str(corpus_path), "duplicate entry uid")
    return corpus


def save_corpus(path: Path | str, corpus: Corpus) -> None:
    """Write a corpus file."""
    corpus_path = Path(path)
    corpus_path.parent.mkdir(parents=True, exist_ok=True)
    corpus_path.write_text(
        json.dumps(corpus.model_dump(mode="json"), indent=2), encoding="utf-8"
    )
