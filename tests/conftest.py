"""Shared test fixtures for LoreGraph."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from loregraph.corpus.models import Document, Entry, ScopeContextPack


@pytest.fixture
def linked_entries() -> list[Entry]:
    """A small world: a hub city, places linking to it and a lone constant entry."""
    return [
        Entry(
            uid=1,
            title="Aurelia",
            primary_keywords=["aurelia"],
            secondary_keywords=["golden city"],
            content="Aurelia is the golden capital, built around the roots of Yggdrasil.",
            group_path="World/Places",
            outbound_links=["Yggdrasil", "World/People/Queen Maren.md#Reign"],
        ),
        Entry(
            uid=2,
            title="Yggdrasil",
            primary_keywords=["yggdrasil"],
            content="The world tree. Its roots hold up the northern cities.",
            group_path="World/Places",
            outbound_links=["Aurelia"],
        ),
        Entry(
            uid=3,
            title="Queen Maren",
            primary_keywords=["maren"],
            secondary_keywords=["the queen"],
            content="Maren rules Aurelia from the Amber Throne.",
            group_path="World/People",
            outbound_links=["aurelia|the capital"],
        ),
        Entry(
            uid=4,
            title="Harbor District",
            primary_keywords=["harbor"],
            content="Docks and warehouses along the river.",
            group_path="World/Places/Aurelia",
            outbound_links=["Aurelia", "Nowhere In Particular"],
        ),
        Entry(
            uid=5,
            title="Background",
            content="The story takes place in an age of slow decline.",
            is_constant=True,
        ),
    ]


@pytest.fixture
def lore_documents() -> list[Document]:
    return [
        Document(
            uid=10,
            title="Atlas of Aurelia",
            path="docs/geography/aurelia-atlas.md",
            content="Maps of the golden city and the harbor.",
            scope="lore/places",
        ),
        Document(
            uid=11,
            title="Court Chronicle",
            path="docs/history/court.md",
            content="A chronicle of the royal court and its feuds.",
            scope="lore/history",
        ),
    ]


@pytest.fixture
def make_pack():
    """Build a pack directly from entries with fixed orders (no ranking)."""
    def _make(entries, documents=(), scope=""):
        return ScopeContextPack.from_items(scope, entries, documents, built_at=0.0)
    return _make


@pytest.fixture
def corpus_file(tmp_path: Path, linked_entries, lore_documents) -> Path:
    """A corpus JSON file with entries, documents and chunk embeddings."""
    data = {
        "root_uid": 1,
        "entries": [entry.model_dump() for entry in linked_entries],
        "documents": [doc.model_dump() for doc in lore_documents],
        "chunk_embeddings": [
            {"chunk_id": "atlas-0", "document_uid": 10, "vector": [1.0, 0.0]},
            {"chunk_id": "court-0", "document_uid": 11, "vector": [0.0, 1.0]},
        ],
    }
    path = tmp_path / "corpus.json"
    path.write_text(json.dumps(data, indent=2))
    return path
