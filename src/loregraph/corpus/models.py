"""Data models for entries, documents and scope context packs."""

from __future__ import annotations

import time
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Entry(BaseModel):
    """A rankable world_info unit derived from one note."""

    uid: int
    title: str
    primary_keywords: list[str] = Field(default_factory=list)
    secondary_keywords: list[str] = Field(default_factory=list)
    content: str = ""
    order: int = 0  # Written by the importance ranker only
    is_constant: bool = False  # Always-include flag
    group_path: str = ""  # Folder-like path, e.g. "World/Places"
    outbound_links: list[str] = Field(default_factory=list)  # Raw wikilink targets

    def keywords(self) -> list[str]:
        """Primary then secondary keywords, trimmed, lowercased and deduplicated."""
        seen: set[str] = set()
        values: list[str] = []
        for keyword in [*self.primary_keywords, *self.secondary_keywords]:
            normalized = keyword.strip().lower()
            if not normalized or normalized in seen:
                continue
            seen.add(normalized)
            values.append(normalized)
        return values


class Document(BaseModel):
    """A RAG-style retrievable unit."""

    uid: int
    title: str
    path: str = ""
    content: str = ""
    scope: str = ""


class ChunkEmbedding(BaseModel):
    """A precomputed embedding vector for one chunk of a document."""

    chunk_id: str
    document_uid: int
    vector: list[float] = Field(default_factory=list)


def _freeze(model: type[BaseModel], item: BaseModel | dict) -> BaseModel | dict:
    if isinstance(item, model):
        return item
    if isinstance(item, BaseModel):
        return model.model_validate(item.model_dump())
    return item


def normalize_scope(scope: str) -> str:
    """Normalize a scope label: trimmed, lowercased, no outer slashes."""
    return scope.strip().strip("/").lower()


class FrozenEntry(Entry):
    """An entry held by a pack; assigning to its fields raises."""

    model_config = ConfigDict(frozen=True)


class FrozenDocument(Document):
    """A document held by a pack; assigning to its fields raises."""

    model_config = ConfigDict(frozen=True)


class ScopeContextPack(BaseModel):
    """Immutable snapshot of every entry and document in one retrieval scope.

    A pack is never mutated after construction; callers replace it wholesale
    when the corpus changes. Entries and documents are stored as frozen
    copies, so ranking a pack's entries in place fails instead of rewriting
    the snapshot. Entries are sorted by ``order`` (descending) then ``uid``,
    documents by path, title and uid.
    """

    model_config = ConfigDict(frozen=True)

    scope: str = ""
    entries: tuple[FrozenEntry, ...] = ()
    documents: tuple[FrozenDocument, ...] = ()
    built_at: float = 0.0

    @field_validator("entries", mode="before")
    @classmethod
    def _freeze_entries(cls, value: Iterable[Entry | dict]) -> tuple:
        return tuple(_freeze(FrozenEntry, item) for item in value)

    @field_validator("documents", mode="before")
    @classmethod
    def _freeze_documents(cls, value: Iterable[Document | dict]) -> tuple:
        return tuple(_freeze(FrozenDocument, item) for item in value)

    @classmethod
    def from_items(
        cls,
        scope: str,
        entries: Iterable[Entry],
        documents: Iterable[Document] = (),
        built_at: float | None = None,
    ) -> ScopeContextPack:
        """Snapshot entries and documents into a sorted, detached pack."""
        sorted_entries = sorted(
            (entry.model_copy(deep=True) for entry in entries),
            key=lambda e: (-e.order, e.uid),
        )
        sorted_documents = sorted(
            (doc.model_copy(deep=True) for doc in documents),
            key=lambda d: (d.path, d.title, d.uid),
        )
        return cls(
            scope=scope,
            entries=tuple(sorted_entries),
            documents=tuple(sorted_documents),
            built_at=time.time() if built_at is None else built_at,
        )

    @property
    def scope_label(self) -> str:
        return normalize_scope(self.scope) or "(all)"
