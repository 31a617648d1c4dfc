"""Tests for corpus loading and scope context packs."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from loregraph.config import MembershipMode
from loregraph.corpus.loader import Corpus, load_corpus, save_corpus
from loregraph.corpus.models import Document, Entry, ScopeContextPack
from loregraph.corpus.pack import build_scope_pack, in_scope
from loregraph.exceptions import CorpusError
from loregraph.graph.ranker import rank


class TestEntry:
    def test_keywords_normalized(self):
        entry = Entry(
            uid=1, title="Aurelia",
            primary_keywords=[" Aurelia ", "", "Golden City"],
            secondary_keywords=["aurelia", "capital"],
        )
        assert entry.keywords() == ["aurelia", "golden city", "capital"]


class TestScopeContextPack:
    def test_sorted_snapshot(self):
        pack = ScopeContextPack.from_items(
            "Lore/",
            [Entry(uid=2, title="B", order=5), Entry(uid=1, title="A", order=5),
             Entry(uid=3, title="C", order=9)],
            [Document(uid=2, title="Z", path="b.md"), Document(uid=1, title="Y", path="a.md")],
            built_at=12.5,
        )
        assert [e.uid for e in pack.entries] == [3, 1, 2]
        assert [d.uid for d in pack.documents] == [1, 2]
        assert pack.built_at == 12.5
        assert pack.scope_label == "lore"

    def test_default_label(self):
        assert ScopeContextPack().scope_label == "(all)"

    def test_frozen(self):
        pack = ScopeContextPack.from_items("", [Entry(uid=1, title="A")])
        with pytest.raises(ValidationError):
            pack.scope = "other"

    def test_detached_from_sources(self):
        source = Entry(uid=1, title="A", content="before")
        pack = ScopeContextPack.from_items("", [source])
        source.content = "after"
        assert pack.entries[0].content == "before"

    def test_entries_and_documents_frozen(self):
        pack = ScopeContextPack.from_items(
            "", [Entry(uid=1, title="A", order=3)], [Document(uid=1, title="Y", path="a.md")]
        )
        with pytest.raises(ValidationError):
            pack.entries[0].order = 7
        with pytest.raises(ValidationError):
            pack.documents[0].scope = "lore"
        assert isinstance(pack.entries[0], Entry)

    def test_ranking_pack_entries_in_place_fails(self, linked_entries):
        pack = ScopeContextPack.from_items("", linked_entries)
        with pytest.raises(ValidationError):
            rank(pack.entries)
        assert all(entry.order == 0 for entry in pack.entries)

    def test_direct_construction_freezes(self):
        pack = ScopeContextPack(
            entries=[Entry(uid=1, title="A")], documents=[{"uid": 2, "title": "B"}]
        )
        with pytest.raises(ValidationError):
            pack.entries[0].title = "changed"
        assert pack.documents[0].title == "B"


class TestBuildScopePack:
    def test_ranks_copies(self, linked_entries, lore_documents):
        pack = build_scope_pack("", linked_entries, lore_documents)
        assert all(entry.order == 0 for entry in linked_entries)
        assert all(entry.order >= 1 for entry in pack.entries)
        assert pack.entries[0].uid == 3
        orders = [entry.order for entry in pack.entries]
        assert orders == sorted(orders, reverse=True)

    def test_scope_filters_documents(self, linked_entries, lore_documents):
        pack = build_scope_pack("lore/places", linked_entries, lore_documents)
        assert [doc.uid for doc in pack.documents] == [10]
        assert len(pack.entries) == len(linked_entries)

    def test_parent_scope_includes_children(self, linked_entries, lore_documents):
        pack = build_scope_pack("/Lore", linked_entries, lore_documents)
        assert {doc.uid for doc in pack.documents} == {10, 11}

    @pytest.mark.parametrize(
        "document_scope, scope, expected",
        [
            ("lore/places", "", True),
            ("lore/places", "lore", True),
            ("lore/places", "lore/places", True),
            ("lore", "lore/places", False),
            ("lorem", "lore", False),
            ("", "lore", False),
            ("", "", True),
        ],
    )
    def test_in_scope(self, document_scope: str, scope: str, expected: bool):
        assert in_scope(document_scope, scope) is expected

    @pytest.mark.parametrize(
        "document_scope, scope, expected",
        [
            ("lore/places", "lore/places", True),
            ("lore/places", "lore", False),
            ("lore", "lore", True),
            ("lore/places", "", True),
        ],
    )
    def test_exact_membership(self, document_scope: str, scope: str, expected: bool):
        assert in_scope(document_scope, scope, MembershipMode.EXACT) is expected

    def test_include_unscoped(self):
        assert in_scope("", "lore", include_unscoped=True)
        assert in_scope(" / ", "lore/places", MembershipMode.EXACT, include_unscoped=True)
        assert not in_scope("history", "lore", include_unscoped=True)

    def test_pack_with_unscoped_and_exact(self, linked_entries, lore_documents):
        documents = [*lore_documents, Document(uid=12, title="Loose Page", path="loose.md")]
        cascade = build_scope_pack("lore", linked_entries, documents)
        assert [doc.uid for doc in cascade.documents] == [10, 11]
        exact = build_scope_pack(
            "lore/places", linked_entries, documents,
            membership=MembershipMode.EXACT, include_unscoped=True,
        )
        assert [doc.uid for doc in exact.documents] == [10, 12]
        narrow = build_scope_pack("lore", linked_entries, documents, membership="exact")
        assert narrow.documents == ()


class TestCorpusLoader:
    def test_load(self, corpus_file: Path):
        corpus = load_corpus(corpus_file)
        assert corpus.root_uid == 1
        assert [entry.uid for entry in corpus.entries] == [1, 2, 3, 4, 5]
        assert len(corpus.documents) == 2
        assert corpus.chunk_embeddings[0].document_uid == 10

    def test_bare_entry_list(self, tmp_path: Path):
        path = tmp_path / "entries.json"
        path.write_text(json.dumps([{"uid": 1, "title": "Solo"}]))
        corpus = load_corpus(path)
        assert corpus.entries[0].title == "Solo"
        assert corpus.documents == []

    def test_round_trip(self, tmp_path: Path, linked_entries):
        path = tmp_path / "out" / "corpus.json"
        save_corpus(path, Corpus(entries=linked_entries, root_uid=1))
        assert load_corpus(path) == Corpus(entries=linked_entries, root_uid=1)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(CorpusError, match="missing.json"):
            load_corpus(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "bad.json"
        path.write_text("{oops")
        with pytest.raises(CorpusError, match="not valid JSON"):
            load_corpus(path)

    def test_schema_error(self, tmp_path: Path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"entries": [{"title": "No uid"}]}))
        with pytest.raises(CorpusError):
            load_corpus(path)

    def test_duplicate_uids(self, tmp_path: Path):
        path = tmp_path / "dupes.json"
        path.write_text(json.dumps([{"uid": 1, "title": "A"}, {"uid": 1, "title": "B"}]))
        with pytest.raises(CorpusError, match="duplicate"):
            load_corpus(path)

    def test_wrong_top_level_type(self, tmp_path: Path):
        path = tmp_path / "number.json"
        path.write_text("42")
        with pytest.raises(CorpusError, match="expected a JSON object"):
            load_corpus(path)
