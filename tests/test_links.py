"""Tests for link target normalization and the entry address table."""

from __future__ import annotations

import pytest

from loregraph.corpus.links import LinkTargetIndex, link_target_variants, normalize_link_target
from loregraph.corpus.models import Entry


class TestNormalizeLinkTarget:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Aurelia", "aurelia"),
            ("World/Aurelia.md#History|the city", "world/aurelia"),
            ("World\\People\\Maren.markdown", "world/people/maren"),
            ("/Places/Harbor/", "places/harbor"),
            ("  Yggdrasil#^block ", "yggdrasil"),
            ("#Only a heading", ""),
        ],
    )
    def test_normalize(self, raw: str, expected: str):
        assert normalize_link_target(raw) == expected

    def test_variants_include_basename_and_separators(self):
        assert link_target_variants("Golden Court") == [
            "golden court", "golden-court", "golden_court",
        ]
        variants = link_target_variants("World/Queen_Maren.md")
        assert "world/queen_maren" in variants
        assert "queen_maren" in variants
        assert "queen maren" in variants
        assert "queen-maren" in variants

    def test_empty_target_has_no_variants(self):
        assert link_target_variants("  ") == []


class TestLinkTargetIndex:
    @pytest.fixture
    def index(self) -> LinkTargetIndex:
        return LinkTargetIndex.from_entries([
            Entry(uid=1, title="Aurelia", primary_keywords=["golden city", "harbor"]),
            Entry(uid=2, title="Golden Court"),
            Entry(uid=3, title="Harbor"),
            Entry(uid=4, title="Twin Peaks"),
            Entry(uid=5, title="Twin Peaks"),
        ])

    def test_resolve_by_title_path(self, index: LinkTargetIndex):
        assert index.resolve("World/Aurelia.md") == 1

    def test_resolve_separator_variant(self, index: LinkTargetIndex):
        assert index.resolve("golden_court") == 2
        assert index.resolve("Golden-City") == 1

    def test_title_beats_keyword(self, index: LinkTargetIndex):
        assert index.resolve("harbor") == 3

    def test_ambiguous_title_unresolved(self, index: LinkTargetIndex):
        assert index.resolve("Twin Peaks") is None

    def test_unknown_target(self, index: LinkTargetIndex):
        assert index.resolve("Nowhere") is None

    def test_resolve_links_sorted_unique_without_self(self, index: LinkTargetIndex):
        targets = ["Harbor", "Golden Court", "golden court", "Aurelia", "nowhere"]
        assert index.resolve_links(1, targets) == [2, 3]

    def test_mappings_prefer_titles(self, index: LinkTargetIndex):
        mappings = index.mappings()
        assert mappings["harbor"] == 3
        assert mappings["golden city"] == 1
        assert "twin peaks" not in mappings
        assert len(index) == len(mappings)

    def test_registration_order_independent(self):
        entries = [
            Entry(uid=2, title="Beta", primary_keywords=["shared"]),
            Entry(uid=1, title="Alpha", primary_keywords=["shared"]),
        ]
        forward = LinkTargetIndex.from_entries(entries)
        backward = LinkTargetIndex.from_entries(list(reversed(entries)))
        assert forward.mappings() == backward.mappings()
        assert forward.resolve("shared") is None
