"""Wikilink target normalization and the entry address table.

Link targets written in notes come in many shapes: ``[[World/Aurelia.md#History|the
city]]``, ``aurelia``, ``Golden Court``.  Every entry is addressable by its
title and keywords; each address is registered under its normalized form, its
basename and its space/hyphen/underscore variants so that any of these shapes
resolves to the same entry uid.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from loregraph.corpus.models import Entry

_SEPARATOR_RUN = re.compile(r"[\s_-]+")
_MARKDOWN_SUFFIX = re.compile(r"\.(md|markdown)$", re.IGNORECASE)


def normalize_link_target(target: str) -> str:
    """Normalize a raw link target for lookup.

    Lowercases, turns backslashes into forward slashes and strips an alias
    (``|text``), a heading/block anchor (``#...``), a markdown suffix and
    leading/trailing slashes.
    """
    value = target.strip().lower().replace("\\", "/")
    value = value.split("|", 1)[0]
    value = value.split("#", 1)[0].strip()
    value = _MARKDOWN_SUFFIX.sub("", value)
    return value.strip().strip("/").strip()


def link_target_variants(target: str) -> list[str]:
    """All lookup keys for a target: itself, its basename and separator variants."""
    normalized = normalize_link_target(target)
    if not normalized:
        return []

    variants = [normalized]
    basename = normalized.rsplit("/", 1)[-1].strip()
    if basename and basename != normalized:
        variants.append(basename)

    for value in list(variants):
        if not _SEPARATOR_RUN.search(value):
            continue
        spaced = _SEPARATOR_RUN.sub(" ", value).strip()
        variants.extend([spaced, spaced.replace(" ", "-"), spaced.replace(" ", "_")])

    return list(dict.fromkeys(v for v in variants if v))


class LinkTargetIndex:
    """Maps normalized link targets to entry uids.

    Titles take precedence over keywords.  A target claimed by two different
    entries at the same precedence is ambiguous and resolves to nothing.
    """

    def __init__(self) -> None:
        self._titles: dict[str, int] = {}
        self._keywords: dict[str, int] = {}
        self._ambiguous_titles: set[str] = set()
        self._ambiguous_keywords: set[str] = set()

    @classmethod
    def from_entries(cls, entries: Iterable[Entry]) -> LinkTargetIndex:
        """Register every entry's title and keywords, in uid order."""
        index = cls()
        ordered = sorted(entries, key=lambda e: e.uid)
        for entry in ordered:
            index.add_title(entry.title, entry.uid)
        for entry in ordered:
            for keyword in entry.keywords():
                index.add_keyword(keyword, entry.uid)
        return index

    def add_title(self, title: str, uid: int) -> None:
        for variant in link_target_variants(title):
            self._register(variant, uid, self._titles, self._ambiguous_titles)

    def add_keyword(self, keyword: str, uid: int) -> None:
        for variant in link_target_variants(keyword):
            self._register(variant, uid, self._keywords, self._ambiguous_keywords)

    @staticmethod
    def _register(key: str, uid: int, table: dict[str, int], ambiguous: set[str]) -> None:
        if key in ambiguous:
            return
        existing = table.get(key)
        if existing is None:
            table[key] = uid
        elif existing != uid:
            del table[key]
            ambiguous.add(key)

    def resolve(self, target: str) -> int | None:
        """Resolve a raw link target to an entry uid, or None."""
        variants = link_target_variants(target)
        for table in (self._titles, self._keywords):
            for variant in variants:
                uid = table.get(variant)
                if uid is not None:
                    return uid
        return None

    def resolve_links(self, source_uid: int, targets: Iterable[str]) -> list[int]:
        """Resolve a list of raw targets to sorted unique neighbour uids.

        Unknown targets and links back to ``source_uid`` are dropped.
        """
        neighbours: set[int] = set()
        for target in targets:
            uid = self.resolve(target)
            if uid is not None and uid != source_uid:
                neighbours.add(uid)
        return sorted(neighbours)

    def mappings(self) -> dict[str, int]:
        """Effective target -> uid table (titles override keywords)."""
        merged = dict(self._keywords)
        merged.update(self._titles)
        return merged

    def __len__(self) -> int:
        return len(self.mappings())
