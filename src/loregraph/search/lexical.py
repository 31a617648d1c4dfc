"""Lexical matching of query text against entries and documents."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field

from loregraph.corpus.models import Document, Entry

_TOKEN_PATTERN = re.compile(r"[a-z0-9][a-z0-9_-]*")

# Seed scoring weights
PHRASE_KEYWORD_SCORE = 150.0
TOKEN_KEYWORD_SCORE = 120.0
TITLE_PHRASE_SCORE = 70.0
TITLE_TOKEN_SCORE = 18.0

# Document scoring weights
DOC_TITLE_TOKEN_SCORE = 40.0
DOC_PATH_TOKEN_SCORE = 20.0
DOC_CONTENT_TOKEN_SCORE = 10.0
DOC_FULL_QUERY_SCORE = 25.0

TITLE_STOPWORDS = frozenset({
    "the", "and", "for", "with", "into", "from", "that", "this", "then",
    "when", "where", "what", "who", "why", "how", "chapter", "scene",
    "notes", "story", "entry", "world",
})


def tokenize(text: str) -> list[str]:
    """Unique lowercase tokens of length >= 2, in first-seen order."""
    matches = _TOKEN_PATTERN.findall(text.lower())
    return list(dict.fromkeys(token for token in matches if len(token) >= 2))


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters, at least one."""
    return max(1, math.ceil(len(text) / 4))


def truncate_at_word(text: str, limit: int, marker: str = " ...") -> str:
    """Cut ``text`` to ``limit`` characters, preferring a word boundary."""
    cleaned = text.strip()
    if len(cleaned) <= limit:
        return cleaned
    cut = cleaned[:limit]
    boundary = max(cut.rfind(" "), cut.rfind("\n"), cut.rfind("\t"))
    if boundary > 0:
        cut = cut[:boundary]
    return f"{cut.rstrip()}{marker}"


@dataclass
class SeedMatch:
    """How strongly an entry matches the query by keyword and title."""

    uid: int
    score: float = 0.0
    matched_keywords: list[str] = field(default_factory=list)
    reasons: list[str] = field(default_factory=list)


def score_entry_seed(entry: Entry, query_text: str, query_tokens: set[str]) -> SeedMatch:
    """Score an entry's keywords and title against the query.

    Multi-word keywords are matched as substrings of the lowercased query,
    single words by token membership.  A title found verbatim in the query
    scores once; otherwise each significant title token found scores.
    """
    normalized_query = query_text.lower()
    match = SeedMatch(uid=entry.uid)

    for keyword in entry.keywords():
        if " " in keyword:
            if keyword in normalized_query:
                match.score += PHRASE_KEYWORD_SCORE
                match.matched_keywords.append(keyword)
                match.reasons.append(f"keyword phrase '{keyword}'")
        elif keyword in query_tokens:
            match.score += TOKEN_KEYWORD_SCORE
            match.matched_keywords.append(keyword)
            match.reasons.append(f"keyword '{keyword}'")

    title = entry.title.strip().lower()
    if len(title) >= 3 and title in normalized_query:
        match.score += TITLE_PHRASE_SCORE
        match.reasons.append(f"title '{title}'")
    else:
        for token in tokenize(title):
            if len(token) < 4 or token in TITLE_STOPWORDS:
                continue
            if token in query_tokens:
                match.score += TITLE_TOKEN_SCORE
                match.reasons.append(f"title token '{token}'")

    return match


@dataclass
class DocumentMatch:
    """Lexical score of one document."""

    uid: int
    score: float = 0.0
    matched_terms: list[str] = field(default_factory=list)
    reasons: list[str] = field(default_factory=list)


def score_document(
    document: Document, query_text: str, query_tokens: list[str]
) -> DocumentMatch:
    """Score a document: title > path > content per token, plus a full-query bonus."""
    title = document.title.lower()
    path = document.path.lower()
    content = document.content.lower()
    match = DocumentMatch(uid=document.uid)

    title_hits: list[str] = []
    path_hits: list[str] = []
    content_hits: list[str] = []
    for token in query_tokens:
        if token in title:
            match.score += DOC_TITLE_TOKEN_SCORE
            title_hits.append(token)
        elif token in path:
            match.score += DOC_PATH_TOKEN_SCORE
            path_hits.append(token)
        elif token in content:
            match.score += DOC_CONTENT_TOKEN_SCORE
            content_hits.append(token)

    for label, hits in (("title", title_hits), ("path", path_hits), ("content", content_hits)):
        if hits:
            match.reasons.append(f"{label}: {', '.join(sorted(hits))}")

    normalized_query = query_text.strip().lower()
    if len(normalized_query) >= 4 and normalized_query in content:
        match.score += DOC_FULL_QUERY_SCORE
        match.reasons.append("full query in content")

    match.matched_terms = sorted(set(title_hits + path_hits + content_hits))
    return match
