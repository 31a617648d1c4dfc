"""Data models for budgeted context assembly."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from loregraph.config import RagFallbackPolicy, RetrievalConfig
from loregraph.corpus.models import Document, Entry

NO_MATCHING_ENTRIES = "no matching entries"
NO_MATCHING_DOCUMENTS = "no matching documents"


class ContentTier(str, Enum):
    """How much of an item's content is rendered."""

    SHORT = "short"  # ~260 characters
    MEDIUM = "medium"  # ~900 characters
    FULL = "full"  # Everything


class QueryOptions(RetrievalConfig):
    """Per-query options; retrieval defaults come from RetrievalConfig."""

    query_text: str = ""
    semantic_boost_by_document_id: dict[int, float] | None = None


class SelectedEntry(BaseModel):
    """A world_info entry chosen for the context."""

    entry: Entry
    score: float
    seed_score: float = 0.0
    graph_score: float = 0.0
    matched_keywords: list[str] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)  # Why this was included
    path_uids: list[int] = Field(default_factory=list)  # Best graph path, seed first
    hop_distance: int | None = None  # 0 for seeds, None when not reached from a seed
    content_tier: ContentTier = ContentTier.SHORT
    rendered_content: str = ""
    token_estimate: int = 0

    def render(self) -> str:
        if self.matched_keywords:
            matched = f"Matched: {', '.join(self.matched_keywords)}"
        elif self.hop_distance:
            matched = f"Matched: (graph, hop {self.hop_distance})"
        elif self.entry.is_constant:
            matched = "Matched: (constant)"
        else:
            matched = "Matched: (priority)"
        keys = ", ".join(self.entry.primary_keywords) or "-"
        return "\n".join([
            f"#### {self.entry.title}",
            f"Keys: {keys}",
            matched,
            "",
            self.rendered_content,
        ])


class SelectedDocument(BaseModel):
    """A RAG document chosen for the context."""

    document: Document
    score: float
    lexical_score: float = 0.0
    semantic_boost: float = 0.0
    matched_terms: list[str] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)
    content_tier: ContentTier = ContentTier.SHORT
    rendered_content: str = ""
    token_estimate: int = 0

    def render(self) -> str:
        matched = (
            f"Matched terms: {', '.join(self.matched_terms)}"
            if self.matched_terms
            else "Matched terms: -"
        )
        return "\n".join([
            f"#### {self.document.title}",
            f"Source: `{self.document.path}`",
            matched,
            "",
            self.rendered_content,
        ])


class SeedTrace(BaseModel):
    uid: int
    title: str
    score: float
    reasons: list[str] = Field(default_factory=list)


class BudgetTrace(BaseModel):
    """What happened to candidates inside one sub-budget."""

    budgeted: int = 0
    used: int = 0
    candidates: int = 0
    selected: int = 0
    dropped_by_budget: int = 0
    dropped_by_limit: int = 0
    dropped_by_budget_uids: list[int] = Field(default_factory=list)
    dropped_by_limit_uids: list[int] = Field(default_factory=list)
    tiers: dict[str, int] = Field(default_factory=dict)


class RagTrace(BaseModel):
    """The RAG fallback gating decision."""

    policy: RagFallbackPolicy
    enabled: bool
    seed_confidence: float = 0.0
    threshold: float = 0.0
    reason: str = ""
    budget: BudgetTrace = Field(default_factory=BudgetTrace)


class Explainability(BaseModel):
    seeds: list[SeedTrace] = Field(default_factory=list)
    world_info_budget: BudgetTrace = Field(default_factory=BudgetTrace)
    rag: RagTrace
    notes: list[str] = Field(default_factory=list)


class AssembledContext(BaseModel):
    """The complete assembled context ready for LLM consumption."""

    scope: str = ""
    scope_label: str = "(all)"
    query_text: str = ""
    token_budget: int = 0
    used_tokens: int = 0
    world_info: list[SelectedEntry] = Field(default_factory=list)
    rag: list[SelectedDocument] = Field(default_factory=list)
    markdown: str = ""
    explainability: Explainability
    assembly_time_ms: float = 0.0

    def render(self) -> str:
        """Render world_info then rag sections as markdown."""
        world_info = (
            "\n\n---\n\n".join(item.render() for item in self.world_info)
            if self.world_info
            else "_No matching world_info entries._"
        )
        rag = (
            "\n\n---\n\n".join(item.render() for item in self.rag)
            if self.rag
            else "_No matching rag documents._"
        )
        return "\n".join([
            "## LoreGraph Context",
            f"Scope: `{self.scope_label}`",
            f"Query: {self.query_text.strip() or '(empty)'}",
            "",
            "### world_info",
            world_info,
            "",
            "### rag",
            rag,
        ])

    def summary(self) -> str:
        """Human-readable summary of what was selected and why."""
        wi = self.explainability.world_info_budget
        rag = self.explainability.rag
        lines = [
            f"Context for: {self.query_text.strip() or '(empty)'}",
            f"Scope: {self.scope_label}",
            f"Tokens: {self.used_tokens:,} / {self.token_budget:,}",
            f"world_info: {len(self.world_info)} selected, {wi.used}/{wi.budgeted} tokens, "
            f"{wi.dropped_by_budget} dropped by budget, {wi.dropped_by_limit} dropped by limit",
            f"rag: policy={rag.policy.value} enabled={rag.enabled} "
            f"confidence={rag.seed_confidence:.1f} threshold={rag.threshold:.1f} ({rag.reason})",
            f"Assembly time: {self.assembly_time_ms:.1f}ms",
            "",
            "Seeds:",
        ]
        if not self.explainability.seeds:
            lines.append("  (none)")
        for seed in self.explainability.seeds:
            lines.append(f"  {seed.uid} {seed.title} score={seed.score:.1f}")
            for reason in seed.reasons:
                lines.append(f"    reason: {reason}")

        lines.append("")
        lines.append("Included entries:")
        for item in self.world_info:
            marker = ">" if item.hop_distance == 0 else " " * (item.hop_distance or 1) + "·"
            lines.append(
                f"  {marker} {item.entry.title} [{item.entry.uid}] "
                f"score={item.score:.2f} tier={item.content_tier.value} ~{item.token_estimate}tok"
            )
            for reason in item.reasons:
                lines.append(f"    reason: {reason}")

        if self.rag:
            lines.append("")
            lines.append("Included documents:")
            for doc in self.rag:
                lines.append(
                    f"  {doc.document.path or doc.document.title} [{doc.document.uid}] "
                    f"score={doc.score:.2f} tier={doc.content_tier.value} ~{doc.token_estimate}tok"
                )

        for note in self.explainability.notes:
            lines.append(f"note: {note}")

        return "\n".join(lines)
