"""Budgeted context assembly over a scope context pack.

Algorithm:
  1. Tokenize the query; score every entry's keywords and title → seed set S
  2. BFS from all seeds along resolved wikilinks; each hop multiplies the
     carried score by a decay factor and contributions <= 0.5 are pruned
  3. score(v) = seed(v) + graph(v) + 30·constant(v) + 0.01·max(0, order(v))
  4. Split the token budget B into world_info (B·ratio) and rag (the rest)
  5. Greedy admission of ranked entries at the short content tier, skipping
     entries that overflow, then tier upgrades short → medium → full while
     the token delta still fits
  6. RAG gating (off / auto / always); documents are scored lexically plus
     an optional semantic boost and packed into the rag budget the same way
  7. Render markdown and the explainability trace

Everything is a pure function of the pack and the options: identical inputs
always produce identical selections and renderings.
"""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from loregraph.config import RagFallbackPolicy
from loregraph.context.models import (
    NO_MATCHING_DOCUMENTS,
    NO_MATCHING_ENTRIES,
    AssembledContext,
    BudgetTrace,
    ContentTier,
    Explainability,
    QueryOptions,
    RagTrace,
    SeedTrace,
    SelectedDocument,
    SelectedEntry,
)
from loregraph.corpus.links import LinkTargetIndex
from loregraph.corpus.models import Entry, ScopeContextPack
from loregraph.search.lexical import (
    SeedMatch,
    estimate_tokens,
    score_document,
    score_entry_seed,
    tokenize,
    truncate_at_word,
)

logger = logging.getLogger("loregraph.context")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

MIN_TOKEN_BUDGET = 128
DEFAULT_BUDGET_RATIO = 0.6
BUDGET_RATIO_BOUNDS = (0.05, 0.95)
DEFAULT_HOP_DECAY = 0.55
HOP_DECAY_BOUNDS = (0.2, 0.9)
MAX_GRAPH_HOPS = 3
MIN_CONTRIBUTION = 0.5
DEFAULT_RAG_THRESHOLD = 120.0

CONSTANT_BOOST = 30.0
ORDER_WEIGHT = 0.01

# Content tier limits in characters
_TIER_LIMITS: dict[ContentTier, int | None] = {
    ContentTier.SHORT: 260,
    ContentTier.MEDIUM: 900,
    ContentTier.FULL: None,
}
_UPGRADES = ((ContentTier.SHORT, ContentTier.MEDIUM), (ContentTier.MEDIUM, ContentTier.FULL))

# Sort position of entries no seed reaches
_UNREACHED_HOP = MAX_GRAPH_HOPS + 1


def _finite_or(value: float | int | None, default: float) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def tier_content(content: str, tier: ContentTier) -> str:
    """Content as rendered at a given tier."""
    limit = _TIER_LIMITS[tier]
    if limit is None:
        return content.strip()
    return truncate_at_word(content, limit)


@dataclass
class _Limits:
    """Sanitized query options."""

    token_budget: int
    world_info_budget: int
    rag_budget: int
    max_entries: int
    max_documents: int
    max_hops: int
    decay: float
    threshold: float

    @classmethod
    def from_options(cls, options: QueryOptions) -> _Limits:
        token_budget = max(
            MIN_TOKEN_BUDGET,
            math.floor(_finite_or(options.token_budget, MIN_TOKEN_BUDGET)),
        )
        ratio = _clamp(
            _finite_or(options.budget_ratio, DEFAULT_BUDGET_RATIO), *BUDGET_RATIO_BOUNDS
        )
        world_info_budget = math.floor(token_budget * ratio)
        return cls(
            token_budget=token_budget,
            world_info_budget=world_info_budget,
            rag_budget=token_budget - world_info_budget,
            max_entries=max(0, int(_finite_or(options.max_entries, 0))),
            max_documents=max(0, int(_finite_or(options.max_documents, 0))),
            max_hops=int(_clamp(_finite_or(options.max_graph_hops, 0), 0, MAX_GRAPH_HOPS)),
            decay=_clamp(
                _finite_or(options.graph_hop_decay, DEFAULT_HOP_DECAY), *HOP_DECAY_BOUNDS
            ),
            threshold=max(0.0, _finite_or(options.rag_fallback_threshold, DEFAULT_RAG_THRESHOLD)),
        )


@dataclass
class _Propagation:
    """Graph scores and best paths reached from the seed set."""

    graph_scores: dict[int, float] = field(default_factory=dict)
    # uid -> (hop, -contribution, path); smaller is better
    best: dict[int, tuple[int, float, tuple[int, ...]]] = field(default_factory=dict)

    def offer(self, uid: int, hop: int, contribution: float, path: tuple[int, ...]) -> None:
        key = (hop, -contribution, path)
        current = self.best.get(uid)
        if current is None or key < current:
            self.best[uid] = key


@dataclass
class _Candidate:
    entry: Entry
    score: float
    seed: SeedMatch | None
    graph_score: float
    hop: int | None
    path: tuple[int, ...]
    reasons: list[str]

    def sort_key(self) -> tuple:
        hop = _UNREACHED_HOP if self.hop is None else self.hop
        return (-self.score, hop, -self.entry.order, self.entry.uid)


_Item = TypeVar("_Item", SelectedEntry, SelectedDocument)


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------

class ContextAssembler:
    """Query-time context assembly for one scope context pack.

    The link adjacency is resolved once per assembler; the pack itself is
    never modified, so one assembler can serve any number of queries.

    Usage:
        assembler = ContextAssembler(pack)
        context = assembler.assemble(QueryOptions(query_text="Aurelia", token_budget=1024))
        print(context.markdown)
    """

    def __init__(self, pack: ScopeContextPack) -> None:
        self.pack = pack
        self._entries: dict[int, Entry] = {entry.uid: entry for entry in pack.entries}
        index = LinkTargetIndex.from_entries(pack.entries)
        self._adjacency: dict[int, list[int]] = {
            entry.uid: index.resolve_links(entry.uid, entry.outbound_links)
            for entry in pack.entries
        }

    @property
    def adjacency(self) -> dict[int, list[int]]:
        """Resolved outbound neighbours per entry uid."""
        return {uid: list(neighbours) for uid, neighbours in self._adjacency.items()}

    # -------------------------------------------------------------------
    # Main entry point
    # -------------------------------------------------------------------

    def assemble(self, options: QueryOptions) -> AssembledContext:
        """Assemble a budgeted, explainable context for a query.

        Args:
            options: Query text, token budget and retrieval settings.  Out of
                range values are clamped, never rejected.

        Returns:
            An AssembledContext whose used token estimate never exceeds the
            (clamped) token budget.
        """
        start_time = time.time()
        limits = _Limits.from_options(options)
        query_text = options.query_text or ""

        if not query_text.strip():
            context = self._empty_context(options, limits, "empty query")
            context.assembly_time_ms = round((time.time() - start_time) * 1000, 1)
            return context

        query_tokens = tokenize(query_text)
        token_set = set(query_tokens)

        # Phase 1: Seeds
        seeds = self._find_seeds(query_text, token_set)

        # Phase 2: Graph propagation
        propagation = self._propagate(seeds, limits.max_hops, limits.decay)

        # Phase 3: Scoring
        candidates = self._score_candidates(seeds, propagation)

        # Phase 4-5: Budgeted world_info selection
        world_info, wi_trace = self._select_entries(
            candidates, limits.max_entries, limits.world_info_budget
        )

        # Phase 6: RAG gating and document selection
        rag_trace = self._gate_rag(
            options.rag_fallback_policy, limits, bool(world_info), seeds
        )
        documents: list[SelectedDocument] = []
        scored_docs = self._score_documents(
            query_text, query_tokens, options.semantic_boost_by_document_id
        )
        if rag_trace.enabled:
            documents, rag_trace.budget = self._select_documents(
                scored_docs, limits.max_documents, limits.rag_budget
            )
        else:
            rag_trace.budget = BudgetTrace(
                budgeted=limits.rag_budget, candidates=len(scored_docs)
            )

        notes: list[str] = []
        if not world_info:
            notes.append(NO_MATCHING_ENTRIES)
        if not documents:
            notes.append(NO_MATCHING_DOCUMENTS)

        logger.debug(
            "Query %r: %d seeds, %d candidates, %d entries, %d documents",
            query_text, len(seeds), len(candidates), len(world_info), len(documents),
        )

        # Phase 7: Render
        context = AssembledContext(
            scope=self.pack.scope,
            scope_label=self.pack.scope_label,
            query_text=query_text,
            token_budget=limits.token_budget,
            used_tokens=wi_trace.used + rag_trace.budget.used,
            world_info=world_info,
            rag=documents,
            explainability=Explainability(
                seeds=[
                    SeedTrace(
                        uid=seed.uid,
                        title=self._entries[seed.uid].title,
                        score=seed.score,
                        reasons=list(seed.reasons),
                    )
                    for seed in seeds
                ],
                world_info_budget=wi_trace,
                rag=rag_trace,
                notes=notes,
            ),
        )
        context.markdown = context.render()
        context.assembly_time_ms = round((time.time() - start_time) * 1000, 1)
        return context

    def _empty_context(
        self, options: QueryOptions, limits: _Limits, reason: str
    ) -> AssembledContext:
        context = AssembledContext(
            scope=self.pack.scope,
            scope_label=self.pack.scope_label,
            query_text=options.query_text or "",
            token_budget=limits.token_budget,
            explainability=Explainability(
                world_info_budget=BudgetTrace(budgeted=limits.world_info_budget),
                rag=RagTrace(
                    policy=options.rag_fallback_policy,
                    enabled=False,
                    threshold=limits.threshold,
                    reason=reason,
                    budget=BudgetTrace(budgeted=limits.rag_budget),
                ),
                notes=[NO_MATCHING_ENTRIES, NO_MATCHING_DOCUMENTS],
            ),
        )
        context.markdown = context.render()
        return context

    # -------------------------------------------------------------------
    # Phase 1: Seed detection
    # -------------------------------------------------------------------

    def _find_seeds(self, query_text: str, token_set: set[str]) -> list[SeedMatch]:
        """Entries whose keywords or title match the query, strongest first."""
        seeds = []
        for entry in self.pack.entries:
            match = score_entry_seed(entry, query_text, token_set)
            if match.score > 0:
                seeds.append(match)
        seeds.sort(key=lambda s: (-s.score, s.uid))
        return seeds

    # -------------------------------------------------------------------
    # Phase 2: Graph propagation (BFS)
    # -------------------------------------------------------------------

    def _propagate(
        self, seeds: list[SeedMatch], max_hops: int, decay: float
    ) -> _Propagation:
        """Carry seed scores along outbound links, decaying per hop.

        Each queued path tracks its own visited nodes, so independent seeds
        (and independent paths) may pass through the same entry.
        """
        result = _Propagation()
        queue: deque[tuple[int, float, tuple[int, ...]]] = deque()

        for seed in seeds:
            path = (seed.uid,)
            result.offer(seed.uid, 0, seed.score, path)
            queue.append((seed.uid, seed.score, path))

        while queue:
            node, contribution, path = queue.popleft()
            hop = len(path) - 1
            if hop >= max_hops:
                continue
            carried = contribution * decay
            if carried <= MIN_CONTRIBUTION:
                continue
            for neighbour in self._adjacency.get(node, ()):
                if neighbour in path:
                    continue
                next_path = path + (neighbour,)
                result.graph_scores[neighbour] = (
                    result.graph_scores.get(neighbour, 0.0) + carried
                )
                result.offer(neighbour, hop + 1, carried, next_path)
                queue.append((neighbour, carried, next_path))

        return result

    # -------------------------------------------------------------------
    # Phase 3: Scoring
    # -------------------------------------------------------------------

    def _score_candidates(
        self, seeds: list[SeedMatch], propagation: _Propagation
    ) -> list[_Candidate]:
        seeds_by_uid = {seed.uid: seed for seed in seeds}
        candidates: list[_Candidate] = []

        for entry in self.pack.entries:
            seed = seeds_by_uid.get(entry.uid)
            seed_score = seed.score if seed else 0.0
            graph_score = propagation.graph_scores.get(entry.uid, 0.0)
            score = (
                seed_score
                + graph_score
                + (CONSTANT_BOOST if entry.is_constant else 0.0)
                + max(0, entry.order) * ORDER_WEIGHT
            )
            if score <= 0:
                continue

            best = propagation.best.get(entry.uid)
            hop = best[0] if best else None
            path = best[2] if best else ()

            reasons = list(seed.reasons) if seed else []
            if graph_score > 0:
                if hop:
                    titles = " -> ".join(self._entries[uid].title for uid in path)
                    reasons.append(f"graph path {titles} (+{graph_score:.2f})")
                else:
                    reasons.append(f"linked from other seeds (+{graph_score:.2f})")
            if entry.is_constant:
                reasons.append("constant entry")
            if not reasons:
                reasons.append(f"priority order {entry.order}")

            candidates.append(_Candidate(
                entry=entry,
                score=score,
                seed=seed,
                graph_score=graph_score,
                hop=hop,
                path=path,
                reasons=reasons,
            ))

        candidates.sort(key=_Candidate.sort_key)
        return candidates

    # -------------------------------------------------------------------
    # Phase 4-5: Budgeted selection with tier upgrades
    # -------------------------------------------------------------------

    def _select_entries(
        self, candidates: list[_Candidate], max_entries: int, budget: int
    ) -> tuple[list[SelectedEntry], BudgetTrace]:
        limited = candidates[:max_entries]
        trace = BudgetTrace(
            budgeted=budget,
            candidates=len(candidates),
            dropped_by_limit_uids=[c.entry.uid for c in candidates[max_entries:]],
        )

        items = [
            SelectedEntry(
                entry=cand.entry,
                score=round(cand.score, 4),
                seed_score=cand.seed.score if cand.seed else 0.0,
                graph_score=round(cand.graph_score, 4),
                matched_keywords=list(cand.seed.matched_keywords) if cand.seed else [],
                reasons=cand.reasons,
                path_uids=list(cand.path),
                hop_distance=cand.hop,
                content_tier=ContentTier.SHORT,
                rendered_content=tier_content(cand.entry.content, ContentTier.SHORT),
            )
            for cand in limited
        ]
        selected, used, dropped = _pack_greedy(items, budget)
        used = _upgrade_tiers(selected, used, budget, lambda item: item.entry.content)

        trace.used = used
        trace.selected = len(selected)
        trace.dropped_by_budget_uids = [item.entry.uid for item in dropped]
        _fill_counts(trace, selected)
        return selected, trace

    # -------------------------------------------------------------------
    # Phase 6: RAG gating + document selection
    # -------------------------------------------------------------------

    def _gate_rag(
        self,
        policy: RagFallbackPolicy,
        limits: _Limits,
        has_world_info: bool,
        seeds: list[SeedMatch],
    ) -> RagTrace:
        """Decide whether RAG documents join the context.

        ``off`` and ``always`` ignore seed confidence entirely; ``auto`` uses
        RAG only as a fallback for missing or weak seeding.
        """
        confidence = seeds[0].score if seeds else 0.0
        threshold = limits.threshold

        if policy == RagFallbackPolicy.OFF:
            enabled, reason = False, "policy off"
        elif limits.rag_budget <= 0:
            enabled, reason = False, "no rag budget"
        elif policy == RagFallbackPolicy.ALWAYS:
            enabled, reason = True, "policy always"
        elif not has_world_info:
            enabled, reason = True, "no world_info entries selected"
        elif confidence < threshold:
            enabled = True
            reason = f"top seed score {confidence:.1f} below threshold {threshold:.1f}"
        else:
            enabled = False
            reason = f"seed confidence {confidence:.1f} meets threshold {threshold:.1f}"

        return RagTrace(
            policy=policy,
            enabled=enabled,
            seed_confidence=confidence,
            threshold=threshold,
            reason=reason,
        )

    def _score_documents(
        self,
        query_text: str,
        query_tokens: list[str],
        boosts: dict[int, float] | None,
    ) -> list[SelectedDocument]:
        boosts = boosts or {}
        scored: list[SelectedDocument] = []

        for document in self.pack.documents:
            match = score_document(document, query_text, query_tokens)
            boost = max(0.0, _finite_or(boosts.get(document.uid), 0.0))
            score = match.score + boost
            if score <= 0:
                continue
            reasons = list(match.reasons)
            if boost > 0:
                reasons.append(f"semantic +{boost:.2f}")
            scored.append(SelectedDocument(
                document=document,
                score=round(score, 4),
                lexical_score=match.score,
                semantic_boost=round(boost, 4),
                matched_terms=match.matched_terms,
                reasons=reasons,
                content_tier=ContentTier.SHORT,
                rendered_content=tier_content(document.content, ContentTier.SHORT),
            ))

        scored.sort(key=_document_sort_key)
        return scored

    def _select_documents(
        self, scored: list[SelectedDocument], max_documents: int, budget: int
    ) -> tuple[list[SelectedDocument], BudgetTrace]:
        trace = BudgetTrace(
            budgeted=budget,
            candidates=len(scored),
            dropped_by_limit_uids=[doc.document.uid for doc in scored[max_documents:]],
        )
        selected, used, dropped = _pack_greedy(scored[:max_documents], budget)
        used = _upgrade_tiers(selected, used, budget, lambda item: item.document.content)

        trace.used = used
        trace.selected = len(selected)
        trace.dropped_by_budget_uids = [doc.document.uid for doc in dropped]
        _fill_counts(trace, selected)
        return selected, trace


# ---------------------------------------------------------------------------
# Shared packing helpers
# ---------------------------------------------------------------------------

def _document_sort_key(doc: SelectedDocument) -> tuple:
    return (-doc.score, doc.document.path, doc.document.title, doc.document.uid)


def _pack_greedy(items: Sequence[_Item], budget: int) -> tuple[list[_Item], int, list[_Item]]:
    """Admit items in rank order while their rendered sections fit.

    An item that would overflow is skipped; later, smaller items are still
    tried.
    """
    selected: list[_Item] = []
    dropped: list[_Item] = []
    used = 0
    for item in items:
        cost = estimate_tokens(item.render())
        if used + cost > budget:
            dropped.append(item)
            continue
        item.token_estimate = cost
        selected.append(item)
        used += cost
    return selected, used, dropped


def _upgrade_tiers(
    items: list[_Item], used: int, budget: int, content_of: Callable[[_Item], str]
) -> int:
    """Raise items one tier per pass, in rank order, while the delta fits."""
    for current, target in _UPGRADES:
        for item in items:
            if item.content_tier != current:
                continue
            content = tier_content(content_of(item), target)
            upgraded = item.model_copy(update={"content_tier": target, "rendered_content": content})
            cost = estimate_tokens(upgraded.render())
            delta = cost - item.token_estimate
            if used + delta > budget:
                continue
            item.content_tier = target
            item.rendered_content = content
            item.token_estimate = cost
            used += delta
    return used


def _fill_counts(trace: BudgetTrace, selected: Sequence[SelectedEntry | SelectedDocument]) -> None:
    trace.dropped_by_budget = len(trace.dropped_by_budget_uids)
    trace.dropped_by_limit = len(trace.dropped_by_limit_uids)
    tiers: dict[str, int] = {}
    for item in selected:
        tiers[item.content_tier.value] = tiers.get(item.content_tier.value, 0) + 1
    trace.tiers = tiers


def assemble_context(
    pack: ScopeContextPack, options: QueryOptions | None = None, **overrides
) -> AssembledContext:
    """Assemble context for one query.

    Options may be passed as a QueryOptions instance, as keyword arguments,
    or both (keywords override).
    """
    if options is None:
        options = QueryOptions(**overrides)
    elif overrides:
        options = options.model_copy(update=overrides)
    return ContextAssembler(pack).assemble(options)
