"""Building frozen scope context packs from ranked entries."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from loregraph.config import MembershipMode, RankingWeights
from loregraph.corpus.models import Document, Entry, ScopeContextPack, normalize_scope
from loregraph.graph.builder import LinkGraphInput
from loregraph.graph.ranker import rank

logger = logging.getLogger("loregraph.corpus")


def in_scope(
    document_scope: str,
    scope: str,
    membership: MembershipMode = MembershipMode.CASCADE,
    include_unscoped: bool = False,
) -> bool:
    """Whether a document's scope falls inside ``scope``.

    The empty scope contains everything. A document without a scope joins a
    named scope only with ``include_unscoped``. In cascade mode a scope also
    holds nested scopes (``lore`` contains ``lore/places``); exact mode
    requires the same scope.
    """
    target = normalize_scope(scope)
    if not target:
        return True
    own = normalize_scope(document_scope)
    if not own:
        return include_unscoped
    if membership == MembershipMode.EXACT:
        return own == target
    return own == target or own.startswith(target + "/")


def build_scope_pack(
    scope: str,
    entries: Iterable[Entry],
    documents: Iterable[Document] = (),
    weights: RankingWeights | None = None,
    root_id: int | None = None,
    link_graph: LinkGraphInput | None = None,
    membership: MembershipMode = MembershipMode.CASCADE,
    include_unscoped: bool = False,
) -> ScopeContextPack:
    """Rank a copy of ``entries`` and freeze it with the in-scope documents.

    The caller's entries are left untouched.
    """
    ranked = [entry.model_copy(deep=True) for entry in entries]
    rank(ranked, link_graph=link_graph, root_id=root_id, weights=weights)

    scoped_documents = [
        doc for doc in documents
        if in_scope(doc.scope, scope, membership, include_unscoped)
    ]
    pack = ScopeContextPack.from_items(scope, ranked, scoped_documents)
    logger.debug(
        "Built pack for scope %s (%s): %d entries, %d documents",
        pack.scope_label, MembershipMode(membership).value,
        len(pack.entries), len(pack.documents),
    )
    return pack
