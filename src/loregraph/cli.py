"""Command-line interface for LoreGraph."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from loregraph import __version__
from loregraph.config import (
    MembershipMode,
    ProjectConfig,
    RagFallbackPolicy,
    find_project_root,
    load_config,
    save_config,
    set_config_value,
)
from loregraph.exceptions import LoreGraphError
from loregraph.ui.console import Console

console = Console()


def _get_project_root(path: str | None = None) -> Path:
    """Find the project root or error."""
    if path:
        root = Path(path).resolve()
        if not root.exists():
            console.error(f"Path does not exist: {path}")
            sys.exit(1)
        return root

    root = find_project_root()
    if root is None:
        console.error(
            "No LoreGraph project found. Run 'loregraph init' first, "
            "or specify a path with --path."
        )
        sys.exit(1)
    return root


def _load_project_config(path: str | None) -> ProjectConfig:
    """Project config when one is available, defaults otherwise."""
    root = Path(path).resolve() if path else find_project_root()
    if root is None:
        return ProjectConfig()
    try:
        return load_config(root)
    except LoreGraphError as exc:
        console.error(str(exc))
        sys.exit(1)


def _load_corpus(corpus_path: str):
    from loregraph.corpus.loader import load_corpus

    try:
        return load_corpus(corpus_path)
    except LoreGraphError as exc:
        console.error(str(exc))
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="loregraph")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def main(verbose: bool):
    """LoreGraph - graph-ranked, budgeted context from linked notes."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
def init(path: str | None):
    """Initialize LoreGraph configuration for a notes project."""
    root = Path(path or ".").resolve()
    if not root.exists():
        console.error(f"Path does not exist: {root}")
        sys.exit(1)

    console.banner()
    console.info(f"Initializing LoreGraph for: {root}")

    try:
        config = load_config(root)
    except LoreGraphError as exc:
        console.error(str(exc))
        sys.exit(1)
    config.name = root.name
    config.root_path = str(root)

    save_config(root, config)
    console.success("Configuration saved to .loregraph/")


@main.command()
@click.argument("corpus_path", metavar="CORPUS", type=click.Path(dir_okay=False))
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--root", "root_uid", default=None, type=int, help="Explicit root entry uid.")
@click.option("--limit", "-n", default=20, type=int, help="Rows to show (default: 20).")
@click.option(
    "--output", "-o", default=None, type=click.Path(dir_okay=False),
    help="Write the corpus with computed orders to this file.",
)
def rank(
    corpus_path: str, path: str | None, root_uid: int | None, limit: int, output: str | None
):
    """Rank entries by link-graph importance.

    Examples:

        loregraph rank corpus.json

        loregraph rank corpus.json --root 1 --output ranked.json
    """
    from loregraph.corpus.loader import save_corpus
    from loregraph.graph.builder import LinkGraphBuilder
    from loregraph.graph.ranker import rank_with_report

    config = _load_project_config(path)
    corpus = _load_corpus(corpus_path)

    builder = LinkGraphBuilder()
    graph = builder.build(corpus.entries)
    stats = builder.get_stats()
    stats["documents"] = len(corpus.documents)

    root = root_uid if root_uid is not None else corpus.root_uid
    if root is None:
        root = config.root_uid
    report = rank_with_report(
        corpus.entries, link_graph=graph, root_id=root, weights=config.ranking
    )

    console.show_stats(stats)
    if not report.orders:
        console.warning("Corpus has no entries.")
        return
    console.show_ranking(report, {entry.uid: entry for entry in corpus.entries}, limit)

    if output:
        save_corpus(output, corpus)
        console.success(f"Ranked corpus written to {output}")


@main.command()
@click.argument("corpus_path", metavar="CORPUS", type=click.Path(dir_okay=False))
@click.argument("query_text")
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--budget", "-b", default=None, type=int, help="Token budget.")
@click.option("--ratio", default=None, type=float, help="Share of the budget for world_info.")
@click.option("--max-entries", default=None, type=int, help="Maximum world_info entries.")
@click.option("--max-documents", default=None, type=int, help="Maximum rag documents.")
@click.option("--hops", default=None, type=int, help="Maximum graph hops (0-3).")
@click.option("--decay", default=None, type=float, help="Per-hop score decay (0.2-0.9).")
@click.option(
    "--policy", default=None,
    type=click.Choice([p.value for p in RagFallbackPolicy]),
    help="RAG fallback policy.",
)
@click.option("--threshold", default=None, type=float, help="Seed confidence threshold for auto RAG.")
@click.option("--scope", "-s", default="", help="Only use documents in this scope.")
@click.option(
    "--membership", default=None,
    type=click.Choice([m.value for m in MembershipMode]),
    help="Scope membership: exact, or cascade into nested scopes.",
)
@click.option(
    "--include-unscoped/--exclude-unscoped", default=None,
    help="Whether documents without a scope join a named scope.",
)
@click.option("--root", "root_uid", default=None, type=int, help="Explicit root entry uid.")
@click.option(
    "--query-embedding", default=None, type=click.Path(exists=True, dir_okay=False),
    help="JSON file holding the precomputed query vector.",
)
@click.option("--explain", is_flag=True, help="Show why each item was selected.")
@click.option("--json", "as_json", is_flag=True, help="Print the assembled context as JSON.")
def query(
    corpus_path: str, query_text: str, path: str | None, budget: int | None,
    ratio: float | None, max_entries: int | None, max_documents: int | None,
    hops: int | None, decay: float | None, policy: str | None, threshold: float | None,
    scope: str, membership: str | None, include_unscoped: bool | None,
    root_uid: int | None, query_embedding: str | None, explain: bool, as_json: bool,
):
    """Assemble budgeted context for a query.

    Examples:

        loregraph query corpus.json "Tell me about Aurelia"

        loregraph query corpus.json "the old war" --budget 2048 --policy always --explain
    """
    from loregraph.context.engine import ContextAssembler
    from loregraph.context.models import QueryOptions
    from loregraph.corpus.pack import build_scope_pack
    from loregraph.search.semantic import semantic_boosts

    config = _load_project_config(path)
    corpus = _load_corpus(corpus_path)

    root = root_uid if root_uid is not None else corpus.root_uid
    if root is None:
        root = config.root_uid
    pack = build_scope_pack(
        scope, corpus.entries, corpus.documents, weights=config.ranking, root_id=root,
        membership=membership or config.scope.membership_mode,
        include_unscoped=(
            config.scope.include_unscoped if include_unscoped is None else include_unscoped
        ),
    )

    overrides = {
        "token_budget": budget,
        "budget_ratio": ratio,
        "max_entries": max_entries,
        "max_documents": max_documents,
        "max_graph_hops": hops,
        "graph_hop_decay": decay,
        "rag_fallback_policy": policy,
        "rag_fallback_threshold": threshold,
    }
    settings = config.retrieval.model_dump()
    settings.update({key: value for key, value in overrides.items() if value is not None})

    boosts = None
    if query_embedding:
        try:
            vector = json.loads(Path(query_embedding).read_text())
        except json.JSONDecodeError as exc:
            console.error(f"Invalid query embedding file: {exc}")
            sys.exit(1)
        boosts = semantic_boosts(
            vector, corpus.chunk_embeddings, scale=config.retrieval.semantic_boost_scale
        )

    options = QueryOptions(
        query_text=query_text, semantic_boost_by_document_id=boosts, **settings
    )
    context = ContextAssembler(pack).assemble(options)

    if as_json:
        click.echo(context.model_dump_json(indent=2))
        return

    console.show_context(context, explain=explain)
    if not context.world_info and not context.rag:
        console.warning(
            "Nothing matched. Entry keywords and titles must appear in the query text."
        )


@main.command("config")
@click.argument("action", type=click.Choice(["set", "get", "show"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def config_cmd(action: str, key: str | None, value: str | None, path: str | None):
    """Manage LoreGraph configuration."""
    root = _get_project_root(path)
    try:
        config = load_config(root)
    except LoreGraphError as exc:
        console.error(str(exc))
        sys.exit(1)

    if action == "show":
        console.console.print_json(json.dumps(config.model_dump(mode="json"), indent=2))
    elif action == "get":
        if not key:
            console.error("Usage: loregraph config get <key>")
            sys.exit(1)
        data = config.model_dump(mode="json")
        for part in key.split("."):
            if isinstance(data, dict) and part in data:
                data = data[part]
            else:
                console.error(f"Unknown key: {key}")
                sys.exit(1)
        console.console.print(f"{key} = {data}")
    elif action == "set":
        if not key or value is None:
            console.error("Usage: loregraph config set <key> <value>")
            sys.exit(1)
        try:
            # Try to parse as JSON for non-string values
            try:
                parsed_value = json.loads(value)
            except json.JSONDecodeError:
                parsed_value = value
            config = set_config_value(config, key, parsed_value)
            save_config(root, config)
            console.success(f"Set {key} = {parsed_value}")
        except KeyError:
            console.error(f"Unknown config key: {key}")
            sys.exit(1)
        except ValueError as exc:
            console.error(f"Invalid value for {key}: {exc}")
            sys.exit(1)


if __name__ == "__main__":
    main()
