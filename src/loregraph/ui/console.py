"""Rich-powered console output for LoreGraph."""

from __future__ import annotations

from rich.console import Console as RichConsole
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from loregraph import __version__
from loregraph.context.models import AssembledContext
from loregraph.corpus.models import Entry
from loregraph.graph.ranker import RankingReport


class Console:
    """Terminal output for LoreGraph using Rich."""

    def __init__(self, console: RichConsole | None = None) -> None:
        self.console = console or RichConsole()

    def banner(self) -> None:
        """Show the LoreGraph banner."""
        self.console.print(
            Panel(
                f"[bold cyan]LoreGraph[/bold cyan] [dim]v{__version__}[/dim]\n"
                "[dim]Graph-ranked, budgeted context from linked notes[/dim]",
                border_style="cyan",
                padding=(1, 2),
            )
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {message}")

    def info(self, message: str) -> None:
        self.console.print(f"[blue]i[/blue] {message}")

    def show_stats(self, stats: dict) -> None:
        """Display link graph statistics in a table."""
        table = Table(title="Link Graph Statistics", border_style="cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Count", justify="right", style="cyan")

        table.add_row("Entries", str(stats.get("total_nodes", 0)))
        table.add_row("Links", str(stats.get("total_edges", 0)))
        table.add_row("Isolated Entries", str(stats.get("isolated_nodes", 0)))
        table.add_row("Unresolved Links", str(stats.get("unresolved_links", 0)))
        if "documents" in stats:
            table.add_section()
            table.add_row("Documents", str(stats["documents"]))

        self.console.print(table)

    def show_ranking(
        self, report: RankingReport, entries: dict[int, Entry], limit: int | None = None
    ) -> None:
        """Display entries from most to least important."""
        root = report.root_uid
        if root is not None:
            how = "inferred" if report.root_inferred else "explicit"
            title = entries[root].title if root in entries else str(root)
            self.info(f"Root: {title} [{root}] ({how})")

        table = Table(title="Importance Ranking", border_style="cyan")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Order", justify="right", style="bold cyan")
        table.add_column("Entry")
        table.add_column("UID", justify="right", style="dim")
        table.add_column("Top factors", style="dim")

        ranked = report.ranked_uids()
        if limit is not None:
            ranked = ranked[:limit]
        for position, uid in enumerate(ranked, 1):
            factors = report.factors[uid].normalized
            top = sorted(
                ((name, value) for name, value in factors.items() if value > 0),
                key=lambda item: -item[1],
            )[:3]
            top_str = ", ".join(f"{name} {value:.2f}" for name, value in top) or "-"
            entry = entries.get(uid)
            table.add_row(
                str(position),
                str(report.orders[uid]),
                entry.title if entry else "?",
                str(uid),
                top_str,
            )

        self.console.print(table)

    def show_context(self, context: AssembledContext, explain: bool = False) -> None:
        """Display an assembled context, optionally with its selection trace."""
        wi = context.explainability.world_info_budget
        rag = context.explainability.rag

        self.console.print()
        self.console.print("[bold]LoreGraph Context[/bold]")
        self.console.print(f"  Scope: {context.scope_label}")
        self.console.print(
            f"  Tokens: {context.used_tokens:,} / {context.token_budget:,} "
            f"(world_info {wi.used}/{wi.budgeted}, rag {rag.budget.used}/{rag.budget.budgeted})"
        )
        self.console.print(
            f"  Entries: {len(context.world_info)} (from {wi.candidates} candidates)"
        )
        rag_state = "[green]on[/green]" if rag.enabled else "[dim]off[/dim]"
        self.console.print(f"  RAG: {rag_state} [dim]({rag.reason})[/dim]")
        self.console.print(f"  Time: {context.assembly_time_ms:.1f}ms")
        self.console.print()

        if explain:
            self.show_explain(context)
            self.console.print()

        # Plain print keeps the markdown copy-pasteable
        self.console.print(context.markdown or context.render(), markup=False, highlight=False)

    def show_explain(self, context: AssembledContext) -> None:
        """Tree of seeds and graph paths behind each selected entry."""
        tree = Tree("[bold cyan]Selection[/bold cyan]")

        seeds = tree.add("[bold]Seeds[/bold]")
        if not context.explainability.seeds:
            seeds.add("[dim](none)[/dim]")
        for seed in context.explainability.seeds:
            node = seeds.add(f"{seed.title} [dim][{seed.uid}][/dim] score={seed.score:.1f}")
            for reason in seed.reasons:
                node.add(f"[dim]{reason}[/dim]")

        entries = tree.add("[bold]world_info[/bold]")
        for item in context.world_info:
            hop = "-" if item.hop_distance is None else str(item.hop_distance)
            node = entries.add(
                f"{item.entry.title} [dim][{item.entry.uid}][/dim] "
                f"score={item.score:.2f} hop={hop} tier={item.content_tier.value} "
                f"~{item.token_estimate}tok"
            )
            for reason in item.reasons:
                node.add(f"[dim]{reason}[/dim]")

        wi = context.explainability.world_info_budget
        if wi.dropped_by_budget_uids:
            entries.add(f"[yellow]dropped by budget:[/yellow] {wi.dropped_by_budget_uids}")
        if wi.dropped_by_limit_uids:
            entries.add(f"[yellow]dropped by limit:[/yellow] {wi.dropped_by_limit_uids}")

        rag = context.explainability.rag
        docs = tree.add(
            f"[bold]rag[/bold] policy={rag.policy.value} "
            f"confidence={rag.seed_confidence:.1f} threshold={rag.threshold:.1f}"
        )
        for doc in context.rag:
            node = docs.add(
                f"{doc.document.title} [dim]{doc.document.path}[/dim] "
                f"score={doc.score:.2f} tier={doc.content_tier.value}"
            )
            for reason in doc.reasons:
                node.add(f"[dim]{reason}[/dim]")

        for note in context.explainability.notes:
            tree.add(f"[dim]note: {note}[/dim]")

        self.console.print(tree)
