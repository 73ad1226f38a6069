"""Rich-powered console output for ContextOS."""

from __future__ import annotations

from rich.console import Console as RichConsole
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from contextos import __version__
from contextos.context.models import BuiltContext, IndexResult
from contextos.embedding.models import SimilarityResult


class Console:
    """Terminal output for ContextOS using Rich."""

    def __init__(self) -> None:
        self.console = RichConsole()

    def banner(self) -> None:
        self.console.print(
            Panel(
                f"[bold cyan]ContextOS[/bold cyan] [dim]v{__version__}[/dim]\n"
                "[dim]Ranked, token-budgeted context for your codebase[/dim]",
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

    def indexing_progress(self) -> Progress:
        """Create a progress bar for indexing."""
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            console=self.console,
        )

    def show_index_result(self, result: IndexResult) -> None:
        table = Table(title="Indexing Summary", border_style="cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Count", justify="right", style="cyan")
        table.add_row("Files indexed", str(result.files_indexed))
        table.add_row("Chunks created", str(result.chunks_created))
        table.add_row("Files removed", str(result.files_removed))
        if result.files_failed:
            table.add_row("Files failed", f"[red]{result.files_failed}[/red]")
        table.add_row("Time", f"{result.time_ms / 1000:.1f}s")
        self.console.print(table)

    def show_stats(self, stats: dict) -> None:
        """Display graph and store statistics."""
        graph = stats.get("graph", {})
        store = stats.get("store", {})

        table = Table(title="ContextOS Index", border_style="cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right", style="cyan")

        table.add_row("Files in graph", str(graph.get("node_count", 0)))
        table.add_row("Import edges", str(graph.get("edge_count", 0)))
        table.add_row("Avg imports/file", str(graph.get("avg_imports", 0)))
        table.add_section()
        table.add_row("Chunks", str(store.get("chunk_count", 0)))
        table.add_row("Files with chunks", str(store.get("file_count", 0)))
        table.add_row("Embedded chunks", str(store.get("embedded_count", 0)))
        table.add_row("Embedder", store.get("embedder") or "[yellow]none (lexical)[/yellow]")
        table.add_section()
        table.add_row("Target model", str(stats.get("model", "")))
        table.add_row("Token budget", str(stats.get("max_tokens", "")))
        table.add_row("Last updated", str(graph.get("last_updated", "")))

        self.console.print(table)

    def show_search_results(self, results: list[SimilarityResult]) -> None:
        for r in results:
            start, end = r.lines
            self.console.print(
                f"  [cyan]{r.file_path}:{start}-{end}[/cyan] [dim](score {r.score:.3f})[/dim]"
            )
            first_line = r.content.strip().split("\n", 1)[0]
            self.console.print(f"    [dim]{first_line[:120]}[/dim]")

    def show_build_summary(self, built: BuiltContext) -> None:
        table = Table(title=f"Context for: {built.goal}", border_style="green")
        table.add_column("File", style="cyan")
        table.add_column("Score", justify="right")
        table.add_column("Reason", style="dim")
        for f in built.files:
            table.add_row(f.path, f"{f.score.final:.2f}", f.reason)
        self.console.print(table)

        savings = built.savings
        self.console.print(
            f"[bold]{built.token_count:,}[/bold] tokens "
            f"([green]{savings.percentage}% saved[/green] of {savings.original:,}) | "
            f"{built.meta.files_included} entries | {built.meta.build_time_ms:.0f}ms"
        )
