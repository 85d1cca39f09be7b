"""Rich-powered console output for lixen."""

from __future__ import annotations

from rich.console import Console as RichConsole
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.tree import Tree

from lixen import __version__
from lixen.editor.commit import FileChange
from lixen.editor.session import Coverage, EditSession, NodeKind
from lixen.selection.algebra import SelectionState
from lixen.selection.output import SIZE_WARNING_THRESHOLD, OutputStats

_STATE_MARK = {
    SelectionState.NONE: "[dim][ ][/dim]",
    SelectionState.PARTIAL: "[yellow][~][/yellow]",
    SelectionState.FULL: "[green]\\[x][/green]",
}


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


class Console:
    """Terminal output for lixen using Rich."""

    def __init__(self) -> None:
        self.console = RichConsole()

    def banner(self) -> None:
        self.console.print(
            Panel(
                f"[bold cyan]lixen[/bold cyan] [dim]v{__version__}[/dim]\n"
                "[dim]tag-driven codebase context curation[/dim]",
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

    def show_stats(self, stats: dict) -> None:
        """Display index statistics in a table."""
        table = Table(title="Index Statistics", border_style="cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Count", justify="right", style="cyan")

        table.add_row("Files", str(stats.get("files", 0)))
        table.add_row("Packages", str(stats.get("packages", 0)))
        table.add_row("Tagged Files", str(stats.get("tagged_files", 0)))
        table.add_row("Always Included", str(stats.get("always_include", 0)))
        table.add_row("Categories", str(stats.get("categories", 0)))
        table.add_row("Import Edges", str(stats.get("import_edges", 0)))
        table.add_row("Total Size", format_size(stats.get("total_size", 0)))

        self.console.print(table)

    def show_output_stats(self, stats: OutputStats, selected: int) -> None:
        color = "red" if stats.is_large else "green"
        self.console.print(
            Panel(
                f"[bold]Selected:[/bold] {selected}\n"
                f"[bold]Output Files:[/bold] {stats.total_files} "
                f"([{color}]{format_size(stats.total_size)}[/{color}])\n"
                f"[bold]Dependencies:[/bold] {stats.dep_files} ({format_size(stats.dep_size)})",
                title="[bold]Output[/bold]",
                border_style=color,
            )
        )
        if stats.is_large:
            self.warning(f"Output exceeds {format_size(SIZE_WARNING_THRESHOLD)}")

    def show_taxonomy(self, rows: list[tuple[int, str, int, SelectionState]]) -> None:
        """Render (depth, name, file_count, state) rows as a tree."""
        tree = Tree("[bold cyan]tags[/bold cyan]")
        parents: dict[int, Tree] = {-1: tree}
        for depth, name, count, state in rows:
            parent = parents.get(depth - 1, tree)
            name = f"[bold]{escape(name)}[/bold]" if depth == 0 else escape(name)
            label = f"{_STATE_MARK[state]} {name} [dim]({count})[/dim]"
            parents[depth] = parent.add(label)
        self.console.print(tree)

    def show_paths(self, paths: list[str], title: str = "") -> None:
        if title:
            self.console.print(f"\n[bold]{title}[/bold]")
        for path in paths:
            self.console.print(f"  [cyan]{escape(path)}[/cyan]")

    def show_edit_tree(self, session: EditSession) -> None:
        """Display the aggregated tag tree of an edit session."""
        tree = Tree(f"[bold cyan]{len(session.files)} file(s)[/bold cyan]")
        parents: dict[int, Tree] = {}
        for node in session.visible_nodes():
            if node.deleted:
                mark, style = "[red]\\[x][/red]", "dim strike"
            elif node.implicit_delete:
                mark, style = "[yellow][~][/yellow]", "dim"
            else:
                mark, style = "[ ]", "bold" if node.kind != NodeKind.LABEL else ""

            suffix = ""
            if node.implicit_delete:
                suffix = " [dim](will be empty)[/dim]"
            elif node.coverage == Coverage.FULL:
                suffix = " [dim]\\[ALL][/dim]"
            elif node.coverage == Coverage.PARTIAL:
                suffix = f" [dim][{node.file_count}/{node.total}][/dim]"

            name = f"[{style}]{escape(node.name)}[/{style}]" if style else escape(node.name)
            parent = parents.get(node.depth - 1, tree)
            parents[node.depth] = parent.add(f"{mark} {name}{suffix}")
        self.console.print(tree)

        for ref in session.additions:
            self.console.print(f"  [green]+[/green] {escape(ref.path)}")

    def show_changes(self, changes: list[FileChange]) -> None:
        table = Table(title="Pending Changes", border_style="cyan")
        table.add_column("File", style="cyan")
        table.add_column("Before", style="red")
        table.add_column("After", style="green")
        for change in changes:
            table.add_row(escape(change.path), escape(change.before or "-"), escape(change.after or "-"))
        self.console.print(table)
