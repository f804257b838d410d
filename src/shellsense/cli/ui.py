"""
Terminal output for the shellsense CLI, using Rich.
"""

from typing import Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shellsense.completion.models import CompletionCandidate
from shellsense.history.models import HistoryEntry
from shellsense.utils.timefmt import format_relative

# Global console instance
console = Console()
err_console = Console(stderr=True)


def print_warning(message: str) -> None:
    """Print warning message"""
    err_console.print(f"[bold yellow]{message}[/bold yellow]")


def print_error(message: str) -> None:
    """Print error message"""
    err_console.print(f"[bold red]Error:[/bold red] {message}")


def show_candidates(candidates: List[CompletionCandidate], title: Optional[str] = None) -> None:
    """Display ranked completions as a table."""
    if not candidates:
        console.print("[dim]No completions[/dim]")
        return

    table = Table(title=escape(title) if title else None)
    table.add_column("#", style="dim")
    table.add_column("Completion", style="cyan", no_wrap=True)
    table.add_column("Category", style="yellow")
    table.add_column("Rank", justify="right")
    table.add_column("Description", style="dim")

    for i, candidate in enumerate(candidates, 1):
        if candidate.score is not None:
            rank = f"{candidate.score:.3f}"
        else:
            rank = str(candidate.priority)
        table.add_row(str(i), escape(candidate.display), candidate.category, rank, escape(candidate.description))

    console.print(table)


def show_history(entries: List[HistoryEntry], now: Optional[int] = None) -> None:
    """Display history entries, most recent first."""
    if not entries:
        console.print("[dim]No matching history[/dim]")
        return

    table = Table()
    table.add_column("When", style="dim", no_wrap=True)
    table.add_column("Command", style="cyan")
    table.add_column("Exit", justify="right")
    table.add_column("Source", style="yellow")

    for entry in entries:
        when = format_relative(entry.timestamp, now) if entry.timestamp is not None else ""
        exit_code = "" if entry.exit_code is None else str(entry.exit_code)
        if entry.exit_code:
            exit_code = f"[red]{exit_code}[/red]"
        table.add_row(when, escape(entry.command), exit_code, escape(entry.source))

    console.print(table)


def show_stats(stats: Dict[str, Dict]) -> None:
    """Display per-provider history statistics."""
    for name, data in stats.items():
        table = Table(title=f"History: {escape(name)}")
        table.add_column("Attribute", style="cyan", no_wrap=True)
        table.add_column("Value", style="white")

        table.add_row("Total", str(data.get("total", 0)))
        table.add_row("Unique", str(data.get("unique", 0)))
        if data.get("failed_commands") is not None:
            table.add_row("Failed", str(data["failed_commands"]))
        if data.get("average_duration") is not None:
            table.add_row("Avg duration", f"{data['average_duration']:.0f}ms")

        top = ", ".join(f"{escape(item['command'])} ({item['count']})" for item in data.get("top_commands", [])[:5])
        table.add_row("Top commands", top or "-")

        console.print(table)
