"""
CLI commands for ShellSense.

Main entry point:

    shellsense complete "git ch"          # ranked completions for a line
    shellsense history search docker      # recent matching commands
    shellsense history add "make test"    # record a command
"""

import json
import sys
from typing import Optional

import click
from dotenv import load_dotenv

from shellsense import __version__
from shellsense.cli import ui
from shellsense.completion.manager import CompletionManager
from shellsense.config import Config
from shellsense.history.manager import HistoryManager
from shellsense.history.providers.owned import EXPORT_FORMATS
from shellsense.utils.logger import logger


def _config(ctx: click.Context) -> Config:
    return ctx.obj["config"]


@click.group()
@click.option("--shell", default=None, help="Shell to complete for (default: $SHELL)")
@click.option("--history-mode", default=None, help="History mode: solo, shell-only or unified")
@click.option("--debug", is_flag=True, help="Write debug logs")
@click.option("--log-dir", default=None, help="Log directory (default: logs/YYYY-MM-DD)")
@click.pass_context
def main(ctx, shell: Optional[str], history_mode: Optional[str], debug: bool, log_dir: Optional[str]):
    """
    ShellSense - completion and history ranking for interactive shells

    Settings come from SHELLSENSE_* environment variables (a .env file in
    the current directory is loaded first); options override them.
    """
    load_dotenv()

    config = Config.from_env()
    if shell:
        config.shell = shell
    if history_mode:
        config.history_mode = history_mode
    if debug:
        config.debug = True

    if config.debug:
        logger.configure(level="DEBUG", log_dir=log_dir)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# ====================
# Completion
# ====================

@main.command()
@click.argument("line")
@click.option("--cursor", type=int, default=None, help="Cursor offset (default: end of line)")
@click.option("--cwd", type=click.Path(exists=True, file_okay=False), default=None,
              help="Working directory for path completion")
@click.option("--json", "as_json", is_flag=True, help="Print candidates as JSON")
@click.pass_context
def complete(ctx, line: str, cursor: Optional[int], cwd: Optional[str], as_json: bool):
    """Rank completions for the word under the cursor of LINE."""
    manager = CompletionManager(_config(ctx))
    candidates = manager.complete(line, cursor=cursor, cwd=cwd)

    if as_json:
        click.echo(json.dumps([c.to_dict() for c in candidates], indent=2))
    else:
        ui.show_candidates(candidates, title=f"Completions for {line!r}")


# ====================
# History
# ====================

@main.group()
def history():
    """Search, inspect and record command history."""


@history.command()
@click.argument("query", required=False, default="")
@click.option("--limit", "-n", type=int, default=20, help="Maximum results")
@click.option("--json", "as_json", is_flag=True, help="Print entries as JSON records")
@click.pass_context
def search(ctx, query: str, limit: int, as_json: bool):
    """Most recent commands containing QUERY."""
    entries = HistoryManager(_config(ctx)).search(query, limit=limit)

    if as_json:
        records = [dict(entry.to_record(), source=entry.source) for entry in entries]
        click.echo(json.dumps(records, indent=2))
    else:
        ui.show_history(entries)


@history.command()
@click.option("--json", "as_json", is_flag=True, help="Print stats as JSON")
@click.pass_context
def stats(ctx, as_json: bool):
    """Per-provider history statistics."""
    result = HistoryManager(_config(ctx)).get_stats()

    if as_json:
        click.echo(json.dumps(result, indent=2))
    else:
        ui.show_stats(result)


@history.command()
@click.option("--format", "fmt", type=click.Choice(EXPORT_FORMATS), default="json",
              help="Output format")
@click.pass_context
def export(ctx, fmt: str):
    """Export the active provider's history to stdout."""
    try:
        click.echo(HistoryManager(_config(ctx)).export(fmt))
    except ValueError as e:
        ui.print_error(str(e))
        sys.exit(1)


@history.command()
@click.argument("command")
@click.option("--exit-code", type=int, default=None, help="Exit status of the command")
@click.option("--cwd", default=None, help="Directory the command ran in")
@click.option("--duration", type=int, default=None, help="Run time in milliseconds")
@click.pass_context
def add(ctx, command: str, exit_code: Optional[int], cwd: Optional[str], duration: Optional[int]):
    """Record COMMAND in the ShellSense history file."""
    manager = HistoryManager(_config(ctx))
    stored = manager.add(command, exit_code=exit_code, cwd=cwd, duration=duration)
    manager.flush()

    if not stored:
        ui.print_warning("Not recorded (empty or repeated command)")


@main.command()
def version():
    """Show version information."""
    ui.console.print(f"[bold]ShellSense[/bold] v{__version__}")


if __name__ == "__main__":
    main()
