"""
CLI module for ShellSense - command-line interface and prompt_toolkit adapter.
"""

from shellsense.cli import ui
from shellsense.cli.commands import main
from shellsense.cli.completer import ShellCompleter

__all__ = ["ShellCompleter", "main", "ui"]
