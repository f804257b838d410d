"""
Tests for configuration, the click CLI and the prompt_toolkit completer.
"""

import io
import json
import os
import sys
from unittest.mock import MagicMock, patch

from click.testing import CliRunner
from prompt_toolkit.completion import CompleteEvent
from prompt_toolkit.document import Document
from rich.console import Console

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from shellsense.cli import ui
from shellsense.cli.commands import main
from shellsense.cli.completer import ShellCompleter
from shellsense.completion.models import CompletionCandidate
from shellsense.config import Config
from shellsense.history.models import HistoryEntry
from shellsense.utils.logger import ShellSenseLogger, logger
from shellsense.utils.timefmt import format_relative


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def cli_env(tmp_path, **extra):
    """Environment for an isolated CLI run."""
    env = {
        "HOME": str(tmp_path),
        "PATH": str(tmp_path / "bin"),
        "SHELL": "/bin/sh",
        "SHELLSENSE_HISTORY_FILE": str(tmp_path / "history"),
        "SHELLSENSE_BACKEND": "generic",
        "SHELLSENSE_SAVE_DEBOUNCE": "0",
    }
    env.update(extra)
    return env


# ===========================================================================
# Config tests
# ===========================================================================

class TestConfig:
    def test_defaults(self):
        config = Config()
        assert config.history_mode == "unified"
        assert config.max_suggestions == 10
        assert config.cache_ttl == 300.0
        assert all(config.providers.values())

    def test_from_env(self):
        config = Config.from_env({
            "SHELLSENSE_SHELL": "/bin/zsh",
            "SHELLSENSE_DEBUG": "yes",
            "SHELLSENSE_FUZZY": "0",
            "SHELLSENSE_MAX_SUGGESTIONS": "25",
            "SHELLSENSE_CACHE_TTL": "2.5",
            "SHELLSENSE_HISTORY_MODE": "solo",
            "SHELLSENSE_SAVE_DEBOUNCE": "0.2",
            "SHELLSENSE_PROVIDERS": "owned, zsh",
        })
        assert config.shell == "/bin/zsh"
        assert config.debug is True
        assert config.fuzzy_search is False
        assert config.max_suggestions == 25
        assert config.cache_ttl == 2.5
        assert config.history_mode == "solo"
        assert config.save_debounce == 0.2
        assert config.providers == {"owned": True, "bash": False, "zsh": True, "fish": False}

    def test_from_empty_env_matches_defaults(self):
        assert Config.from_env({}) == Config()

    def test_resolve_shell(self):
        assert Config(shell="fish").resolve_shell({"SHELL": "/bin/zsh"}) == "fish"
        assert Config().resolve_shell({"SHELL": "/bin/zsh"}) == "/bin/zsh"
        assert Config().resolve_shell({}) == "/bin/sh"

    def test_history_path_expands_home(self):
        path = Config(history_file="~/.hist").history_path
        assert not str(path).startswith("~")
        assert str(path).endswith(".hist")


class TestFormatRelative:
    def test_ranges(self):
        now = 10 * 86_400_000
        assert format_relative(now - 5 * 60_000, now) == "5m ago"
        assert format_relative(now - 3 * 3_600_000, now) == "3h ago"
        assert format_relative(now - 2 * 86_400_000, now) == "2d ago"
        assert format_relative(now, now) == "0m ago"

    def test_old_entries_show_date(self):
        now = 100 * 86_400_000
        formatted = format_relative(0, now)
        assert len(formatted) == 10 and formatted.count("-") == 2


class TestLogger:
    def teardown_method(self):
        for handler in list(logger.logger.handlers):
            logger.logger.removeHandler(handler)
            handler.close()

    def test_singleton(self):
        assert ShellSenseLogger() is logger

    def test_one_file_per_level(self, tmp_path):
        logger.configure(level="DEBUG", log_dir=str(tmp_path))
        logger.completion_request("gi", "command", None)
        logger.config_mismatch("history mode", "bogus", "solo")

        debug_log = (tmp_path / "debug.log").read_text()
        warning_log = (tmp_path / "warning.log").read_text()
        assert "Request: word='gi'" in debug_log
        assert "bogus" not in debug_log
        assert "[CONFIG" in warning_log
        assert "falling back to solo" in warning_log

    def test_level_threshold(self, tmp_path):
        logger.configure(level="WARNING", log_dir=str(tmp_path))
        assert not (tmp_path / "debug.log").exists()
        assert (tmp_path / "error.log").exists()

    def test_json_mode(self, tmp_path):
        logger.configure(level="DEBUG", log_dir=str(tmp_path), json_mode=True)
        logger.source_failed("backend", "compgen", "timeout")
        record = json.loads((tmp_path / "debug.log").read_text().splitlines()[0])
        assert record["component"] == "BACKEND"
        assert record["source"] == "compgen"
        assert record["reason"] == "timeout"


# ===========================================================================
# CLI tests
# ===========================================================================

class TestCli:
    def setup_method(self):
        self.runner = CliRunner()

    def test_complete_json(self, tmp_path):
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()
        for name in ("foo", "foobar"):
            (bin_dir / name).write_text("#!/bin/sh\n")
            (bin_dir / name).chmod(0o755)

        env = cli_env(tmp_path, SHELLSENSE_FUZZY="0", SHELLSENSE_HISTORY_SUGGESTIONS="0")
        result = self.runner.invoke(main, ["complete", "fo", "--cwd", str(tmp_path), "--json"], env=env)

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [item["text"] for item in data] == ["foo", "foobar"]
        assert data[0]["category"] == "command"

    def test_complete_table(self, tmp_path):
        (tmp_path / "bin").mkdir()
        (tmp_path / "notes.txt").write_text("")
        result = self.runner.invoke(main, ["complete", "cat no", "--cwd", str(tmp_path)], env=cli_env(tmp_path))
        assert result.exit_code == 0, result.output
        assert "notes.txt" in result.output

    def test_history_add_and_search(self, tmp_path):
        env = cli_env(tmp_path, SHELLSENSE_HISTORY_MODE="solo")

        result = self.runner.invoke(main, ["history", "add", "make test", "--exit-code", "2"], env=env)
        assert result.exit_code == 0, result.output
        record = json.loads((tmp_path / "history").read_text().splitlines()[0])
        assert record["command"] == "make test"
        assert record["exit_code"] == 2

        result = self.runner.invoke(main, ["history", "search", "make", "--json"], env=env)
        assert result.exit_code == 0, result.output
        entries = json.loads(result.output)
        assert entries[0]["command"] == "make test"
        assert entries[0]["source"] == "owned"

    def test_history_add_repeat_warns(self, tmp_path):
        env = cli_env(tmp_path, SHELLSENSE_HISTORY_MODE="solo")
        self.runner.invoke(main, ["history", "add", "ls"], env=env)
        result = self.runner.invoke(main, ["history", "add", "ls"], env=env)
        assert result.exit_code == 0
        assert len((tmp_path / "history").read_text().splitlines()) == 1

    def test_history_stats_json(self, tmp_path):
        (tmp_path / "history").write_text('{"command": "git status"}\n{"command": "git push"}\n')
        env = cli_env(tmp_path, SHELLSENSE_HISTORY_MODE="solo")
        result = self.runner.invoke(main, ["history", "stats", "--json"], env=env)
        assert result.exit_code == 0, result.output
        stats = json.loads(result.output)
        assert stats["owned"]["total"] == 2

    def test_history_export(self, tmp_path):
        (tmp_path / "history").write_text('{"command": "ls", "timestamp": 1700000000000}\n')
        env = cli_env(tmp_path, SHELLSENSE_HISTORY_MODE="solo")
        result = self.runner.invoke(main, ["history", "export", "--format", "zsh"], env=env)
        assert result.exit_code == 0, result.output
        assert result.output.strip() == ": 1700000000:0;ls"

    def test_history_export_unsupported_for_shell_log(self, tmp_path):
        (tmp_path / ".bash_history").write_text("ls\n")
        env = cli_env(tmp_path, SHELLSENSE_HISTORY_MODE="shell-only", SHELL="/bin/bash",
                      HISTFILE=str(tmp_path / ".bash_history"))
        result = self.runner.invoke(main, ["history", "export", "--format", "zsh"], env=env)
        assert result.exit_code == 1

    def test_version(self):
        result = self.runner.invoke(main, ["version"])
        assert result.exit_code == 0
        assert "ShellSense" in result.output


class TestUiRendering:
    def setup_method(self):
        self.output = io.StringIO()
        self.patcher = patch.object(ui, "console", Console(file=self.output, width=200))
        self.patcher.start()

    def teardown_method(self):
        self.patcher.stop()

    def test_history_with_closing_tag(self):
        ui.show_history([HistoryEntry(command="grep -E '[/]' notes.txt", source="owned")])
        assert "grep -E '[/]' notes.txt" in self.output.getvalue()

    def test_history_keeps_bracketed_words(self):
        ui.show_history([HistoryEntry(command="echo [bold]hi", source="[zsh]")])
        text = self.output.getvalue()
        assert "echo [bold]hi" in text
        assert "[zsh]" in text

    def test_candidates_keep_brackets(self):
        ui.show_candidates(
            [CompletionCandidate(text="[abc]", description="glob [/] class")],
            title="Completions for 'ls ['",
        )
        text = self.output.getvalue()
        assert "[abc]" in text
        assert "glob [/] class" in text
        assert "'ls ['" in text

    def test_stats_keep_brackets(self):
        ui.show_stats({"owned": {"total": 1, "unique": 1,
                                 "top_commands": [{"command": "[[", "count": 1}]}})
        assert "[[ (1)" in self.output.getvalue()


# ===========================================================================
# prompt_toolkit completer tests
# ===========================================================================

class TestShellCompleter:
    def make_completer(self, candidates):
        manager = MagicMock()
        manager.env = {}
        manager.get_completions.return_value = candidates
        return ShellCompleter(manager, cwd="/repo"), manager

    def test_yields_ranked_completions(self):
        completer, manager = self.make_completer([
            CompletionCandidate(text="checkout", description="git subcommand", category="argument"),
            CompletionCandidate(text="cherry-pick", description="git subcommand", category="argument"),
        ])
        document = Document("git ch", cursor_position=6)
        completions = list(completer.get_completions(document, CompleteEvent()))

        assert [c.text for c in completions] == ["checkout", "cherry-pick"]
        assert all(c.start_position == -2 for c in completions)
        assert completions[0].display_meta_text == "git subcommand"

        word, context = manager.get_completions.call_args.args
        assert word == "ch"
        assert context.command_name == "git"
        assert context.cwd == "/repo"

    def test_only_text_before_cursor(self):
        completer, manager = self.make_completer([])
        document = Document("git ch main", cursor_position=6)
        list(completer.get_completions(document, CompleteEvent()))
        word, context = manager.get_completions.call_args.args
        assert word == "ch"

    def test_replaces_quoted_word(self):
        completer, manager = self.make_completer([CompletionCandidate(text='"my file.txt')])
        document = Document('cat "my f')
        completions = list(completer.get_completions(document, CompleteEvent()))
        assert completions[0].start_position == -len('"my f')

    def test_new_word(self):
        completer, manager = self.make_completer([CompletionCandidate(text="src/")])
        completions = list(completer.get_completions(Document("ls "), CompleteEvent()))
        assert completions[0].start_position == 0
