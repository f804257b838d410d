"""
Tests for the tokenizer, classifier, completion cache and CompletionManager.
"""

import os
import stat
import sys
from unittest.mock import MagicMock

import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from shellsense.completion.backends import GenericBackend
from shellsense.completion.cache import CompletionCache
from shellsense.completion.manager import CompletionManager
from shellsense.completion.models import (
    CompletionCandidate,
    SLOT_ARGUMENT,
    SLOT_COMMAND,
    SLOT_OPTION,
    SLOT_PATH,
    SLOT_VARIABLE,
    unique_by_text,
)
from shellsense.completion.tokenizer import classify, tokenize, unquote
from shellsense.config import Config
from shellsense.fuzzy.factory import FuzzyRanker
from shellsense.fuzzy.subsequence import SubsequenceScorer
from shellsense.history.models import HistoryEntry


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class FakeClock:
    """Manually advanced time source, in seconds."""

    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_backend(candidates_fn):
    backend = MagicMock()
    backend.initialized = True
    backend.resolve.side_effect = candidates_fn
    return backend


def make_history(entries=()):
    history = MagicMock()
    history.search.return_value = list(entries)
    return history


def make_manager(backend, history=None, clock=None, **config_overrides):
    config = Config(**config_overrides)
    return CompletionManager(
        config,
        backend=backend,
        history_manager=history or make_history(),
        ranker=FuzzyRanker(SubsequenceScorer()),
        env={},
        clock=clock or FakeClock(),
    )


def make_executable(path):
    path.write_text("#!/bin/sh\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


# ===========================================================================
# Tokenizer tests
# ===========================================================================

class TestTokenizer:
    def test_quoted_word_keeps_quotes(self):
        assert tokenize('a "b c" d') == ["a", '"b c"', "d"]

    def test_unterminated_quote(self):
        assert tokenize('a "b') == ["a", '"b']

    def test_trailing_space_yields_empty_word(self):
        assert tokenize("ls ") == ["ls", ""]

    def test_whitespace_runs_collapse(self):
        assert tokenize("  ls   -la  ") == ["ls", "-la", ""]

    def test_empty_line(self):
        assert tokenize("") == []

    def test_escaped_space_stays_in_word(self):
        assert tokenize(r"cat my\ file") == ["cat", r"my\ file"]

    def test_single_quotes_protect_double(self):
        assert tokenize("""echo 'say "hi"' x""") == ["echo", """'say "hi"'""", "x"]

    def test_unquote(self):
        assert unquote('"b c"') == "b c"
        assert unquote(r"my\ file") == "my file"
        assert unquote("'it'\\''s'") == "it's"

    def test_unquote_trailing_backslash(self):
        assert unquote("abc\\") == "abc\\"


# ===========================================================================
# Classifier tests
# ===========================================================================

class TestClassifier:
    def test_argument_slot(self):
        context = classify("git chec", cwd="/tmp")
        assert context.slot == SLOT_ARGUMENT
        assert context.command_name == "git"
        assert context.current_word == "chec"
        assert context.previous_words == ("git",)

    def test_variable_slot(self):
        assert classify("$HO", cwd="/tmp").slot == SLOT_VARIABLE

    def test_option_slot(self):
        assert classify("ls -l", cwd="/tmp").slot == SLOT_OPTION

    def test_path_slot(self):
        assert classify("cat src/ma", cwd="/tmp").slot == SLOT_PATH
        assert classify("cat ~", cwd="/tmp").slot == SLOT_PATH

    def test_command_slot(self):
        context = classify("gi", cwd="/tmp")
        assert context.slot == SLOT_COMMAND
        assert context.command_name is None
        assert context.position == 0

    def test_trailing_space_starts_argument(self):
        context = classify("ls ", cwd="/tmp")
        assert context.current_word == ""
        assert context.slot == SLOT_ARGUMENT
        assert context.position == 1

    def test_variable_rule_wins_over_path(self):
        assert classify("cat $HOME/x", cwd="/tmp").slot == SLOT_VARIABLE

    def test_cursor_in_middle(self):
        context = classify("git checkout main", cursor=6, cwd="/tmp")
        assert context.current_word == "ch"
        assert context.line == "git checkout main"

    def test_cursor_clamped(self):
        context = classify("ls", cursor=99, cwd="/tmp")
        assert context.cursor == 2

    def test_cache_key(self):
        context = classify("git chec", cwd="/repo")
        assert context.cache_key == ("chec", "git", 1, "/repo")


# ===========================================================================
# Candidate model tests
# ===========================================================================

class TestCandidate:
    def test_display_defaults_to_text(self):
        assert CompletionCandidate(text="ls").display == "ls"

    def test_empty_text_rejected(self):
        with pytest.raises(ValueError):
            CompletionCandidate(text="")

    def test_unknown_category_becomes_other(self):
        assert CompletionCandidate(text="x", category="weird").category == "other"

    def test_unique_by_text_keeps_first(self):
        first = CompletionCandidate(text="a", priority=10)
        result = unique_by_text([first, CompletionCandidate(text="b"), CompletionCandidate(text="a")])
        assert [c.text for c in result] == ["a", "b"]
        assert result[0] is first

    def test_to_dict_includes_score_only_when_ranked(self):
        candidate = CompletionCandidate(text="git", category="command", priority=5)
        assert "score" not in candidate.to_dict()
        candidate.score = 0.9
        candidate.matches = [(0, 2)]
        assert candidate.to_dict()["matches"] == [[0, 2]]


# ===========================================================================
# Cache tests
# ===========================================================================

class TestCompletionCache:
    def test_get_within_ttl(self):
        clock = FakeClock()
        cache = CompletionCache(ttl=10, clock=clock)
        value = ["a"]
        cache.put(("a", "", 0, "/"), value)
        clock.advance(9.9)
        assert cache.get(("a", "", 0, "/")) is value

    def test_expired_entry_is_dropped(self):
        clock = FakeClock()
        cache = CompletionCache(ttl=10, clock=clock)
        cache.put("k", ["a"])
        clock.advance(10)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_put_replaces(self):
        cache = CompletionCache(clock=FakeClock())
        cache.put("k", ["old"])
        cache.put("k", ["new"])
        assert cache.get("k") == ["new"]

    def test_evicts_oldest_when_full(self):
        clock = FakeClock()
        cache = CompletionCache(max_size=2, clock=clock)
        cache.put("a", [1])
        clock.advance(1)
        cache.put("b", [2])
        clock.advance(1)
        cache.put("c", [3])
        assert cache.get("a") is None
        assert cache.get("b") == [2]

    def test_stats(self):
        cache = CompletionCache(ttl=5, clock=FakeClock())
        cache.put("k", [])
        cache.get("k")
        cache.get("missing")
        stats = cache.get_stats()
        assert stats["size"] == 1
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["ttl"] == 5


# ===========================================================================
# CompletionManager tests
# ===========================================================================

class TestCompletionManager:
    def test_cached_within_ttl_then_recomputed(self):
        clock = FakeClock()
        backend = make_backend(lambda context: [CompletionCandidate(text="status", priority=8)])
        manager = make_manager(backend, clock=clock, cache_ttl=300)
        context = classify("git st", cwd="/repo")

        first = manager.get_completions("st", context)
        second = manager.get_completions("st", context)
        assert second is first
        assert backend.resolve.call_count == 1

        clock.advance(301)
        manager.get_completions("st", context)
        assert backend.resolve.call_count == 2

    def test_different_cwd_is_a_different_key(self):
        backend = make_backend(lambda context: [])
        manager = make_manager(backend)
        manager.get_completions("st", classify("git st", cwd="/a"))
        manager.get_completions("st", classify("git st", cwd="/b"))
        assert backend.resolve.call_count == 2

    def test_priority_order_without_fuzzy(self):
        backend = make_backend(lambda context: [
            CompletionCandidate(text="b", priority=5),
            CompletionCandidate(text="a", priority=5),
            CompletionCandidate(text="c", priority=9),
        ])
        manager = make_manager(backend, fuzzy_search=False)
        result = manager.get_completions("", classify("x ", cwd="/"))
        assert [c.text for c in result] == ["c", "a", "b"]

    def test_empty_query_skips_fuzzy(self):
        backend = make_backend(lambda context: [CompletionCandidate(text="zz", priority=1)])
        manager = make_manager(backend, fuzzy_search=True)
        result = manager.get_completions("", classify("x ", cwd="/"))
        assert [c.text for c in result] == ["zz"]
        assert result[0].score is None

    def test_fuzzy_drops_non_matches_and_orders_by_score(self):
        backend = make_backend(lambda context: [
            CompletionCandidate(text="zzzzzz", priority=50),
            CompletionCandidate(text="gitk", priority=5),
            CompletionCandidate(text="git", priority=1),
        ])
        manager = make_manager(backend, history_suggestions=False)
        result = manager.get_completions("git", classify("git", cwd="/"))
        assert [c.text for c in result] == ["git", "gitk"]
        assert result[0].score == 1.0
        assert result[1].score == pytest.approx(0.9)

    def test_history_only_for_command_slot(self):
        history = make_history([HistoryEntry(command="git status", timestamp=1)])
        backend = make_backend(lambda context: [])
        manager = make_manager(backend, history=history, fuzzy_search=False)

        manager.get_completions("st", classify("git st", cwd="/"))
        history.search.assert_not_called()

        manager.get_completions("gi", classify("gi", cwd="/"))
        history.search.assert_called_once()

    def test_history_candidates(self):
        clock = FakeClock(now=1_000_000.0)
        now_ms = 1_000_000_000
        history = make_history([
            HistoryEntry(command="git status", timestamp=now_ms - 5 * 60_000, exit_code=0, source="zsh"),
            HistoryEntry(command="git stash", source="owned"),
        ])
        backend = make_backend(lambda context: [CompletionCandidate(text="git", priority=5)])
        manager = make_manager(backend, history=history, clock=clock, fuzzy_search=False)

        result = manager.get_completions("git", classify("git", cwd="/"))
        assert [c.text for c in result] == ["git status", "git stash", "git"]

        status = result[0]
        assert status.category == "history"
        assert status.priority == 100
        assert status.description == "history - 5m ago"
        assert status.metadata == {"timestamp": now_ms - 5 * 60_000, "exit_code": 0, "source": "zsh"}
        assert result[1].priority == 99
        assert result[1].description == "history"

    def test_no_dedup_across_sources(self):
        history = make_history([HistoryEntry(command="ls", timestamp=1)])
        backend = make_backend(lambda context: [CompletionCandidate(text="ls", priority=5)])
        manager = make_manager(backend, history=history, fuzzy_search=False)
        result = manager.get_completions("l", classify("l", cwd="/"))
        assert [(c.text, c.category) for c in result] == [("ls", "history"), ("ls", "other")]

    def test_truncates_to_max_suggestions(self):
        backend = make_backend(lambda context: [
            CompletionCandidate(text=f"cmd{i}", priority=i) for i in range(20)
        ])
        manager = make_manager(backend, fuzzy_search=False, max_suggestions=3)
        result = manager.get_completions("", classify("x ", cwd="/"))
        assert [c.text for c in result] == ["cmd19", "cmd18", "cmd17"]

    def test_zero_max_suggestions_is_unlimited(self):
        backend = make_backend(lambda context: [
            CompletionCandidate(text=f"cmd{i}", priority=i) for i in range(20)
        ])
        manager = make_manager(backend, fuzzy_search=False, max_suggestions=0)
        assert len(manager.get_completions("", classify("x ", cwd="/"))) == 20

    def test_completion_disabled_skips_backend(self):
        backend = make_backend(lambda context: [CompletionCandidate(text="x")])
        manager = make_manager(backend, completion_enabled=False, history_suggestions=False)
        assert manager.get_completions("x", classify("x", cwd="/")) == []
        backend.resolve.assert_not_called()

    def test_backend_initialized_once(self):
        backend = make_backend(lambda context: [])
        backend.initialized = False

        def initialize():
            backend.initialized = True

        backend.initialize.side_effect = initialize
        manager = make_manager(backend)
        manager.get_completions("a", classify("git a", cwd="/"))
        manager.get_completions("b", classify("git b", cwd="/"))
        assert backend.initialize.call_count == 1

    def test_ordering_is_reproducible(self):
        def candidates(context):
            return [
                CompletionCandidate(text=name, priority=5)
                for name in ["config", "get", "grep", "gc", "go"]
            ]

        backend = make_backend(candidates)
        manager = make_manager(backend, history_suggestions=False, max_suggestions=0)
        context = classify("g", cwd="/")

        first = [c.text for c in manager.get_completions("g", context)]
        manager.clear_cache()
        second = [c.text for c in manager.get_completions("g", context)]
        assert first == second
        # Prefix matches (0.9) tie and fall back to text order; "config" is a substring match
        assert first == ["gc", "get", "go", "grep", "config"]

    def test_history_search_delegates(self):
        history = make_history([HistoryEntry(command="make test", timestamp=5)])
        manager = make_manager(make_backend(lambda context: []), history=history)
        assert [e.command for e in manager.history_search("make")] == ["make test"]
        history.search.assert_called_once_with("make", limit=100)

    def test_cache_stats_and_clear(self):
        manager = make_manager(make_backend(lambda context: []))
        manager.get_completions("a", classify("git a", cwd="/"))
        assert manager.get_cache_stats()["size"] == 1
        manager.clear_cache()
        assert manager.get_cache_stats()["size"] == 0


# ===========================================================================
# End-to-end tests
# ===========================================================================

class TestEndToEnd:
    """Tokenizer -> classifier -> generic backend -> ranking, on a real directory."""

    def setup_method(self):
        self.config = Config(
            completion_backend="generic",
            fuzzy_search=False,
            history_suggestions=False,
        )

    def make_manager(self, bin_dir):
        env = {"PATH": str(bin_dir), "HOME": str(bin_dir)}
        backend = GenericBackend(self.config, env)
        return CompletionManager(
            self.config,
            backend=backend,
            history_manager=make_history(),
            ranker=FuzzyRanker(SubsequenceScorer()),
            env=env,
        )

    def test_command_prefix(self, tmp_path):
        for name in ("foo", "foobar", "bar"):
            make_executable(tmp_path / name)
        (tmp_path / "fonotexec").write_text("data")

        manager = self.make_manager(tmp_path)
        result = manager.complete("fo", cwd=str(tmp_path))

        assert [c.text for c in result] == ["foo", "foobar"]
        assert "cd" not in [c.text for c in result]

    def test_builtins_outrank_executables(self, tmp_path):
        make_executable(tmp_path / "cdrecord")
        manager = self.make_manager(tmp_path)
        result = manager.complete("cd", cwd=str(tmp_path))
        assert [c.text for c in result] == ["cd", "cdrecord"]
        assert result[0].description == "builtin"

    def test_fuzzy_end_to_end(self, tmp_path):
        for name in ("foo", "foobar"):
            make_executable(tmp_path / name)
        self.config.fuzzy_search = True

        manager = self.make_manager(tmp_path)
        result = manager.complete("fo", cwd=str(tmp_path))
        assert [c.text for c in result] == ["foo", "foobar"]
        assert all(c.score == pytest.approx(0.9) for c in result)

    def test_directory_argument(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "setup.py").write_text("")
        manager = self.make_manager(tmp_path)

        result = manager.complete("cat s", cwd=str(tmp_path))
        assert [c.text for c in result] == ["src/", "setup.py"]

        result = manager.complete("cd s", cwd=str(tmp_path))
        assert [c.text for c in result] == ["src/"]
