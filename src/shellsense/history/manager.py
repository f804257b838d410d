"""
History manager - composes history providers under a mode.

Modes:
  solo        ShellSense's own store only
  shell-only  The detected shell's native log (the own store when that log
              is missing)
  unified     Own store plus the detected shell's log, merged by recency

New commands are always written to the own store only; shell-native logs
are never modified.
"""

import math
import os
from collections import Counter
from typing import Dict, List, Mapping, Optional

from shellsense.config import Config, HISTORY_MODE_ALIASES, HISTORY_MODES
from shellsense.errors import ConfigurationError
from shellsense.history.base import HistoryProvider
from shellsense.history.models import HistoryEntry, dedupe_commands, recency_key
from shellsense.history.providers import SHELL_PROVIDERS, OwnedHistoryProvider
from shellsense.utils.logger import logger


def resolve_history_mode(mode: str) -> str:
    """Strict mode lookup, accepting legacy aliases."""
    name = (mode or "").strip().lower()
    name = HISTORY_MODE_ALIASES.get(name, name)
    if name not in HISTORY_MODES:
        raise ConfigurationError("history mode", mode, HISTORY_MODES)
    return name


def detect_history_shell(shell: Optional[str]) -> Optional[str]:
    """Shell family whose history format we can read, if any."""
    if not shell:
        return None
    name = os.path.basename(shell.strip()).lstrip("-").lower()
    if "zsh" in name:
        return "zsh"
    if "fish" in name:
        return "fish"
    if "bash" in name or name == "sh":
        return "bash"
    return None


def merge_results(
    result_lists: List[List[HistoryEntry]],
    deduplicate: bool = True,
    limit: Optional[int] = None,
) -> List[HistoryEntry]:
    """
    Merge per-provider results into one recency-ordered list.

    The sort is stable, so entries with equal timestamps (and all entries
    without one, which go last) keep provider order, then original order.
    """
    merged = sorted((entry for results in result_lists for entry in results), key=recency_key)
    if deduplicate:
        merged = dedupe_commands(merged)
    if limit:
        merged = merged[:limit]
    return merged


class HistoryManager:
    """Search and record command history across providers."""

    def __init__(
        self,
        config: Optional[Config] = None,
        env: Optional[Mapping[str, str]] = None,
        providers: Optional[Dict[str, HistoryProvider]] = None,
    ):
        """
        Initialize the history manager.

        Args:
            config: Configuration snapshot
            env: Environment snapshot (SHELL, HOME, HISTFILE, ...)
            providers: Explicit provider set, replacing mode-based selection
        """
        self.config = config or Config()
        self.env = dict(os.environ if env is None else env)
        self.debug = self.config.debug

        try:
            self.mode = resolve_history_mode(self.config.history_mode)
        except ConfigurationError:
            logger.config_mismatch("history mode", self.config.history_mode, "solo")
            self.mode = "solo"

        self.current_shell = detect_history_shell(self.config.resolve_shell(self.env))
        self.native: Optional[HistoryProvider] = None

        if providers is not None:
            self.providers = dict(providers)
            owned = self.providers.get("owned")
            self.owned = owned if owned is not None else OwnedHistoryProvider(self.config, self.env)
            if self.current_shell in self.providers:
                self.native = self.providers[self.current_shell]
        else:
            self.owned = OwnedHistoryProvider(self.config, self.env)
            self.providers = self._build_providers()

    def _native_provider(self) -> Optional[HistoryProvider]:
        shell = self.current_shell
        if shell is None or not self.config.provider_enabled(shell):
            return None

        provider = SHELL_PROVIDERS[shell](self.config, self.env)
        if not provider.is_available():
            logger.source_failed("history", shell, f"{provider.history_path} not readable")
            return None
        return provider

    def _build_providers(self) -> Dict[str, HistoryProvider]:
        if self.mode == "solo":
            return {"owned": self.owned}

        self.native = self._native_provider()

        if self.mode == "shell-only":
            if self.native is not None:
                return {self.current_shell: self.native}
            return {"owned": self.owned}

        providers: Dict[str, HistoryProvider] = {}
        if self.config.provider_enabled("owned"):
            providers["owned"] = self.owned
        if self.native is not None:
            providers[self.current_shell] = self.native
        return providers

    def get_active_provider(self) -> HistoryProvider:
        """The single provider used outside unified mode."""
        if self.mode == "shell-only" and self.native is not None:
            return self.native
        return self.owned

    # ====================
    # Queries
    # ====================

    def search(
        self,
        query: str = "",
        limit: Optional[int] = None,
        deduplicate: Optional[bool] = None,
    ) -> List[HistoryEntry]:
        """
        Search history, most recent first.

        Args:
            query: Case-insensitive substring (empty returns the most recent)
            limit: Maximum results (default: history_max_results)
            deduplicate: One entry per command (default: history_deduplicate)

        Returns:
            Matching entries
        """
        if limit is None:
            limit = self.config.history_max_results
        if deduplicate is None:
            deduplicate = self.config.history_deduplicate

        if self.mode != "unified":
            return self.get_active_provider().search(query, limit=limit, deduplicate=deduplicate)

        result_lists = []
        for name, provider in self.providers.items():
            try:
                results = provider.search(query, limit=limit, deduplicate=deduplicate)
            except Exception as e:
                logger.source_failed("history", name, str(e))
                continue
            if self.debug:
                logger.history_results(name, query, len(results))
            result_lists.append(results)

        return merge_results(result_lists, deduplicate=deduplicate, limit=limit)

    def _collect(self, operation: str, call) -> Dict[str, object]:
        """Run `call(provider)` on every provider, skipping the ones that fail."""
        results = {}
        for name, provider in self.providers.items():
            try:
                results[name] = call(provider)
            except Exception as e:
                logger.source_failed("history", name, f"{operation}: {e}")
        return results

    def get_recent(self, limit: int = 10) -> List[HistoryEntry]:
        if self.mode != "unified":
            return self.get_active_provider().get_recent(limit)

        if not self.providers:
            return []
        per_provider = math.ceil(limit / len(self.providers))
        result_lists = list(self._collect("recent", lambda provider: provider.get_recent(per_provider)).values())
        return merge_results(result_lists, deduplicate=True, limit=limit)

    def get_stats(self) -> Dict[str, Dict]:
        """Per-provider stats, plus a `combined` summary in unified mode."""
        stats = self._collect("stats", lambda provider: provider.get_stats())
        result = {name: provider_stats.to_dict() for name, provider_stats in stats.items()}

        if self.mode == "unified":
            commands: Counter = Counter()
            for provider_stats in stats.values():
                for command, count in provider_stats.top_commands:
                    commands[command] += count
            result["combined"] = {
                "total": sum(s.total for s in stats.values()),
                "unique": sum(s.unique for s in stats.values()),
                "top_commands": [{"command": c, "count": n} for c, n in commands.most_common(10)],
            }

        return result

    # ====================
    # Mutation
    # ====================

    def add(
        self,
        command: str,
        exit_code: Optional[int] = None,
        cwd: Optional[str] = None,
        duration: Optional[int] = None,
        metadata: Optional[Dict] = None,
        timestamp: Optional[int] = None,
    ) -> bool:
        """
        Record a command in the own store.

        Returns:
            True if stored, False if empty or skipped as a repeat
        """
        if not command or not command.strip():
            return False

        entry = HistoryEntry(
            command=command,
            timestamp=timestamp,
            exit_code=exit_code,
            cwd=cwd,
            duration=duration,
            source=self.owned.name,
            metadata=dict(metadata or {}),
        )
        return self.owned.add(entry)

    def flush(self) -> None:
        """Write any debounced own-store changes now."""
        self.owned.flush()

    def clear(self) -> None:
        """Clear the own store. Shell logs are not touched."""
        self.owned.clear()

    def export(self, fmt: str = "json") -> str:
        """
        Export the active provider's history.

        Raises:
            ValueError: For an unsupported format
        """
        return self.get_active_provider().export(fmt)
