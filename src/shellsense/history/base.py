"""
Base class for history providers.

A provider mirrors one on-disk history log as a list of HistoryEntry objects
held oldest first. Search, recency listing and stats are shared; subclasses
only locate their file and parse its format. Shell-native providers are
read-only: `add` is a no-op and their files are never written.
"""

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from shellsense.config import Config
from shellsense.history.models import HistoryEntry, HistoryStats
from shellsense.utils.logger import logger


class HistoryProvider(ABC):
    """Interface and shared behaviour for history sources."""

    name = "base"
    read_only = True

    def __init__(self, config: Optional[Config] = None, env: Optional[Mapping[str, str]] = None):
        """
        Args:
            config: Configuration snapshot
            env: Environment snapshot (HOME, HISTFILE, XDG_DATA_HOME, ...)
        """
        self.config = config or Config()
        self.env: Dict[str, str] = dict(os.environ if env is None else env)
        self.max_results = self.config.history_max_results
        self.debug = self.config.debug
        self._entries: List[HistoryEntry] = []
        self._mtime: Optional[int] = None
        self.loaded = False

    # ====================
    # Backing file
    # ====================

    @property
    @abstractmethod
    def history_path(self) -> Path:
        """Location of the backing history file."""
        pass

    @abstractmethod
    def parse(self, content: str) -> List[HistoryEntry]:
        """Parse file content into entries, oldest first."""
        pass

    def home(self) -> Path:
        return Path(self.env.get("HOME") or Path.home())

    def expand(self, path: str) -> Path:
        if path == "~" or path.startswith("~/"):
            return self.home() / path[2:]
        return Path(path)

    def env_histfile(self, shell_name: str) -> Optional[Path]:
        """$HISTFILE, unless $SHELL says it belongs to a different shell."""
        histfile = self.env.get("HISTFILE")
        if not histfile:
            return None
        shell = os.path.basename(self.env.get("SHELL", ""))
        if shell and shell_name not in shell:
            return None
        return self.expand(histfile)

    def read_file(self, path: Path) -> str:
        with open(path, encoding="utf-8", errors="replace") as f:
            return f.read()

    def load(self) -> None:
        """(Re)read the backing file. A missing or unreadable file gives no entries."""
        path = self.history_path
        try:
            content = self.read_file(path)
        except FileNotFoundError:
            entries: List[HistoryEntry] = []
        except OSError as e:
            logger.source_failed("history", self.name, str(e))
            entries = []
        else:
            entries = self.parse(content)

        self._entries = entries
        self.loaded = True
        if self.debug:
            logger.history_loaded(self.name, str(path), len(entries))

    def refresh(self) -> None:
        """Reload when the file changed on disk since the last read."""
        try:
            mtime = self.history_path.stat().st_mtime_ns
        except OSError:
            mtime = None

        if self.loaded and mtime == self._mtime:
            return
        self._mtime = mtime
        self.load()

    def is_available(self) -> bool:
        """True when the backing file exists and is readable."""
        path = self.history_path
        return path.is_file() and os.access(path, os.R_OK)

    # ====================
    # Queries
    # ====================

    def view(self) -> List[HistoryEntry]:
        """Entries exposed by get_all/get_recent, oldest first."""
        return self._entries

    def search(
        self,
        query: str = "",
        limit: Optional[int] = None,
        deduplicate: Optional[bool] = None,
    ) -> List[HistoryEntry]:
        """
        Case-insensitive substring search, most recent first.

        Args:
            query: Text to look for (empty matches everything)
            limit: Maximum results (default: history_max_results)
            deduplicate: Keep only the newest occurrence of each command

        Returns:
            Matching entries in recency order
        """
        self.refresh()
        if limit is None:
            limit = self.max_results
        if deduplicate is None:
            deduplicate = self.config.history_deduplicate

        needle = query.lower()
        results: List[HistoryEntry] = []
        seen = set()

        for entry in reversed(self._entries):
            if deduplicate:
                if entry.command in seen:
                    continue
                seen.add(entry.command)
            if needle and needle not in entry.command.lower():
                continue
            results.append(entry)
            if limit and len(results) >= limit:
                break

        return results

    def get_all(self) -> List[HistoryEntry]:
        """All entries, most recent first."""
        self.refresh()
        return list(reversed(self.view()))

    def get_recent(self, limit: int = 10) -> List[HistoryEntry]:
        return self.get_all()[:limit]

    def get_stats(self) -> HistoryStats:
        self.refresh()
        return HistoryStats.from_entries(self._entries)

    # ====================
    # Mutation
    # ====================

    def add(self, entry: HistoryEntry) -> bool:
        """Append an entry. Shell-native logs are never written."""
        return False

    def clear(self) -> None:
        """Forget the in-memory copy; the file is left untouched."""
        self._entries = []
        self._mtime = None
        self.loaded = False

    def export(self, fmt: str = "json") -> str:
        """
        Render all entries, oldest first.

        Raises:
            ValueError: For an unsupported format
        """
        self.refresh()
        if fmt == "json":
            return json.dumps([entry.to_record() for entry in self._entries], indent=2)
        if fmt == "plain":
            return "\n".join(entry.command for entry in self._entries)
        raise ValueError(f"Unsupported export format: {fmt}")
