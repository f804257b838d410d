"""
ShellSense's own history store.

One JSON record per line:

    {"command": "make test", "timestamp": 1700000000000, "exit_code": 0,
     "cwd": "/src/app", "duration": 5120, "metadata": {}}

Older files may use the short keys cmd/ts/exit/dir/dur, and lines that are
not JSON at all are kept as bare commands. Writes are debounced: `add`
updates memory at once and schedules a rewrite of the file `save_debounce`
seconds later; `flush` forces it.
"""

import atexit
import json
import logging
import threading
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional

from shellsense.history.base import HistoryProvider
from shellsense.history.models import HistoryEntry, HistoryStats
from shellsense.utils.logger import logger
from shellsense.utils.timefmt import now_ms

log = logging.getLogger(__name__)

EXPORT_FORMATS = ("json", "plain", "bash", "zsh")


class OwnedHistoryProvider(HistoryProvider):
    """Writable history store with rich per-command metadata."""

    name = "owned"
    read_only = False

    def __init__(self, config=None, env=None, path: Optional[Path] = None,
                 clock: Optional[Callable[[], int]] = None):
        """
        Args:
            config: Configuration snapshot
            env: Environment snapshot
            path: Store location (default: config.history_file)
            clock: Epoch-millisecond time source
        """
        super().__init__(config, env)
        self.path = Path(path) if path else self.expand(self.config.history_file)
        self.max_entries = self.config.history_max_entries
        self.save_corrections = self.config.save_corrections
        self.save_debounce = self.config.save_debounce
        self._clock = clock or now_ms
        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None
        self._dirty = False
        self._flush_at_exit = False

    @property
    def history_path(self) -> Path:
        return self.path

    def parse(self, content: str) -> List[HistoryEntry]:
        entries = []
        for line_no, line in enumerate(content.splitlines(), 1):
            stripped = line.strip()
            if not stripped:
                continue

            if stripped.startswith("{"):
                try:
                    data = json.loads(stripped)
                    if isinstance(data, dict):
                        entries.append(HistoryEntry.from_record(data, source=self.name))
                        continue
                except ValueError:
                    log.debug("Line %d of %s is not a record, keeping as command", line_no, self.path)

            entries.append(HistoryEntry(command=line, source=self.name))

        return self._trim(entries)

    def _trim(self, entries: List[HistoryEntry]) -> List[HistoryEntry]:
        if self.max_entries and len(entries) > self.max_entries:
            return entries[-self.max_entries:]
        return entries

    def refresh(self) -> None:
        # This process is the writer; read the file once
        if not self.loaded:
            self.load()

    # ====================
    # Writing
    # ====================

    def add(self, entry: HistoryEntry) -> bool:
        """
        Append an entry and schedule a save.

        Returns:
            False when skipped (repeat of the last command, or a correction
            while save_corrections is off)
        """
        self.refresh()

        with self._lock:
            if self._entries and self._entries[-1].command == entry.command:
                return False
            if not self.save_corrections and entry.metadata.get("is_correction"):
                return False

            stored = replace(
                entry,
                timestamp=entry.timestamp if entry.timestamp is not None else self._clock(),
                source=self.name,
                metadata=dict(entry.metadata),
            )
            self._entries.append(stored)
            self._entries = self._trim(self._entries)
            self._dirty = True

        self._schedule_save()
        return True

    def _schedule_save(self) -> None:
        if self.save_debounce <= 0:
            self.save()
            return

        with self._lock:
            if not self._flush_at_exit:
                # Timer threads are daemons; flush whatever is still pending at exit
                atexit.register(self.flush)
                self._flush_at_exit = True
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.save_debounce, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> None:
        """Write pending changes now."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if self._dirty:
                self.save()

    def save(self) -> bool:
        """Rewrite the store file atomically. Returns False on I/O failure."""
        with self._lock:
            self._entries = self._trim(self._entries)
            lines = [json.dumps(entry.to_record()) for entry in self._entries]

            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp_file = self.path.with_name(self.path.name + ".tmp")
                with open(tmp_file, "w", encoding="utf-8") as f:
                    f.write("\n".join(lines) + ("\n" if lines else ""))
                # Atomic rename
                tmp_file.replace(self.path)
            except OSError as e:
                logger.error("history", f"Could not save history to {self.path}", e)
                return False

            self._dirty = False
            return True

    def clear(self) -> None:
        """Delete all entries, in memory and on disk."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._entries = []
            self.loaded = True
            self.save()

    def import_from(self, provider: HistoryProvider, deduplicate: bool = True,
                    max_import: int = 1000) -> int:
        """
        Copy entries from another provider into this store.

        Args:
            provider: Source provider
            deduplicate: Skip commands already present here
            max_import: Most recent entries to consider

        Returns:
            Number of entries imported
        """
        self.refresh()
        imported_at = self._clock()

        with self._lock:
            existing = {entry.command for entry in self._entries}
            batch = []
            for entry in provider.get_all()[:max_import]:
                if deduplicate and entry.command in existing:
                    continue
                existing.add(entry.command)
                batch.append(replace(
                    entry,
                    source=self.name,
                    metadata={
                        **entry.metadata,
                        "imported": True,
                        "imported_from": entry.source,
                        "imported_at": imported_at,
                    },
                ))

            if not batch:
                return 0

            # get_all is newest first; the store is oldest first
            self._entries.extend(reversed(batch))
            self._dirty = True

        self.flush()
        return len(batch)

    # ====================
    # Reading
    # ====================

    def export(self, fmt: str = "json") -> str:
        """Render the store as json, plain, bash or zsh extended history."""
        self.refresh()
        if fmt in ("plain", "bash"):
            return "\n".join(entry.command for entry in self._entries)
        if fmt == "zsh":
            lines = []
            for entry in self._entries:
                if entry.timestamp is None:
                    lines.append(entry.command)
                else:
                    duration = (entry.duration or 0) // 1000
                    lines.append(f": {entry.timestamp // 1000}:{duration};{entry.command}")
            return "\n".join(lines)
        return super().export(fmt)

    def get_stats(self) -> HistoryStats:
        self.refresh()
        return HistoryStats.from_entries(self._entries, count_failures=True)
