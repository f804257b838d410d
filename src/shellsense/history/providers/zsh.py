"""
Zsh history reader.

Extended format lines look like `: <epoch-seconds>:<duration-seconds>;<cmd>`.
A line that does not start a new record continues the previous extended
record (zsh writes embedded newlines as backslash-newline). Lines without
any marker before that are plain legacy entries.

Both the raw log and a newest-wins deduplicated view are kept; get_all and
get_recent return the deduplicated one.
"""

import re
from pathlib import Path
from typing import List, Optional

from shellsense.history.base import HistoryProvider
from shellsense.history.models import HistoryEntry, HistoryStats, dedupe_commands

_EXTENDED_LINE = re.compile(r"^: (\d+):(\d+);(.*)$", re.DOTALL)

_CANDIDATE_FILES = (".zsh_history", ".zhistory", ".history")

# zsh "metafies" bytes 0x83-0xff in history files
_META = 0x83


def unmetafy(data: bytes) -> bytes:
    """Undo zsh's meta encoding: 0x83 followed by (byte ^ 0x20)."""
    if _META not in data:
        return data
    out = bytearray()
    it = iter(data)
    for byte in it:
        if byte == _META:
            following = next(it, None)
            if following is None:
                break
            out.append(following ^ 0x20)
        else:
            out.append(byte)
    return bytes(out)


class ZshHistoryProvider(HistoryProvider):
    """Read-only view of zsh's history file."""

    name = "zsh"

    def __init__(self, config=None, env=None):
        super().__init__(config, env)
        self._unique: List[HistoryEntry] = []

    @property
    def history_path(self) -> Path:
        histfile = self.env_histfile("zsh")
        if histfile:
            return histfile
        for name in _CANDIDATE_FILES:
            path = self.home() / name
            if path.is_file():
                return path
        return self.home() / _CANDIDATE_FILES[0]

    def read_file(self, path: Path) -> str:
        with open(path, "rb") as f:
            return unmetafy(f.read()).decode("utf-8", errors="replace")

    def parse(self, content: str) -> List[HistoryEntry]:
        entries: List[HistoryEntry] = []
        lines: List[str] = []
        timestamp: Optional[int] = None
        duration: Optional[int] = None
        extended = False

        def flush():
            command = "\n".join(lines).rstrip("\n")
            if command.strip():
                entries.append(HistoryEntry(
                    command=command,
                    timestamp=timestamp,
                    duration=duration,
                    source=self.name,
                ))

        for line in content.splitlines():
            match = _EXTENDED_LINE.match(line)
            if match:
                flush()
                timestamp = int(match.group(1)) * 1000
                duration = int(match.group(2)) * 1000
                lines = [match.group(3)]
                extended = True
                continue

            if lines and (extended or lines[-1].endswith("\\")):
                if lines[-1].endswith("\\"):
                    lines[-1] = lines[-1][:-1]
                lines.append(line)
                continue

            if not line.strip():
                continue

            # Bare legacy line
            flush()
            timestamp = duration = None
            lines = [line]
            extended = False

        flush()
        return entries

    def load(self) -> None:
        super().load()
        self._unique = list(reversed(dedupe_commands(reversed(self._entries))))

    def view(self) -> List[HistoryEntry]:
        return self._unique

    def get_all_raw(self) -> List[HistoryEntry]:
        """Every entry including repeats, most recent first."""
        self.refresh()
        return list(reversed(self._entries))

    def get_stats(self) -> HistoryStats:
        self.refresh()
        return HistoryStats.from_entries(self._unique, total=len(self._entries))

    def clear(self) -> None:
        super().clear()
        self._unique = []
