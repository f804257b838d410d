"""
Bash history reader ($HISTFILE or ~/.bash_history).

Format: one command per line. A line ending in a backslash continues on
the next line. With HISTTIMEFORMAT set, bash writes `#<epoch>` comment
lines before commands; those are skipped and their timestamps are not
attached to the following command.
"""

import re
from pathlib import Path
from typing import List

from shellsense.history.base import HistoryProvider
from shellsense.history.models import HistoryEntry

_TIMESTAMP_LINE = re.compile(r"^#\d+$")


class BashHistoryProvider(HistoryProvider):
    """Read-only view of bash's history file."""

    name = "bash"

    @property
    def history_path(self) -> Path:
        return self.env_histfile("bash") or self.home() / ".bash_history"

    def parse(self, content: str) -> List[HistoryEntry]:
        entries = []
        pending: List[str] = []

        for line in content.splitlines():
            if not pending and not line.strip():
                continue
            if _TIMESTAMP_LINE.match(line):
                continue

            if line.endswith("\\"):
                pending.append(line[:-1])
                continue

            pending.append(line)
            command = "\n".join(pending)
            pending = []
            if command.strip():
                entries.append(HistoryEntry(command=command, source=self.name))

        # File ended inside a continuation
        if pending and "\n".join(pending).strip():
            entries.append(HistoryEntry(command="\n".join(pending), source=self.name))

        return entries
