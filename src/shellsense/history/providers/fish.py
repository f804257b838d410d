"""
Fish history reader.

Fish stores a YAML-like log:

    - cmd: git status
      when: 1700000000
      paths:
        - src/

Entries are sorted by timestamp after parsing; the first path becomes the
entry's cwd and all of them are kept in metadata["paths"].
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from shellsense.history.base import HistoryProvider
from shellsense.history.models import HistoryEntry

log = logging.getLogger(__name__)

_ESCAPES = {"n": "\n", "\\": "\\"}


def unescape(text: str) -> str:
    """Decode fish's `\\n` and `\\\\` escapes."""
    if "\\" not in text:
        return text
    out = []
    i = 0
    while i < len(text):
        char = text[i]
        if char == "\\" and i + 1 < len(text) and text[i + 1] in _ESCAPES:
            out.append(_ESCAPES[text[i + 1]])
            i += 2
            continue
        out.append(char)
        i += 1
    return "".join(out)


class FishHistoryProvider(HistoryProvider):
    """Read-only view of fish's history file."""

    name = "fish"

    @property
    def history_path(self) -> Path:
        data_home = self.env.get("XDG_DATA_HOME")
        base = Path(data_home) if data_home else self.home() / ".local" / "share"
        session = self.env.get("fish_history") or "fish"
        path = base / "fish" / f"{session}_history"
        if session != "fish" and not path.is_file():
            return base / "fish" / "fish_history"
        return path

    def parse(self, content: str) -> List[HistoryEntry]:
        records: List[Dict] = []
        current: Optional[Dict] = None
        in_command = False

        for line in content.splitlines():
            if line.startswith("- cmd: "):
                current = {"command": unescape(line[7:]), "when": None, "paths": []}
                records.append(current)
                in_command = True
            elif current is None:
                continue
            elif line.startswith("  when: "):
                in_command = False
                try:
                    current["when"] = int(line[8:].strip()) * 1000
                except ValueError:
                    log.debug("Bad fish timestamp: %r", line)
            elif line.rstrip() == "  paths:":
                in_command = False
            elif line.startswith("    - "):
                current["paths"].append(unescape(line[6:]))
            elif line.startswith("  ") and in_command:
                current["command"] += "\n" + unescape(line[2:])

        entries = [
            HistoryEntry(
                command=record["command"],
                timestamp=record["when"],
                cwd=record["paths"][0] if record["paths"] else None,
                source=self.name,
                metadata={"paths": record["paths"]},
            )
            for record in records
            if record["command"].strip()
        ]

        # Oldest first; entries without a timestamp count as oldest
        entries.sort(key=lambda entry: (entry.timestamp is not None, entry.timestamp or 0))
        return entries
