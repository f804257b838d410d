"""
History entry and statistics types shared by all providers.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

# Keys accepted when reading owned-store records, newest name first
RECORD_KEYS = {
    "command": ("command", "cmd"),
    "timestamp": ("timestamp", "ts"),
    "exit_code": ("exit_code", "exitCode", "exit"),
    "cwd": ("cwd", "dir"),
    "duration": ("duration", "dur"),
}


def _first(data: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class HistoryEntry:
    """One command from a history log."""

    command: str                        # May contain embedded newlines
    timestamp: Optional[int] = None     # Epoch milliseconds
    exit_code: Optional[int] = None
    cwd: Optional[str] = None
    duration: Optional[int] = None      # Milliseconds
    source: str = "unknown"             # Provider that produced the entry
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.command or not self.command.strip():
            raise ValueError("HistoryEntry.command must not be empty")

    def to_record(self) -> Dict[str, Any]:
        """Serializable form used by the owned store and JSON export."""
        return {
            "command": self.command,
            "timestamp": self.timestamp,
            "exit_code": self.exit_code,
            "cwd": self.cwd,
            "duration": self.duration,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_record(cls, data: Dict[str, Any], source: str = "owned") -> "HistoryEntry":
        """
        Build an entry from a stored record, accepting legacy key names.

        Raises:
            ValueError: If the record carries no usable command
        """
        command = _first(data, RECORD_KEYS["command"])
        if not isinstance(command, str):
            raise ValueError("record has no command")

        metadata = data.get("metadata")
        cwd = _first(data, RECORD_KEYS["cwd"])
        return cls(
            command=command,
            timestamp=_as_int(_first(data, RECORD_KEYS["timestamp"])),
            exit_code=_as_int(_first(data, RECORD_KEYS["exit_code"])),
            cwd=cwd if isinstance(cwd, str) else None,
            duration=_as_int(_first(data, RECORD_KEYS["duration"])),
            source=source,
            metadata=dict(metadata) if isinstance(metadata, dict) else {},
        )


def recency_key(entry: HistoryEntry) -> Tuple[bool, int]:
    """Sort key: newest first, entries without a timestamp last."""
    if entry.timestamp is None:
        return (True, 0)
    return (False, -entry.timestamp)


def dedupe_commands(entries: Iterable[HistoryEntry]) -> List[HistoryEntry]:
    """Keep the first occurrence of each command text."""
    seen = set()
    unique = []
    for entry in entries:
        if entry.command in seen:
            continue
        seen.add(entry.command)
        unique.append(entry)
    return unique


@dataclass
class HistoryStats:
    """Frequency summary of a set of history entries."""

    total: int = 0
    unique: int = 0
    top_commands: List[Tuple[str, int]] = field(default_factory=list)
    top_directories: List[Tuple[str, int]] = field(default_factory=list)
    average_duration: Optional[float] = None
    failed_commands: Optional[int] = None

    @classmethod
    def from_entries(cls, entries: List[HistoryEntry], total: Optional[int] = None,
                     count_failures: bool = False) -> "HistoryStats":
        """
        Compute stats over entries.

        Args:
            entries: Entries to summarize
            total: Override for the total count (e.g. raw vs deduplicated)
            count_failures: Include the count of non-zero exit codes
        """
        commands = Counter(entry.command.split(" ")[0] for entry in entries)
        directories = Counter(entry.cwd for entry in entries if entry.cwd)
        durations = [entry.duration for entry in entries if entry.duration]

        failed = None
        if count_failures:
            failed = sum(1 for entry in entries if entry.exit_code not in (None, 0))

        return cls(
            total=len(entries) if total is None else total,
            unique=len({entry.command for entry in entries}),
            top_commands=commands.most_common(10),
            top_directories=directories.most_common(5),
            average_duration=sum(durations) / len(durations) if durations else None,
            failed_commands=failed,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "total": self.total,
            "unique": self.unique,
            "top_commands": [{"command": c, "count": n} for c, n in self.top_commands],
            "average_duration": self.average_duration,
        }
        if self.top_directories:
            data["top_directories"] = [{"directory": d, "count": n} for d, n in self.top_directories]
        if self.failed_commands is not None:
            data["failed_commands"] = self.failed_commands
        return data
