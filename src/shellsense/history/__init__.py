"""
Command history: entry model, providers for each on-disk format, and the
manager that merges them.
"""

from shellsense.history.base import HistoryProvider
from shellsense.history.manager import HistoryManager, merge_results
from shellsense.history.models import HistoryEntry, HistoryStats
from shellsense.history.providers import (
    BashHistoryProvider,
    FishHistoryProvider,
    OwnedHistoryProvider,
    ZshHistoryProvider,
)

__all__ = [
    "BashHistoryProvider",
    "FishHistoryProvider",
    "HistoryEntry",
    "HistoryManager",
    "HistoryProvider",
    "HistoryStats",
    "OwnedHistoryProvider",
    "ZshHistoryProvider",
    "merge_results",
]
