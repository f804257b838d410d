"""
Caching layer for completion results.

Results are keyed by (current word, command name, word position, working
directory) and stay valid for a fixed time-to-live after insertion. Expiry
is checked lazily on read; there is no background eviction.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

CacheKey = Tuple[str, str, int, str]


@dataclass
class CachedCompletions:
    """A cached, already ranked candidate list."""
    value: List[Any]
    inserted_at: float
    hits: int = 0


class CompletionCache:
    """
    TTL cache for ranked completion lists.

    Entries are replaced, never merged, when a key is recomputed.
    """

    def __init__(self, ttl: float = 300.0, max_size: int = 512,
                 clock: Optional[Callable[[], float]] = None):
        """
        Initialize completion cache.

        Args:
            ttl: Time-to-live in seconds (default: 5 minutes)
            max_size: Maximum number of cached keys
            clock: Time source, seconds (default: time.time)
        """
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock or time.time
        self._cache: Dict[Hashable, CachedCompletions] = {}
        self._misses = 0

    def _is_fresh(self, entry: CachedCompletions) -> bool:
        return self._clock() - entry.inserted_at < self.ttl

    def get(self, key: Hashable) -> Optional[List[Any]]:
        """Return the cached list for key if present and unexpired."""
        entry = self._cache.get(key)
        if entry is None:
            self._misses += 1
            return None

        if not self._is_fresh(entry):
            del self._cache[key]
            self._misses += 1
            return None

        entry.hits += 1
        return entry.value

    def put(self, key: Hashable, value: List[Any]) -> List[Any]:
        """Store value under key and return it."""
        if key not in self._cache and len(self._cache) >= self.max_size:
            self._evict_oldest()

        self._cache[key] = CachedCompletions(value=value, inserted_at=self._clock())
        return value

    def _evict_oldest(self):
        """Evict the entry inserted first."""
        if not self._cache:
            return

        oldest_key = min(
            self._cache.keys(),
            key=lambda k: self._cache[k].inserted_at
        )
        del self._cache[oldest_key]

    def __len__(self) -> int:
        return len(self._cache)

    def clear(self):
        """Clear all cached completions."""
        self._cache.clear()
        self._misses = 0

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache stats
        """
        return {
            'size': len(self._cache),
            'max_size': self.max_size,
            'hits': sum(entry.hits for entry in self._cache.values()),
            'misses': self._misses,
            'ttl': self.ttl,
        }
