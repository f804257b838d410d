"""
Completion orchestration.

CompletionManager ties the pieces together for one request:

    word + context
      -> cache lookup
      -> shell backend candidates (slot appropriate)
      -> history candidates (command slot only)
      -> fuzzy ranking, or priority ordering
      -> truncation, cache, return

Choosing a single completion or showing a menu is left to the caller.
"""

import logging
import time
from typing import Callable, List, Mapping, Optional

from shellsense.completion.backends import CompletionBackend, create_backend
from shellsense.completion.cache import CompletionCache
from shellsense.completion.models import SLOT_COMMAND, CompletionCandidate, CompletionContext
from shellsense.completion.tokenizer import classify
from shellsense.config import Config
from shellsense.fuzzy.factory import FuzzyRanker, FuzzyRankerFactory
from shellsense.history.manager import HistoryManager
from shellsense.history.models import HistoryEntry
from shellsense.utils.logger import logger
from shellsense.utils.timefmt import format_relative

log = logging.getLogger(__name__)

# History entries offered as command completions per request
HISTORY_COMPLETION_LIMIT = 20
HISTORY_BASE_PRIORITY = 100


class CompletionManager:
    """Produces ranked completion candidates from every source."""

    def __init__(
        self,
        config: Optional[Config] = None,
        backend: Optional[CompletionBackend] = None,
        history_manager: Optional[HistoryManager] = None,
        ranker: Optional[FuzzyRanker] = None,
        env: Optional[Mapping[str, str]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the completion manager.

        Args:
            config: Configuration snapshot
            backend: Shell backend (default: detected from config)
            history_manager: History source (default: built from config)
            ranker: Fuzzy ranker (default: chosen from config)
            env: Environment snapshot (SHELL, PATH, HOME, ...)
            clock: Time source in seconds, shared by cache and history ages
        """
        self.config = config or Config()
        self.env = env
        self.debug = self.config.debug
        self._clock = clock or time.time

        self.backend = backend or create_backend(self.config, env)
        self.history_manager = history_manager or HistoryManager(self.config, env)
        self.ranker = ranker or FuzzyRankerFactory(self.config, env).get_ranker()
        self.cache = CompletionCache(ttl=self.config.cache_ttl, clock=self._clock)

    # ====================
    # Requests
    # ====================

    def complete(self, line: str, cursor: Optional[int] = None, cwd: Optional[str] = None) -> List[CompletionCandidate]:
        """Classify a raw line and complete the word under the cursor."""
        context = classify(line, cursor, cwd=cwd, env=self.env)
        return self.get_completions(context.current_word, context)

    def get_completions(self, word: str, context: CompletionContext) -> List[CompletionCandidate]:
        """
        Ranked candidates for the word under the cursor.

        Args:
            word: Word being completed
            context: Classified request context

        Returns:
            Candidates, best first, at most max_suggestions long
        """
        key = (word,) + context.cache_key[1:]
        cached = self.cache.get(key)
        if cached is not None:
            logger.cache_hit(key)
            return cached

        started = time.perf_counter()
        logger.completion_request(word, context.slot, context.command_name)

        candidates: List[CompletionCandidate] = []

        if self.config.completion_enabled:
            if not self.backend.initialized:
                self.backend.initialize()
            candidates.extend(self.backend.resolve(context))

        if self.config.history_suggestions and context.slot == SLOT_COMMAND:
            candidates.extend(self.history_candidates(word))

        fuzzy = self.config.fuzzy_search and bool(word.strip())
        if fuzzy:
            ranked = self.rank(word, candidates)
        else:
            ranked = sorted(candidates, key=lambda c: (-c.priority, c.text))

        if self.config.max_suggestions > 0:
            ranked = ranked[:self.config.max_suggestions]

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.completion_result(word, len(ranked), fuzzy, elapsed_ms)
        return self.cache.put(key, ranked)

    def history_candidates(self, word: str) -> List[CompletionCandidate]:
        """Recent matching commands, most recent first."""
        entries = self.history_manager.search(word, limit=HISTORY_COMPLETION_LIMIT)
        return [self._history_candidate(entry, index) for index, entry in enumerate(entries)]

    def _history_candidate(self, entry: HistoryEntry, index: int) -> CompletionCandidate:
        if entry.timestamp is not None:
            age = format_relative(entry.timestamp, now=int(self._clock() * 1000))
            description = f"history - {age}"
        else:
            description = "history"

        return CompletionCandidate(
            text=entry.command,
            description=description,
            category="history",
            priority=HISTORY_BASE_PRIORITY - index,
            metadata={
                "timestamp": entry.timestamp,
                "exit_code": entry.exit_code,
                "source": entry.source,
            },
        )

    def rank(self, query: str, candidates: List[CompletionCandidate]) -> List[CompletionCandidate]:
        """Score candidates against query, drop non-matches, best first."""
        if not candidates:
            return []

        results = self.ranker.score_many(query, [c.text for c in candidates])
        scored = []
        for candidate, result in zip(candidates, results):
            if result.score <= 0:
                continue
            candidate.score = result.score
            candidate.matches = list(result.matches)
            scored.append(candidate)

        if self.debug:
            log.debug("%s kept %d of %d candidates for %r",
                      self.ranker.name, len(scored), len(candidates), query)
        return sorted(scored, key=lambda c: (-c.score, c.text))

    # ====================
    # History lookup
    # ====================

    def history_search(self, query: str = "", limit: int = 100) -> List[HistoryEntry]:
        """Recency-ordered history entries for a reverse search prompt."""
        return self.history_manager.search(query, limit=limit)

    # ====================
    # Cache maintenance
    # ====================

    def clear_cache(self):
        self.cache.clear()

    def get_cache_stats(self):
        return self.cache.get_stats()
