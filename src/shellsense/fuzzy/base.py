"""
Fuzzy scorer interface.

A scorer maps (query, candidate text) to a score in [0, 1] plus the spans
of the text that matched. A score of 0 means "not a match".
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

Span = Tuple[int, int]


@dataclass(frozen=True)
class ScoreResult:
    """Relevance of one candidate text."""
    score: float
    matches: List[Span] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.score > 0


NO_MATCH = ScoreResult(0.0)


class FuzzyScorer(ABC):
    """Base class for ranking strategies."""

    name = "base"

    def is_available(self) -> bool:
        return True

    @abstractmethod
    def score(self, query: str, text: str) -> ScoreResult:
        pass

    def score_many(self, query: str, texts: Sequence[str]) -> List[ScoreResult]:
        """Score every text; results line up with the input."""
        return [self.score(query, text) for text in texts]


def highlight_matches(text: str, matches: Sequence[Span],
                      start: str = "\x1b[1m", end: str = "\x1b[0m") -> str:
    """
    Wrap matched spans of text in highlight markers.

    Args:
        text: Candidate text
        matches: Half-open (start, end) spans, ascending
        start: Marker inserted before each span (default: ANSI bold)
        end: Marker inserted after each span (default: ANSI reset)
    """
    if not matches:
        return text

    parts = []
    last_end = 0
    for span_start, span_end in matches:
        parts.append(text[last_end:span_start])
        parts.append(start + text[span_start:span_end] + end)
        last_end = span_end
    parts.append(text[last_end:])
    return "".join(parts)
