"""
Reference fuzzy scorer.

Scoring, case-insensitive:
  exact match        1.0
  prefix match       0.9
  substring match    0.8   (span at the first occurrence)
  in-order subsequence:
      each matched query char adds 1 + 0.5 * run length (the run counts
      consecutive matched chars, this one included), plus 2 when the char
      starts the text or follows a space, underscore or hyphen;
      total / (len(query) * 3), capped at 1.0, then multiplied by
      1 - 0.2 * (len(text) - len(query)) / len(text)
  otherwise          0.0

With typo tolerance on, a text that is not an in-order match but lies
within the edit-distance bound (e.g. "gti" for "git") still matches, at
half its edit-distance score.
"""

from typing import List

from shellsense.fuzzy.base import NO_MATCH, FuzzyScorer, ScoreResult, Span
from shellsense.fuzzy.levenshtein import LevenshteinScorer

WORD_SEPARATORS = (" ", "_", "-")
TYPO_WEIGHT = 0.5


class SubsequenceScorer(FuzzyScorer):
    """Prefix/substring/subsequence scorer with word-boundary bonuses."""

    name = "subsequence"

    def __init__(self, case_insensitive: bool = True, typo_tolerance: bool = True,
                 max_distance: int = 3):
        self.case_insensitive = case_insensitive
        self.typo_tolerance = typo_tolerance
        self._typos = LevenshteinScorer(max_distance=max_distance, case_insensitive=case_insensitive)

    def score(self, query: str, text: str) -> ScoreResult:
        q = query.lower() if self.case_insensitive else query
        t = text.lower() if self.case_insensitive else text

        if q == t:
            return ScoreResult(1.0, [(0, len(text))])
        if t.startswith(q):
            return ScoreResult(0.9, [(0, len(q))])
        index = t.find(q)
        if index >= 0:
            return ScoreResult(0.8, [(index, index + len(q))])

        result = self._subsequence(q, t)
        if result.matched or not self.typo_tolerance:
            return result

        typo = self._typos.score(query, text)
        if not typo.matched:
            return NO_MATCH
        return ScoreResult(typo.score * TYPO_WEIGHT)

    def _subsequence(self, q: str, t: str) -> ScoreResult:
        total = 0.0
        matches: List[Span] = []
        query_index = 0
        target_index = 0
        match_start = -1
        run = 0

        while query_index < len(q) and target_index < len(t):
            if q[query_index] == t[target_index]:
                if match_start == -1:
                    match_start = target_index
                query_index += 1
                run += 1
                total += 1 + run * 0.5
                if target_index == 0 or t[target_index - 1] in WORD_SEPARATORS:
                    total += 2
            else:
                if match_start != -1:
                    matches.append((match_start, target_index))
                    match_start = -1
                run = 0
            target_index += 1

        if match_start != -1:
            matches.append((match_start, target_index))

        if query_index < len(q):
            return NO_MATCH

        normalized = min(total / (len(q) * 3), 1.0)
        length_penalty = 1 - (len(t) - len(q)) / len(t) * 0.2
        return ScoreResult(normalized * length_penalty, matches)
