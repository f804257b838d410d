"""Edit-distance scorer."""

from shellsense.fuzzy.base import NO_MATCH, FuzzyScorer, ScoreResult


def levenshtein_distance(a: str, b: str) -> int:
    """Insertions, deletions and substitutions needed to turn a into b."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            if char_a == char_b:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j], current[j - 1], previous[j - 1]))
        previous = current
    return previous[-1]


class LevenshteinScorer(FuzzyScorer):
    """
    Score = 1 - distance / max(len(query), len(text)).

    Pairs further apart than max_distance do not match.
    """

    name = "levenshtein"

    def __init__(self, max_distance: int = 3, case_insensitive: bool = True):
        self.max_distance = max_distance
        self.case_insensitive = case_insensitive

    def score(self, query: str, text: str) -> ScoreResult:
        q = query.lower() if self.case_insensitive else query
        t = text.lower() if self.case_insensitive else text

        longest = max(len(q), len(t))
        if longest == 0:
            return NO_MATCH

        distance = levenshtein_distance(q, t)
        if distance > self.max_distance:
            return NO_MATCH
        return ScoreResult(1.0 - distance / longest)
