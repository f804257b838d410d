"""
Fuzzy ranking strategies.
"""

from shellsense.fuzzy.base import FuzzyScorer, ScoreResult, highlight_matches
from shellsense.fuzzy.factory import FuzzyRanker, FuzzyRankerFactory
from shellsense.fuzzy.fzf import FzfScorer, find_fzf
from shellsense.fuzzy.levenshtein import LevenshteinScorer, levenshtein_distance
from shellsense.fuzzy.subsequence import SubsequenceScorer

__all__ = [
    "FuzzyRanker",
    "FuzzyRankerFactory",
    "FuzzyScorer",
    "FzfScorer",
    "LevenshteinScorer",
    "ScoreResult",
    "SubsequenceScorer",
    "find_fzf",
    "highlight_matches",
    "levenshtein_distance",
]
