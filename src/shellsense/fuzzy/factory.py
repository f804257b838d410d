"""
Fuzzy ranker selection.

`FuzzyRankerFactory(config).get_ranker()` picks the configured strategy:

  auto / fzf    fzf when it can be found, else the reference scorer
  subsequence   reference scorer
  levenshtein   edit-distance scorer

The returned FuzzyRanker keeps the reference scorer as fallback, so an fzf
failure in the middle of a session only costs that request's ordering.
"""

from typing import Dict, List, Mapping, Optional, Sequence

from shellsense.config import Config
from shellsense.errors import ConfigurationError, FzfUnavailableError
from shellsense.fuzzy.base import FuzzyScorer, ScoreResult
from shellsense.fuzzy.fzf import FzfScorer
from shellsense.fuzzy.levenshtein import LevenshteinScorer
from shellsense.fuzzy.subsequence import SubsequenceScorer
from shellsense.utils.logger import logger

STRATEGY_NAMES = ["auto", "fzf", "subsequence", "levenshtein"]


class FuzzyRanker:
    """A primary scorer with the reference scorer behind it."""

    def __init__(self, primary: FuzzyScorer, fallback: Optional[FuzzyScorer] = None):
        self.primary = primary
        self.fallback = fallback or SubsequenceScorer()

    @property
    def name(self) -> str:
        return self.primary.name if self.primary.is_available() else self.fallback.name

    def score_many(self, query: str, texts: Sequence[str]) -> List[ScoreResult]:
        if self.primary.is_available():
            try:
                return self.primary.score_many(query, texts)
            except FzfUnavailableError as e:
                logger.source_failed("fuzzy", self.primary.name, str(e))
        return self.fallback.score_many(query, texts)

    def score(self, query: str, text: str) -> ScoreResult:
        return self.score_many(query, [text])[0]


class FuzzyRankerFactory:
    """Creates scorers from configuration."""

    def __init__(self, config: Optional[Config] = None, env: Optional[Mapping[str, str]] = None):
        self.config = config or Config()
        self.env = env

    def reference(self) -> SubsequenceScorer:
        return SubsequenceScorer(max_distance=self.config.fuzzy_max_distance)

    def create(self, name: str) -> FuzzyScorer:
        """
        Build one scorer by name.

        Raises:
            ConfigurationError: For an unknown strategy
        """
        name = name.lower()
        if name == "subsequence":
            return self.reference()
        if name == "levenshtein":
            return LevenshteinScorer(max_distance=self.config.fuzzy_max_distance)
        if name in ("fzf", "auto"):
            return FzfScorer(self.config.fzf_path, timeout=self.config.command_timeout, env=self.env)
        raise ConfigurationError("fuzzy backend", name, STRATEGY_NAMES)

    def get_ranker(self) -> FuzzyRanker:
        requested = self.config.fuzzy_backend or "auto"
        try:
            primary = self.create(requested)
        except ConfigurationError:
            logger.config_mismatch("fuzzy backend", requested, "subsequence")
            primary = self.reference()
        return FuzzyRanker(primary, self.reference())

    def available_scorers(self) -> Dict[str, bool]:
        return {
            "fzf": self.create("fzf").is_available(),
            "subsequence": True,
            "levenshtein": True,
        }
