"""
fzf-backed ranking.

Candidates are piped to `fzf --filter <query>`; fzf's output order is the
ranking. fzf reports no numeric scores, so the i-th of n results gets
1 - i/n. Any failure marks the scorer unavailable and raises
FzfUnavailableError so the caller can fall back.
"""

import logging
import os
import shutil
from collections import defaultdict, deque
from typing import Deque, Dict, List, Mapping, Optional, Sequence

from shellsense.completion.backends.runner import run_command
from shellsense.errors import FzfUnavailableError
from shellsense.fuzzy.base import NO_MATCH, FuzzyScorer, ScoreResult
from shellsense.utils.logger import logger

log = logging.getLogger(__name__)

PROBE_TIMEOUT = 1.0


def find_fzf(explicit: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Locate the fzf binary.

    Order: explicit path, fzf on $PATH, ~/.fzf/bin/fzf.
    """
    env = os.environ if env is None else env

    if explicit:
        path = os.path.expanduser(explicit)
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path
        logger.warning("fuzzy", f"Configured fzf path not found: {path}")

    found = shutil.which("fzf", path=env.get("PATH"))
    if found:
        return found

    home = env.get("HOME") or os.path.expanduser("~")
    home_fzf = os.path.join(home, ".fzf", "bin", "fzf")
    if os.path.isfile(home_fzf) and os.access(home_fzf, os.X_OK):
        return home_fzf
    return None


class FzfScorer(FuzzyScorer):
    """Delegates filtering and ordering to fzf."""

    name = "fzf"

    def __init__(self, fzf_path: Optional[str] = None, timeout: float = 1.0,
                 env: Optional[Mapping[str, str]] = None):
        self.configured_path = fzf_path
        self.timeout = timeout
        self.env = env
        self.path: Optional[str] = None
        self.available: Optional[bool] = None

    def is_available(self) -> bool:
        """Locate fzf and probe it with --version, once."""
        if self.available is not None:
            return self.available

        self.path = find_fzf(self.configured_path, self.env)
        if self.path is None:
            self.available = False
        else:
            self.available = run_command([self.path, "--version"], timeout=PROBE_TIMEOUT) is not None

        log.debug("fzf available: %s (%s)", self.available, self.path)
        return self.available

    def score_many(self, query: str, texts: Sequence[str]) -> List[ScoreResult]:
        if not self.is_available():
            raise FzfUnavailableError("fzf is not available")
        if not texts:
            return []

        # NUL-separated so multi-line commands survive
        output = run_command(
            [self.path, "--filter", query, "--tiebreak=index", "-i", "--read0", "--print0"],
            timeout=self.timeout,
            stdin="\0".join(texts),
            ok_codes=(0, 1),    # 1 = no match
        )
        if output is None:
            self.available = False
            raise FzfUnavailableError("fzf failed or timed out")

        ranked = [line for line in output.split("\0") if line]
        positions: Dict[str, Deque[int]] = defaultdict(deque)
        for index, text in enumerate(texts):
            positions[text].append(index)

        results = [NO_MATCH] * len(texts)
        for rank, line in enumerate(ranked):
            if not positions.get(line):
                log.debug("Unexpected fzf output line: %r", line)
                continue
            results[positions[line].popleft()] = ScoreResult(1.0 - rank / len(ranked))
        return results

    def score(self, query: str, text: str) -> ScoreResult:
        return self.score_many(query, [text])[0]
