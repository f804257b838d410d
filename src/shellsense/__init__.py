"""
ShellSense - completion and history ranking engine for interactive shells.

Turns a partially typed command line into a ranked list of completions drawn
from the live shell environment, on-disk command history and a fuzzy ranker.
"""

__version__ = "0.1.0"
__author__ = "ShellSense Team"

from shellsense.config import Config
from shellsense.completion.manager import CompletionManager
from shellsense.completion.models import CompletionCandidate, CompletionContext
from shellsense.completion.tokenizer import classify, tokenize
from shellsense.history.manager import HistoryManager

__all__ = [
    "Config",
    "CompletionManager",
    "CompletionCandidate",
    "CompletionContext",
    "HistoryManager",
    "classify",
    "tokenize",
    "__version__",
]
