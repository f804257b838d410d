"""
Completion pipeline: tokenizer, shell backends, cache and the manager that
ranks their output.

The manager lives in `shellsense.completion.manager`.
"""

from shellsense.completion.models import CompletionCandidate, CompletionContext
from shellsense.completion.tokenizer import classify, tokenize

__all__ = [
    "CompletionCandidate",
    "CompletionContext",
    "classify",
    "tokenize",
]
