"""
Data model for completion requests and their candidates.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple


# Slots: the classified role of the word under the cursor
SLOT_COMMAND = "command"
SLOT_ARGUMENT = "argument"
SLOT_OPTION = "option"
SLOT_PATH = "path"
SLOT_VARIABLE = "variable"

SLOTS = [SLOT_COMMAND, SLOT_ARGUMENT, SLOT_OPTION, SLOT_PATH, SLOT_VARIABLE]

# Candidate categories
CATEGORIES = [
    "command",
    "file",
    "directory",
    "option",
    "argument",
    "variable",
    "hostname",
    "history",
    "other",
]


@dataclass
class CompletionCandidate:
    """One proposed completion with its ranking metadata."""

    text: str                       # Replaces the current word
    display: str = ""               # Label shown to the user (defaults to text)
    description: str = ""
    category: str = "other"
    priority: int = 0               # Higher ranks first when not fuzzy-ranking
    metadata: Dict[str, Any] = field(default_factory=dict)
    score: Optional[float] = None   # Set by the fuzzy ranker
    matches: List[Tuple[int, int]] = field(default_factory=list)

    def __post_init__(self):
        if not self.text:
            raise ValueError("CompletionCandidate.text must not be empty")
        if self.category not in CATEGORIES:
            self.category = "other"
        if not self.display:
            self.display = self.text

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "text": self.text,
            "display": self.display,
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
            "metadata": dict(self.metadata),
        }
        if self.score is not None:
            data["score"] = self.score
            data["matches"] = [list(span) for span in self.matches]
        return data


@dataclass(frozen=True)
class CompletionContext:
    """
    Everything known about one completion request.

    Derived once per request by `tokenizer.classify` and never mutated.
    """

    line: str
    cursor: int
    current_word: str
    previous_words: Tuple[str, ...]
    command_name: Optional[str]
    slot: str
    cwd: str
    env: Optional[Mapping[str, str]] = field(default=None, compare=False, hash=False, repr=False)

    @property
    def position(self) -> int:
        """Index of the word being completed (0 = command position)."""
        return len(self.previous_words)

    @property
    def last_word(self) -> Optional[str]:
        """The complete word right before the cursor word, if any."""
        return self.previous_words[-1] if self.previous_words else None

    @property
    def cache_key(self) -> Tuple[str, str, int, str]:
        return (self.current_word, self.command_name or "", self.position, self.cwd)


def unique_by_text(candidates: Iterable[CompletionCandidate]) -> List[CompletionCandidate]:
    """Drop candidates whose text was already seen, keeping the first."""
    seen = set()
    unique = []
    for candidate in candidates:
        if candidate.text in seen:
            continue
        seen.add(candidate.text)
        unique.append(candidate)
    return unique
