"""
Quoting-aware tokenizer and completion-slot classifier.

Only enough of shell syntax is understood to find the word under the cursor
and decide what kind of word it is. Quotes and backslashes are kept in the
emitted words so the raw text can be reassembled; `unquote` strips them.
"""

import os
from typing import List, Mapping, Optional

from shellsense.completion.models import (
    CompletionContext,
    SLOT_ARGUMENT,
    SLOT_COMMAND,
    SLOT_OPTION,
    SLOT_PATH,
    SLOT_VARIABLE,
)

QUOTE_CHARS = ('"', "'")


def tokenize(text: str) -> List[str]:
    """
    Split a command line into words.

    Examples:
        tokenize('a "b c" d')  -> ['a', '"b c"', 'd']
        tokenize('a "b')       -> ['a', '"b']
        tokenize('ls ')        -> ['ls', '']
    """
    words: List[str] = []
    current: List[str] = []
    in_word = False
    quote: Optional[str] = None
    escaped = False
    trailing_space = False

    for char in text:
        trailing_space = False

        if escaped:
            current.append(char)
            escaped = False
            continue

        if quote:
            # Inside quotes only the matching quote closes the word part
            current.append(char)
            if char == quote:
                quote = None
            continue

        if char == "\\":
            current.append(char)
            in_word = True
            escaped = True
        elif char in QUOTE_CHARS:
            current.append(char)
            in_word = True
            quote = char
        elif char.isspace():
            if in_word:
                words.append("".join(current))
                current = []
                in_word = False
            trailing_space = True
        else:
            current.append(char)
            in_word = True

    if in_word:
        words.append("".join(current))
    elif trailing_space:
        # Ready to start a new word
        words.append("")

    return words


def unquote(word: str) -> str:
    """Remove quote characters and escaping backslashes from a raw word."""
    out: List[str] = []
    quote: Optional[str] = None
    escaped = False

    for char in word:
        if escaped:
            out.append(char)
            escaped = False
        elif quote:
            if char == quote:
                quote = None
            else:
                out.append(char)
        elif char == "\\":
            escaped = True
        elif char in QUOTE_CHARS:
            quote = char
        else:
            out.append(char)

    if escaped:
        out.append("\\")
    return "".join(out)


def classify_word(current_word: str, previous_words) -> str:
    """Apply the slot rules, in order, to the word under the cursor."""
    if current_word.startswith("$"):
        return SLOT_VARIABLE
    if current_word.startswith("-"):
        return SLOT_OPTION
    if "/" in current_word or current_word.startswith("~"):
        return SLOT_PATH
    if not previous_words:
        return SLOT_COMMAND
    return SLOT_ARGUMENT


def classify(
    line: str,
    cursor: Optional[int] = None,
    cwd: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> CompletionContext:
    """
    Build the CompletionContext for a line and cursor offset.

    Args:
        line: Full input line
        cursor: Cursor offset (default: end of line)
        cwd: Working directory for the request (default: process cwd)
        env: Environment snapshot used by the backends

    Returns:
        Immutable CompletionContext
    """
    if cursor is None:
        cursor = len(line)
    cursor = max(0, min(cursor, len(line)))

    words = tokenize(line[:cursor])
    if words:
        current_word = words[-1]
        previous_words = tuple(words[:-1])
    else:
        current_word = ""
        previous_words = ()

    return CompletionContext(
        line=line,
        cursor=cursor,
        current_word=current_word,
        previous_words=previous_words,
        command_name=previous_words[0] if previous_words else None,
        slot=classify_word(current_word, previous_words),
        cwd=cwd or os.getcwd(),
        env=env,
    )
