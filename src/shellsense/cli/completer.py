"""
prompt_toolkit adapter for the completion engine.

Plug into a PromptSession:

    session = PromptSession(completer=ShellCompleter(CompletionManager(config)))
"""

import os
from typing import Iterable, Optional

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from shellsense.completion.manager import CompletionManager
from shellsense.completion.tokenizer import classify


class ShellCompleter(Completer):
    """
    Completes the word under the cursor of a shell command line.

    Candidates come back ranked from the CompletionManager and are yielded
    in that order.
    """

    def __init__(self, manager: CompletionManager, cwd: Optional[str] = None):
        """
        Initialize the shell completer.

        Args:
            manager: Completion engine
            cwd: Fixed working directory (default: process cwd at request time)
        """
        self.manager = manager
        self.cwd = cwd

    def get_completions(self, document: Document, complete_event) -> Iterable[Completion]:
        text_before_cursor = document.text_before_cursor
        context = classify(
            text_before_cursor,
            cwd=self.cwd or os.getcwd(),
            env=self.manager.env,
        )

        # Replace the whole raw word, quotes included
        start_position = -len(context.current_word)

        for candidate in self.manager.get_completions(context.current_word, context):
            yield Completion(
                text=candidate.text,
                start_position=start_position,
                display=candidate.display,
                display_meta=candidate.description,
            )
