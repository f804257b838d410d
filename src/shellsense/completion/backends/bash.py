"""
Bash backend.

Adds bash builtins and, when bash's `compgen` works, uses it for command
names and for `cd`/`pushd` directory completion. Without compgen the
behaviour is that of the generic backend.
"""

from typing import List, Mapping, Optional

from shellsense.completion.backends.base import GenericBackend, escape_name
from shellsense.completion.backends.runner import output_lines
from shellsense.completion.models import CompletionCandidate, CompletionContext
from shellsense.completion.tokenizer import unquote
from shellsense.config import Config

# compgen action -> candidate category
COMPGEN_CATEGORIES = {
    'command': 'command',
    'alias': 'command',
    'builtin': 'command',
    'function': 'command',
    'file': 'file',
    'directory': 'directory',
    'variable': 'variable',
    'export': 'variable',
    'hostname': 'hostname',
}

# The word is passed as a positional parameter, never interpolated
_COMPGEN_SCRIPT = 'compgen -A "$1" -- "$2"'


class BashBackend(GenericBackend):
    """Completion backend for bash."""

    name = "bash"

    BUILTINS = GenericBackend.BUILTINS + [
        'bind', 'builtin', 'caller', 'command', 'compgen', 'complete',
        'compopt', 'dirs', 'disown', 'enable', 'help', 'history',
        'logout', 'mapfile', 'popd', 'pushd', 'readarray', 'shopt',
        'suspend', 'times', 'type', 'ulimit',
    ]

    def __init__(self, config: Optional[Config] = None, env: Optional[Mapping[str, str]] = None,
                 shell_path: str = "bash"):
        super().__init__(config, env)
        self.shell_path = shell_path
        self.compgen_available: Optional[bool] = None

    def initialize(self) -> None:
        if self.initialized:
            return
        output = self.run([self.shell_path, "-c", "compgen -A command ls"])
        self.compgen_available = output is not None
        self.initialized = True

    def compgen(self, action: str, word: str, context: Optional[CompletionContext] = None) -> Optional[List[str]]:
        """
        Run `compgen -A action -- word`.

        Returns:
            Matching names, or None when compgen is unavailable or failed
        """
        if not self.compgen_available:
            return None
        output = self.run([self.shell_path, "-c", _COMPGEN_SCRIPT, "bash", action, word], context)
        if output is None:
            return None
        return output_lines(output)

    def native_commands(self, context: CompletionContext, prefix: str) -> List[CompletionCandidate]:
        names = self.compgen("command", prefix, context) or []
        return [
            CompletionCandidate(
                text=name,
                description="command",
                category=COMPGEN_CATEGORIES["command"],
                priority=5,
            )
            for name in sorted(set(names))
            if name.startswith(prefix)
        ]

    def directory_candidates(self, context: CompletionContext) -> List[CompletionCandidate]:
        word = unquote(context.current_word)
        names = self.compgen("directory", word, context)
        if names is None:
            return super().directory_candidates(context)

        # Same insertion text as the filesystem listing
        opening = context.current_word[:1] if context.current_word.startswith(("'", '"')) else ""

        candidates = []
        for name in sorted(set(names)):
            if not name.startswith(word) or (name.startswith(".") and not word.startswith(".")):
                continue
            path = name.rstrip("/")
            candidates.append(CompletionCandidate(
                text=opening + (path if opening else escape_name(path)) + "/",
                display=path.rpartition("/")[2] + "/",
                description="directory",
                category=COMPGEN_CATEGORIES["directory"],
                priority=9,
            ))
        return candidates
