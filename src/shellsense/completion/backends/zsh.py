"""
Zsh backend.

Adds zsh builtins and, when zsh can be run, reads the command hash table
(`${(k)commands}`), which also covers PATH entries the scan misses.
"""

from typing import List, Mapping, Optional

from shellsense.completion.backends.base import GenericBackend
from shellsense.completion.backends.runner import output_lines
from shellsense.completion.models import CompletionCandidate, CompletionContext
from shellsense.config import Config

_COMMANDS_SCRIPT = 'print -rl -- ${(k)commands}'


class ZshBackend(GenericBackend):
    """Completion backend for zsh."""

    name = "zsh"

    BUILTINS = GenericBackend.BUILTINS + [
        'autoload', 'bindkey', 'builtin', 'chdir', 'compctl', 'compadd',
        'compdef', 'dirs', 'disable', 'disown', 'echotc', 'echoti',
        'emulate', 'enable', 'fc', 'float', 'functions', 'getln',
        'getopts', 'hash', 'history', 'integer', 'limit', 'logout',
        'popd', 'print', 'pushd', 'pushln', 'r', 'rehash', 'sched',
        'setopt', 'suspend', 'times', 'ttyctl', 'type', 'ulimit',
        'unfunction', 'unhash', 'unlimit', 'unsetopt', 'vared',
        'whence', 'where', 'which', 'zcompile', 'zformat', 'zle',
        'zmodload', 'zparseopts', 'zstyle',
    ]

    def __init__(self, config: Optional[Config] = None, env: Optional[Mapping[str, str]] = None,
                 shell_path: str = "zsh"):
        super().__init__(config, env)
        self.shell_path = shell_path
        self.commands_available: Optional[bool] = None

    def initialize(self) -> None:
        if self.initialized:
            return
        output = self.run([self.shell_path, "-f", "-c", "print ok"])
        self.commands_available = output is not None
        self.initialized = True

    def native_commands(self, context: CompletionContext, prefix: str) -> List[CompletionCandidate]:
        if not self.commands_available:
            return []

        output = self.run([self.shell_path, "-f", "-c", _COMMANDS_SCRIPT], context)
        names = {name for name in output_lines(output) if name.startswith(prefix)}
        return [
            CompletionCandidate(text=name, description="command", category="command", priority=5)
            for name in sorted(names)
        ]
