"""
Shell backends: live completion candidates for a classified context.

Contract shared by every backend: `resolve(context)` returns only
candidates whose text starts with the word under the cursor (after
unquoting; for variables the part after `$`, for paths the part after the
last `/` is what gets matched). Ranking and truncation happen later, in the
CompletionManager. A failing source contributes nothing and never raises.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from shellsense.completion.backends.resolvers import Resolver, get_resolver
from shellsense.completion.backends.runner import run_command
from shellsense.completion.models import (
    CompletionCandidate,
    CompletionContext,
    SLOT_ARGUMENT,
    SLOT_COMMAND,
    SLOT_OPTION,
    SLOT_PATH,
    SLOT_VARIABLE,
    unique_by_text,
)
from shellsense.completion.tokenizer import unquote
from shellsense.config import Config
from shellsense.utils.logger import logger

log = logging.getLogger(__name__)

# Characters that need a backslash when a file name is inserted unquoted
_SHELL_SPECIAL = set(" \t\n\\'\"$`&;|<>()*?[]{}!#")

_OPTION_RE = re.compile(r"(?<![\w-])(--?[A-Za-z0-9][\w-]*)")

MAX_HELP_LINES = 20


def escape_name(name: str) -> str:
    """Backslash-escape shell metacharacters in a file name."""
    return "".join("\\" + char if char in _SHELL_SPECIAL else char for char in name)


class CompletionBackend(ABC):
    """
    Interface for shell backends.

    Variants are chosen at startup by `create_backend`; they differ only in
    their builtin names and in an optional native completion facility.
    """

    name = "base"

    def __init__(self, config: Optional[Config] = None, env: Optional[Mapping[str, str]] = None):
        """
        Args:
            config: Configuration snapshot (timeouts, debug flag)
            env: Environment snapshot used when a request carries none
        """
        self.config = config or Config()
        self.env: Dict[str, str] = dict(os.environ if env is None else env)
        self.timeout = self.config.command_timeout
        self.debug = self.config.debug
        self.initialized = False

    def initialize(self) -> None:
        """Run one-time detection. Safe to call repeatedly."""
        self.initialized = True

    @abstractmethod
    def list_builtins(self) -> List[str]:
        """Names the shell treats as builtin commands."""
        pass

    @abstractmethod
    def resolve(self, context: CompletionContext) -> List[CompletionCandidate]:
        """Raw candidates for the context's slot, prefix-filtered."""
        pass

    def environment(self, context: Optional[CompletionContext] = None) -> Dict[str, str]:
        """The request's environment snapshot, or the backend's own."""
        if context is not None and context.env is not None:
            return dict(context.env)
        return self.env

    def run(
        self,
        args: Sequence[str],
        context: Optional[CompletionContext] = None,
        timeout: Optional[float] = None,
    ) -> Optional[str]:
        """Run an external query in the request's cwd and environment."""
        return run_command(
            args,
            timeout=timeout or self.timeout,
            cwd=context.cwd if context is not None else None,
            env=self.environment(context),
        )


class GenericBackend(CompletionBackend):
    """Backend for any POSIX-like shell, using only PATH and the filesystem."""

    name = "generic"

    BUILTINS = [
        'cd', 'pwd', 'echo', 'export', 'alias', 'unalias',
        'source', '.', 'eval', 'exec', 'exit', 'return',
        'break', 'continue', 'shift', 'set', 'unset',
        'readonly', 'declare', 'local', 'typeset',
        'bg', 'fg', 'jobs', 'kill', 'wait',
        'true', 'false', 'test', 'read', 'trap', 'umask',
    ]

    # Offered when `<command> --help` yields no options
    COMMON_OPTIONS: List[Tuple[str, str]] = [
        ('--help', 'Show help'),
        ('-h', 'Show help'),
        ('--version', 'Show version'),
        ('-v', 'Verbose output'),
        ('--verbose', 'Verbose output'),
        ('-q', 'Quiet mode'),
        ('--quiet', 'Quiet mode'),
        ('-f', 'Force'),
        ('--force', 'Force operation'),
    ]

    def list_builtins(self) -> List[str]:
        return list(self.BUILTINS)

    def resolve(self, context: CompletionContext) -> List[CompletionCandidate]:
        if not self.initialized:
            self.initialize()

        handlers = {
            SLOT_VARIABLE: self.complete_variables,
            SLOT_PATH: self.complete_paths,
            SLOT_OPTION: self.complete_options,
            SLOT_COMMAND: self.complete_commands,
            SLOT_ARGUMENT: self.complete_arguments,
        }
        handler = handlers.get(context.slot, self.complete_arguments)

        try:
            candidates = handler(context)
        except Exception as e:
            logger.source_failed("backend", f"{self.name}:{context.slot}", str(e))
            return []

        if self.debug:
            log.debug("%s backend: %d candidates for %r", self.name, len(candidates), context.current_word)
        return unique_by_text(candidates)

    # ====================
    # Variables
    # ====================

    def complete_variables(self, context: CompletionContext) -> List[CompletionCandidate]:
        word = context.current_word[1:]
        braced = word.startswith("{")
        prefix = word[1:] if braced else word

        candidates = []
        for name, value in sorted(self.environment(context).items()):
            if not name.startswith(prefix):
                continue
            text = "${" + name + "}" if braced else "$" + name
            candidates.append(CompletionCandidate(
                text=text,
                description=value[:50] + ("..." if len(value) > 50 else ""),
                category="variable",
                priority=3,
                metadata={"value": value},
            ))
        return candidates

    # ====================
    # Filesystem
    # ====================

    def complete_paths(self, context: CompletionContext) -> List[CompletionCandidate]:
        resolver = get_resolver(context.command_name)
        directories_only = resolver is not None and not resolver.include_files
        return self.list_directory(context, directories_only=directories_only)

    def directory_candidates(self, context: CompletionContext) -> List[CompletionCandidate]:
        """Directories only, as used by `cd` and `pushd`."""
        return self.list_directory(context, directories_only=True)

    def list_directory(self, context: CompletionContext, directories_only: bool = False) -> List[CompletionCandidate]:
        """
        Entries of the directory named by the current word.

        Args:
            context: Completion context (cwd, current word)
            directories_only: Skip everything that is not a directory

        Returns:
            File and directory candidates, directories ending in "/"
        """
        word = unquote(context.current_word)
        opening = context.current_word[:1] if context.current_word.startswith(("'", '"')) else ""
        escape = not opening

        if word == "~":
            word = "~/"
        typed_dir, _, base = word.rpartition("/")
        if typed_dir or word.startswith("/"):
            typed_dir += "/"

        search_dir = os.path.expanduser(typed_dir) if typed_dir else "."
        if not os.path.isabs(search_dir):
            search_dir = os.path.join(context.cwd, search_dir)

        try:
            with os.scandir(search_dir) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            logger.source_failed("backend", f"listdir {search_dir}", str(e))
            return []

        candidates = []
        for entry in entries:
            name = entry.name
            if not name.startswith(base):
                continue
            # Hidden entries only when asked for
            if name.startswith(".") and not base.startswith("."):
                continue

            try:
                is_dir = entry.is_dir()
            except OSError:
                is_dir = False
            if directories_only and not is_dir:
                continue

            shown = escape_name(name) if escape else name
            suffix = "/" if is_dir else ""
            candidates.append(CompletionCandidate(
                text=opening + (escape_name(typed_dir) if escape else typed_dir) + shown + suffix,
                display=name + suffix,
                description="directory" if is_dir else "file",
                category="directory" if is_dir else "file",
                priority=9 if is_dir else 3,
                metadata={"path": entry.path, "is_directory": is_dir},
            ))
        return candidates

    # ====================
    # Commands
    # ====================

    def path_executables(self, context: CompletionContext, prefix: str) -> List[Tuple[str, str]]:
        """(name, full path) of executables on $PATH starting with prefix."""
        path_var = self.environment(context).get("PATH", "")
        found: Dict[str, str] = {}

        for directory in path_var.split(os.pathsep):
            if not directory:
                continue
            try:
                with os.scandir(directory) as it:
                    for entry in it:
                        if entry.name in found or not entry.name.startswith(prefix):
                            continue
                        try:
                            if entry.is_file() and os.access(entry.path, os.X_OK):
                                found[entry.name] = entry.path
                        except OSError:
                            continue
            except OSError:
                continue

        return sorted(found.items())

    def complete_commands(self, context: CompletionContext) -> List[CompletionCandidate]:
        prefix = unquote(context.current_word)

        candidates = [
            CompletionCandidate(text=name, description="builtin", category="command", priority=10)
            for name in sorted(set(self.list_builtins()))
            if name.startswith(prefix)
        ]
        for name, path in self.path_executables(context, prefix):
            candidates.append(CompletionCandidate(
                text=name,
                description="command",
                category="command",
                priority=5,
                metadata={"path": path},
            ))
        candidates.extend(self.native_commands(context, prefix))
        return candidates

    def native_commands(self, context: CompletionContext, prefix: str) -> List[CompletionCandidate]:
        """Extra command names from the shell's own facility, if any."""
        return []

    # ====================
    # Options
    # ====================

    def help_options(self, context: CompletionContext, prefix: str) -> List[CompletionCandidate]:
        """Options parsed from `<command> --help`."""
        command = unquote(context.command_name or "")
        if not command:
            return []

        output = self.run([command, "--help"], context)
        if not output:
            return []

        option_lines = [line for line in output.splitlines() if line.lstrip().startswith("-")]
        candidates = []
        for line in option_lines[:MAX_HELP_LINES]:
            description = " ".join(line.split())[:50]
            for option in _OPTION_RE.findall(line):
                if option.startswith(prefix):
                    candidates.append(CompletionCandidate(
                        text=option,
                        description=description,
                        category="option",
                        priority=6,
                    ))
        return unique_by_text(candidates)

    def complete_options(self, context: CompletionContext) -> List[CompletionCandidate]:
        prefix = unquote(context.current_word)
        if context.command_name is None:
            return []

        candidates = self.help_options(context, prefix)
        if candidates:
            return candidates

        return [
            CompletionCandidate(text=option, description=description, category="option", priority=5)
            for option, description in self.COMMON_OPTIONS
            if option.startswith(prefix)
        ]

    # ====================
    # Arguments
    # ====================

    def call_resolver(self, resolver: Resolver, context: CompletionContext) -> List[CompletionCandidate]:
        try:
            return list(resolver.func(context, self))
        except Exception as e:
            logger.source_failed("backend", f"resolver {resolver.name}", str(e))
            return []

    def complete_arguments(self, context: CompletionContext) -> List[CompletionCandidate]:
        resolver = get_resolver(context.command_name)

        candidates: List[CompletionCandidate] = []
        if resolver is not None:
            candidates.extend(self.call_resolver(resolver, context))
        if resolver is None or resolver.include_files:
            candidates.extend(self.list_directory(context))
        return candidates
