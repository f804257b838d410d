"""
Shell backends and backend selection.
"""

import os
from typing import Dict, Mapping, Optional, Type

from shellsense.completion.backends.base import CompletionBackend, GenericBackend
from shellsense.completion.backends.bash import BashBackend
from shellsense.completion.backends.resolvers import RESOLVERS, Resolver, register_resolver
from shellsense.completion.backends.zsh import ZshBackend
from shellsense.config import Config
from shellsense.errors import ConfigurationError
from shellsense.utils.logger import logger

BACKENDS: Dict[str, Type[CompletionBackend]] = {
    "generic": GenericBackend,
    "base": GenericBackend,
    "bash": BashBackend,
    "zsh": ZshBackend,
}


def detect_shell_family(shell: Optional[str]) -> str:
    """
    Map a shell path or name to a backend name.

    Examples:
        /usr/bin/zsh -> "zsh"
        -bash        -> "bash"   (login shell)
        /bin/dash    -> "generic"
    """
    if not shell:
        return "generic"
    name = os.path.basename(shell.strip()).lstrip("-").lower()
    if name.startswith("zsh"):
        return "zsh"
    if name.startswith("bash"):
        return "bash"
    return "generic"


def get_backend_class(name: str) -> Type[CompletionBackend]:
    """Strict lookup; raises ConfigurationError for unknown names."""
    try:
        return BACKENDS[name.lower()]
    except KeyError:
        raise ConfigurationError("completion backend", name, sorted(BACKENDS)) from None


def create_backend(config: Optional[Config] = None, env: Optional[Mapping[str, str]] = None) -> CompletionBackend:
    """
    Create the backend selected by configuration.

    "auto" detects the shell family from the configured shell or $SHELL.
    An unknown name logs a warning and falls back to detection.
    """
    config = config or Config()
    env = os.environ if env is None else env
    shell = config.resolve_shell(env)
    family = detect_shell_family(shell)

    requested = (config.completion_backend or "auto").lower()
    if requested == "auto":
        backend_class = BACKENDS[family]
    else:
        try:
            backend_class = get_backend_class(requested)
        except ConfigurationError:
            logger.config_mismatch("completion backend", requested, family)
            backend_class = BACKENDS[family]

    if backend_class in (BashBackend, ZshBackend):
        # Use the configured binary when it is the matching shell
        shell_path = shell if detect_shell_family(shell) == backend_class.name else backend_class.name
        return backend_class(config, env, shell_path=shell_path)
    return backend_class(config, env)


__all__ = [
    "BACKENDS",
    "BashBackend",
    "CompletionBackend",
    "GenericBackend",
    "RESOLVERS",
    "Resolver",
    "ZshBackend",
    "create_backend",
    "detect_shell_family",
    "get_backend_class",
    "register_resolver",
]
