"""
Configuration management for ShellSense.

A Config is a static snapshot handed to every component at construction.
The core never reads configuration files or the process environment on its
own; `Config.from_env` exists for the CLI, which loads `.env` first.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional


HISTORY_MODES = ("solo", "shell-only", "unified")

# Names accepted for backwards compatibility with older config files
HISTORY_MODE_ALIASES = {
    "aish": "solo",
    "owned": "solo",
    "shell": "shell-only",
}

PROVIDER_NAMES = ("owned", "bash", "zsh", "fish")


def _default_providers() -> Dict[str, bool]:
    return {name: True for name in PROVIDER_NAMES}


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def expand_path(path: str) -> str:
    """Expand a leading ~ to the user's home directory."""
    if path.startswith("~"):
        return str(Path.home()) + path[1:]
    return path


@dataclass
class Config:
    """ShellSense configuration snapshot."""

    shell: Optional[str] = None
    debug: bool = False

    # Completion
    completion_enabled: bool = True
    completion_backend: str = "auto"
    history_suggestions: bool = True
    max_suggestions: int = 10
    cache_ttl: float = 300.0
    command_timeout: float = 1.0

    # Fuzzy ranking
    fuzzy_search: bool = True
    fuzzy_backend: str = "auto"
    fuzzy_max_distance: int = 3
    fzf_path: Optional[str] = None

    # History
    history_mode: str = "unified"
    history_file: str = "~/.shellsense_history"
    history_max_entries: int = 10000
    history_max_results: int = 50
    history_deduplicate: bool = True
    save_corrections: bool = True
    save_debounce: float = 1.0
    providers: Dict[str, bool] = field(default_factory=_default_providers)

    @property
    def history_path(self) -> Path:
        return Path(expand_path(self.history_file))

    def provider_enabled(self, name: str) -> bool:
        return self.providers.get(name, True)

    def resolve_shell(self, env: Optional[Mapping[str, str]] = None) -> str:
        """Configured shell, then $SHELL from the snapshot, then /bin/sh."""
        if self.shell:
            return self.shell
        if env is not None and env.get("SHELL"):
            return env["SHELL"]
        return "/bin/sh"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """Build a config from SHELLSENSE_* variables."""
        env = os.environ if environ is None else environ
        config = cls()

        config.shell = env.get("SHELLSENSE_SHELL") or None
        config.debug = _env_bool(env.get("SHELLSENSE_DEBUG"), False)

        config.completion_enabled = _env_bool(env.get("SHELLSENSE_COMPLETION"), True)
        config.completion_backend = env.get("SHELLSENSE_BACKEND", "auto")
        config.history_suggestions = _env_bool(env.get("SHELLSENSE_HISTORY_SUGGESTIONS"), True)
        config.max_suggestions = int(env.get("SHELLSENSE_MAX_SUGGESTIONS", "10"))
        config.cache_ttl = float(env.get("SHELLSENSE_CACHE_TTL", "300"))
        config.command_timeout = float(env.get("SHELLSENSE_COMMAND_TIMEOUT", "1.0"))

        config.fuzzy_search = _env_bool(env.get("SHELLSENSE_FUZZY"), True)
        config.fuzzy_backend = env.get("SHELLSENSE_FUZZY_BACKEND", "auto")
        config.fuzzy_max_distance = int(env.get("SHELLSENSE_FUZZY_MAX_DISTANCE", "3"))
        config.fzf_path = env.get("SHELLSENSE_FZF_PATH") or None

        config.history_mode = env.get("SHELLSENSE_HISTORY_MODE", "unified")
        config.history_file = env.get("SHELLSENSE_HISTORY_FILE", "~/.shellsense_history")
        config.history_max_entries = int(env.get("SHELLSENSE_HISTORY_MAX_ENTRIES", "10000"))
        config.history_max_results = int(env.get("SHELLSENSE_HISTORY_MAX_RESULTS", "50"))
        config.history_deduplicate = _env_bool(env.get("SHELLSENSE_HISTORY_DEDUPLICATE"), True)
        config.save_corrections = _env_bool(env.get("SHELLSENSE_SAVE_CORRECTIONS"), True)
        config.save_debounce = float(env.get("SHELLSENSE_SAVE_DEBOUNCE", "1.0"))

        # SHELLSENSE_PROVIDERS=owned,zsh enables only the listed providers
        listed = env.get("SHELLSENSE_PROVIDERS")
        if listed:
            enabled = {name.strip() for name in listed.split(",") if name.strip()}
            config.providers = {name: name in enabled for name in PROVIDER_NAMES}

        return config
