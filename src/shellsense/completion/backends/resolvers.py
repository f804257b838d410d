"""
Command-specific argument resolvers.

RESOLVERS maps a command name to the function that completes its arguments.
A resolver receives the CompletionContext and the backend that is asking,
and returns candidates already filtered by the prefix of the current word.
External queries go through `backend.run`, which applies the configured
timeout and turns every failure into None, so a resolver only has to handle
"no output".

Add support for another command with `register_resolver`:

    def resolve_make(context, backend):
        ...

    register_resolver("make", resolve_make)
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import psutil

from shellsense.completion.backends.runner import output_lines
from shellsense.completion.models import CompletionCandidate, unique_by_text
from shellsense.completion.tokenizer import unquote


ResolverFunc = Callable[..., List[CompletionCandidate]]


@dataclass(frozen=True)
class Resolver:
    """A registered argument resolver for one command name."""
    name: str
    func: ResolverFunc
    include_files: bool = True   # Also offer plain filesystem entries


RESOLVERS: Dict[str, Resolver] = {}


def register_resolver(name: str, func: ResolverFunc, include_files: bool = True) -> Resolver:
    """
    Register (or replace) the resolver for a command.

    Args:
        name: Command name as typed, without directory
        func: Callable taking (context, backend)
        include_files: Whether filesystem entries are offered alongside

    Returns:
        The registered Resolver
    """
    resolver = Resolver(name=name, func=func, include_files=include_files)
    RESOLVERS[name] = resolver
    return resolver


def get_resolver(command: Optional[str]) -> Optional[Resolver]:
    """Look up the resolver for a (possibly quoted or path-qualified) command."""
    if not command:
        return None
    return RESOLVERS.get(os.path.basename(unquote(command)))


# ====================
# Helpers
# ====================

def _word(context) -> str:
    return unquote(context.current_word)


def _subcommand(context) -> Optional[str]:
    """First non-option word after the command name."""
    for word in context.previous_words[1:]:
        if not word.startswith("-"):
            return unquote(word)
    return None


def _static(names: Iterable[str], prefix: str, description: str,
            category: str = "argument", priority: int = 8) -> List[CompletionCandidate]:
    return [
        CompletionCandidate(text=name, description=description, category=category, priority=priority)
        for name in names
        if name.startswith(prefix)
    ]


# ====================
# git
# ====================

GIT_SUBCOMMANDS = [
    'add', 'commit', 'push', 'pull', 'clone', 'checkout',
    'branch', 'merge', 'rebase', 'status', 'diff', 'log',
    'stash', 'fetch', 'remote', 'tag', 'reset', 'revert',
    'init', 'mv', 'rm', 'show', 'blame', 'grep', 'switch', 'restore',
]

GIT_REF_SUBCOMMANDS = {'checkout', 'switch', 'merge', 'rebase', 'branch', 'diff', 'log'}
GIT_FILE_SUBCOMMANDS = {'add', 'rm', 'diff', 'restore'}


def _git_refs(context, backend, prefix: str) -> List[CompletionCandidate]:
    output = backend.run(["git", "for-each-ref", "--format=%(refname:short)", "refs/"], context)
    return _static(output_lines(output), prefix, "git ref")


def _git_modified_files(context, backend, prefix: str) -> List[CompletionCandidate]:
    output = backend.run(["git", "status", "--porcelain"], context)
    if not output:
        return []

    candidates = []
    for line in output.splitlines():
        # "XY path" or "R  old -> new"
        if len(line) < 4:
            continue
        path = line[3:]
        if " -> " in path:
            path = path.split(" -> ", 1)[1]
        path = path.strip('"')
        if path.startswith(prefix):
            candidates.append(CompletionCandidate(
                text=path,
                description="modified file",
                category="file",
                priority=8,
                metadata={"status": line[:2].strip()},
            ))
    return candidates


def resolve_git(context, backend) -> List[CompletionCandidate]:
    prefix = _word(context)
    subcommand = _subcommand(context)

    if subcommand is None:
        return _static(GIT_SUBCOMMANDS, prefix, "git subcommand")

    candidates = []
    if subcommand in GIT_REF_SUBCOMMANDS:
        candidates.extend(_git_refs(context, backend, prefix))
    if subcommand in GIT_FILE_SUBCOMMANDS:
        candidates.extend(_git_modified_files(context, backend, prefix))
    return unique_by_text(candidates)


# ====================
# npm
# ====================

NPM_COMMANDS = [
    'install', 'uninstall', 'run', 'test', 'start',
    'init', 'publish', 'update', 'audit', 'ci',
    'ls', 'outdated', 'prune', 'rebuild', 'link',
]


def _npm_scripts(context, prefix: str) -> List[CompletionCandidate]:
    """Scripts declared in ./package.json."""
    try:
        with open(Path(context.cwd) / "package.json", encoding="utf-8") as f:
            package = json.load(f)
    except (OSError, ValueError):
        return []

    scripts = package.get("scripts") if isinstance(package, dict) else None
    if not isinstance(scripts, dict):
        return []

    return [
        CompletionCandidate(
            text=name,
            description=str(script)[:50],
            category="argument",
            priority=9,
            metadata={"script": script},
        )
        for name, script in scripts.items()
        if name and name.startswith(prefix)
    ]


def resolve_npm(context, backend) -> List[CompletionCandidate]:
    prefix = _word(context)
    subcommand = _subcommand(context)

    if subcommand is None:
        return unique_by_text(
            _static(NPM_COMMANDS, prefix, "npm command") + _npm_scripts(context, prefix)
        )
    if subcommand == "run":
        return _npm_scripts(context, prefix)
    return []


# ====================
# docker
# ====================

DOCKER_COMMANDS = [
    'run', 'exec', 'ps', 'build', 'pull', 'push',
    'images', 'container', 'volume', 'network',
    'stop', 'start', 'restart', 'rm', 'rmi',
    'logs', 'inspect', 'compose', 'swarm',
]

DOCKER_CONTAINER_SUBCOMMANDS = {'exec', 'stop', 'start', 'restart', 'rm', 'logs', 'inspect'}
DOCKER_IMAGE_SUBCOMMANDS = {'run', 'rmi'}


def resolve_docker(context, backend) -> List[CompletionCandidate]:
    prefix = _word(context)
    subcommand = _subcommand(context)

    if subcommand is None:
        return _static(DOCKER_COMMANDS, prefix, "docker command")

    if subcommand in DOCKER_CONTAINER_SUBCOMMANDS:
        output = backend.run(["docker", "ps", "--format", "{{.Names}}"], context)
        return unique_by_text(_static(output_lines(output), prefix, "docker container"))

    if subcommand in DOCKER_IMAGE_SUBCOMMANDS:
        output = backend.run(["docker", "images", "--format", "{{.Repository}}:{{.Tag}}"], context)
        images = [image for image in output_lines(output) if "<none>" not in image]
        return unique_by_text(_static(images, prefix, "docker image"))

    return []


# ====================
# kill
# ====================

def resolve_processes(context, backend) -> List[CompletionCandidate]:
    """Process ids with their command names."""
    prefix = _word(context)
    candidates = []

    try:
        for proc in psutil.process_iter(["pid", "name"]):
            pid = str(proc.info["pid"])
            name = proc.info.get("name") or ""
            if not pid.startswith(prefix):
                continue
            candidates.append(CompletionCandidate(
                text=pid,
                description=name[:30],
                category="argument",
                priority=7,
                metadata={"command": name},
            ))
    except (psutil.Error, OSError):
        return []

    return unique_by_text(candidates)


# ====================
# ssh / scp / rsync
# ====================

def _read_lines(path: Path) -> List[str]:
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            return f.read().splitlines()
    except OSError:
        return []


def _is_plain_host(host: str) -> bool:
    """Reject patterns, negations, hashed and bracketed entries."""
    if not host or host[0] in "|[!#@":
        return False
    return not any(char in host for char in "*?")


def known_hosts(path: Path) -> List[str]:
    hosts = []
    for line in _read_lines(path):
        fields = line.split()
        if not fields or fields[0].startswith("#"):
            continue
        if fields[0].startswith("@") and len(fields) > 1:
            # @cert-authority / @revoked markers precede the host field
            fields = fields[1:]
        hosts.extend(name for name in fields[0].split(",") if _is_plain_host(name))
    return hosts


def ssh_config_hosts(path: Path) -> List[str]:
    hosts = []
    for line in _read_lines(path):
        fields = line.split()
        if len(fields) > 1 and fields[0].lower() == "host":
            hosts.extend(name for name in fields[1:] if _is_plain_host(name))
    return hosts


def etc_hosts(path: Path) -> List[str]:
    hosts = []
    for line in _read_lines(path):
        line = line.split("#", 1)[0]
        fields = line.split()
        hosts.extend(name for name in fields[1:] if _is_plain_host(name))
    return hosts


def resolve_hosts(context, backend) -> List[CompletionCandidate]:
    """Hostnames from known_hosts, ssh config and /etc/hosts."""
    prefix = _word(context)
    home = Path(backend.environment(context).get("HOME") or Path.home())

    sources = [
        (known_hosts(home / ".ssh" / "known_hosts"), "known host", 8),
        (ssh_config_hosts(home / ".ssh" / "config"), "ssh config", 9),
        (etc_hosts(Path("/etc/hosts")), "/etc/hosts", 7),
    ]

    candidates = []
    for hosts, description, priority in sources:
        candidates.extend(_static(hosts, prefix, description, category="hostname", priority=priority))
    return unique_by_text(candidates)


# ====================
# cd / pushd
# ====================

def resolve_directories(context, backend) -> List[CompletionCandidate]:
    return backend.directory_candidates(context)


register_resolver("git", resolve_git)
register_resolver("npm", resolve_npm)
register_resolver("docker", resolve_docker)
register_resolver("kill", resolve_processes, include_files=False)
register_resolver("ssh", resolve_hosts, include_files=False)
register_resolver("scp", resolve_hosts)
register_resolver("rsync", resolve_hosts)
register_resolver("cd", resolve_directories, include_files=False)
register_resolver("pushd", resolve_directories, include_files=False)
