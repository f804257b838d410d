"""
Timeout-bounded external command execution for completion sources.

Every dynamic resolver goes through `run_command`, which never raises: a
missing binary, a timeout, a non-zero exit or any OS error all come back as
None, meaning "no data from this source".
"""

import logging
import subprocess
from typing import Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 1.0


def run_command(
    args: Sequence[str],
    timeout: float = DEFAULT_TIMEOUT,
    cwd: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    stdin: Optional[str] = None,
    ok_codes: Sequence[int] = (0,),
) -> Optional[str]:
    """
    Run a command and return its stdout.

    Args:
        args: Program and arguments (no shell interpolation)
        timeout: Seconds to wait before giving up
        cwd: Working directory for the command
        env: Environment for the command (default: inherit)
        stdin: Text fed to the command's standard input
        ok_codes: Exit codes that count as success

    Returns:
        Captured stdout, or None if the command could not produce data
    """
    try:
        result = subprocess.run(
            list(args),
            input=stdin,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            cwd=cwd,
            env=dict(env) if env is not None else None,
        )
    except subprocess.TimeoutExpired:
        logger.debug("Timed out after %.1fs: %s", timeout, args[0])
        return None
    except (FileNotFoundError, PermissionError):
        logger.debug("Not runnable: %s", args[0])
        return None
    except (OSError, ValueError) as e:
        logger.debug("Failed to run %s: %s", args[0], e)
        return None

    if result.returncode not in ok_codes:
        logger.debug("%s exited with code %d", args[0], result.returncode)
        return None

    return result.stdout


def output_lines(output: Optional[str]) -> list:
    """Split command output into stripped, non-empty lines."""
    if not output:
        return []
    return [line.strip() for line in output.splitlines() if line.strip()]
