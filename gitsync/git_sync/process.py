"""Running the git binary."""

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..platform import get_git_executable

# Exit code reported when git did not finish within its timeout.
TIMEOUT_EXIT_CODE = -1


@dataclass(frozen=True)
class GitProcessResult:
    """Outcome of a single git invocation."""
    exit_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.exit_code == 0


def run_git(
    args: List[str],
    cwd: Union[str, Path],
    timeout: Optional[float] = None,
    env: Optional[Dict[str, str]] = None,
    logger: Optional[logging.Logger] = None,
) -> GitProcessResult:
    """
    Run ``git <args>`` in ``cwd`` and capture its output.

    A non-zero exit code is returned, not raised. Messages are forced to the
    C locale so callers can match on them, and git is told never to prompt for
    credentials.

    Args:
        args: Arguments passed to git
        cwd: Working directory for the command
        timeout: Seconds to wait before giving up
        env: Extra environment variables
        logger: Logger for the command trace

    Returns:
        GitProcessResult with exit code, stdout and stderr
    """
    logger = logger or logging.getLogger('gitsync.git_sync.process')

    command_env = os.environ.copy()
    command_env.update({"LC_ALL": "C", "LANGUAGE": "C", "GIT_TERMINAL_PROMPT": "0"})
    if env:
        command_env.update(env)

    logger.debug(f"Executing git {' '.join(args)} in {cwd}")
    try:
        completed = subprocess.run(
            [get_git_executable(), *args],
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            cwd=str(cwd),
            env=command_env,
            timeout=timeout,
            check=False
        )
    except subprocess.TimeoutExpired:
        message = f"git {args[0] if args else ''} timed out after {timeout}s"
        logger.warning(message)
        return GitProcessResult(exit_code=TIMEOUT_EXIT_CODE, stdout="", stderr=message)

    if completed.returncode != 0:
        logger.debug(f"git {' '.join(args)} exited with {completed.returncode}: {completed.stderr.strip()}")
    return GitProcessResult(
        exit_code=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or ""
    )
