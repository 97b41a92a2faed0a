"""Classifying how local HEAD relates to the remote-tracking branch."""

import logging
import re
from pathlib import Path
from typing import Optional, Union

from ..errors import AssumeSyncError
from .process import run_git
from .repository_info import DivergenceState
from .state import get_remote_name
from .steps import GitStep, step_logger

_LOGGER_NAME = 'gitsync.git_sync.sync_state'
_COUNTS = re.compile(r"^(\d+)\s+(\d+)")


def classify_counts(stdout: str) -> Optional[DivergenceState]:
    """
    Map ``rev-list --count --left-right`` output to a divergence state.

    The left number counts commits only on the remote, the right number
    commits only on local HEAD. Returns None when the output does not hold
    two counts.
    """
    if stdout.strip() == "":
        return DivergenceState.NO_UPSTREAM_OR_BARE_UPSTREAM
    match = _COUNTS.match(stdout.strip())
    if match is None:
        return None

    remote_only, local_only = int(match.group(1)), int(match.group(2))
    if remote_only == 0 and local_only == 0:
        return DivergenceState.EQUAL
    if remote_only == 0:
        return DivergenceState.AHEAD
    if local_only == 0:
        return DivergenceState.BEHIND
    return DivergenceState.DIVERGED


def get_sync_state(
    dir: Union[str, Path],
    default_branch_name: str,
    remote_name: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> DivergenceState:
    """
    Determine how the remote relates to our HEAD.

    Uses only the remote-tracking branch already present locally; nothing is
    fetched.

    Args:
        dir: Working tree path
        default_branch_name: Branch to compare
        remote_name: Remote to compare with, looked up from config when omitted
        logger: Logger for diagnostics

    Returns:
        DivergenceState of local HEAD against ``<remote>/<branch>``
    """
    log = step_logger(logger, _LOGGER_NAME, 'get_sync_state', dir)

    remote_name = remote_name or get_remote_name(dir, default_branch_name)
    result = run_git(
        ["rev-list", "--count", "--left-right", f"{remote_name}/{default_branch_name}...HEAD"],
        dir,
        logger=logger
    )
    log.debug(
        f"Checking sync state with upstream, stdout:\n{result.stdout}\n(stdout end)",
        step=GitStep.CHECKING_LOCAL_SYNC_STATE
    )
    if result.stderr:
        log.debug(
            f"Have problem checking sync state with upstream, stderr:\n{result.stderr}\n(stderr end)",
            step=GitStep.CHECKING_LOCAL_SYNC_STATE
        )

    state = classify_counts(result.stdout)
    if state is None:
        log.warning(
            f"Unexpected rev-list output {result.stdout.strip()!r}, treating as no upstream",
            step=GitStep.CHECKING_LOCAL_SYNC_STATE
        )
        return DivergenceState.NO_UPSTREAM_OR_BARE_UPSTREAM
    return state


def assume_sync(
    dir: Union[str, Path],
    default_branch_name: str,
    remote_name: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Raise AssumeSyncError unless local HEAD equals the remote-tracking branch."""
    sync_state = get_sync_state(dir, default_branch_name, remote_name, logger)
    if sync_state is DivergenceState.EQUAL:
        return
    raise AssumeSyncError(f"Local state is {sync_state.value}, expected equal")
