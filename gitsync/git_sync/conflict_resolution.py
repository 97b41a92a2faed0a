"""Bounded automatic recovery from interrupted git operations."""

import logging
from dataclasses import replace
from typing import List, Optional

from ..errors import CantSyncInSpecialGitStateAutoFixFailed, SyncScriptIsInDeadLoopError
from .operations import (
    abort_and_reapply_rebase,
    continue_operation,
    ensure_git_identity,
    get_conflicting_files,
    stage_all,
)
from .process import GitProcessResult, run_git
from .repository_info import InterruptedOperation, ReconciliationAttempt, RepositoryCondition, RepositorySession
from .state import get_git_directory, inspect
from .steps import GitStep, step_logger

_LOGGER_NAME = 'gitsync.git_sync.conflict_resolution'

# Entries into the loop allowed in one run; more means the caller is looping.
MAX_RESOLUTION_ENTRIES_PER_RUN = 3
# Recovery actions tried per entry: continue, then abort-and-reapply.
MAX_RESOLUTION_ATTEMPTS = 2


def _continue_if_resolved(
    session: RepositorySession,
    condition: RepositoryCondition,
    files_to_ignore: Optional[List[str]],
    timeout: Optional[float],
    logger: Optional[logging.Logger],
) -> GitProcessResult:
    conflicts = get_conflicting_files(session.dir)
    if conflicts:
        return GitProcessResult(exit_code=1, stdout="", stderr="Unmerged paths:\n" + "\n".join(conflicts))

    staged = stage_all(session.dir, files_to_ignore, timeout, logger)
    if not staged.success:
        return staged
    git_dir = get_git_directory(session.dir, logger)
    result = continue_operation(session.dir, git_dir, condition, timeout, logger)
    return result or staged


def _abort_and_reapply(
    session: RepositorySession,
    condition: RepositoryCondition,
    files_to_ignore: Optional[List[str]],
    timeout: Optional[float],
    logger: Optional[logging.Logger],
) -> GitProcessResult:
    if condition.is_rebasing:
        git_dir = get_git_directory(session.dir, logger)
        return abort_and_reapply_rebase(session.dir, git_dir, timeout, logger)
    if condition.operation is InterruptedOperation.BISECTING:
        return run_git(["bisect", "reset"], session.dir, timeout=timeout, logger=logger)
    # Aborting a merge or cherry-pick would throw away the user's resolution work.
    return _continue_if_resolved(session, condition, files_to_ignore, timeout, logger)


def resolve_special_condition(
    session: RepositorySession,
    condition: Optional[RepositoryCondition] = None,
    attempt: ReconciliationAttempt = ReconciliationAttempt(),
    files_to_ignore: Optional[List[str]] = None,
    logger: Optional[logging.Logger] = None,
    timeout: Optional[float] = None,
) -> ReconciliationAttempt:
    """
    Try to bring a repository out of an interrupted rebase, merge,
    cherry-pick or bisect.

    The first action concludes the operation with git's continue command when
    no conflicts are left unresolved. The second one aborts and replays a
    rebase onto the same commit. The repository is inspected again after each
    action. Conflicts are never resolved on the user's behalf.

    Args:
        session: Repository the run works on
        condition: Condition already inspected by the caller
        attempt: Bookkeeping carried over from earlier entries in this run
        files_to_ignore: Paths never staged
        logger: Logger for progress and diagnostics
        timeout: Seconds allowed per git command

    Returns:
        The updated bookkeeping

    Raises:
        SyncScriptIsInDeadLoopError: If the loop was entered too often in one run
        CantSyncInSpecialGitStateAutoFixFailed: If the operation is still
            interrupted after every action
    """
    log = step_logger(logger, _LOGGER_NAME, 'resolve_special_condition', session.dir)

    attempt = replace(attempt, entries=attempt.entries + 1)
    if attempt.entries > MAX_RESOLUTION_ENTRIES_PER_RUN:
        raise SyncScriptIsInDeadLoopError(attempt.entries)

    condition = condition if condition is not None else inspect(session.dir, logger)
    if not condition.has_interrupted_operation:
        return attempt

    log.info(f"Repository is in special state {condition}, trying to fix", step=GitStep.REBASE_CONFLICT_NEEDS_RESOLVE)
    ensure_git_identity(session.dir, session.user_name, session.email, logger)

    last_result: Optional[GitProcessResult] = None
    actions = (_continue_if_resolved, _abort_and_reapply)
    for action in actions[:MAX_RESOLUTION_ATTEMPTS]:
        attempt = replace(attempt, attempts=attempt.attempts + 1)
        last_result = action(session, condition, files_to_ignore, timeout, logger)
        log.debug(
            f"{action.__name__.strip('_')} exited with {last_result.exit_code}\n"
            f"stdout:\n{last_result.stdout}\nstderr:\n{last_result.stderr}",
            step=GitStep.REBASE_CONFLICT_NEEDS_RESOLVE
        )

        condition = inspect(session.dir, logger)
        if not condition.has_interrupted_operation:
            log.progress(GitStep.CANT_SYNC_IN_SPECIAL_GIT_STATE_AUTO_FIX_SUCCEED)
            return attempt

    diagnostics = ""
    if last_result is not None:
        diagnostics = (last_result.stderr or last_result.stdout).strip()
    raise CantSyncInSpecialGitStateAutoFixFailed(f"{condition}\n{diagnostics}".strip())
