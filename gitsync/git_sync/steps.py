"""Progress step names and the step-keyed logger adapter."""

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union


class GitStep(Enum):
    """Named checkpoints of a sync run, reported to the logger."""
    PREPARE_SYNC = "PrepareSync"
    HAVE_THINGS_TO_COMMIT = "HaveThingsToCommit"
    ADDING_FILES = "AddingFiles"
    COMMIT_COMPLETE = "CommitComplete"
    PREPARING_USER_INFO = "PreparingUserInfo"
    FETCHING_DATA = "FetchingData"
    CHECKING_LOCAL_SYNC_STATE = "CheckingLocalSyncState"
    CHECKING_LOCAL_GIT_REPO_SANITY = "CheckingLocalGitRepoSanity"
    NO_NEED_TO_SYNC = "NoNeedToSync"
    NO_UPSTREAM_CANT_PUSH = "NoUpstreamCantPush"
    LOCAL_AHEAD_START_UPLOAD = "LocalAheadStartUpload"
    LOCAL_STATE_BEHIND_SYNC = "LocalStateBehindSync"
    LOCAL_STATE_DIVERGE_REBASE = "LocalStateDivergeRebase"
    REBASE_RESULT_CHECKING = "RebaseResultChecking"
    REBASE_SUCCEED = "RebaseSucceed"
    REBASE_CONFLICT_NEEDS_RESOLVE = "RebaseConflictNeedsResolve"
    CANT_SYNC_IN_SPECIAL_GIT_STATE_AUTO_FIX_SUCCEED = "CantSyncInSpecialGitStateAutoFixSucceed"
    REMOVING_CREDENTIAL = "RemovingCredential"
    PERFORM_LAST_CHECK_BEFORE_SYNCHRONIZATION_FINISH = "PerformLastCheckBeforeSynchronizationFinish"
    SYNCHRONIZATION_FINISH = "SynchronizationFinish"


class StepLogger(logging.LoggerAdapter):
    """
    Logger adapter that tags every record with the calling function, the step
    and the repository directory.

    The tags land on the record as ``operation``, ``step`` and ``dir``, which
    the server's formatter renders as ``[operation:step]``.
    """

    def __init__(self, logger: logging.Logger, function_name: str, dir: Union[str, Path, None] = None, **extra: Any):
        super().__init__(logger, {"operation": function_name, "dir": str(dir) if dir is not None else None, **extra})

    def process(self, msg, kwargs):
        step = kwargs.pop("step", None)
        extra = dict(self.extra)
        extra["step"] = step.value if isinstance(step, GitStep) else step
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs

    def progress(self, step: GitStep) -> None:
        self.info(step.value, step=step)


def step_logger(
    logger: Optional[logging.Logger],
    default_name: str,
    function_name: str,
    dir: Union[str, Path, None] = None,
    **extra: Any,
) -> StepLogger:
    """Wrap the caller's logger, or the named module logger when none was passed."""
    base = logger
    if isinstance(base, logging.LoggerAdapter):
        base = base.logger
    if base is None:
        base = logging.getLogger(default_name)
    return StepLogger(base, function_name, dir, **extra)
