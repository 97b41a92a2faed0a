"""Commit local changes and reconcile them with the remote."""

import logging
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

from ..config import Config
from ..errors import (
    CantSyncInSpecialGitStateAutoFixFailed,
    GitPullPushError,
    RepositoryNotInitializedError,
    SyncParameterMissingError,
    redact_token,
)
from ..file_lock import repository_lock
from .conflict_resolution import resolve_special_condition
from .credential import authenticated
from .error_recovery import categorize_error, is_fatal_transport_error
from .operations import NON_INTERACTIVE_ENV, commit_files
from .performance_logger import PerformanceLogger
from .process import GitProcessResult, run_git
from .repository_info import DivergenceState, GitUserInfo, ReconciliationAttempt, RepositorySession
from .state import get_default_branch_name, have_local_changes, inspect
from .steps import GitStep, StepLogger, step_logger
from .sync_state import assume_sync, get_sync_state
from .utils import GitSyncResult

_LOGGER_NAME = 'gitsync.git_sync.manager'


def _scrub(text: str, access_token: str) -> str:
    """Make sure the token never leaves a run inside git's output."""
    if not text or not access_token:
        return text
    redacted = redact_token(access_token)
    for form in (access_token, quote(access_token, safe='')):
        text = text.replace(form, redacted)
    return text


class _Reconciliation:
    """State of one commit_and_sync run."""

    def __init__(
        self,
        session: RepositorySession,
        access_token: str,
        commit_message: str,
        files_to_ignore: Optional[List[str]],
        config: Config,
        configuration: Dict[str, Any],
        logger: Optional[logging.Logger],
    ):
        self.session = session
        self.access_token = access_token
        self.commit_message = commit_message
        self.files_to_ignore = files_to_ignore
        self.config = config
        self.configuration = configuration
        self.logger = logger
        self.log: StepLogger = step_logger(
            logger, _LOGGER_NAME, 'commit_and_sync', session.dir, remote_url=session.remote_url
        )
        self.performance = PerformanceLogger(self.log.logger)
        self.attempt = ReconciliationAttempt()
        self.unresolvable: Optional[CantSyncInSpecialGitStateAutoFixFailed] = None

    def git(self, args: List[str], network: bool = False, env: Optional[Dict[str, str]] = None) -> GitProcessResult:
        timeout = self.config.network_timeout if network else self.config.git_timeout
        if not network:
            return run_git(args, self.session.dir, timeout=timeout, env=env, logger=self.logger)

        start_time = time.time()
        result = run_git(args, self.session.dir, timeout=timeout, env=env, logger=self.logger)
        self.performance.log_network_performance(
            args[0], self.session.remote_url, time.time() - start_time, result.success
        )
        return result

    def resolve(self, condition=None) -> None:
        self.attempt = resolve_special_condition(
            self.session,
            condition,
            self.attempt,
            self.files_to_ignore,
            self.logger,
            self.config.git_timeout
        )

    def preflight(self):
        session = self.session
        condition = inspect(session.dir, self.logger)
        if not condition.is_git_repository:
            raise RepositoryNotInitializedError(session.dir)
        if condition.is_clean_or_only_dirty:
            self.log.progress(GitStep.PREPARE_SYNC)
            self.log.debug(f"{session.dir} , {session.user_name} <{session.email}>", step=GitStep.PREPARE_SYNC)
        else:
            # We may be in the middle of a rebase or merge left by an earlier run
            self.resolve(condition)
        return condition

    def commit(self) -> None:
        session = self.session
        if not have_local_changes(session.dir):
            return
        self.log.progress(GitStep.HAVE_THINGS_TO_COMMIT)
        self.log.debug(self.commit_message, step=GitStep.HAVE_THINGS_TO_COMMIT)
        result = commit_files(
            session.dir,
            session.user_name,
            session.email,
            self.commit_message,
            self.files_to_ignore,
            self.logger,
            self.config.git_timeout
        )
        if not result.success:
            self.log.warning(f"commit failed {result.stderr or result.stdout}", step=GitStep.COMMIT_COMPLETE)

    def fetch(self) -> None:
        session = self.session
        self.log.progress(GitStep.FETCHING_DATA)
        with self.performance.time_operation("fetch"):
            result = self.git(["fetch", session.remote_name, session.default_branch], network=True)
        if result.success:
            return

        stderr = _scrub(result.stderr, self.access_token)
        category = categorize_error(stderr, result.exit_code)
        if is_fatal_transport_error(category):
            raise GitPullPushError(self.configuration, stderr, category)
        self.log.warning(
            f"exitCode: {result.exit_code}, stderr of git fetch: {stderr}",
            step=GitStep.FETCHING_DATA
        )

    def push(self, target: str, step: GitStep) -> GitProcessResult:
        with self.performance.time_operation("push"):
            result = self.git(["push", self.session.remote_name, target], network=True)
        if not result.success:
            self.log.warning(
                f"exitCode: {result.exit_code}, stderr of git push: {_scrub(result.stderr, self.access_token)}",
                step=step
            )
        return result

    def reconcile(self, sync_state: DivergenceState) -> GitProcessResult:
        """Issue the commands that bring local and remote together; returns the last one's result."""
        session = self.session
        log = self.log

        if sync_state is DivergenceState.EQUAL:
            log.progress(GitStep.NO_NEED_TO_SYNC)
            return GitProcessResult(exit_code=0, stdout="", stderr="")

        if sync_state is DivergenceState.NO_UPSTREAM_OR_BARE_UPSTREAM:
            log.progress(GitStep.NO_UPSTREAM_CANT_PUSH)
            result = self.push(session.default_branch, GitStep.NO_UPSTREAM_CANT_PUSH)
            if not result.success:
                raise RepositoryNotInitializedError(session.dir)
            return result

        if sync_state is DivergenceState.AHEAD:
            log.progress(GitStep.LOCAL_AHEAD_START_UPLOAD)
            return self.push(session.branch_mapping, GitStep.LOCAL_AHEAD_START_UPLOAD)

        if sync_state is DivergenceState.BEHIND:
            log.progress(GitStep.LOCAL_STATE_BEHIND_SYNC)
            result = self.git(["merge", "--ff", "--ff-only", session.remote_branch])
            if not result.success:
                log.warning(
                    f"exitCode: {result.exit_code}, stderr of git merge: {result.stderr}",
                    step=GitStep.LOCAL_STATE_BEHIND_SYNC
                )
            return result

        log.progress(GitStep.LOCAL_STATE_DIVERGE_REBASE)
        rebased = self.git(["rebase", session.remote_branch], env=NON_INTERACTIVE_ENV)
        log.progress(GitStep.REBASE_RESULT_CHECKING)
        if not rebased.success:
            log.warning(
                f"exitCode: {rebased.exit_code}, stderr of git rebase: {rebased.stderr}",
                step=GitStep.REBASE_RESULT_CHECKING
            )

        if (
            rebased.success
            and inspect(session.dir, self.logger).is_clean
            and get_sync_state(session.dir, session.default_branch, session.remote_name, self.logger) is DivergenceState.AHEAD
        ):
            log.progress(GitStep.REBASE_SUCCEED)
        else:
            log.progress(GitStep.REBASE_CONFLICT_NEEDS_RESOLVE)
            try:
                self.resolve()
            except CantSyncInSpecialGitStateAutoFixFailed as e:
                log.warning(str(e), step=GitStep.REBASE_CONFLICT_NEEDS_RESOLVE)
                self.unresolvable = e
        return self.push(session.branch_mapping, GitStep.LOCAL_STATE_DIVERGE_REBASE)

    def run(self) -> GitSyncResult:
        session = self.session
        starting_condition = self.preflight()
        self.commit()

        self.log.progress(GitStep.PREPARING_USER_INFO)
        with authenticated(
            session.dir,
            session.remote_url,
            session.user_name,
            self.access_token,
            session.remote_name,
            self.logger
        ):
            self.fetch()
            sync_state = get_sync_state(session.dir, session.default_branch, session.remote_name, self.logger)
            last_result = self.reconcile(sync_state)

        if not last_result.success:
            if self.unresolvable is not None:
                raise self.unresolvable
            stderr = _scrub(last_result.stderr, self.access_token)
            raise GitPullPushError(self.configuration, stderr, categorize_error(stderr, last_result.exit_code))

        self.log.progress(GitStep.PERFORM_LAST_CHECK_BEFORE_SYNCHRONIZATION_FINISH)
        assume_sync(session.dir, session.default_branch, session.remote_name, self.logger)
        self.log.progress(GitStep.SYNCHRONIZATION_FINISH)

        return GitSyncResult(
            success=True,
            message=f"Synchronized {session.default_branch} with {session.remote_branch} ({sync_state.value})",
            operation="commit_and_sync",
            attempts=1 + self.attempt.attempts,
            branch_used=session.default_branch,
            sync_state=sync_state,
            starting_condition=starting_condition
        )


def commit_and_sync(
    dir: Union[str, Path],
    remote_url: Optional[str] = None,
    user_info: Optional[GitUserInfo] = None,
    commit_message: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
    default_git_info: Optional[GitUserInfo] = None,
    files_to_ignore: Optional[List[str]] = None,
    config: Optional[Config] = None,
) -> GitSyncResult:
    """
    ``git add`` + ``git commit`` + fetch, then push, fast-forward or rebase,
    whichever brings local and remote back in sync.

    The access token is put into the remote URL only while the remote is
    talked to, and taken out again however the run ends.

    Args:
        dir: Working tree to sync
        remote_url: HTTPS URL of the remote, without credential
        user_info: Committer identity, branch and access token
        commit_message: Message for the commit of local changes
        logger: Logger for progress; each module's own logger when omitted
        default_git_info: Identity used where ``user_info`` leaves gaps
        files_to_ignore: Paths never committed
        config: Remote name and timeouts

    Returns:
        GitSyncResult describing the finished run

    Raises:
        SyncParameterMissingError: If the token or remote URL is missing
        RepositoryNotInitializedError: If ``dir`` is not a git working tree
        GitPullPushError: If fetch, push, merge or rebase failed
        CantSyncInSpecialGitStateAutoFixFailed: If conflicts need a human
        SyncScriptIsInDeadLoopError: If conflict resolution kept re-entering
        AssumeSyncError: If the run ended with local and remote still apart
    """
    config = config or Config()
    default_git_info = default_git_info or GitUserInfo(
        git_user_name=config.git_user_name,
        email=config.git_email,
        branch=config.default_branch
    )

    if user_info is None or not user_info.access_token:
        raise SyncParameterMissingError("access_token")
    if not remote_url:
        raise SyncParameterMissingError("remote_url")

    branch = get_default_branch_name(dir) or user_info.branch or default_git_info.branch
    session = RepositorySession(
        dir=Path(dir),
        default_branch=branch,
        remote_name=config.remote_name,
        remote_url=remote_url,
        user_name=user_info.git_user_name or default_git_info.git_user_name,
        email=user_info.email or default_git_info.email
    )
    configuration = {
        "dir": str(dir),
        "remote_url": remote_url,
        "user_info": asdict(user_info),
        "commit_message": commit_message,
        "files_to_ignore": files_to_ignore,
    }

    run = _Reconciliation(
        session,
        user_info.access_token,
        commit_message or config.commit_message,
        files_to_ignore,
        config,
        configuration,
        logger
    )
    try:
        with run.performance.time_operation("commit_and_sync", {"branch": branch}, log_level=logging.INFO):
            return run.run()
    finally:
        summary = run.performance.get_performance_summary()
        run.log.debug(
            f"{summary['total_operations']} timed steps, "
            f"slowest {summary['slowest_operation']['name']} ({summary['slowest_operation']['duration']:.3f}s), "
            f"success rate {summary['success_rate']:.0%}"
        )


def sync_repository(
    dir: Union[str, Path],
    config: Config,
    logger: Optional[logging.Logger] = None,
    commit_message: Optional[str] = None,
    files_to_ignore: Optional[List[str]] = None,
) -> GitSyncResult:
    """
    Run commit_and_sync with values from ``config`` while holding the repository lock.

    Raises:
        RepositoryLockTimeoutError: If another run holds the lock too long
    """
    user_info = GitUserInfo(
        git_user_name=config.git_user_name,
        email=config.git_email,
        branch=config.default_branch,
        access_token=config.access_token
    )
    with repository_lock(dir, config.lock_timeout):
        return commit_and_sync(
            dir,
            remote_url=config.remote_url,
            user_info=user_info,
            commit_message=commit_message or config.commit_message,
            logger=logger,
            files_to_ignore=files_to_ignore if files_to_ignore is not None else config.files_to_ignore,
            config=config
        )
