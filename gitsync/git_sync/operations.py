"""Git primitives used while reconciling: identity, staging, committing and recovery commands."""

import logging
from pathlib import Path
from typing import List, Optional, Union

from git import Repo

from .process import GitProcessResult, run_git
from .repository_info import InterruptedOperation, RepositoryCondition
from .steps import GitStep, step_logger

_LOGGER_NAME = 'gitsync.git_sync.operations'

# Replaying commands must never open an editor.
NON_INTERACTIVE_ENV = {"GIT_EDITOR": "true", "GIT_SEQUENCE_EDITOR": "true"}


def ensure_git_identity(dir: Union[str, Path], user_name: str, email: str, logger: Optional[logging.Logger] = None) -> None:
    """Set ``user.name`` and ``user.email`` in the repository config unless they already match."""
    logger = logger or logging.getLogger(_LOGGER_NAME)
    with Repo(dir) as repo:
        with repo.config_reader("repository") as reader:
            current_name = reader.get_value("user", "name", "")
            current_email = reader.get_value("user", "email", "")
        if current_name == user_name and current_email == email:
            return
        with repo.config_writer() as writer:
            writer.set_value("user", "name", user_name)
            writer.set_value("user", "email", email)
    logger.debug(f"Set git identity to {user_name} <{email}> in {dir}")


def _pathspec(files_to_ignore: Optional[List[str]]) -> List[str]:
    return ["."] + [f":(exclude){item}" for item in (files_to_ignore or [])]


def stage_all(
    dir: Union[str, Path],
    files_to_ignore: Optional[List[str]] = None,
    timeout: Optional[float] = None,
    logger: Optional[logging.Logger] = None,
) -> GitProcessResult:
    """Stage every change in the working tree except the ignored paths."""
    return run_git(["add", "--all", "--", *_pathspec(files_to_ignore)], dir, timeout=timeout, logger=logger)


def commit_files(
    dir: Union[str, Path],
    user_name: str,
    email: str,
    message: str,
    files_to_ignore: Optional[List[str]] = None,
    logger: Optional[logging.Logger] = None,
    timeout: Optional[float] = None,
) -> GitProcessResult:
    """
    Stage and commit all local changes under the given identity.

    Args:
        dir: Working tree path
        user_name: Committer name
        email: Committer email
        message: Commit message
        files_to_ignore: Paths left out of the commit
        logger: Logger for progress
        timeout: Seconds allowed per git command

    Returns:
        Result of the staging command when it failed, otherwise of the commit
    """
    log = step_logger(logger, _LOGGER_NAME, 'commit_files', dir)
    ensure_git_identity(dir, user_name, email, logger)

    log.progress(GitStep.ADDING_FILES)
    staged = stage_all(dir, files_to_ignore, timeout, logger)
    if not staged.success:
        return staged

    result = run_git(["commit", "-m", message], dir, timeout=timeout, env=NON_INTERACTIVE_ENV, logger=logger)
    if result.success:
        log.progress(GitStep.COMMIT_COMPLETE)
    return result


def get_conflicting_files(dir: Union[str, Path]) -> List[str]:
    """List paths that still have unresolved merge conflicts."""
    result = run_git(["diff", "--name-only", "--diff-filter=U"], dir)
    return [line for line in result.stdout.split("\n") if line.strip()]


def read_onto_commit(git_dir: Path) -> Optional[str]:
    """Read the commit an interrupted rebase was replaying onto."""
    for state_dir in ("rebase-merge", "rebase-apply"):
        onto = git_dir / state_dir / "onto"
        if onto.is_file():
            value = onto.read_text(encoding="utf-8").strip()
            if value:
                return value
    return None


def _is_mailbox_apply(git_dir: Path) -> bool:
    return (git_dir / "rebase-apply" / "applying").exists()


def continue_operation(
    dir: Union[str, Path],
    git_dir: Path,
    condition: RepositoryCondition,
    timeout: Optional[float] = None,
    logger: Optional[logging.Logger] = None,
) -> Optional[GitProcessResult]:
    """
    Conclude the interrupted operation with git's own continue command.

    Returns None when the condition holds no interrupted operation.
    """
    operation = condition.operation
    if operation in (InterruptedOperation.REBASE_INTERACTIVE, InterruptedOperation.REBASE_MERGE):
        args = ["rebase", "--continue"]
    elif operation is InterruptedOperation.AM_REBASE:
        args = ["am", "--continue"] if _is_mailbox_apply(git_dir) else ["rebase", "--continue"]
    elif operation is InterruptedOperation.MERGING:
        args = ["commit", "--no-edit"]
    elif operation is InterruptedOperation.CHERRY_PICKING:
        args = ["cherry-pick", "--continue"]
    elif operation is InterruptedOperation.BISECTING:
        args = ["bisect", "reset"]
    else:
        return None
    return run_git(args, dir, timeout=timeout, env=NON_INTERACTIVE_ENV, logger=logger)


def abort_and_reapply_rebase(
    dir: Union[str, Path],
    git_dir: Path,
    timeout: Optional[float] = None,
    logger: Optional[logging.Logger] = None,
) -> GitProcessResult:
    """
    Abort an interrupted rebase and start it again onto the same commit.

    Aborting restores the branch to the commits it had before the rebase
    began, so no local work is lost.
    """
    log = step_logger(logger, _LOGGER_NAME, 'abort_and_reapply_rebase', dir)
    if _is_mailbox_apply(git_dir):
        return run_git(["am", "--abort"], dir, timeout=timeout, logger=logger)

    onto = read_onto_commit(git_dir)
    aborted = run_git(["rebase", "--abort"], dir, timeout=timeout, logger=logger)
    if not aborted.success or onto is None:
        return aborted

    log.info(f"Replaying local commits onto {onto}", step=GitStep.LOCAL_STATE_DIVERGE_REBASE)
    return run_git(["rebase", onto], dir, timeout=timeout, env=NON_INTERACTIVE_ENV, logger=logger)
