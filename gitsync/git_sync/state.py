"""Read-only inspection of a working repository."""

import logging
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

from git import Repo
from git.exc import GitError

from ..errors import RepositoryNotInitializedError
from .process import run_git
from .repository_info import InterruptedOperation, RepositoryCondition
from .status import status_has_local_changes
from .steps import GitStep, step_logger

_LOGGER_NAME = 'gitsync.git_sync.state'


def get_git_directory(dir: Union[str, Path], logger: Optional[logging.Logger] = None) -> Path:
    """
    Locate the metadata directory of the working tree at ``dir``.

    Args:
        dir: Working tree path
        logger: Logger for progress and diagnostics

    Returns:
        Absolute path of the ``.git`` directory

    Raises:
        RepositoryNotInitializedError: If ``dir`` is not inside a working tree
    """
    log = step_logger(logger, _LOGGER_NAME, 'get_git_directory', dir)
    log.progress(GitStep.CHECKING_LOCAL_GIT_REPO_SANITY)

    path = Path(dir)
    if not path.is_dir():
        raise RepositoryNotInitializedError(dir)

    result = run_git(["rev-parse", "--is-inside-work-tree"], path, logger=logger)
    if result.stderr:
        log.debug(result.stderr.strip(), step=GitStep.CHECKING_LOCAL_GIT_REPO_SANITY)
        raise RepositoryNotInitializedError(dir)
    if not result.stdout.startswith("true"):
        raise RepositoryNotInitializedError(dir)

    git_dir = run_git(["rev-parse", "--absolute-git-dir"], path, logger=logger)
    location = git_dir.stdout.strip()
    if not git_dir.success or not location:
        raise RepositoryNotInitializedError(dir)
    return Path(location)


def has_git(dir: Union[str, Path], strict: bool = True) -> bool:
    """
    Check whether ``dir`` is a git working tree.

    With ``strict`` the directory must be the top level of the tree, not a
    folder somewhere inside it.
    """
    try:
        get_git_directory(dir)
    except RepositoryNotInitializedError:
        return False
    if not strict:
        return True

    top_level = run_git(["rev-parse", "--show-toplevel"], dir)
    if not top_level.success:
        return False
    return Path(top_level.stdout.strip()).resolve() == Path(dir).resolve()


def have_local_changes(dir: Union[str, Path]) -> bool:
    """See if there is any file not yet committed, untracked files included."""
    result = run_git(["status", "--porcelain"], dir)
    return status_has_local_changes(result.stdout)


def inspect(dir: Union[str, Path], logger: Optional[logging.Logger] = None) -> RepositoryCondition:
    """
    Report which special state the repository at ``dir`` is in.

    Nothing is modified. A directory that is not a working tree gives the
    ``NOT_A_GIT_REPOSITORY`` condition instead of raising.

    Args:
        dir: Working tree path
        logger: Logger for progress and diagnostics

    Returns:
        RepositoryCondition built from the marker files under the git directory
    """
    if not has_git(dir):
        return RepositoryCondition.not_a_repository()

    git_dir = get_git_directory(dir, logger)
    rebase_merge = git_dir / "rebase-merge"

    operations = []
    if (rebase_merge / "interactive").is_file():
        operations.append(InterruptedOperation.REBASE_INTERACTIVE)
    elif rebase_merge.is_dir():
        operations.append(InterruptedOperation.REBASE_MERGE)
    else:
        if (git_dir / "rebase-apply").is_dir():
            operations.append(InterruptedOperation.AM_REBASE)
        if (git_dir / "MERGE_HEAD").is_file():
            operations.append(InterruptedOperation.MERGING)
        if (git_dir / "CHERRY_PICK_HEAD").is_file():
            operations.append(InterruptedOperation.CHERRY_PICKING)
        if (git_dir / "BISECT_LOG").is_file():
            operations.append(InterruptedOperation.BISECTING)

    bare = run_git(["rev-parse", "--is-bare-repository"], dir, logger=logger).stdout.startswith("true")

    return RepositoryCondition(
        operations=tuple(operations),
        bare=bare,
        dirty=have_local_changes(dir)
    )


# Name kept for callers that think in terms of "state" rather than "inspection".
get_git_repository_state = inspect


def get_default_branch_name(dir: Union[str, Path]) -> Optional[str]:
    """Get the checked out branch name, e.g. "main" or "master"."""
    if not Path(dir).is_dir():
        return None
    result = run_git(["rev-parse", "--abbrev-ref", "HEAD"], dir)
    if not result.success:
        return None
    branch_name = result.stdout.split("\n")[0].strip()
    return branch_name or None


def get_remote_name(dir: Union[str, Path], branch: str) -> str:
    """Get the remote a branch pushes to, e.g. "origin"."""
    for key in (f"branch.{branch}.pushRemote", "remote.pushDefault", f"branch.{branch}.remote"):
        value = run_git(["config", "--get", key], dir).stdout.strip()
        if value:
            return value
    return "origin"


def get_remote_url(dir: Union[str, Path], remote_name: str = "origin") -> str:
    """
    Read the URL configured for a remote.

    Falls back to the first remote when ``remote_name`` does not exist, and to
    an empty string when the repository has no remotes.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    try:
        repo = Repo(dir)
    except GitError as e:
        logger.debug(f"Could not open repository {dir}: {e}")
        return ""

    with repo:
        remotes = list(repo.remotes)
        remote = next((item for item in remotes if item.name == remote_name), None)
        if remote is None and remotes:
            remote = remotes[0]
        if remote is None:
            return ""
        with repo.config_reader() as reader:
            return reader.get_value(f'remote "{remote.name}"', "url", "")


def get_remote_repo_name(remote_url: str) -> Optional[str]:
    """Get the repository path on the host, e.g. "owner/repo" from "https://github.com/owner/repo"."""
    repo_name = urlparse(remote_url).path
    if repo_name.startswith("/"):
        repo_name = repo_name[1:]
    return repo_name or None
