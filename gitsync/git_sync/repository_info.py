"""Repository condition, divergence and session data structures."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


class InterruptedOperation(Enum):
    """Operation git left half-finished in the repository metadata."""
    NONE = "none"
    REBASE_INTERACTIVE = "rebaseInteractive"
    REBASE_MERGE = "rebaseMerge"
    AM_REBASE = "amRebase"
    MERGING = "merging"
    CHERRY_PICKING = "cherryPicking"
    BISECTING = "bisecting"
    NOT_A_GIT_REPOSITORY = "notAGitRepository"


REBASE_OPERATIONS = frozenset({
    InterruptedOperation.REBASE_INTERACTIVE,
    InterruptedOperation.REBASE_MERGE,
    InterruptedOperation.AM_REBASE,
})

_LEGACY_LABELS = {
    InterruptedOperation.REBASE_INTERACTIVE: "REBASE-i",
    InterruptedOperation.REBASE_MERGE: "REBASE-m",
    InterruptedOperation.AM_REBASE: "AM/REBASE",
    InterruptedOperation.MERGING: "MERGING",
    InterruptedOperation.CHERRY_PICKING: "CHERRY-PICKING",
    InterruptedOperation.BISECTING: "BISECTING",
    InterruptedOperation.NOT_A_GIT_REPOSITORY: "NOGIT",
}


@dataclass(frozen=True)
class RepositoryCondition:
    """
    Snapshot of a working repository's special state.

    ``operations`` holds every interrupted operation that was detected, in
    precedence order; the first one is the base variant. ``bare`` and
    ``dirty`` overlay any variant.
    """
    operations: Tuple[InterruptedOperation, ...] = ()
    bare: bool = False
    dirty: bool = False

    @classmethod
    def not_a_repository(cls) -> "RepositoryCondition":
        return cls(operations=(InterruptedOperation.NOT_A_GIT_REPOSITORY,))

    @property
    def operation(self) -> InterruptedOperation:
        return self.operations[0] if self.operations else InterruptedOperation.NONE

    @property
    def is_git_repository(self) -> bool:
        return self.operation is not InterruptedOperation.NOT_A_GIT_REPOSITORY

    @property
    def has_interrupted_operation(self) -> bool:
        return self.is_git_repository and bool(self.operations)

    @property
    def is_rebasing(self) -> bool:
        return self.operation in REBASE_OPERATIONS

    @property
    def is_clean(self) -> bool:
        return not self.operations and not self.bare and not self.dirty

    @property
    def is_clean_or_only_dirty(self) -> bool:
        return not self.operations and not self.bare

    def __str__(self) -> str:
        result = "".join(_LEGACY_LABELS[operation] for operation in self.operations)
        if self.bare:
            result += "|BARE"
        if self.dirty:
            result += "|DIRTY"
        return result


class DivergenceState(Enum):
    """How local HEAD relates to the remote-tracking branch."""
    NO_UPSTREAM_OR_BARE_UPSTREAM = "noUpstreamOrBareUpstream"
    EQUAL = "equal"
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"


@dataclass
class GitUserInfo:
    """Identity and credential used for a sync run."""
    git_user_name: str
    email: str
    branch: str = "main"
    access_token: Optional[str] = None


@dataclass(frozen=True)
class RepositorySession:
    """Context threaded through every step of one reconciliation run."""
    dir: Path
    default_branch: str
    remote_name: str
    remote_url: str
    user_name: str
    email: str

    @property
    def remote_branch(self) -> str:
        return f"{self.remote_name}/{self.default_branch}"

    @property
    def branch_mapping(self) -> str:
        """Local and remote branch names for push, e.g. ``main:main``."""
        return f"{self.default_branch}:{self.default_branch}"


@dataclass(frozen=True)
class ReconciliationAttempt:
    """Conflict-resolution bookkeeping for one run, passed by value."""
    entries: int = 0
    attempts: int = 0


@dataclass(frozen=True)
class ModifiedFile:
    """A changed path reported by ``git status``."""
    type: str
    file_relative_path: str
    file_path: Path = field(compare=False)
