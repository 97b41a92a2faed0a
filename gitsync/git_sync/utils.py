"""Result type returned by a reconciliation run."""

from dataclasses import dataclass
from typing import Optional

from .repository_info import DivergenceState, RepositoryCondition


@dataclass
class GitSyncResult:
    """Result of a Git synchronization operation."""
    success: bool
    message: str
    operation: str
    attempts: int = 1
    error_code: Optional[str] = None
    branch_used: Optional[str] = None
    sync_state: Optional[DivergenceState] = None
    starting_condition: Optional[RepositoryCondition] = None

    def to_dict(self) -> dict:
        """Plain representation for tool responses."""
        return {
            "success": self.success,
            "message": self.message,
            "operation": self.operation,
            "attempts": self.attempts,
            "error_code": self.error_code,
            "branch_used": self.branch_used,
            "sync_state": self.sync_state.value if self.sync_state else None,
            "starting_condition": str(self.starting_condition) if self.starting_condition is not None else None,
        }
