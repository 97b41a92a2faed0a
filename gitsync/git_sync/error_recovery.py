"""Classifying git's error output and describing how to resolve it."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from .process import TIMEOUT_EXIT_CODE


class ErrorCategory(Enum):
    """Categories of git failures seen while reconciling."""
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    REPOSITORY_ACCESS = "repository_access"
    MISSING_REMOTE_REF = "missing_remote_ref"
    MERGE_CONFLICT = "merge_conflict"
    REPOSITORY_CORRUPTION = "repository_corruption"
    UNKNOWN = "unknown"


@dataclass
class ErrorResolution:
    """Information about how to resolve a specific error."""
    category: ErrorCategory
    user_message: str
    technical_message: str
    resolution_steps: List[str]


# Checked in order, first match wins.
ERROR_PATTERNS: Dict[str, ErrorCategory] = {
    # An empty upstream has no branch to fetch yet
    "couldn't find remote ref": ErrorCategory.MISSING_REMOTE_REF,

    # Network errors
    "could not resolve host": ErrorCategory.NETWORK,
    "connection refused": ErrorCategory.NETWORK,
    "network is unreachable": ErrorCategory.NETWORK,
    "connection timed out": ErrorCategory.NETWORK,
    "timed out": ErrorCategory.NETWORK,
    "timeout": ErrorCategory.NETWORK,
    "no route to host": ErrorCategory.NETWORK,
    "temporary failure in name resolution": ErrorCategory.NETWORK,
    "failed to connect": ErrorCategory.NETWORK,

    # Authentication errors
    "authentication failed": ErrorCategory.AUTHENTICATION,
    "could not read username": ErrorCategory.AUTHENTICATION,
    "could not read password": ErrorCategory.AUTHENTICATION,
    "terminal prompts disabled": ErrorCategory.AUTHENTICATION,
    "permission denied": ErrorCategory.AUTHENTICATION,
    "invalid credentials": ErrorCategory.AUTHENTICATION,
    "forbidden": ErrorCategory.AUTHENTICATION,
    "error: 401": ErrorCategory.AUTHENTICATION,
    "error: 403": ErrorCategory.AUTHENTICATION,

    # Repository access errors
    "repository not found": ErrorCategory.REPOSITORY_ACCESS,
    "does not appear to be a git repository": ErrorCategory.REPOSITORY_ACCESS,
    "could not read from remote repository": ErrorCategory.REPOSITORY_ACCESS,
    "unable to access": ErrorCategory.REPOSITORY_ACCESS,

    # Merge conflicts
    "automatic merge failed": ErrorCategory.MERGE_CONFLICT,
    "could not apply": ErrorCategory.MERGE_CONFLICT,
    "unmerged paths": ErrorCategory.MERGE_CONFLICT,
    "not possible to fast-forward": ErrorCategory.MERGE_CONFLICT,
    "conflict": ErrorCategory.MERGE_CONFLICT,

    # Repository corruption
    "not a git repository": ErrorCategory.REPOSITORY_CORRUPTION,
    "corrupt": ErrorCategory.REPOSITORY_CORRUPTION,
    "invalid object": ErrorCategory.REPOSITORY_CORRUPTION,
    "loose object": ErrorCategory.REPOSITORY_CORRUPTION,
}

FATAL_TRANSPORT_CATEGORIES = frozenset({
    ErrorCategory.NETWORK,
    ErrorCategory.AUTHENTICATION,
    ErrorCategory.REPOSITORY_ACCESS,
})

ERROR_RESOLUTIONS: Dict[ErrorCategory, ErrorResolution] = {
    ErrorCategory.NETWORK: ErrorResolution(
        category=ErrorCategory.NETWORK,
        user_message="Network connection issue detected",
        technical_message="Failed to connect to remote Git repository",
        resolution_steps=[
            "Check your internet connection",
            "Verify the repository URL is accessible",
            "Try again in a few minutes"
        ]
    ),
    ErrorCategory.AUTHENTICATION: ErrorResolution(
        category=ErrorCategory.AUTHENTICATION,
        user_message="Authentication failed - please check your credentials",
        technical_message="The remote rejected the user name and access token",
        resolution_steps=[
            "Verify the access token has not expired",
            "Check that the token has permission to push to the repository",
            "Make sure the user name matches the account that owns the token"
        ]
    ),
    ErrorCategory.REPOSITORY_ACCESS: ErrorResolution(
        category=ErrorCategory.REPOSITORY_ACCESS,
        user_message="Repository not accessible - please verify the URL",
        technical_message="Cannot access the specified Git repository",
        resolution_steps=[
            "Verify the repository URL is correct",
            "Check if the repository exists and you have access to it",
            "Ensure the URL uses HTTPS, e.g. https://github.com/user/repo.git"
        ]
    ),
    ErrorCategory.MISSING_REMOTE_REF: ErrorResolution(
        category=ErrorCategory.MISSING_REMOTE_REF,
        user_message="The remote branch does not exist yet",
        technical_message="Fetch found no matching ref on the remote",
        resolution_steps=[
            "This is expected for an empty remote repository",
            "The next push will create the branch"
        ]
    ),
    ErrorCategory.MERGE_CONFLICT: ErrorResolution(
        category=ErrorCategory.MERGE_CONFLICT,
        user_message="Merge conflicts detected during synchronization",
        technical_message="Local and remote changes touch the same lines",
        resolution_steps=[
            "Run 'git status' in the repository to list conflicted files",
            "Resolve the conflicts and stage the files with 'git add'",
            "Run the sync again to finish"
        ]
    ),
    ErrorCategory.REPOSITORY_CORRUPTION: ErrorResolution(
        category=ErrorCategory.REPOSITORY_CORRUPTION,
        user_message="Repository corruption detected",
        technical_message="Local Git repository appears to be corrupted",
        resolution_steps=[
            "Run 'git fsck' to inspect the repository",
            "Back up uncommitted files before repairing",
            "Clone the remote again if the repository cannot be repaired"
        ]
    ),
    ErrorCategory.UNKNOWN: ErrorResolution(
        category=ErrorCategory.UNKNOWN,
        user_message="An unexpected error occurred",
        technical_message="Git reported an error that could not be categorized",
        resolution_steps=[
            "Check the error details",
            "Ensure your Git configuration is correct",
            "Try the operation again"
        ]
    ),
}


def categorize_error(error_message: str, exit_code: Optional[int] = None) -> ErrorCategory:
    """
    Categorize a git failure based on its stderr and exit code.

    Args:
        error_message: The error text git printed
        exit_code: Exit code of the git process

    Returns:
        ErrorCategory enum value
    """
    logger = logging.getLogger('gitsync.git_sync.error_recovery')
    error_lower = (error_message or "").lower()

    for pattern, category in ERROR_PATTERNS.items():
        if pattern in error_lower:
            logger.debug(f"Categorized error as {category}: pattern '{pattern}' found")
            return category

    if exit_code == TIMEOUT_EXIT_CODE:
        return ErrorCategory.NETWORK
    if exit_code == 128:
        return ErrorCategory.REPOSITORY_ACCESS

    if error_lower:
        logger.debug(f"Could not categorize error: {error_message}")
    return ErrorCategory.UNKNOWN


def is_fatal_transport_error(category: ErrorCategory) -> bool:
    """Network, authentication and access failures end a run at once."""
    return category in FATAL_TRANSPORT_CATEGORIES


def get_error_resolution(category: ErrorCategory) -> ErrorResolution:
    return ERROR_RESOLUTIONS.get(category, ERROR_RESOLUTIONS[ErrorCategory.UNKNOWN])
