"""Fault types and error response handling for gitsync."""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional


class ErrorCategory(Enum):
    """Categories of errors reported by the MCP server."""
    GIT_SYNC = "git_sync"
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    SYSTEM = "system"


def redact_token(token: Optional[str]) -> Optional[str]:
    """Keep only a short prefix of a credential so it can be recognised in logs."""
    if token is None:
        return None
    if len(token) <= 4:
        return "***"
    return f"{token[:4]}***"


class GitSyncError(Exception):
    """Base class for every fault raised by a reconciliation run."""

    error_code = "E-0"
    category: Optional[Any] = None


class AssumeSyncError(GitSyncError):
    """Local and remote should be equal at this point but are not; a logic defect in gitsync."""

    error_code = "E-1"

    def __init__(self, extra_message: Optional[str] = None):
        self.extra_message = extra_message or ""
        super().__init__(
            f"{self.error_code} In this state, git should have been sync with the remote, but it is not, "
            f"this is caused by procedural bug in gitsync. {self.extra_message}".rstrip()
        )


class SyncParameterMissingError(GitSyncError):
    """A required credential or remote URL was not supplied."""

    error_code = "E-2"

    def __init__(self, parameter_name: str = "access_token"):
        self.parameter_name = parameter_name
        super().__init__(
            f"{self.error_code} We need {parameter_name} to sync to the cloud, "
            f"you should pass {parameter_name} as parameters in user_info."
        )


class GitPullPushError(GitSyncError):
    """A push, merge or rebase failed and the repository could not be brought in sync."""

    error_code = "E-3"

    def __init__(self, configuration: Dict[str, Any], extra_message: str = "", category: Optional[Any] = None):
        self.configuration = _redact_configuration(configuration)
        self.extra_message = extra_message
        self.category = category
        super().__init__(
            f"{self.error_code} failed to config git to successfully pull from or push to remote with "
            f"configuration {json.dumps(self.configuration, default=str)}.\n{extra_message}"
        )


class RepositoryNotInitializedError(GitSyncError):
    """The target directory is not a git working tree."""

    error_code = "E-4"

    def __init__(self, directory: Any):
        self.directory = str(directory)
        super().__init__(
            f"{self.error_code} we can't sync on a git repository that is not initialized, "
            f"maybe this folder is not a git repository. {self.directory}"
        )


# Older name for the same fault.
CantSyncGitNotInitializedError = RepositoryNotInitializedError


class SyncScriptIsInDeadLoopError(GitSyncError):
    """Conflict resolution was entered more often than a single run allows."""

    error_code = "E-5"

    def __init__(self, entries: Optional[int] = None):
        self.entries = entries
        detail = f" (conflict resolution entered {entries} times)" if entries is not None else ""
        super().__init__(
            f"{self.error_code} Unable to sync, and sync script is in a dead loop{detail}, "
            "this is caused by procedural bug in gitsync."
        )


class CantSyncInSpecialGitStateAutoFixFailed(GitSyncError):
    """The repository stays in an interrupted operation that needs manual resolution."""

    error_code = "E-6"

    def __init__(self, state_message: str):
        self.state_message = state_message
        super().__init__(
            f"{self.error_code} Unable to sync, this folder is in special condition, thus can't sync directly. "
            "An auto-fix has been tried, but error still remains. Please resolve all the conflicts manually, "
            "then run the sync again.\n"
            f"{state_message}"
        )


class RepositoryLockTimeoutError(GitSyncError):
    """Another run holds the lock for this working directory."""

    error_code = "E-7"

    def __init__(self, directory: Any, timeout: float):
        self.directory = str(directory)
        self.timeout = timeout
        super().__init__(
            f"{self.error_code} another sync is running on {self.directory}, gave up waiting after {timeout:.1f}s"
        )


def _redact_configuration(configuration: Dict[str, Any]) -> Dict[str, Any]:
    redacted = dict(configuration)
    user_info = redacted.get("user_info")
    if isinstance(user_info, dict):
        user_info = dict(user_info)
        if "access_token" in user_info:
            user_info["access_token"] = redact_token(user_info["access_token"])
        redacted["user_info"] = user_info
    if "access_token" in redacted:
        redacted["access_token"] = redact_token(redacted["access_token"])
    return redacted


@dataclass
class ErrorResponse:
    """Standardized error response format for MCP tools."""
    error: str
    error_code: str
    message: str
    timestamp: str
    category: str
    context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert error response to dictionary format."""
        result = {
            "error": self.error,
            "error_code": self.error_code,
            "message": self.message,
            "timestamp": self.timestamp,
            "category": self.category
        }
        if self.context:
            result["context"] = self.context
        return result


class ErrorHandler:
    """Turns gitsync faults into MCP error responses."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('gitsync.error_handler')

    def handle_sync_error(self, error: Exception, context: Optional[Dict[str, Any]] = None) -> ErrorResponse:
        """Handle a fault raised by a reconciliation run."""
        context = dict(context or {})

        if isinstance(error, GitSyncError):
            error_code = error.error_code
            message = str(error)
            category = ErrorCategory.GIT_SYNC.value
            if error.category is not None:
                # Import here to avoid circular imports
                from .git_sync.error_recovery import get_error_resolution

                resolution = get_error_resolution(error.category)
                context["git_error_category"] = error.category.value
                context["user_message"] = resolution.user_message
                context["resolution_steps"] = resolution.resolution_steps
        elif isinstance(error, ValueError):
            error_code = "CONFIGURATION_ERROR"
            message = f"Configuration error: {error}"
            category = ErrorCategory.CONFIGURATION.value
        else:
            error_code = "GIT_GENERAL_ERROR"
            message = f"Git operation failed: {error}"
            category = ErrorCategory.SYSTEM.value

        response = ErrorResponse(
            error="Git sync operation failed",
            error_code=error_code,
            message=message,
            timestamp=datetime.now().isoformat(),
            category=category,
            context=context or None
        )

        self.logger.warning(
            f"Git sync error: {message}",
            extra={
                'operation': 'git_sync_error',
                'error_code': error_code,
                'repository_path': context.get('repository_path')
            }
        )

        return response

    def handle_validation_error(self, field_name: str, reason: str) -> ErrorResponse:
        """Handle invalid tool arguments."""
        message = f"Input validation failed: {field_name} {reason}"
        self.logger.warning(message, extra={'operation': 'validation_error', 'field': field_name})
        return ErrorResponse(
            error="Validation error",
            error_code="VALIDATION_ERROR",
            message=message,
            timestamp=datetime.now().isoformat(),
            category=ErrorCategory.VALIDATION.value,
            context={"field": field_name}
        )
