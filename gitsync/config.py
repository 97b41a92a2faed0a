"""Configuration management for gitsync."""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional, List

from dotenv import load_dotenv

from .platform import validate_git_availability


@dataclass
class Config:
    """Configuration class for gitsync with validation and defaults."""

    # Committer identity and the branch/remote used when the repository does not say
    git_user_name: str = "gitsync"
    git_email: str = "gitsync@gmail.com"
    default_branch: str = "main"
    remote_name: str = "origin"

    # Remote and credential
    remote_url: Optional[str] = None
    access_token: Optional[str] = None

    # Commit behaviour
    commit_message: str = "Updated with Git-Sync"
    files_to_ignore: List[str] = field(default_factory=list)

    # Logging
    log_level: str = "INFO"

    # Timeouts in seconds
    git_timeout: float = 30.0
    network_timeout: float = 120.0
    lock_timeout: float = 30.0

    def __post_init__(self):
        """Validate configuration after initialization."""
        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() not in valid_log_levels:
            raise ValueError(f"Invalid log level: {self.log_level}. Must be one of {valid_log_levels}")
        self.log_level = self.log_level.upper()

        if not self.git_user_name:
            raise ValueError("git_user_name must not be empty")
        if not self.git_email:
            raise ValueError("git_email must not be empty")
        if not self.default_branch:
            raise ValueError("default_branch must not be empty")
        if not self.remote_name:
            raise ValueError("remote_name must not be empty")

        for name in ("git_timeout", "network_timeout", "lock_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")


def _split_list(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_configuration() -> Config:
    """Load configuration from environment variables (and a .env file if present)."""
    load_dotenv()
    defaults = Config()
    try:
        return Config(
            git_user_name=os.getenv("GITSYNC_USER_NAME", defaults.git_user_name),
            git_email=os.getenv("GITSYNC_EMAIL", defaults.git_email),
            default_branch=os.getenv("GITSYNC_BRANCH", defaults.default_branch),
            remote_name=os.getenv("GITSYNC_REMOTE", defaults.remote_name),
            remote_url=os.getenv("GITSYNC_REMOTE_URL") or None,
            access_token=os.getenv("GITSYNC_ACCESS_TOKEN") or None,
            commit_message=os.getenv("GITSYNC_COMMIT_MESSAGE", defaults.commit_message),
            files_to_ignore=_split_list(os.getenv("GITSYNC_IGNORE")),
            log_level=os.getenv("GITSYNC_LOG_LEVEL", defaults.log_level).upper(),
            git_timeout=float(os.getenv("GITSYNC_GIT_TIMEOUT", str(defaults.git_timeout))),
            network_timeout=float(os.getenv("GITSYNC_NETWORK_TIMEOUT", str(defaults.network_timeout))),
            lock_timeout=float(os.getenv("GITSYNC_LOCK_TIMEOUT", str(defaults.lock_timeout))),
        )
    except (ValueError, TypeError) as e:
        raise ValueError(f"Configuration error: {e}")


def validate_configuration(config: Config) -> List[str]:
    """Validate configuration and return any errors or warnings."""
    errors = []

    git_available, git_error = validate_git_availability()
    if not git_available:
        errors.append(f"ERROR: Git not available: {git_error}")

    if config.remote_url:
        if not config.remote_url.startswith("https://"):
            errors.append(
                f"WARNING: Remote URL is not HTTPS, access token will not be embedded: {config.remote_url}"
            )
        if not config.access_token:
            errors.append("WARNING: GITSYNC_ACCESS_TOKEN is not set, sync_repository will be refused")
    else:
        errors.append("WARNING: GITSYNC_REMOTE_URL is not set, sync_repository will be refused")

    if config.network_timeout < config.git_timeout:
        logging.getLogger('gitsync.config').debug(
            "network_timeout is shorter than git_timeout, fetch and push may time out first"
        )

    return errors
