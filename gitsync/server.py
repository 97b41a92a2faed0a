"""MCP server exposing gitsync operations as tools."""

import logging
import sys
from pathlib import Path
from typing import List, Optional

from mcp.server.fastmcp import FastMCP

from .config import Config, load_configuration, validate_configuration
from .errors import ErrorHandler, ErrorResponse
from .git_sync import (
    GitSyncResult,
    get_default_branch_name,
    get_modified_file_list,
    get_remote_name,
    get_sync_state,
    inspect,
    sync_repository,
)
from .platform import get_platform_info


def setup_logging(config: Config) -> None:
    """Setup logging with the step-aware structured formatter."""
    class StructuredFormatter(logging.Formatter):
        def format(self, record):
            operation = getattr(record, 'operation', None)
            if operation:
                step = getattr(record, 'step', None)
                prefix = f"[{operation}:{step}]" if step else f"[{operation}]"
                record.msg = f"{prefix} {record.msg}"
            return super().format(record)

    # MCP speaks over stdout, so logs go to stderr
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr
    )

    formatter = StructuredFormatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    for logger_name in ['gitsync.init', 'gitsync.git_sync', 'gitsync.error_handler', 'gitsync.file_lock']:
        logger = logging.getLogger(logger_name)
        logger.setLevel(getattr(logging, config.log_level))

        if not logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.propagate = False


def validate_directory_input(directory: str) -> Optional[ErrorResponse]:
    """Check a tool's directory argument; returns an error response when it is unusable."""
    handler = ErrorHandler()
    if not directory or not directory.strip():
        return handler.handle_validation_error("directory", "must not be empty")
    if not Path(directory).expanduser().is_dir():
        return handler.handle_validation_error("directory", "must be an existing directory")
    return None


def sync_repository_tool(
    directory: str,
    config: Config,
    commit_message: Optional[str] = None,
    files_to_ignore: Optional[List[str]] = None,
) -> dict:
    validation_error = validate_directory_input(directory)
    if validation_error:
        return validation_error.to_dict()

    path = Path(directory).expanduser()
    try:
        result = sync_repository(
            path,
            config,
            logger=logging.getLogger('gitsync.git_sync'),
            commit_message=commit_message,
            files_to_ignore=files_to_ignore
        )
    except Exception as e:
        response = ErrorHandler().handle_sync_error(e, {"repository_path": str(path)}).to_dict()
        # Failures share the result's shape so callers can always read ``success``
        failed = GitSyncResult(
            success=False,
            message=response["message"],
            operation="sync_repository",
            attempts=0,
            error_code=response["error_code"]
        )
        response.update(failed.to_dict())
        return response
    return result.to_dict()


def inspect_repository_tool(directory: str) -> dict:
    validation_error = validate_directory_input(directory)
    if validation_error:
        return validation_error.to_dict()

    path = Path(directory).expanduser()
    try:
        condition = inspect(path)
        if not condition.is_git_repository:
            return {
                "directory": str(path),
                "is_git_repository": False,
                "condition": str(condition)
            }
        return {
            "directory": str(path),
            "is_git_repository": True,
            "condition": str(condition),
            "operation": condition.operation.value,
            "bare": condition.bare,
            "dirty": condition.dirty,
            "default_branch": get_default_branch_name(path),
            "modified_files": [
                {"type": item.type, "path": item.file_relative_path}
                for item in get_modified_file_list(path)
            ]
        }
    except Exception as e:
        return ErrorHandler().handle_sync_error(e, {"repository_path": str(path)}).to_dict()


def check_sync_state_tool(
    directory: str,
    config: Config,
    branch: Optional[str] = None,
    remote: Optional[str] = None,
) -> dict:
    validation_error = validate_directory_input(directory)
    if validation_error:
        return validation_error.to_dict()

    path = Path(directory).expanduser()
    try:
        branch = branch or get_default_branch_name(path) or config.default_branch
        remote = remote or get_remote_name(path, branch)
        state = get_sync_state(path, branch, remote)
    except Exception as e:
        return ErrorHandler().handle_sync_error(e, {"repository_path": str(path)}).to_dict()
    return {"directory": str(path), "branch": branch, "remote": remote, "sync_state": state.value}


def register_tools(server: FastMCP, server_config: Config) -> None:
    """Register MCP tools with the server instance."""

    @server.tool()
    def sync_repository(directory: str, commit_message: Optional[str] = None, files_to_ignore: Optional[List[str]] = None) -> dict:
        """
        Commit local changes in a git working copy and synchronize it with its remote.

        The remote URL and access token come from the server configuration
        (GITSYNC_REMOTE_URL and GITSYNC_ACCESS_TOKEN). Depending on how local
        and remote history relate, local commits are pushed, remote commits are
        fast-forwarded, or local commits are rebased onto the remote.

        Args:
            directory: Path of the working copy to synchronize
            commit_message: Message for the commit of local changes
            files_to_ignore: Paths that must not be committed

        Returns:
            Dictionary with success flag, message, the sync state found and the
            branch used, or an error response
        """
        return sync_repository_tool(directory, server_config, commit_message, files_to_ignore)

    @server.tool()
    def inspect_repository(directory: str) -> dict:
        """
        Report whether a working copy is in the middle of a rebase, merge,
        cherry-pick or bisect, and list its modified files.

        Args:
            directory: Path of the working copy

        Returns:
            Dictionary with the condition, the current branch and modified files
        """
        return inspect_repository_tool(directory)

    @server.tool()
    def check_sync_state(directory: str, branch: Optional[str] = None, remote: Optional[str] = None) -> dict:
        """
        Tell whether local history is equal to, ahead of, behind or diverged
        from the remote-tracking branch. Nothing is fetched.

        Args:
            directory: Path of the working copy
            branch: Branch to compare, the checked out branch by default
            remote: Remote to compare with, the branch's push remote by default

        Returns:
            Dictionary with the sync state
        """
        return check_sync_state_tool(directory, server_config, branch, remote)

    logging.getLogger('gitsync.init').info("MCP tools registered successfully")


def initialize_server() -> FastMCP:
    """Initialize MCP server with stdio transport."""
    server_config = load_configuration()
    validation_issues = validate_configuration(server_config)

    setup_logging(server_config)
    init_logger = logging.getLogger('gitsync.init')

    for issue in validation_issues:
        if issue.startswith("ERROR:"):
            init_logger.error(issue[7:])
        elif issue.startswith("WARNING:"):
            init_logger.warning(issue[9:])

    error_count = sum(1 for issue in validation_issues if issue.startswith("ERROR:"))
    if error_count > 0:
        raise RuntimeError(f"Server startup failed due to {error_count} configuration error(s)")

    init_logger.info("Configuration loaded successfully")
    system_info = get_platform_info().get_system_info()
    init_logger.info(
        f"Running on {system_info['system']} {system_info['release']} "
        f"with Python {system_info['python_version']}"
    )
    server = FastMCP("gitsync", log_level=server_config.log_level)
    register_tools(server, server_config)
    init_logger.info("gitsync MCP server initialized successfully")
    return server


def main():
    """Main entry point for the gitsync MCP server."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr
    )
    startup_logger = logging.getLogger('gitsync.startup')

    if sys.version_info < (3, 10):
        startup_logger.error(f"Python 3.10+ required, found {sys.version.split()[0]}")
        sys.exit(1)

    try:
        server = initialize_server()
    except Exception as e:
        startup_logger.critical(f"Server initialization failed: {e}", exc_info=True)
        sys.exit(1)

    startup_logger.info("Starting gitsync MCP server on stdio")
    try:
        server.run()
    except KeyboardInterrupt:
        startup_logger.info("Server shutdown requested by user")


if __name__ == "__main__":
    main()
