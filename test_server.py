#!/usr/bin/env python3
"""
Tests for the MCP tool functions and their registration.
"""

import asyncio
import unittest
from unittest.mock import patch

from mcp.server.fastmcp import FastMCP

from gitsync.config import Config
from gitsync.server import (
    check_sync_state_tool,
    initialize_server,
    inspect_repository_tool,
    register_tools,
    sync_repository_tool,
    validate_directory_input,
)
from git_test_utils import (
    EXAMPLE_REMOTE_URL,
    EXAMPLE_TOKEN,
    GitRepositoryTestCase,
    commit_file,
    head_sha,
    start_merge_conflict,
    write_file,
)


class TestValidateDirectoryInput(GitRepositoryTestCase):
    """Test cases for the directory argument check."""

    def test_empty_directory(self):
        response = validate_directory_input("  ")
        self.assertEqual(response.error_code, "VALIDATION_ERROR")

    def test_missing_directory(self):
        response = validate_directory_input(str(self.temp_dir / "missing"))
        self.assertEqual(response.error_code, "VALIDATION_ERROR")
        self.assertIn("existing directory", response.message)

    def test_existing_directory(self):
        self.assertIsNone(validate_directory_input(str(self.repo_dir)))


class TestInspectRepositoryTool(GitRepositoryTestCase):

    def test_plain_directory(self):
        plain_dir = self.temp_dir / "plain"
        plain_dir.mkdir()

        response = inspect_repository_tool(str(plain_dir))

        self.assertFalse(response["is_git_repository"])
        self.assertEqual(response["condition"], "NOGIT")

    def test_dirty_repository(self):
        commit_file(self.repo_dir, "README.md", "# Notes\n", "Initial commit")
        write_file(self.repo_dir, "new.md", "new\n")

        response = inspect_repository_tool(str(self.repo_dir))

        self.assertTrue(response["is_git_repository"])
        self.assertEqual(response["condition"], "|DIRTY")
        self.assertEqual(response["operation"], "none")
        self.assertTrue(response["dirty"])
        self.assertEqual(response["default_branch"], "main")
        self.assertEqual(response["modified_files"], [{"type": "??", "path": "new.md"}])

    def test_repository_in_merge(self):
        commit_file(self.repo_dir, "README.md", "# Notes\n", "Initial commit")
        start_merge_conflict(self.repo_dir)

        response = inspect_repository_tool(str(self.repo_dir))

        self.assertEqual(response["operation"], "merging")
        self.assertTrue(response["condition"].startswith("MERGING"))


class TestSyncTools(GitRepositoryTestCase):

    def test_sync_without_token_reports_missing_parameter(self):
        self.seed_upstream()
        config = Config(remote_url=EXAMPLE_REMOTE_URL)

        response = sync_repository_tool(str(self.repo_dir), config)

        self.assertEqual(response["error_code"], "E-2")
        self.assertEqual(response["category"], "git_sync")
        self.assertEqual(response["context"]["repository_path"], str(self.repo_dir))
        self.assertFalse(response["success"])
        self.assertEqual(response["operation"], "sync_repository")
        self.assertEqual(response["attempts"], 0)
        self.assertIsNone(response["sync_state"])

    def test_sync_pushes_local_changes(self):
        self.seed_upstream()
        write_file(self.repo_dir, "a.md", "a\n")
        config = Config(remote_url=EXAMPLE_REMOTE_URL, access_token=EXAMPLE_TOKEN)

        response = sync_repository_tool(str(self.repo_dir), config, commit_message="From tool")

        self.assertTrue(response["success"])
        self.assertIsNone(response["error_code"])
        self.assertEqual(response["sync_state"], "ahead")
        self.assertEqual(response["branch_used"], "main")
        self.assertEqual(self.upstream_sha(), head_sha(self.repo_dir))
        self.assertNotIn(EXAMPLE_TOKEN, str(response))

    def test_sync_on_plain_directory(self):
        plain_dir = self.temp_dir / "plain"
        plain_dir.mkdir()
        config = Config(remote_url=EXAMPLE_REMOTE_URL, access_token=EXAMPLE_TOKEN)

        response = sync_repository_tool(str(plain_dir), config)

        self.assertEqual(response["error_code"], "E-4")
        self.assertFalse(response["success"])

    def test_check_sync_state(self):
        commit_file(self.repo_dir, "README.md", "# Notes\n", "Initial commit")
        self.connect_upstream()

        response = check_sync_state_tool(str(self.repo_dir), Config())
        self.assertEqual(response["sync_state"], "noUpstreamOrBareUpstream")
        self.assertEqual(response["branch"], "main")
        self.assertEqual(response["remote"], "origin")

    def test_check_sync_state_after_seed(self):
        self.seed_upstream()
        commit_file(self.repo_dir, "a.md", "a\n", "Local change")

        response = check_sync_state_tool(str(self.repo_dir), Config())
        self.assertEqual(response["sync_state"], "ahead")


class TestServerSetup(unittest.TestCase):
    """Test cases for tool registration and startup."""

    def test_tools_are_registered(self):
        server = FastMCP("gitsync-test")
        register_tools(server, Config())

        tools = asyncio.run(server.list_tools())

        self.assertEqual(
            sorted(tool.name for tool in tools),
            ["check_sync_state", "inspect_repository", "sync_repository"]
        )

    @patch('gitsync.server.setup_logging')
    @patch('gitsync.server.validate_configuration', return_value=["ERROR: Git not available: missing"])
    @patch('gitsync.server.load_configuration', return_value=Config())
    def test_startup_fails_on_configuration_error(self, mock_load, mock_validate, mock_logging):
        with self.assertRaises(RuntimeError):
            initialize_server()

    @patch('gitsync.server.setup_logging')
    @patch('gitsync.server.validate_configuration', return_value=["WARNING: GITSYNC_REMOTE_URL is not set"])
    @patch('gitsync.server.load_configuration', return_value=Config())
    def test_startup_with_warnings(self, mock_load, mock_validate, mock_logging):
        server = initialize_server()
        self.assertIsInstance(server, FastMCP)


if __name__ == "__main__":
    unittest.main()
