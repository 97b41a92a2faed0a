#!/usr/bin/env python3
"""
Unit tests for sync state classification.

The rev-list call is mocked for the classification table; a real repository
with a local upstream covers the no-upstream and ahead cases end to end.
"""

import unittest
from unittest.mock import patch

from gitsync.errors import AssumeSyncError
from gitsync.git_sync.process import GitProcessResult
from gitsync.git_sync.repository_info import DivergenceState
from gitsync.git_sync.sync_state import assume_sync, classify_counts, get_sync_state
from git_test_utils import GitRepositoryTestCase, commit_file, git


def _rev_list_output(stdout: str, stderr: str = "", exit_code: int = 0) -> GitProcessResult:
    return GitProcessResult(exit_code=exit_code, stdout=stdout, stderr=stderr)


class TestClassifyCounts(unittest.TestCase):
    """Test cases for mapping left/right counts to a state."""

    def test_classification_table(self):
        cases = {
            "0\t0\n": DivergenceState.EQUAL,
            "0\t3\n": DivergenceState.AHEAD,
            "2\t0\n": DivergenceState.BEHIND,
            "1\t4\n": DivergenceState.DIVERGED,
            "10\t10\n": DivergenceState.DIVERGED,
            "": DivergenceState.NO_UPSTREAM_OR_BARE_UPSTREAM,
            "\n": DivergenceState.NO_UPSTREAM_OR_BARE_UPSTREAM,
        }
        for stdout, expected in cases.items():
            with self.subTest(stdout=stdout):
                self.assertEqual(classify_counts(stdout), expected)

    def test_unparseable_output(self):
        self.assertIsNone(classify_counts("fatal: bad revision\n"))


class TestGetSyncState(unittest.TestCase):
    """Test cases for get_sync_state with the git call mocked."""

    @patch('gitsync.git_sync.sync_state.run_git')
    def test_runs_single_rev_list(self, mock_run_git):
        mock_run_git.return_value = _rev_list_output("0\t2\n")

        state = get_sync_state("/repo", "main", "origin")

        self.assertEqual(state, DivergenceState.AHEAD)
        mock_run_git.assert_called_once()
        args = mock_run_git.call_args[0][0]
        self.assertEqual(args, ["rev-list", "--count", "--left-right", "origin/main...HEAD"])

    @patch('gitsync.git_sync.sync_state.run_git')
    def test_missing_upstream_gives_no_upstream(self, mock_run_git):
        mock_run_git.return_value = _rev_list_output(
            "", "fatal: ambiguous argument 'origin/main...HEAD': unknown revision", 128
        )
        self.assertEqual(
            get_sync_state("/repo", "main", "origin"),
            DivergenceState.NO_UPSTREAM_OR_BARE_UPSTREAM
        )

    @patch('gitsync.git_sync.sync_state.run_git')
    def test_unparseable_output_is_logged(self, mock_run_git):
        mock_run_git.return_value = _rev_list_output("something else\n")

        with self.assertLogs('gitsync.git_sync.sync_state', level='WARNING') as captured:
            state = get_sync_state("/repo", "main", "origin")

        self.assertEqual(state, DivergenceState.NO_UPSTREAM_OR_BARE_UPSTREAM)
        self.assertIn("Unexpected rev-list output", captured.output[0])

    @patch('gitsync.git_sync.sync_state.get_remote_name', return_value="upstream")
    @patch('gitsync.git_sync.sync_state.run_git')
    def test_remote_name_looked_up_when_omitted(self, mock_run_git, mock_remote_name):
        mock_run_git.return_value = _rev_list_output("0\t0\n")

        self.assertEqual(get_sync_state("/repo", "main"), DivergenceState.EQUAL)
        mock_remote_name.assert_called_once_with("/repo", "main")
        self.assertEqual(mock_run_git.call_args[0][0][-1], "upstream/main...HEAD")

    @patch('gitsync.git_sync.sync_state.run_git')
    def test_assume_sync_raises_unless_equal(self, mock_run_git):
        mock_run_git.return_value = _rev_list_output("1\t0\n")
        with self.assertRaises(AssumeSyncError) as context:
            assume_sync("/repo", "main", "origin")
        self.assertEqual(context.exception.error_code, "E-1")
        self.assertIn("behind", str(context.exception))

        mock_run_git.return_value = _rev_list_output("0\t0\n")
        assume_sync("/repo", "main", "origin")


class TestSyncStateOnRepository(GitRepositoryTestCase):
    """Test cases against a real repository and bare upstream."""

    def test_no_upstream_before_first_push(self):
        commit_file(self.repo_dir, "README.md", "# Notes\n", "Initial commit")
        self.connect_upstream()
        self.assertEqual(
            get_sync_state(self.repo_dir, "main", "origin"),
            DivergenceState.NO_UPSTREAM_OR_BARE_UPSTREAM
        )

    def test_equal_then_ahead(self):
        self.seed_upstream()
        self.assertEqual(get_sync_state(self.repo_dir, "main", "origin"), DivergenceState.EQUAL)

        commit_file(self.repo_dir, "a.md", "a\n", "Local change")
        self.assertEqual(get_sync_state(self.repo_dir, "main", "origin"), DivergenceState.AHEAD)

    def test_behind_and_diverged_after_fetch(self):
        self.seed_upstream()
        other_dir = self.make_other_clone()
        commit_file(other_dir, "remote.md", "remote\n", "Remote change")
        git(other_dir, "push", "origin", "main")

        # Nothing is fetched by the classifier itself
        self.assertEqual(get_sync_state(self.repo_dir, "main", "origin"), DivergenceState.EQUAL)

        git(self.repo_dir, "fetch", "origin")
        self.assertEqual(get_sync_state(self.repo_dir, "main", "origin"), DivergenceState.BEHIND)

        commit_file(self.repo_dir, "local.md", "local\n", "Local change")
        self.assertEqual(get_sync_state(self.repo_dir, "main", "origin"), DivergenceState.DIVERGED)


if __name__ == "__main__":
    unittest.main()
