#!/usr/bin/env python3
"""
Tests for automatic recovery from interrupted merges, rebases and bisects.
"""

import unittest
from unittest.mock import patch

from gitsync.errors import CantSyncInSpecialGitStateAutoFixFailed, SyncScriptIsInDeadLoopError
from gitsync.git_sync.conflict_resolution import (
    MAX_RESOLUTION_ENTRIES_PER_RUN,
    resolve_special_condition,
)
from gitsync.git_sync.repository_info import InterruptedOperation, ReconciliationAttempt, RepositorySession
from gitsync.git_sync.state import inspect
from git_test_utils import (
    EXAMPLE_EMAIL,
    EXAMPLE_REMOTE_URL,
    EXAMPLE_USER_NAME,
    GitRepositoryTestCase,
    commit_file,
    git,
    head_sha,
    start_merge_conflict,
    write_file,
)


class TestResolveSpecialCondition(GitRepositoryTestCase):
    """Test cases for resolve_special_condition on real repositories."""

    def setUp(self):
        super().setUp()
        commit_file(self.repo_dir, "README.md", "# Notes\n", "Initial commit")
        self.session = RepositorySession(
            dir=self.repo_dir,
            default_branch="main",
            remote_name="origin",
            remote_url=EXAMPLE_REMOTE_URL,
            user_name=EXAMPLE_USER_NAME,
            email=EXAMPLE_EMAIL
        )

    def test_clean_repository_only_counts_entry(self):
        attempt = resolve_special_condition(self.session)
        self.assertEqual(attempt, ReconciliationAttempt(entries=1, attempts=0))

    def test_dead_loop_guard(self):
        attempt = ReconciliationAttempt(entries=MAX_RESOLUTION_ENTRIES_PER_RUN)
        with self.assertRaises(SyncScriptIsInDeadLoopError) as context:
            resolve_special_condition(self.session, attempt=attempt)
        self.assertEqual(context.exception.error_code, "E-5")

    def test_entries_accumulate_until_guard(self):
        attempt = ReconciliationAttempt()
        for _ in range(MAX_RESOLUTION_ENTRIES_PER_RUN):
            attempt = resolve_special_condition(self.session, attempt=attempt)
        self.assertEqual(attempt.entries, MAX_RESOLUTION_ENTRIES_PER_RUN)
        with self.assertRaises(SyncScriptIsInDeadLoopError):
            resolve_special_condition(self.session, attempt=attempt)

    def test_unresolved_merge_is_left_for_the_user(self):
        start_merge_conflict(self.repo_dir)

        with self.assertRaises(CantSyncInSpecialGitStateAutoFixFailed) as context:
            resolve_special_condition(self.session)

        self.assertEqual(context.exception.error_code, "E-6")
        self.assertIn("MERGING", str(context.exception))
        self.assertIn("README.md", str(context.exception))
        # The merge is never aborted
        condition = inspect(self.repo_dir)
        self.assertEqual(condition.operation, InterruptedOperation.MERGING)
        self.assertIn("<<<<<<<", (self.repo_dir / "README.md").read_text())

    def test_resolved_and_staged_merge_is_concluded(self):
        start_merge_conflict(self.repo_dir)
        write_file(self.repo_dir, "README.md", "resolved\n")
        git(self.repo_dir, "add", "README.md")

        attempt = resolve_special_condition(self.session)

        self.assertEqual(attempt.attempts, 1)
        self.assertFalse(inspect(self.repo_dir).has_interrupted_operation)
        parents = git(self.repo_dir, "rev-list", "--parents", "-n", "1", "HEAD").stdout.split()
        self.assertEqual(len(parents), 3)
        self.assertEqual((self.repo_dir / "README.md").read_text(), "resolved\n")

    def test_resolved_rebase_is_continued(self):
        git(self.repo_dir, "checkout", "-b", "feature")
        commit_file(self.repo_dir, "README.md", "feature\n", "Feature change")
        git(self.repo_dir, "checkout", "main")
        main_sha = commit_file(self.repo_dir, "README.md", "main\n", "Main change")
        git(self.repo_dir, "checkout", "feature")
        self.assertNotEqual(git(self.repo_dir, "rebase", "main", check=False).returncode, 0)
        self.assertTrue(inspect(self.repo_dir).is_rebasing)

        write_file(self.repo_dir, "README.md", "main and feature\n")
        git(self.repo_dir, "add", "README.md")
        resolve_special_condition(self.session)

        self.assertFalse(inspect(self.repo_dir).has_interrupted_operation)
        self.assertEqual(head_sha(self.repo_dir, "HEAD~1"), main_sha)
        self.assertEqual(git(self.repo_dir, "log", "-1", "--format=%s").stdout.strip(), "Feature change")

    def test_unresolved_rebase_is_replayed_then_reported(self):
        git(self.repo_dir, "checkout", "-b", "feature")
        feature_sha = commit_file(self.repo_dir, "README.md", "feature\n", "Feature change")
        git(self.repo_dir, "checkout", "main")
        commit_file(self.repo_dir, "README.md", "main\n", "Main change")
        git(self.repo_dir, "checkout", "feature")
        git(self.repo_dir, "rebase", "main", check=False)

        with self.assertRaises(CantSyncInSpecialGitStateAutoFixFailed):
            resolve_special_condition(self.session)

        self.assertTrue(inspect(self.repo_dir).is_rebasing)
        # Aborting restores the branch, so the local commit is still there
        self.assertEqual(head_sha(self.repo_dir, "refs/heads/feature"), feature_sha)

    def test_bisect_is_reset(self):
        commit_file(self.repo_dir, "a.md", "a\n", "Second commit")
        git(self.repo_dir, "bisect", "start")
        self.assertEqual(inspect(self.repo_dir).operation, InterruptedOperation.BISECTING)

        resolve_special_condition(self.session)

        self.assertFalse(inspect(self.repo_dir).has_interrupted_operation)

    def test_identity_is_set_before_recovery(self):
        start_merge_conflict(self.repo_dir)
        git(self.repo_dir, "add", "README.md")

        resolve_special_condition(self.session)

        self.assertEqual(git(self.repo_dir, "config", "user.name").stdout.strip(), EXAMPLE_USER_NAME)
        self.assertEqual(git(self.repo_dir, "log", "-1", "--format=%an").stdout.strip(), EXAMPLE_USER_NAME)

    @patch('gitsync.git_sync.conflict_resolution.inspect')
    def test_stops_after_two_actions(self, mock_inspect):
        start_merge_conflict(self.repo_dir)
        stuck = inspect(self.repo_dir)
        mock_inspect.return_value = stuck

        with self.assertRaises(CantSyncInSpecialGitStateAutoFixFailed):
            resolve_special_condition(self.session, condition=stuck)

        self.assertEqual(mock_inspect.call_count, 2)


if __name__ == "__main__":
    unittest.main()
