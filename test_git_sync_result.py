#!/usr/bin/env python3
"""
Unit tests for GitSyncResult and the per-run performance logger.
"""

import logging

import pytest

from gitsync.git_sync.performance_logger import PerformanceLogger
from gitsync.git_sync.repository_info import (
    DivergenceState,
    InterruptedOperation,
    RepositoryCondition,
)
from gitsync.git_sync.utils import GitSyncResult


def test_git_sync_result_defaults():
    """A result built with only the required fields."""
    result = GitSyncResult(success=True, message="Synchronized main", operation="commit_and_sync")

    assert result.attempts == 1, "a run without recovery counts as one attempt"
    assert result.error_code is None
    assert result.branch_used is None
    assert result.sync_state is None
    assert result.starting_condition is None


def test_git_sync_result_to_dict():
    result = GitSyncResult(
        success=True,
        message="Synchronized main",
        operation="commit_and_sync",
        attempts=2,
        branch_used="main",
        sync_state=DivergenceState.DIVERGED,
        starting_condition=RepositoryCondition(dirty=True)
    )

    data = result.to_dict()

    assert data == {
        "success": True,
        "message": "Synchronized main",
        "operation": "commit_and_sync",
        "attempts": 2,
        "error_code": None,
        "branch_used": "main",
        "sync_state": "diverged",
        "starting_condition": "|DIRTY",
    }


def test_git_sync_result_to_dict_keeps_empty_condition():
    """A clean starting condition renders as an empty string, not None."""
    result = GitSyncResult(
        success=True,
        message="ok",
        operation="commit_and_sync",
        starting_condition=RepositoryCondition()
    )
    assert result.to_dict()["starting_condition"] == ""
    assert result.to_dict()["sync_state"] is None


def test_repository_condition_labels():
    assert str(RepositoryCondition.not_a_repository()) == "NOGIT"
    assert str(RepositoryCondition(operations=(InterruptedOperation.MERGING,), dirty=True)) == "MERGING|DIRTY"
    assert str(RepositoryCondition(
        operations=(InterruptedOperation.AM_REBASE, InterruptedOperation.MERGING)
    )) == "AM/REBASEMERGING"
    assert str(RepositoryCondition(bare=True)) == "|BARE"


def test_performance_logger_summary():
    performance = PerformanceLogger(logging.getLogger('gitsync.test.performance'))

    assert performance.get_performance_summary() == {"total_operations": 0, "average_duration": 0.0}

    with performance.time_operation("fetch", {"remote": "origin"}):
        pass
    with pytest.raises(RuntimeError):
        with performance.time_operation("push"):
            raise RuntimeError("rejected")

    summary = performance.get_performance_summary()
    assert summary["total_operations"] == 2
    assert summary["success_rate"] == 0.5
    assert summary["slowest_operation"]["name"] in ("fetch", "push")


def test_performance_logger_logs_at_requested_level(caplog):
    performance = PerformanceLogger(logging.getLogger('gitsync.test.performance'))

    with caplog.at_level(logging.INFO, logger='gitsync.test.performance'):
        with performance.time_operation("commit_and_sync", log_level=logging.INFO):
            pass

    messages = [record.getMessage() for record in caplog.records]
    assert any("Starting commit_and_sync" in message for message in messages)
    assert any("commit_and_sync completed in" in message for message in messages)


def test_slow_network_operation_warns(caplog):
    performance = PerformanceLogger(logging.getLogger('gitsync.test.performance'))

    with caplog.at_level(logging.WARNING, logger='gitsync.test.performance'):
        performance.log_network_performance("push", "https://github.com/owner/notes", 20.0)

    assert any("Slow network operation" in record.getMessage() for record in caplog.records)
