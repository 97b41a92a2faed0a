#!/usr/bin/env python3
"""
Tests for the per-repository run lock.
"""

import shutil
import tempfile
import threading
import unittest
from pathlib import Path

from gitsync.errors import RepositoryLockTimeoutError
from gitsync.file_lock import FileLock, get_lock_file_path, repository_lock


class TestRepositoryLock(unittest.TestCase):
    """Test cases for repository_lock and FileLock."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.repo_dir = self.temp_dir / "repo"
        self.repo_dir.mkdir()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_lock_file_lives_outside_the_working_tree(self):
        lock_path = get_lock_file_path(self.repo_dir)
        self.assertNotIn(str(self.repo_dir.resolve()), str(lock_path))
        self.assertEqual(lock_path, get_lock_file_path(str(self.repo_dir) + "/."))
        self.assertNotEqual(lock_path, get_lock_file_path(self.temp_dir))

    def test_lock_file_exists_only_while_held(self):
        with repository_lock(self.repo_dir, timeout=1.0) as lock_path:
            self.assertTrue(lock_path.exists())
        self.assertFalse(lock_path.exists())

    def test_lock_released_on_error(self):
        with self.assertRaises(RuntimeError):
            with repository_lock(self.repo_dir, timeout=1.0):
                raise RuntimeError("boom")

        with repository_lock(self.repo_dir, timeout=0.5):
            pass

    def test_second_thread_times_out(self):
        errors = []
        holding = threading.Event()
        finished = threading.Event()

        def other_run():
            holding.wait()
            try:
                with repository_lock(self.repo_dir, timeout=0.3):
                    pass
            except RepositoryLockTimeoutError as e:
                errors.append(e)
            finally:
                finished.set()

        worker = threading.Thread(target=other_run)
        worker.start()
        with repository_lock(self.repo_dir, timeout=1.0):
            holding.set()
            finished.wait(5)
        worker.join(5)

        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0].error_code, "E-7")

    def test_other_directories_are_independent(self):
        other_dir = self.temp_dir / "other"
        other_dir.mkdir()
        with repository_lock(self.repo_dir, timeout=1.0):
            with repository_lock(other_dir, timeout=0.3):
                pass

    def test_lock_from_dead_process_is_cleaned(self):
        lock_path = get_lock_file_path(self.repo_dir)
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock_path.write_text("locked_by_pid_2147483646_thread_1")

        file_lock = FileLock(lock_path, timeout=0.5)
        self.assertTrue(file_lock.acquire())
        self.assertTrue(file_lock.is_locked())
        self.assertIn("locked_by_pid_", lock_path.read_text())
        self.assertNotIn("2147483646", lock_path.read_text())

        file_lock.release()
        self.assertFalse(file_lock.is_locked())
        self.assertFalse(lock_path.exists())


if __name__ == "__main__":
    unittest.main()
