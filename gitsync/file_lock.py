"""
Per-repository run locking for gitsync.

Two sync runs on the same working tree would fight over the index, the
remote URL and any rebase in progress. ``repository_lock`` serializes them
within a process with a ``threading.Lock`` and across processes with a lock
file kept in the system temp directory.
"""

import hashlib
import logging
import os
import subprocess
import tempfile
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Generator, Union

from .errors import RepositoryLockTimeoutError
from .platform import get_platform_info

# Lock files older than this are considered abandoned.
STALE_LOCK_AGE = 300

_thread_locks: Dict[str, threading.Lock] = {}
_thread_locks_guard = threading.Lock()


class FileLock:
    """
    Cross-process lock based on exclusive creation of a lock file.

    The lock file records the owning process id so a lock left behind by a
    crashed process can be cleaned up.
    """

    def __init__(self, lock_file_path: Path, timeout: float = 30.0):
        """
        Initialize file lock.

        Args:
            lock_file_path: Path to the lock file
            timeout: Maximum time to wait for lock acquisition (seconds)
        """
        self.lock_file_path = lock_file_path
        self.timeout = timeout
        self.logger = logging.getLogger('gitsync.file_lock')
        self.platform_info = get_platform_info()
        self._lock_acquired = False

    def acquire(self) -> bool:
        """
        Acquire the file lock.

        Returns:
            True if lock was acquired, False if timeout occurred
        """
        start_time = time.time()

        while True:
            self.lock_file_path.parent.mkdir(parents=True, exist_ok=True)
            if self._try_create():
                self._lock_acquired = True
                self.logger.debug(f"Acquired lock: {self.lock_file_path}")
                return True
            if time.time() - start_time >= self.timeout:
                break
            time.sleep(0.1)

        self.logger.warning(f"Failed to acquire lock {self.lock_file_path} within {self.timeout}s")
        return False

    def _try_create(self) -> bool:
        try:
            fd = os.open(self.lock_file_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            if self._check_and_cleanup_stale_lock():
                return self._try_create()
            return False

        with os.fdopen(fd, 'w') as f:
            f.write(f"locked_by_pid_{os.getpid()}_thread_{threading.get_ident()}")
        return True

    def _check_and_cleanup_stale_lock(self) -> bool:
        """
        Check if an existing lock is stale and remove it if so.

        Returns:
            True if the lock file is gone and can be created again
        """
        try:
            lock_age = time.time() - self.lock_file_path.stat().st_mtime
            lock_content = self.lock_file_path.read_text()
        except FileNotFoundError:
            return True

        if lock_age > STALE_LOCK_AGE:
            self.logger.warning(f"Cleaning up stale lock file: {self.lock_file_path}")
            self._remove_lock_file()
            return True

        try:
            pid = int(lock_content.split("locked_by_pid_")[1].split("_")[0])
        except (ValueError, IndexError):
            # Half-written lock files are only unparseable for a moment.
            return False

        if not self._is_process_running(pid):
            self.logger.warning(f"Cleaning up lock from dead process {pid}: {self.lock_file_path}")
            self._remove_lock_file()
            return True
        return False

    def _remove_lock_file(self) -> None:
        try:
            self.lock_file_path.unlink()
        except FileNotFoundError:
            pass

    def _is_process_running(self, pid: int) -> bool:
        """
        Check if a process with given PID is still running.

        Args:
            pid: Process ID to check

        Returns:
            True if process is running, False otherwise
        """
        if pid == os.getpid():
            return True
        try:
            if self.platform_info.is_windows:
                result = subprocess.run(
                    ["tasklist", "/FI", f"PID eq {pid}"],
                    capture_output=True,
                    text=True,
                    timeout=5
                )
                return str(pid) in result.stdout
            os.kill(pid, 0)
            return True
        except PermissionError:
            return True
        except (OSError, subprocess.TimeoutExpired):
            return False

    def release(self) -> None:
        """Release the file lock."""
        if not self._lock_acquired:
            return
        self._remove_lock_file()
        self.logger.debug(f"Released lock: {self.lock_file_path}")
        self._lock_acquired = False

    def is_locked(self) -> bool:
        return self._lock_acquired


def get_lock_file_path(dir: Union[str, Path]) -> Path:
    """Lock file for a working tree, named after a hash of its resolved path."""
    key = str(Path(dir).resolve())
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]
    return Path(tempfile.gettempdir()) / "gitsync-locks" / f"{digest}.lock"


def _get_thread_lock(key: str) -> threading.Lock:
    with _thread_locks_guard:
        if key not in _thread_locks:
            _thread_locks[key] = threading.Lock()
        return _thread_locks[key]


@contextmanager
def repository_lock(dir: Union[str, Path], timeout: float = 30.0) -> Generator[Path, None, None]:
    """
    Hold the run lock for a working tree.

    Args:
        dir: Working tree to lock
        timeout: Maximum time to wait, in seconds

    Yields:
        Path of the lock file

    Raises:
        RepositoryLockTimeoutError: If another run keeps the lock past ``timeout``
    """
    key = str(Path(dir).resolve())
    start_time = time.time()

    thread_lock = _get_thread_lock(key)
    if not thread_lock.acquire(timeout=timeout):
        raise RepositoryLockTimeoutError(dir, timeout)

    try:
        remaining = max(0.0, timeout - (time.time() - start_time))
        file_lock = FileLock(get_lock_file_path(dir), remaining)
        if not file_lock.acquire():
            raise RepositoryLockTimeoutError(dir, timeout)
        try:
            yield file_lock.lock_file_path
        finally:
            file_lock.release()
    finally:
        thread_lock.release()
