"""
Shared helpers for tests that need real git repositories.

Repositories are created in temporary directories with the git binary. HTTPS
remote URLs are redirected to a local bare repository with
``url.<path>.insteadOf``, so a sync run talks to the local upstream whether or
not the credential is embedded in the URL.
"""

import os
import shutil
import subprocess
import tempfile
import unittest
from pathlib import Path

from gitsync.git_sync.credential import get_git_url_with_credential
from gitsync.platform import get_git_executable

EXAMPLE_REMOTE_URL = "https://github.com/gitsync-test/example-notes"
EXAMPLE_USER_NAME = "gitsync"
EXAMPLE_EMAIL = "gitsync@gmail.com"
EXAMPLE_TOKEN = "ghp_exampletoken1234567890"


def git(repo_dir: Path, *args: str, check: bool = True) -> subprocess.CompletedProcess:
    """Run git in ``repo_dir`` the way a user would from a shell."""
    env = os.environ.copy()
    env.update({"LC_ALL": "C", "GIT_TERMINAL_PROMPT": "0", "GIT_EDITOR": "true"})
    return subprocess.run(
        [get_git_executable(), *args],
        cwd=str(repo_dir),
        env=env,
        capture_output=True,
        text=True,
        check=check
    )


def configure_identity(repo_dir: Path, name: str = "Test User", email: str = "test@example.com") -> None:
    git(repo_dir, "config", "user.name", name)
    git(repo_dir, "config", "user.email", email)
    git(repo_dir, "config", "commit.gpgsign", "false")


def init_repo(repo_dir: Path) -> Path:
    """Create a working repository on branch ``main`` with a test identity."""
    repo_dir.mkdir(parents=True, exist_ok=True)
    git(repo_dir, "init")
    git(repo_dir, "symbolic-ref", "HEAD", "refs/heads/main")
    configure_identity(repo_dir)
    return repo_dir


def init_bare_repo(repo_dir: Path) -> Path:
    """Create an empty bare repository whose default branch is ``main``."""
    repo_dir.mkdir(parents=True, exist_ok=True)
    git(repo_dir, "init", "--bare")
    git(repo_dir, "symbolic-ref", "HEAD", "refs/heads/main")
    return repo_dir


def clone_repo(source: Path, dest: Path) -> Path:
    git(source.parent, "clone", str(source), str(dest))
    configure_identity(dest, "Other User", "other@example.com")
    return dest


def write_file(repo_dir: Path, relative_path: str, content: str) -> Path:
    path = repo_dir / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def commit_file(repo_dir: Path, relative_path: str, content: str, message: str) -> str:
    """Write, stage and commit a file; returns the new HEAD sha."""
    write_file(repo_dir, relative_path, content)
    git(repo_dir, "add", relative_path)
    git(repo_dir, "commit", "-m", message)
    return head_sha(repo_dir)


def head_sha(repo_dir: Path, ref: str = "HEAD") -> str:
    return git(repo_dir, "rev-parse", ref).stdout.strip()


def redirect_url(repo_dir: Path, remote_url: str, target: Path, user_name: str = EXAMPLE_USER_NAME, token: str = EXAMPLE_TOKEN) -> None:
    """Make both the plain and the credential form of ``remote_url`` resolve to ``target``."""
    key = f"url.{target}.insteadOf"
    git(repo_dir, "config", "--add", key, remote_url)
    git(repo_dir, "config", "--add", key, get_git_url_with_credential(remote_url, user_name, token))


def remote_url_of(repo_dir: Path, remote_name: str = "origin") -> str:
    return git(repo_dir, "config", "--get", f"remote.{remote_name}.url", check=False).stdout.strip()


def start_merge_conflict(repo_dir: Path, relative_path: str = "README.md") -> None:
    """Leave ``repo_dir`` in a merge with an unresolved conflict on ``relative_path``."""
    git(repo_dir, "checkout", "-b", "other")
    commit_file(repo_dir, relative_path, "other side\n", "Change on other branch")
    git(repo_dir, "checkout", "main")
    commit_file(repo_dir, relative_path, "main side\n", "Change on main")
    result = git(repo_dir, "merge", "other", check=False)
    assert result.returncode != 0, result.stdout


class GitRepositoryTestCase(unittest.TestCase):
    """
    Base test case with a working repository, a bare upstream and helpers to
    connect them.
    """

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp()).resolve()
        self.repo_dir = init_repo(self.temp_dir / "work")
        self.upstream_dir = init_bare_repo(self.temp_dir / "upstream.git")

    def tearDown(self):
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir, ignore_errors=True)

    def connect_upstream(self, remote_url: str = EXAMPLE_REMOTE_URL, target: Path = None) -> None:
        """Add ``origin`` pointing at ``remote_url``, which resolves to the upstream."""
        git(self.repo_dir, "remote", "add", "origin", remote_url)
        redirect_url(self.repo_dir, remote_url, target or self.upstream_dir)

    def seed_upstream(self) -> str:
        """Commit a README, connect the upstream and push it; returns the pushed sha."""
        sha = commit_file(self.repo_dir, "README.md", "# Notes\n", "Initial commit")
        self.connect_upstream()
        git(self.repo_dir, "push", "origin", "main")
        return sha

    def make_other_clone(self) -> Path:
        return clone_repo(self.upstream_dir, self.temp_dir / "other")

    def upstream_sha(self, branch: str = "main") -> str:
        return git(self.upstream_dir, "rev-parse", branch, check=False).stdout.strip()
