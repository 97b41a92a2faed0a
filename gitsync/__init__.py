"""
gitsync - commit local edits and reconcile a git working copy with its remote.

This package commits pending changes, authenticates against an HTTPS remote for
the duration of a run, works out how local and remote history relate and then
pushes, fast-forwards or rebases. Interrupted rebases, merges and cherry-picks
left behind by earlier runs are recovered automatically where possible.
"""

__version__ = "1.0.0"
__author__ = "gitsync Team"
__description__ = "Commit-and-sync engine for git working copies"

from .git_sync import commit_and_sync

__all__ = ["commit_and_sync", "__version__"]
