"""Git synchronization functionality for gitsync."""

from .conflict_resolution import resolve_special_condition
from .credential import (
    authenticated,
    credential_off,
    credential_on,
    get_git_url_with_credential,
    get_git_url_without_credential,
)
from .manager import commit_and_sync, sync_repository
from .operations import commit_files
from .repository_info import (
    DivergenceState,
    GitUserInfo,
    InterruptedOperation,
    ModifiedFile,
    ReconciliationAttempt,
    RepositoryCondition,
    RepositorySession,
)
from .state import (
    get_default_branch_name,
    get_git_directory,
    get_git_repository_state,
    get_remote_name,
    get_remote_url,
    has_git,
    have_local_changes,
    inspect,
)
from .status import get_modified_file_list
from .steps import GitStep
from .sync_state import assume_sync, get_sync_state
from .utils import GitSyncResult

__all__ = [
    'commit_and_sync',
    'sync_repository',
    'commit_files',
    'resolve_special_condition',
    'authenticated',
    'credential_on',
    'credential_off',
    'get_git_url_with_credential',
    'get_git_url_without_credential',
    'inspect',
    'get_git_repository_state',
    'get_git_directory',
    'has_git',
    'have_local_changes',
    'get_default_branch_name',
    'get_remote_name',
    'get_remote_url',
    'get_modified_file_list',
    'get_sync_state',
    'assume_sync',
    'DivergenceState',
    'GitUserInfo',
    'InterruptedOperation',
    'ModifiedFile',
    'ReconciliationAttempt',
    'RepositoryCondition',
    'RepositorySession',
    'GitStep',
    'GitSyncResult'
]
