"""
Subtree synchronization through josh-proxy.

Example:
    >>> from josh_sync.core.sync import GitSync
    >>> sync = GitSync(context, proxy)
    >>> try:
    ...     result = sync.pull()
    ... except NothingToPull:
    ...     print("Nothing to pull")
"""

from josh_sync.core.errors import (
    IntegrityError,
    MergeConflict,
    NothingToPull,
    PullFailed,
    PushFailed,
    RollbackError,
    SyncError,
)
from josh_sync.core.sync.models import DEFAULT_UPSTREAM_REPO, PullResult
from josh_sync.core.sync.rollback import UNDO_LAST_COMMIT, GitResetGuard, RevertTarget
from josh_sync.core.sync.service import GitSync

__all__ = [
    "DEFAULT_UPSTREAM_REPO",
    "GitResetGuard",
    "GitSync",
    "IntegrityError",
    "MergeConflict",
    "NothingToPull",
    "PullFailed",
    "PullResult",
    "PushFailed",
    "RevertTarget",
    "RollbackError",
    "SyncError",
    "UNDO_LAST_COMMIT",
]
