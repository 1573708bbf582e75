"""
Exception hierarchy for josh-sync.

Callers branch on the exception type, never on message text:

    SyncError
    ├── ConfigError          malformed or contradictory josh-sync.toml
    ├── NothingToPull        distinguished no-op outcome of a pull
    ├── PullFailed           a pull step failed (cause is chained)
    │   └── MergeConflict    merge failed, state left for manual resolution
    ├── PushFailed           a push step failed
    ├── IntegrityError       root commit count changed / push did not round-trip
    ├── RollbackError        reverting HEAD itself failed
    └── ProxyError           josh-proxy could not be found, installed or started
        ├── ProxyNotFound
        ├── ProxyInstallError
        └── ProxyStartupError
"""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for all josh-sync failures."""

    def __init__(self, message: str, *, hint: str | None = None):
        super().__init__(message)
        self.hint = hint


class ConfigError(SyncError):
    """Raised when the configuration file is missing, malformed or contradictory."""

    pass


class NothingToPull(SyncError):
    """Raised when upstream has nothing new for this subtree."""

    def __init__(self, message: str = "Nothing to pull"):
        super().__init__(message)


class PullFailed(SyncError):
    """Raised when a pull fails, probably because a git operation errored."""

    pass


class MergeConflict(PullFailed):
    """Raised when merging the filtered history fails (usually a conflict)."""

    pass


class PushFailed(SyncError):
    """Raised when a push to the contributor's fork fails."""

    pass


class IntegrityError(SyncError):
    """Raised when josh produced history we must not hand to anyone."""

    pass


class RollbackError(SyncError):
    """Raised when restoring a previous HEAD fails; repository state is unknown."""

    pass


class ProxyError(SyncError):
    """Base exception for josh-proxy environment failures."""

    pass


class ProxyNotFound(ProxyError):
    """Raised when no josh-proxy executable is available."""

    pass


class ProxyInstallError(ProxyError):
    """Raised when installing josh-proxy fails."""

    pass


class ProxyStartupError(ProxyError):
    """Raised when josh-proxy does not come up."""

    pass
