"""
josh-sync - subtree synchronization through josh-proxy

A CLI tool that keeps a standalone repository in sync with a subtree of a
large upstream monorepo, in both directions.
"""

__version__ = "0.1.0"

# Re-export core models for convenience
from josh_sync.core.config.models import JoshConfig, PostPullOperation, SyncContext
from josh_sync.core.sync.models import PullResult

__all__ = ["JoshConfig", "PostPullOperation", "PullResult", "SyncContext", "__version__"]
