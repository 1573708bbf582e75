"""
Data models for the sync service.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

DEFAULT_UPSTREAM_REPO = "rust-lang/rust"
GITHUB_URL = "https://github.com"


class PullResult(BaseModel):
    """
    Outcome of a successful pull.

    The merge commit message doubles as the body of the pull request the
    user opens afterwards.
    """

    merge_commit_message: str = Field(description="Message of the created merge commit")
    upstream_sha: str = Field(description="Upstream commit that was pulled")
    incoming_ref: str = Field(description="Filtered commit josh produced for upstream_sha")
    head_sha: str = Field(description="Local HEAD after the pull")
