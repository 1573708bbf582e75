"""
Configuration data models for josh-sync.

These models define the structure of `josh-sync.toml`, with validation and
type safety via Pydantic. TOML keys are kebab-case (`post-pull`,
`commit-message`), Python attributes are snake_case.
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_ORG = "rust-lang"

# Config key used by other josh-sync versions to embed the sync marker
EMBEDDED_MARKER_KEY = "last-upstream-sha"


class PostPullOperation(BaseModel):
    """
    A command executed after a successful pull.

    If the command changes tracked files, the changes are staged with
    `git add -u` and committed with `commit_message`. Use e.g. `bash -c` for
    anything more involved than a single command.
    """

    cmd: list[str] = Field(
        min_length=1,
        description="Command and arguments to execute",
    )
    commit_message: str = Field(
        alias="commit-message",
        description="Commit message used if the command changed something",
    )

    model_config = ConfigDict(populate_by_name=True)


class JoshConfig(BaseModel):
    """
    Subtree synchronization settings for one repository.

    Exactly one of `path` or `filter` must be set.
    """

    org: str = Field(
        default=DEFAULT_ORG,
        description="GitHub organization that owns the subtree repository",
    )
    repo: str = Field(description="Name of the subtree repository")
    path: str | None = Field(
        default=None,
        description="Relative path of the subtree in the upstream repository, "
        "e.g. src/doc/rustc-dev-guide",
    )
    filter: str | None = Field(
        default=None,
        description="Raw josh filter specification (cannot be combined with path)",
    )
    post_pull: list[PostPullOperation] = Field(
        default_factory=list,
        alias="post-pull",
        description="Operations performed after a pull",
    )
    allow_noop: bool = Field(
        default=False,
        alias="allow-noop",
        description="Keep merges that bring in no content changes",
    )

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def reject_embedded_marker(cls, data: Any) -> Any:
        """The last upstream SHA is only read from the rust-version file."""
        if isinstance(data, dict) and EMBEDDED_MARKER_KEY in data:
            raise ValueError(
                f"`{EMBEDDED_MARKER_KEY}` is not supported in the config file; "
                "store the upstream SHA in the rust-version file instead"
            )
        return data

    @model_validator(mode="after")
    def check_path_or_filter(self) -> "JoshConfig":
        """Require exactly one of `path` and `filter`."""
        if self.path is not None and self.filter is not None:
            raise ValueError("Cannot specify both `path` and `filter`")
        if self.path is None and self.filter is None:
            raise ValueError("Must specify one of `path` and `filter`")
        return self

    @property
    def full_repo_name(self) -> str:
        """`org/repo` of the subtree repository."""
        return f"{self.org}/{self.repo}"

    def construct_josh_filter(self) -> str:
        """Build the josh filter that selects the subtree from upstream."""
        if self.path is not None:
            return f":/{self.path}"
        assert self.filter is not None
        return self.filter


class SyncContext(BaseModel):
    """
    Everything an orchestrator needs to know about the local repository.

    `last_upstream_sha` is the upstream commit recorded by the previous pull,
    read from `last_upstream_sha_path`; None before the first sync.
    """

    config: JoshConfig
    last_upstream_sha_path: Path
    last_upstream_sha: str | None = None
