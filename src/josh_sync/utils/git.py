"""
Git utilities for josh-sync.

Thin wrappers over `run_command` for the handful of git queries the pull and
push orchestrators need. All functions take the repository directory
explicitly so they can be pointed at either the subtree repository or the
upstream staging checkout.
"""

from __future__ import annotations

from pathlib import Path

from josh_sync.core.errors import SyncError
from josh_sync.utils.command import CommandError, run_command


def ensure_clean_git_state(cwd: Path | None = None) -> None:
    """Fail if tracked files have staged or unstaged changes.

    Untracked files are ignored.

    Raises:
        SyncError: If the working directory is dirty or git cannot tell.
    """
    try:
        status = run_command(
            ["git", "status", "--untracked-files=no", "--porcelain"],
            cwd=cwd,
        )
    except CommandError as e:
        raise SyncError("cannot figure out if git state is clean") from e

    if status:
        raise SyncError(
            "working directory must be clean",
            hint="commit or stash your changes first",
        )


def rev_parse(ref: str, cwd: Path | None = None) -> str:
    """Resolve a ref (HEAD, FETCH_HEAD, a branch...) to a full SHA."""
    return run_command(["git", "rev-parse", ref], cwd=cwd)


def get_current_head_sha(cwd: Path | None = None) -> str:
    """Get the current HEAD commit hash.

    Raises:
        SyncError: If HEAD cannot be resolved (e.g. empty repository).
    """
    try:
        return rev_parse("HEAD", cwd=cwd)
    except CommandError as e:
        raise SyncError("failed to get current commit") from e


def count_root_commits(cwd: Path | None = None) -> int:
    """Count the parentless commits reachable from HEAD."""
    try:
        out = run_command(
            ["git", "rev-list", "HEAD", "--max-parents=0", "--count"],
            cwd=cwd,
        )
        return int(out)
    except (CommandError, ValueError) as e:
        raise SyncError("failed to determine the number of root commits") from e


def has_empty_diff(baseline_sha: str, cwd: Path | None = None) -> bool:
    """Check whether the working tree has no changes relative to `baseline_sha`.

    `git diff --exit-code` succeeds only when the diff is empty.
    """
    try:
        run_command(["git", "diff", "--exit-code", baseline_sha], cwd=cwd)
    except CommandError:
        return False
    return True


def ls_remote_head(url: str, cwd: Path | None = None) -> str:
    """Ask a remote for the SHA its HEAD points at, without fetching.

    Args:
        url: Remote repository URL.

    Returns:
        The SHA from the first line of `git ls-remote <url> HEAD`.

    Raises:
        CommandError: If `git ls-remote` fails.
        SyncError: If the remote response cannot be parsed.
    """
    out = run_command(["git", "ls-remote", url, "HEAD"], cwd=cwd)
    parts = out.split()
    if not parts:
        raise SyncError(f"Could not obtain upstream HEAD from remote {url}: '{out}'")
    return parts[0]
