"""Utility modules for josh-sync."""

from .command import CommandError, format_command, run_command, stream_command
from .git import (
    count_root_commits,
    ensure_clean_git_state,
    get_current_head_sha,
    has_empty_diff,
    ls_remote_head,
    rev_parse,
)
from .prompt import is_ci, prompt

__all__ = [
    "CommandError",
    "count_root_commits",
    "ensure_clean_git_state",
    "format_command",
    "get_current_head_sha",
    "has_empty_diff",
    "is_ci",
    "ls_remote_head",
    "prompt",
    "rev_parse",
    "run_command",
    "stream_command",
]
