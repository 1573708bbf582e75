"""
Standardized error handling and exit codes for the josh-sync CLI.

Exit codes are part of the interface: CI jobs branch on NOTHING_TO_PULL to
skip opening a pull request.
"""

from enum import IntEnum

from rich.console import Console
from rich.markup import escape

from josh_sync.core.errors import SyncError

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for josh-sync operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """The operation failed."""

    NOTHING_TO_PULL = 2
    """Pull found no upstream changes. Not a failure."""

    SIGINT = 130
    """Interrupted by the user (Ctrl+C)."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "josh-proxy could not be found",
        ...     solution="cargo install --locked --git https://github.com/josh-project/josh josh-proxy",
        ... )
    """
    console.print(f"[red]Error:[/red] {escape(problem)}", highlight=False)

    if reason:
        console.print(f"[dim]{escape(reason)}[/dim]", highlight=False)

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {escape(solution)}", highlight=False)


def print_sync_error(action: str, error: SyncError) -> None:
    """
    Print a SyncError, including the lower-level failure that caused it.

    Args:
        action: What was being attempted, e.g. "Pull failure"
        error: The error raised by the orchestrator
    """
    cause = error.__cause__
    print_error(
        f"{action}: {error}",
        reason=str(cause) if cause is not None else None,
        solution=error.hint,
    )
