"""
Automatic HEAD restoration for multi-step git mutations.

git has no transaction spanning several commands, so the pull orchestrator
wraps its mutations in a guard that resets the branch when control leaves
the block, unless the guard was disarmed first:

    with GitResetGuard(orig_head, cwd=repo) as guard:
        ...  # commit, fetch, merge
        guard.disarm()
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from types import TracebackType

from rich.console import Console

from josh_sync.core.errors import RollbackError
from josh_sync.utils.command import CommandError, run_command

logger = logging.getLogger(__name__)


class RevertTarget(str, Enum):
    """Non-SHA revert targets."""

    UNDO_LAST_COMMIT = "HEAD~1"


UNDO_LAST_COMMIT = RevertTarget.UNDO_LAST_COMMIT


class GitResetGuard:
    """
    Restores HEAD on exit unless `disarm` was called.

    Args:
        reset_to: SHA to hard-reset to, or UNDO_LAST_COMMIT
        cwd: Repository directory
        console: Console for the user-facing notice
    """

    def __init__(
        self,
        reset_to: str | RevertTarget,
        cwd: Path | None = None,
        console: Console | None = None,
    ) -> None:
        self.reset_to = reset_to
        self.cwd = cwd
        self.console = console or Console(stderr=True)
        self._armed = True

    @property
    def armed(self) -> bool:
        return self._armed

    def disarm(self) -> None:
        """Let the guard go without reverting."""
        self._armed = False

    def revert(self) -> None:
        """
        Reset the current branch to the configured target.

        Raises:
            RollbackError: If the reset fails.
        """
        target = self.reset_to.value if isinstance(self.reset_to, RevertTarget) else self.reset_to
        self.console.print(f"[yellow]Reverting HEAD to {target}[/yellow]")
        logger.info("Reverting HEAD to %s", target)
        try:
            run_command(["git", "reset", "--hard", target], cwd=self.cwd)
        except CommandError as e:
            raise RollbackError(
                f"cannot reset current branch to {target}",
                hint="inspect the repository manually before running josh-sync again",
            ) from e
        self._armed = False

    def __enter__(self) -> GitResetGuard:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._armed:
            self.revert()
