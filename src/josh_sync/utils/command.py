"""
Subprocess execution helpers.

Every external program josh-sync talks to (git, cargo, gh, post-pull
commands) goes through one of two entry points:

- `run_command` captures stdout/stderr and returns the trimmed stdout.
- `stream_command` lets the child write straight to the terminal, which is
  what we want for long operations like `git merge` or `git clone` where the
  user benefits from seeing progress.

Both raise `CommandError` on a non-zero exit code.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Sequence
from pathlib import Path

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Exception raised when an external command fails."""

    def __init__(
        self,
        message: str,
        command: Sequence[str] | None = None,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.command = list(command) if command is not None else None
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def format_command(args: Sequence[str]) -> str:
    """Render an argv list the way a user would type it."""
    return shlex.join(args)


def run_command(args: Sequence[str], cwd: Path | None = None) -> str:
    """
    Run a command and return its stdout.

    Args:
        args: Program and arguments, e.g. ["git", "rev-parse", "HEAD"].
        cwd: Working directory (defaults to the current directory).

    Returns:
        Command stdout, stripped of surrounding whitespace.

    Raises:
        CommandError: If the program cannot be started or exits non-zero.
    """
    cmd = list(args)
    logger.debug("+ %s", format_command(cmd))

    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            errors="replace",
        )
    except OSError as e:
        raise CommandError(
            f"Cannot run `{format_command(cmd)}`: {e}",
            command=cmd,
        ) from e

    stdout = result.stdout.strip() if result.stdout else ""
    stderr = result.stderr.strip() if result.stderr else ""

    if result.returncode != 0:
        raise CommandError(
            f"Command `{format_command(cmd)}` failed with exit code {result.returncode}. "
            f"STDOUT:\n{stdout}\nSTDERR:\n{stderr}",
            command=cmd,
            returncode=result.returncode,
            stdout=stdout,
            stderr=stderr,
        )

    return stdout


def stream_command(args: Sequence[str], cwd: Path | None = None) -> None:
    """
    Run a command with stdout/stderr inherited from this process.

    Args:
        args: Program and arguments.
        cwd: Working directory (defaults to the current directory).

    Raises:
        CommandError: If the program cannot be started or exits non-zero.
    """
    cmd = list(args)
    logger.debug("+ %s", format_command(cmd))

    try:
        returncode = subprocess.run(cmd, cwd=cwd).returncode
    except OSError as e:
        raise CommandError(
            f"Cannot run `{format_command(cmd)}`: {e}",
            command=cmd,
        ) from e

    if returncode != 0:
        raise CommandError(
            f"Command `{format_command(cmd)}` failed with exit code {returncode}",
            command=cmd,
            returncode=returncode,
        )
