"""Yes/no prompting that stays out of the way on CI."""

from __future__ import annotations

import os

import typer

CI_ENV_VAR = "GITHUB_ACTIONS"


def is_ci() -> bool:
    """Return True when running under GitHub Actions."""
    return os.environ.get(CI_ENV_VAR, "").lower() in ("1", "true")


def prompt(message: str, default_response: bool) -> bool:
    """
    Ask the user a yes/no question.

    On CI no question is asked and `default_response` is returned, so
    automation never blocks on stdin.
    """
    if is_ci():
        return default_response
    return typer.confirm(message, default=False)
