"""Environment loading helpers.

josh-sync reads a couple of environment variables (`RUSTC_GIT`,
`GITHUB_ACTIONS`, `XDG_*`). They can also be put in `.env` files:

  os.environ (pre-existing) > project .env > user .env

Values already present in the process environment are never overridden.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from dotenv import dotenv_values

from .loader import get_xdg_config_home

logger = logging.getLogger(__name__)


def _read_env(path: Path) -> dict[str, str]:
    if not path.is_file():
        return {}
    return {k: v for k, v in dotenv_values(path).items() if k and v is not None}


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> dict[str, str]:
    """Load environment variables from user + project .env files.

    Args:
        project_dir: base directory for project env paths (defaults to cwd)
        user_env_paths: explicit user env file paths
        project_env_paths: explicit project env file paths

    Returns:
        The variables that were added to os.environ.
    """
    if user_env_paths is None:
        user_env_paths = [get_xdg_config_home() / "josh-sync" / ".env"]
    if project_env_paths is None:
        project_env_paths = [(project_dir or Path.cwd()) / ".env"]

    # Later files win, so project values replace user values
    layered: dict[str, str] = {}
    for path in [*user_env_paths, *project_env_paths]:
        layered.update(_read_env(Path(path)))

    added = {k: v for k, v in layered.items() if k not in os.environ}
    os.environ.update(added)
    if added:
        logger.debug("Loaded from .env files: %s", ", ".join(sorted(added)))
    return added
