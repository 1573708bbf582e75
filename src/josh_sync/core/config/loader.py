"""
Configuration loading.

Reads `josh-sync.toml` and the `rust-version` marker file, and writes the
templates used by `josh-sync init`.
"""

import logging
import os
import tomllib
from pathlib import Path

from pydantic import ValidationError

from josh_sync.core.errors import ConfigError

from .models import JoshConfig, SyncContext

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("josh-sync.toml")
DEFAULT_RUST_VERSION_PATH = Path("rust-version")

CONFIG_TEMPLATE = """\
org = "rust-lang"
repo = "<repository-name>"
path = "<relative-subtree-path>"

# Commands to run after each pull; a commit is created if they change anything.
# [[post-pull]]
# cmd = ["cargo", "fmt"]
# commit-message = "Reformat after pull"
"""


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_xdg_cache_home() -> Path:
    """
    Get XDG cache home directory.

    Returns:
        Path to cache directory (defaults to ~/.cache)
    """
    if xdg_home := os.environ.get("XDG_CACHE_HOME"):
        return Path(xdg_home)
    return Path.home() / ".cache"


def _format_validation_error(error: ValidationError) -> str:
    messages = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"])
        msg = err["msg"].removeprefix("Value error, ")
        messages.append(f"{location}: {msg}" if location else msg)
    return "; ".join(messages)


def load_config(path: Path) -> JoshConfig:
    """
    Load and validate a josh-sync config file.

    Args:
        path: Path to the TOML config file

    Returns:
        Validated JoshConfig

    Raises:
        ConfigError: If the file is missing, is not valid TOML, or does not
            describe a valid configuration.
    """
    try:
        data = tomllib.loads(path.read_text())
    except OSError as e:
        raise ConfigError(
            f"cannot load config file from {path}: {e}",
            hint="run `josh-sync init` to create one",
        ) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"cannot load config {path} as TOML: {e}") from e

    try:
        return JoshConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid config {path}: {_format_validation_error(e)}") from e


def load_last_upstream_sha(path: Path) -> str | None:
    """
    Read the last synchronized upstream SHA from the marker file.

    A missing or empty file means no sync has happened yet.
    """
    try:
        sha = path.read_text().strip()
    except OSError as e:
        logger.warning("Cannot load %s file: %s", path, e)
        return None
    return sha or None


def load_context(config_path: Path, rust_version_path: Path) -> SyncContext:
    """
    Load the config and the sync marker into a SyncContext.

    Raises:
        ConfigError: If the config cannot be loaded.
    """
    config = load_config(config_path)
    return SyncContext(
        config=config,
        last_upstream_sha_path=rust_version_path,
        last_upstream_sha=load_last_upstream_sha(rust_version_path),
    )


def write_template_config(path: Path) -> None:
    """Write a config template for the user to fill in."""
    path.write_text(CONFIG_TEMPLATE)


def write_empty_marker(path: Path) -> bool:
    """
    Create an empty marker file unless one already exists.

    Returns:
        True if the file was created, False if it already existed.
    """
    if path.is_file():
        return False
    path.write_text("")
    return True
