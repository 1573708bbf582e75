"""
josh-sync CLI - Init command.

Creates a `josh-sync.toml` template and an empty `rust-version` marker.
"""

from pathlib import Path

import typer
from rich.console import Console

from josh_sync.cli.errors import ExitCode, print_error
from josh_sync.core.config import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_RUST_VERSION_PATH,
    write_empty_marker,
    write_template_config,
)

console = Console()


def main(
    config_path: Path = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--config",
        help="Where to write the config file",
    ),
    rust_version_path: Path = typer.Option(
        DEFAULT_RUST_VERSION_PATH,
        "--rust-version",
        help="Where to create the upstream SHA marker file",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite an existing config file",
    ),
) -> None:
    """
    Initialize a config file and an empty rust-version file.

    Fill in `repo` and `path` (or `filter`) in the generated config before
    running `josh-sync pull`. An existing rust-version file is never touched.

    Examples:
        josh-sync init
        josh-sync init --force
    """
    if config_path.exists() and not force:
        print_error(
            f"{config_path} already exists",
            solution="josh-sync init --force  # to overwrite it",
        )
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    try:
        write_template_config(config_path)
        console.print(f"[green]✓[/green] Created config file at {config_path}")

        if write_empty_marker(rust_version_path):
            console.print(f"[green]✓[/green] Created empty rust-version file at {rust_version_path}")
        else:
            console.print(f"{rust_version_path} already exists, not doing anything with it")
    except OSError as e:
        print_error("cannot write config", reason=str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR)
