"""
josh-sync CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
import sys

import typer
from rich.console import Console

from josh_sync import __version__
from josh_sync.cli import init_cmd, pull, push
from josh_sync.core.config import load_layered_env

app = typer.Typer(
    name="josh-sync",
    help="Synchronize a subtree repository with its upstream monorepo through josh-proxy",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


def configure_logging(debug: bool) -> None:
    """
    Configure logging for josh-sync.

    Args:
        debug: If True, log every executed command at DEBUG level
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output, including every git command run",
    ),
) -> None:
    """
    josh-sync - subtree synchronization via josh-proxy.

    Pull upstream changes into this repository, or push local changes to a
    branch of your upstream fork.

    Quick Start:
        1. josh-sync init                        # Create josh-sync.toml
        2. josh-sync pull                        # Merge upstream changes
        3. josh-sync push <branch> <username>    # Send changes upstream

    Environment:
        GITHUB_ACTIONS   Never prompt; use default answers
        RUSTC_GIT        Existing upstream checkout used by push
    """
    configure_logging(debug)
    # Precedence: OS env > project .env > user .env
    load_layered_env()
    ctx.obj = {"debug": debug}


app.command(name="init")(init_cmd.main)
app.command(name="pull")(pull.pull)
app.command(name="push")(push.push)


@app.command()
def version() -> None:
    """Show josh-sync version and exit."""
    console.print(f"josh-sync version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
