"""
josh-sync CLI - Pull command.

Pulls upstream changes to the subtree into the current branch. Exits with
ExitCode.NOTHING_TO_PULL (2) when there is nothing new, so automation can
skip the pull request step.
"""

import shutil
from pathlib import Path

import typer
from rich.console import Console

from josh_sync.cli.errors import ExitCode, print_error, print_sync_error
from josh_sync.cli.proxy import get_josh_proxy
from josh_sync.core.config import DEFAULT_CONFIG_PATH, DEFAULT_RUST_VERSION_PATH, load_context
from josh_sync.core.errors import NothingToPull, SyncError
from josh_sync.core.sync import DEFAULT_UPSTREAM_REPO, GitSync
from josh_sync.utils.command import CommandError, stream_command
from josh_sync.utils.prompt import prompt

console = Console()
err_console = Console(stderr=True)

PULL_PR_TITLE = "Rustc pull update"


def maybe_create_gh_pr(repo: str, title: str, description: str) -> bool:
    """
    Offer to open a pull request with the GitHub CLI.

    Returns:
        True if `gh pr create` ran successfully, False otherwise.
    """
    if shutil.which("gh") is None:
        return False
    if not prompt("Do you want to create a rustc pull PR using the `gh` tool?", False):
        return False

    try:
        stream_command(
            [
                "gh",
                "pr",
                "create",
                "--title",
                title,
                "--body",
                description,
                "--repo",
                repo,
            ]
        )
    except CommandError as e:
        print_error("cannot create the pull request with gh", reason=str(e))
        return False
    return True


def pull(
    config_path: Path = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--config",
        help="Path to josh-sync.toml",
    ),
    rust_version_path: Path = typer.Option(
        DEFAULT_RUST_VERSION_PATH,
        "--rust-version",
        help="File holding the last pulled upstream SHA",
    ),
    upstream_repo: str = typer.Option(
        DEFAULT_UPSTREAM_REPO,
        "--upstream-repo",
        help="Upstream GitHub repository to pull from",
    ),
    upstream_commit: str | None = typer.Option(
        None,
        "--upstream-commit",
        help="Pull this upstream commit instead of upstream HEAD",
    ),
    allow_noop: bool = typer.Option(
        False,
        "--allow-noop",
        help="Keep the merge even if it brings in no changes",
    ),
    install_josh: bool = typer.Option(
        False,
        "--install-josh",
        help="Install/update josh-proxy before pulling",
    ),
) -> None:
    """
    Pull changes from the upstream repository.

    Creates a marker commit updating rust-version and a merge commit with the
    filtered upstream history. Push the branch afterwards and open a PR.

    Exit codes: 0 on success, 2 if there was nothing to pull, 1 on failure.

    Examples:
        josh-sync pull
        josh-sync pull --upstream-commit 1234abcd
        josh-sync pull --config other.toml --allow-noop
    """
    try:
        ctx = load_context(config_path, rust_version_path)
        proxy = get_josh_proxy(force_install=install_josh)
        sync = GitSync(ctx, proxy, console=console)
        result = sync.pull(
            upstream_repo=upstream_repo,
            upstream_commit=upstream_commit,
            allow_noop=allow_noop or ctx.config.allow_noop,
        )
    except NothingToPull:
        err_console.print("Nothing to pull")
        raise typer.Exit(ExitCode.NOTHING_TO_PULL)
    except SyncError as e:
        print_sync_error("Pull failure", e)
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    except KeyboardInterrupt:
        err_console.print("Interrupted")
        raise typer.Exit(ExitCode.SIGINT)

    if not maybe_create_gh_pr(
        ctx.config.full_repo_name,
        PULL_PR_TITLE,
        result.merge_commit_message,
    ):
        console.print(
            f"Now push the current branch to {ctx.config.repo} "
            "(either a fork or the main repo) and create a PR"
        )
