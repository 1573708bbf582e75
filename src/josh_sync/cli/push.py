"""
josh-sync CLI - Push command.

Pushes the current branch to a branch of the contributor's fork of the
upstream repository, ready to be opened as an upstream pull request.
"""

from pathlib import Path
from urllib.parse import quote

import typer
from rich.console import Console

from josh_sync.cli.errors import ExitCode, print_sync_error
from josh_sync.cli.proxy import get_josh_proxy
from josh_sync.core.config import DEFAULT_CONFIG_PATH, DEFAULT_RUST_VERSION_PATH, load_context
from josh_sync.core.errors import SyncError
from josh_sync.core.sync import DEFAULT_UPSTREAM_REPO, GitSync

console = Console()
err_console = Console(stderr=True)


def build_pr_url(upstream_repo: str, full_repo_name: str, repo: str, username: str, branch: str) -> str:
    """Quick-pull URL opening an upstream PR for the pushed branch."""
    # "subtree update" in the title keeps the upstream no-merges check quiet
    body = (
        f"Subtree update of https://github.com/{full_repo_name}.\n"
        f"\n"
        f"Created using https://github.com/rust-lang/josh-sync.\n"
        f"\n"
        f"r? @ghost"
    )
    return (
        f"https://github.com/{upstream_repo}/compare/{username}:{branch}"
        f"?quick_pull=1&title={quote(repo, safe='')}+subtree+update&body={quote(body, safe='')}"
    )


def push(
    branch: str = typer.Argument(..., help="Branch to create in your fork"),
    username: str = typer.Argument(..., help="Your GitHub username, owner of the fork"),
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
        help="Upstream GitHub repository the fork belongs to",
    ),
    install_josh: bool = typer.Option(
        False,
        "--install-josh",
        help="Install/update josh-proxy before pushing",
    ),
) -> None:
    """
    Push changes into a branch of your upstream fork.

    The branch starts at the upstream commit recorded in rust-version and
    must not exist yet. Set RUSTC_GIT to reuse an existing upstream checkout.

    Examples:
        josh-sync push my-sync-branch my-github-user
    """
    try:
        ctx = load_context(config_path, rust_version_path)
        proxy = get_josh_proxy(force_install=install_josh)
        sync = GitSync(ctx, proxy, console=console)
        sync.push(username, branch, upstream_repo=upstream_repo)
    except SyncError as e:
        print_sync_error("cannot perform push", e)
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    except KeyboardInterrupt:
        err_console.print("Interrupted")
        raise typer.Exit(ExitCode.SIGINT)

    url = build_pr_url(upstream_repo, ctx.config.full_repo_name, ctx.config.repo, username, branch)
    console.print("You can create the upstream PR using the following URL:")
    console.print(url, soft_wrap=True, highlight=False, markup=False)
