"""
Subtree synchronization between an upstream monorepo and this repository.

`GitSync.pull` brings new upstream history for the subtree in:

1. resolve the upstream commit (`git ls-remote`, never a full fetch)
2. require a clean working tree
3. stop early if that commit was already pulled
4. record the commit in the `rust-version` marker, as its own commit
5. fetch the filtered history through josh-proxy
6. merge it (`--no-ff`)
7. roll back if the merge brought in nothing
8. run post-pull operations
9. verify no new root commit appeared

Steps 4-8 run under a `GitResetGuard`, so a failure restores the original
HEAD. A failed merge is the exception: conflicts are left for the user.

`GitSync.push` sends local history to a branch of the contributor's fork
and checks that fetching it back through josh yields the same commit.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from josh_sync.core.config import PostPullOperation, SyncContext
from josh_sync.core.errors import (
    IntegrityError,
    MergeConflict,
    NothingToPull,
    PullFailed,
    PushFailed,
    SyncError,
)
from josh_sync.core.josh import JoshProxy
from josh_sync.core.sync.models import DEFAULT_UPSTREAM_REPO, GITHUB_URL, PullResult
from josh_sync.core.sync.rollback import GitResetGuard
from josh_sync.utils.command import CommandError, format_command, run_command, stream_command
from josh_sync.utils.git import (
    count_root_commits,
    ensure_clean_git_state,
    get_current_head_sha,
    has_empty_diff,
    ls_remote_head,
    rev_parse,
)
from josh_sync.utils.prompt import prompt

logger = logging.getLogger(__name__)

UPSTREAM_CHECKOUT_ENV_VAR = "RUSTC_GIT"
DEFAULT_UPSTREAM_CHECKOUT_DIR = "rustc-checkout"
JOSH_SYNC_URL = "https://github.com/rust-lang/josh-sync"


class GitSync:
    """
    Pull/push orchestration for one subtree repository.

    Example:
        >>> sync = GitSync(load_context(config_path, rust_version_path), proxy)
        >>> result = sync.pull()
        >>> print(result.merge_commit_message)
    """

    def __init__(
        self,
        context: SyncContext,
        proxy: JoshProxy,
        repo_dir: Path | None = None,
        console: Console | None = None,
        github_url: str = GITHUB_URL,
    ) -> None:
        """
        Initialize the sync orchestrator.

        Args:
            context: Loaded config and sync marker
            proxy: Installed josh-proxy, started on demand
            repo_dir: Root of the subtree repository (defaults to cwd)
            console: Console for progress output
            github_url: Base URL repositories are fetched from
        """
        self.context = context
        self.proxy = proxy
        self.repo_dir = (repo_dir or Path.cwd()).resolve()
        self.console = console or Console()
        self.github_url = github_url.rstrip("/")

    @property
    def rust_version_path(self) -> Path:
        """Full path to the sync marker file."""
        return self.repo_dir / self.context.last_upstream_sha_path

    def _git(self, *args: str, cwd: Path | None = None) -> str:
        return run_command(["git", *args], cwd=cwd or self.repo_dir)

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    def pull(
        self,
        upstream_repo: str = DEFAULT_UPSTREAM_REPO,
        upstream_commit: str | None = None,
        allow_noop: bool = False,
    ) -> PullResult:
        """
        Pull upstream changes to the subtree into the current branch.

        Args:
            upstream_repo: Upstream GitHub repository, e.g. "rust-lang/rust"
            upstream_commit: Upstream commit to pull (defaults to upstream HEAD)
            allow_noop: Keep merges that change no files

        Returns:
            PullResult describing the merge

        Raises:
            NothingToPull: If upstream has nothing new for the subtree.
            MergeConflict: If the merge failed; the branch is left as is.
            IntegrityError: If the pull introduced a new root commit.
            ProxyError: If josh-proxy cannot be started; HEAD is restored.
            PullFailed: For any other failure; HEAD is restored.
        """
        upstream_sha = upstream_commit or self._resolve_upstream_head(upstream_repo)

        try:
            ensure_clean_git_state(self.repo_dir)
            orig_head = get_current_head_sha(self.repo_dir)
            num_roots_before = count_root_commits(self.repo_dir)
        except SyncError as e:
            raise PullFailed(str(e), hint=e.hint) from e

        previous_sha = self.context.last_upstream_sha
        self.console.print(f"previous upstream base: {previous_sha or '<none>'}")
        self.console.print(f"new upstream base: {upstream_sha}")
        self.console.print(f"original local HEAD: {orig_head}")

        if previous_sha is not None and previous_sha == upstream_sha:
            raise NothingToPull()

        with GitResetGuard(orig_head, cwd=self.repo_dir, console=self.console) as guard:
            self._commit_marker(upstream_repo, upstream_sha)

            incoming_ref = self._fetch_filtered(upstream_repo, upstream_sha)
            self.console.print(f"incoming ref: {incoming_ref}")

            sha_pre_merge = get_current_head_sha(self.repo_dir)
            merge_message = self._merge_message(upstream_repo, upstream_sha, incoming_ref)

            try:
                # Streamed so the user sees git's diff summary
                stream_command(
                    [
                        "git",
                        "merge",
                        "FETCH_HEAD",
                        "--no-verify",
                        "--no-ff",
                        "-m",
                        merge_message,
                    ],
                    cwd=self.repo_dir,
                )
            except CommandError as e:
                self.console.print(
                    "[red]The merge was unsuccessful (maybe there was a conflict?).[/red]\n"
                    "NOT rolling back the branch state, so you can examine it manually.\n"
                    "After you fix the conflicts, `git add` the changes and run "
                    "`git merge --continue`."
                )
                guard.disarm()
                raise MergeConflict(
                    "FAILED to merge new commits, something went wrong",
                    hint="resolve the conflicts, then `git add` and `git merge --continue`",
                ) from e

            current_sha = get_current_head_sha(self.repo_dir)

            if not allow_noop:
                if current_sha == sha_pre_merge:
                    self.console.print(
                        "No merge was performed, no changes to pull were found. Rolling back."
                    )
                    raise NothingToPull()

                # Empty rollup merges upstream can still produce a merge commit
                if has_empty_diff(sha_pre_merge, cwd=self.repo_dir):
                    self.console.print("Only empty changes were pulled. Rolling back.")
                    raise NothingToPull()

            self.console.print(f"[green]Pull finished![/green] Current HEAD is {current_sha}")

            if self.context.config.post_pull:
                self.console.print("Running post-pull operation(s)")
                for op in self.context.config.post_pull:
                    self._run_post_pull_op(op)

            guard.disarm()

        try:
            num_roots_after = count_root_commits(self.repo_dir)
        except SyncError as e:
            raise PullFailed(str(e)) from e
        if num_roots_after != num_roots_before:
            raise IntegrityError(
                "Josh created a new root commit. This is probably not the history you want.",
                hint=f"expected {num_roots_before} root commit(s), found {num_roots_after}",
            )

        self.context.last_upstream_sha = upstream_sha
        return PullResult(
            merge_commit_message=merge_message,
            upstream_sha=upstream_sha,
            incoming_ref=incoming_ref,
            head_sha=get_current_head_sha(self.repo_dir),
        )

    def _resolve_upstream_head(self, upstream_repo: str) -> str:
        url = f"{self.github_url}/{upstream_repo}"
        try:
            return ls_remote_head(url, cwd=self.repo_dir)
        except CommandError as e:
            raise PullFailed("cannot fetch upstream commit") from e
        except SyncError as e:
            raise PullFailed(str(e)) from e

    def _commit_marker(self, upstream_repo: str, upstream_sha: str) -> None:
        """Record `upstream_sha` in the marker file as a standalone commit.

        The marker commit never contains merge changes, and it lands before
        the merge so a conflicted merge already sees the new marker value.
        """
        marker = self.rust_version_path
        try:
            marker.write_text(f"{upstream_sha}\n")
        except OSError as e:
            raise PullFailed(f"cannot write upstream SHA to {marker}") from e

        message = (
            f"Prepare for merging from {upstream_repo}\n\n"
            f"This updates the {marker.name} file to {upstream_sha}."
        )
        try:
            # `git add` first so the very first sync can commit the file
            relative = os.path.relpath(marker, self.repo_dir)
            self._git("add", relative)
            self._git("commit", relative, "--no-verify", "-m", message)
        except CommandError as e:
            raise PullFailed("cannot create preparation commit") from e

    def _fetch_filtered(self, upstream_repo: str, upstream_sha: str) -> str:
        """Fetch the josh-filtered view of `upstream_sha`, returning FETCH_HEAD."""
        config = self.context.config
        with self.proxy.start(config) as josh:
            josh_url = josh.git_url(upstream_repo, upstream_sha, config.construct_josh_filter())
            try:
                self._git("fetch", josh_url)
            except CommandError as e:
                raise PullFailed("cannot fetch git state through Josh") from e

        try:
            return rev_parse("FETCH_HEAD", cwd=self.repo_dir)
        except CommandError as e:
            raise PullFailed("cannot resolve fetched commit") from e

    def _merge_message(self, upstream_repo: str, upstream_sha: str, incoming_ref: str) -> str:
        prev_upstream_sha = self.context.last_upstream_sha or upstream_sha
        return (
            f"Merge ref '{upstream_sha[:12]}' from {upstream_repo}\n"
            f"\n"
            f"Pull recent changes from https://github.com/{upstream_repo} via Josh.\n"
            f"\n"
            f"Upstream ref: {upstream_sha}\n"
            f"Filtered ref: {incoming_ref}\n"
            f"Upstream diff: https://github.com/{upstream_repo}/compare/"
            f"{prev_upstream_sha}...{upstream_sha}\n"
            f"\n"
            f"This merge was created using {JOSH_SYNC_URL}.\n"
        )

    def _run_post_pull_op(self, op: PostPullOperation) -> None:
        head = get_current_head_sha(self.repo_dir)
        try:
            output = run_command(op.cmd, cwd=self.repo_dir)
        except CommandError as e:
            raise PullFailed(f"post-pull operation `{format_command(op.cmd)}` failed") from e
        if output:
            logger.info("%s: %s", format_command(op.cmd), output)

        if has_empty_diff(head, cwd=self.repo_dir):
            return

        self.console.print(
            f"`{escape(format_command(op.cmd))}` changed something, "
            f"committing with message `{escape(op.commit_message)}`"
        )
        try:
            self._git("add", "-u")
            self._git("commit", "-m", op.commit_message)
        except CommandError as e:
            raise PullFailed(
                f"cannot commit changes made by `{format_command(op.cmd)}`"
            ) from e

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def push(
        self,
        username: str,
        branch: str,
        upstream_repo: str = DEFAULT_UPSTREAM_REPO,
    ) -> None:
        """
        Push local history to `branch` of `username`'s fork of upstream.

        Args:
            username: GitHub user owning the fork
            branch: Branch to create in the fork
            upstream_repo: Upstream GitHub repository

        Raises:
            PushFailed: If any preparation or push step fails.
            IntegrityError: If the pushed branch does not round-trip.
        """
        try:
            ensure_clean_git_state(self.repo_dir)
        except SyncError as e:
            raise PushFailed(str(e), hint=e.hint) from e

        base_upstream_sha = self.context.last_upstream_sha
        if not base_upstream_sha:
            raise PushFailed(
                f"no upstream base commit recorded in {self.rust_version_path}",
                hint="run `josh-sync pull` first",
            )

        fork_repo = f"{username}/{upstream_repo.rsplit('/', 1)[-1]}"
        user_upstream_url = f"{self.github_url}/{fork_repo}"
        upstream_url = f"{self.github_url}/{upstream_repo}"

        checkout = self.prepare_upstream_checkout(upstream_repo)
        config = self.context.config

        with self.proxy.start(config) as josh:
            josh_url = josh.git_url(fork_repo, None, config.construct_josh_filter())

            # The fork branch starts at the upstream commit we last pulled from
            self.console.print(f"Preparing {user_upstream_url} (base: {base_upstream_sha})...")

            try:
                self._git("fetch", user_upstream_url, branch, cwd=checkout)
            except CommandError:
                logger.debug("Branch %s does not exist in %s yet", branch, user_upstream_url)
            else:
                raise PushFailed(
                    f"The branch '{branch}' seems to already exist in '{user_upstream_url}'. "
                    "Please delete it and try again."
                )

            try:
                self._git("fetch", upstream_url, base_upstream_sha, cwd=checkout)
            except CommandError as e:
                raise PushFailed("cannot download latest upstream SHA") from e

            try:
                self._git(
                    "push",
                    user_upstream_url,
                    f"{base_upstream_sha}:refs/heads/{branch}",
                    cwd=checkout,
                )
            except CommandError as e:
                raise PushFailed("cannot push to your fork") from e

            self.console.print("Pushing changes...")
            try:
                self._git("push", josh_url, f"HEAD:{branch}")
            except CommandError as e:
                raise PushFailed("cannot push changes through Josh") from e

            # Round-trip check: josh must give us back exactly what we pushed
            try:
                self._git("fetch", josh_url, branch)
                fetch_head = rev_parse("FETCH_HEAD", cwd=self.repo_dir)
            except CommandError as e:
                raise PushFailed("cannot fetch the pushed branch back through Josh") from e

        head = get_current_head_sha(self.repo_dir)
        if head != fetch_head:
            raise IntegrityError(
                f"Josh created a non-roundtrip push! Do NOT merge this into {upstream_repo}!\n"
                f"Expected {head}, got {fetch_head}."
            )

        self.console.print(
            f"[green]Confirmed that the push round-trips back to {config.repo} properly.[/green] "
            f"Please create a {upstream_repo} PR."
        )

    def prepare_upstream_checkout(self, upstream_repo: str = DEFAULT_UPSTREAM_REPO) -> Path:
        """
        Find an upstream checkout to stage pushes in.

        Uses $RUSTC_GIT when set, otherwise `rustc-checkout` inside the
        repository, offering to clone it when missing.

        Raises:
            PushFailed: If no usable checkout is available.
        """
        if env_path := os.environ.get(UPSTREAM_CHECKOUT_ENV_VAR):
            path = Path(env_path)
            if not path.is_dir():
                raise PushFailed(
                    f"{UPSTREAM_CHECKOUT_ENV_VAR}={env_path} is not a directory",
                    hint=f"point {UPSTREAM_CHECKOUT_ENV_VAR} at a checkout of {upstream_repo}",
                )
            return path

        path = self.repo_dir / DEFAULT_UPSTREAM_CHECKOUT_DIR
        if (path / ".git").exists():
            return path

        if not prompt(
            f"Path to a {upstream_repo} checkout is not configured via the "
            f"{UPSTREAM_CHECKOUT_ENV_VAR} environment variable, and {path} was not found. "
            f"Do you want to download a checkout into {path}?",
            # Download git history when running on CI
            True,
        ):
            raise PushFailed(
                f"cannot continue without a {upstream_repo} checkout",
                hint=f"set {UPSTREAM_CHECKOUT_ENV_VAR} to an existing checkout",
            )

        self.console.print(
            f"Cloning {upstream_repo} into `{path}`. "
            f"Use the {UPSTREAM_CHECKOUT_ENV_VAR} environment variable to override the location."
        )
        try:
            # Streamed so the user sees clone progress
            stream_command(
                [
                    "git",
                    "clone",
                    "--filter=blob:none",
                    f"{self.github_url}/{upstream_repo}",
                    str(path),
                ],
                cwd=self.repo_dir,
            )
        except CommandError as e:
            raise PushFailed(f"cannot clone {upstream_repo}") from e
        return path
