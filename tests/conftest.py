"""
Pytest configuration and shared fixtures.

Provides temporary git repositories, a fake josh-proxy object that serves
local repositories in place of filtered upstream history, and helpers to
inspect repository state.
"""

import io
import subprocess
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console

from josh_sync.core.config import JoshConfig, SyncContext
from josh_sync.core.sync import GitSync

# ==============================================================================
# Git helpers
# ==============================================================================


def git(repo: Path, *args: str) -> str:
    """Run git in `repo` and return stripped stdout; fail the test on error."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def init_repo(path: Path, *, bare: bool = False) -> Path:
    """Create a git repository with a test identity configured."""
    path.mkdir(parents=True, exist_ok=True)
    if bare:
        git(path, "init", "--bare")
        return path

    git(path, "init")
    configure_identity(path)
    return path


def configure_identity(repo: Path) -> None:
    git(repo, "config", "user.email", "test@example.com")
    git(repo, "config", "user.name", "Test User")
    git(repo, "config", "commit.gpgsign", "false")


def commit_file(repo: Path, name: str, content: str, message: str | None = None) -> str:
    """Write a file, commit it and return the new HEAD."""
    target = repo / name
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-m", message or f"Update {name}")
    return git(repo, "rev-parse", "HEAD")


def head(repo: Path) -> str:
    return git(repo, "rev-parse", "HEAD")


def commit_count(repo: Path) -> int:
    return int(git(repo, "rev-list", "--count", "HEAD"))


# ==============================================================================
# Fake josh-proxy
# ==============================================================================


class FakeRunningProxy:
    """Stands in for RunningJoshProxy; every URL points at one local repository."""

    def __init__(self, url: str) -> None:
        self.url = url
        self.url_requests: list[tuple[str, str | None, str]] = []
        self.stopped = False

    def git_url(self, repo: str, commit: str | None, filter: str) -> str:
        self.url_requests.append((repo, commit, filter))
        return self.url

    def __enter__(self) -> "FakeRunningProxy":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stopped = True


class FakeProxy:
    """Stands in for JoshProxy."""

    def __init__(self, url: str | Path) -> None:
        self.url = str(url)
        self.started: list[FakeRunningProxy] = []

    def start(self, config: JoshConfig) -> FakeRunningProxy:
        running = FakeRunningProxy(self.url)
        self.started.append(running)
        return running


# ==============================================================================
# Directory Fixtures
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep user config, caches and CI detection out of the tests."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    monkeypatch.delenv("GITHUB_ACTIONS", raising=False)
    monkeypatch.delenv("RUSTC_GIT", raising=False)


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create a git repository with an initial commit."""
    repo = init_repo(tmp_path / "repo")
    commit_file(repo, "README.md", "# Test Repo\n", "Initial commit")
    return repo


@pytest.fixture
def subtree(tmp_path: Path) -> dict[str, Path]:
    """
    Provide a filtered upstream view and a subtree repository cloned from it.

    `filtered` plays the part of what josh-proxy serves for the subtree;
    `local` is the standalone repository being synchronized.
    """
    filtered = init_repo(tmp_path / "filtered")
    commit_file(filtered, "README.md", "line one\n", "Initial subtree commit")

    local = tmp_path / "local"
    subprocess.run(
        ["git", "clone", str(filtered), str(local)],
        capture_output=True,
        check=True,
    )
    configure_identity(local)

    return {"filtered": filtered, "local": local}


# ==============================================================================
# Sample Data Fixtures
# ==============================================================================


@pytest.fixture
def sample_config() -> JoshConfig:
    """Provide a path-based JoshConfig."""
    return JoshConfig(repo="x", path="lib/x")


@pytest.fixture
def make_sync(sample_config):
    """Factory building a GitSync over a local repository and a fake proxy."""

    def _make(
        repo_dir: Path,
        proxy_url: str | Path,
        *,
        last_upstream_sha: str | None = None,
        config: JoshConfig | None = None,
        github_url: str = "https://github.com",
    ) -> GitSync:
        context = SyncContext(
            config=config or sample_config,
            last_upstream_sha_path=Path("rust-version"),
            last_upstream_sha=last_upstream_sha,
        )
        return GitSync(
            context,
            FakeProxy(proxy_url),  # type: ignore[arg-type]
            repo_dir=repo_dir,
            console=Console(file=io.StringIO(), width=200),
            github_url=github_url,
        )

    return _make
