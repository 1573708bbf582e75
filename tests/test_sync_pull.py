"""
Tests for GitSync.pull.

Tests cover:
- Nothing-to-pull short circuit and idempotence
- Successful pull (marker commit + merge commit)
- Upstream HEAD resolution via ls-remote
- Rollback on fetch / post-pull failures
- Conflicts left in place for manual resolution
- No-op merge detection and allow_noop
- Post-pull operations
- Root commit invariant
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest
from conftest import commit_count, commit_file, git, head, init_repo

from josh_sync.core.config import JoshConfig, PostPullOperation
from josh_sync.core.errors import ProxyStartupError
from josh_sync.core.josh import JoshProxy
from josh_sync.core.sync import (
    IntegrityError,
    MergeConflict,
    NothingToPull,
    PullFailed,
    PullResult,
)


class TestNothingToPull:
    """Tests for the short circuit when the marker already matches upstream."""

    def test_marker_equals_upstream(self, subtree, make_sync) -> None:
        """Same upstream commit as last time: no commits, proxy never started."""
        local = subtree["local"]
        sync = make_sync(local, subtree["filtered"], last_upstream_sha="aaa111")
        before = head(local)

        with pytest.raises(NothingToPull):
            sync.pull(upstream_commit="aaa111")

        assert head(local) == before
        assert sync.proxy.started == []

    def test_second_pull_is_noop(self, subtree, make_sync) -> None:
        """Pulling the same upstream commit twice yields NothingToPull the second time."""
        local, filtered = subtree["local"], subtree["filtered"]
        commit_file(filtered, "lib.rs", "fn main() {}\n", "Add lib.rs")
        sync = make_sync(local, filtered, last_upstream_sha="aaa111")

        sync.pull(upstream_commit="bbb222")
        after_first = head(local)

        with pytest.raises(NothingToPull):
            sync.pull(upstream_commit="bbb222")

        assert head(local) == after_first


class TestSuccessfulPull:
    """Tests for a pull that brings in new changes."""

    def test_pull_creates_marker_and_merge_commits(self, subtree, make_sync) -> None:
        """A clean pull adds exactly a marker commit and a merge commit."""
        local, filtered = subtree["local"], subtree["filtered"]
        incoming = commit_file(filtered, "lib.rs", "fn main() {}\n", "Add lib.rs")
        sync = make_sync(local, filtered, last_upstream_sha="aaa111")
        count_before = commit_count(local)
        orig_head = head(local)

        result = sync.pull(upstream_commit="bbb222")

        assert isinstance(result, PullResult)
        assert result.upstream_sha == "bbb222"
        assert result.incoming_ref == incoming
        assert result.head_sha == head(local)

        assert (local / "rust-version").read_text() == "bbb222\n"
        assert (local / "lib.rs").exists()

        # marker commit + merge commit + the pulled commit itself
        assert commit_count(local) == count_before + 3
        parents = git(local, "rev-list", "--parents", "-n", "1", "HEAD").split()[1:]
        assert parents == [git(local, "rev-parse", "HEAD~1"), incoming]
        assert git(local, "rev-parse", "HEAD~2") == orig_head

        marker_subject = git(local, "log", "-1", "--format=%s", "HEAD~1")
        assert marker_subject == "Prepare for merging from rust-lang/rust"
        assert git(local, "status", "--porcelain") == ""

    def test_merge_message(self, subtree, make_sync) -> None:
        """The merge message names upstream ref, filtered ref and the compare link."""
        local, filtered = subtree["local"], subtree["filtered"]
        incoming = commit_file(filtered, "lib.rs", "fn main() {}\n")
        sync = make_sync(local, filtered, last_upstream_sha="aaa111")

        result = sync.pull(upstream_commit="bbb222ccc333ddd")

        message = result.merge_commit_message
        assert message.startswith("Merge ref 'bbb222ccc333' from rust-lang/rust")
        assert "Upstream ref: bbb222ccc333ddd" in message
        assert f"Filtered ref: {incoming}" in message
        assert (
            "https://github.com/rust-lang/rust/compare/aaa111...bbb222ccc333ddd" in message
        )
        assert git(local, "log", "-1", "--format=%B").strip() == message.strip()

    def test_first_pull_without_marker(self, subtree, make_sync) -> None:
        """The first pull creates the marker file and compares against itself."""
        local, filtered = subtree["local"], subtree["filtered"]
        commit_file(filtered, "lib.rs", "fn main() {}\n")
        sync = make_sync(local, filtered)

        result = sync.pull(upstream_commit="bbb222")

        assert (local / "rust-version").read_text() == "bbb222\n"
        assert "compare/bbb222...bbb222" in result.merge_commit_message
        assert sync.context.last_upstream_sha == "bbb222"

    def test_proxy_scoped_to_fetch(self, subtree, make_sync) -> None:
        """The proxy is asked for the pinned, filtered URL and stopped afterwards."""
        local, filtered = subtree["local"], subtree["filtered"]
        commit_file(filtered, "lib.rs", "fn main() {}\n")
        sync = make_sync(local, filtered, last_upstream_sha="aaa111")

        sync.pull(upstream_repo="rust-lang/rust", upstream_commit="bbb222")

        assert len(sync.proxy.started) == 1
        running = sync.proxy.started[0]
        assert running.url_requests == [("rust-lang/rust", "bbb222", ":/lib/x")]
        assert running.stopped is True

    def test_filter_config(self, subtree, make_sync) -> None:
        """A raw filter is passed to josh unchanged."""
        local, filtered = subtree["local"], subtree["filtered"]
        commit_file(filtered, "lib.rs", "fn main() {}\n")
        config = JoshConfig(repo="x", filter=":/lib/x:exclude[::tests/]")
        sync = make_sync(local, filtered, last_upstream_sha="aaa111", config=config)

        sync.pull(upstream_commit="bbb222")

        assert sync.proxy.started[0].url_requests[0][2] == ":/lib/x:exclude[::tests/]"


class TestUpstreamResolution:
    """Tests for resolving upstream HEAD without a full fetch."""

    def test_resolves_upstream_head(self, tmp_path, subtree, make_sync) -> None:
        """Without an explicit commit, upstream HEAD from ls-remote is pulled."""
        host = tmp_path / "host"
        upstream = init_repo(host / "rust-lang" / "rust")
        upstream_head = commit_file(upstream, "src/lib.rs", "// upstream\n")

        local, filtered = subtree["local"], subtree["filtered"]
        commit_file(filtered, "lib.rs", "fn main() {}\n")
        sync = make_sync(local, filtered, last_upstream_sha="aaa111", github_url=str(host))

        result = sync.pull()

        assert result.upstream_sha == upstream_head
        assert (local / "rust-version").read_text().strip() == upstream_head

    def test_upstream_head_matches_marker(self, tmp_path, subtree, make_sync) -> None:
        """Upstream HEAD equal to the stored marker means nothing to pull."""
        host = tmp_path / "host"
        upstream = init_repo(host / "rust-lang" / "rust")
        upstream_head = commit_file(upstream, "src/lib.rs", "// upstream\n")

        local = subtree["local"]
        sync = make_sync(
            local, subtree["filtered"], last_upstream_sha=upstream_head, github_url=str(host)
        )

        with pytest.raises(NothingToPull):
            sync.pull()

    def test_unreachable_upstream(self, tmp_path, subtree, make_sync) -> None:
        """A failing ls-remote is a pull failure, before anything is mutated."""
        local = subtree["local"]
        sync = make_sync(local, subtree["filtered"], github_url=str(tmp_path / "nowhere"))
        before = head(local)

        with pytest.raises(PullFailed, match="cannot fetch upstream commit"):
            sync.pull()

        assert head(local) == before


class TestPreflight:
    """Tests for the clean working tree requirement."""

    def test_dirty_tree_aborts(self, subtree, make_sync) -> None:
        """Uncommitted changes to tracked files abort the pull."""
        local = subtree["local"]
        (local / "README.md").write_text("local edit\n")
        sync = make_sync(local, subtree["filtered"], last_upstream_sha="aaa111")
        before = head(local)

        with pytest.raises(PullFailed, match="working directory must be clean"):
            sync.pull(upstream_commit="bbb222")

        assert head(local) == before
        assert not (local / "rust-version").exists()

    def test_untracked_files_are_ignored(self, subtree, make_sync) -> None:
        """Untracked files do not count as a dirty tree."""
        local, filtered = subtree["local"], subtree["filtered"]
        commit_file(filtered, "lib.rs", "fn main() {}\n")
        (local / "scratch.txt").write_text("notes\n")
        sync = make_sync(local, filtered, last_upstream_sha="aaa111")

        sync.pull(upstream_commit="bbb222")

        assert (local / "scratch.txt").exists()


class TestRollback:
    """Tests for HEAD restoration after failed steps."""

    def test_fetch_failure_reverts_marker_commit(self, tmp_path, subtree, make_sync) -> None:
        """If the fetch fails, the marker commit is undone."""
        local = subtree["local"]
        sync = make_sync(local, tmp_path / "does-not-exist", last_upstream_sha="aaa111")
        before = head(local)

        with pytest.raises(PullFailed, match="cannot fetch git state through Josh"):
            sync.pull(upstream_commit="bbb222")

        assert head(local) == before
        assert git(local, "status", "--porcelain") == ""
        assert not (local / "rust-version").exists()
        assert sync.proxy.started[0].stopped is True
        assert sync.context.last_upstream_sha == "aaa111"

    def test_fetch_failure_restores_existing_marker(self, tmp_path, subtree, make_sync) -> None:
        """A tracked marker file goes back to its previous content."""
        local = subtree["local"]
        commit_file(local, "rust-version", "aaa111\n", "Add rust-version")
        sync = make_sync(local, tmp_path / "does-not-exist", last_upstream_sha="aaa111")
        before = head(local)

        with pytest.raises(PullFailed):
            sync.pull(upstream_commit="bbb222")

        assert head(local) == before
        assert (local / "rust-version").read_text() == "aaa111\n"

    def test_unusable_josh_cache_reverts_marker(
        self, tmp_path, subtree, make_sync, monkeypatch
    ) -> None:
        """A josh cache that cannot be created fails the pull and undoes the marker commit."""
        local = subtree["local"]
        cache_file = tmp_path / "cachefile"
        cache_file.write_text("not a directory\n")
        monkeypatch.setenv("XDG_CACHE_HOME", str(cache_file))
        sync = make_sync(local, subtree["filtered"], last_upstream_sha="aaa111")
        sync.proxy = JoshProxy(tmp_path / "josh-proxy")
        before = head(local)

        with pytest.raises(ProxyStartupError, match="cannot create josh cache directory"):
            sync.pull(upstream_commit="bbb222")

        assert head(local) == before
        assert git(local, "status", "--porcelain") == ""
        assert not (local / "rust-version").exists()

    def test_failing_post_pull_op_reverts_everything(self, subtree, make_sync) -> None:
        """A failing post-pull command rolls back the marker and the merge."""
        local, filtered = subtree["local"], subtree["filtered"]
        commit_file(filtered, "lib.rs", "fn main() {}\n")
        config = JoshConfig(
            repo="x",
            path="lib/x",
            post_pull=[
                PostPullOperation(
                    cmd=[sys.executable, "-c", "raise SystemExit(1)"],
                    commit_message="never",
                )
            ],
        )
        sync = make_sync(local, filtered, last_upstream_sha="aaa111", config=config)
        before = head(local)

        with pytest.raises(PullFailed, match="post-pull operation"):
            sync.pull(upstream_commit="bbb222")

        assert head(local) == before
        assert not (local / "lib.rs").exists()


class TestMergeConflict:
    """Tests for conflicted merges, which are not reverted."""

    def test_conflict_left_in_place(self, subtree, make_sync) -> None:
        """A conflicting merge keeps the marker commit and the merge state."""
        local, filtered = subtree["local"], subtree["filtered"]
        commit_file(filtered, "README.md", "upstream version\n", "Upstream edit")
        commit_file(local, "README.md", "local version\n", "Local edit")
        before = head(local)
        sync = make_sync(local, filtered, last_upstream_sha="aaa111")

        with pytest.raises(MergeConflict) as exc_info:
            sync.pull(upstream_commit="bbb222")

        assert not isinstance(exc_info.value, NothingToPull)
        assert isinstance(exc_info.value, PullFailed)
        assert head(local) != before
        assert git(local, "rev-parse", "HEAD~1") == before
        assert (local / "rust-version").read_text() == "bbb222\n"
        assert (local / ".git" / "MERGE_HEAD").exists()


class TestNoopMerge:
    """Tests for merges that bring in nothing."""

    def test_already_up_to_date(self, subtree, make_sync) -> None:
        """No new upstream commits: NothingToPull and HEAD restored."""
        local = subtree["local"]
        sync = make_sync(local, subtree["filtered"], last_upstream_sha="aaa111")
        before = head(local)

        with pytest.raises(NothingToPull):
            sync.pull(upstream_commit="bbb222")

        assert head(local) == before

    def test_empty_merge_is_rolled_back(self, subtree, make_sync) -> None:
        """A merge commit with an empty tree diff counts as nothing to pull."""
        local, filtered = subtree["local"], subtree["filtered"]
        git(filtered, "commit", "--allow-empty", "-m", "Empty rollup")
        sync = make_sync(local, filtered, last_upstream_sha="aaa111")
        before = head(local)

        with pytest.raises(NothingToPull):
            sync.pull(upstream_commit="bbb222")

        assert head(local) == before

    def test_allow_noop_keeps_empty_merge(self, subtree, make_sync) -> None:
        """With allow_noop the empty merge is kept."""
        local, filtered = subtree["local"], subtree["filtered"]
        git(filtered, "commit", "--allow-empty", "-m", "Empty rollup")
        sync = make_sync(local, filtered, last_upstream_sha="aaa111")
        before = head(local)

        result = sync.pull(upstream_commit="bbb222", allow_noop=True)

        assert result.head_sha == head(local)
        assert git(local, "rev-parse", "HEAD~2") == before
        assert (local / "rust-version").read_text() == "bbb222\n"

    def test_allow_noop_without_merge(self, subtree, make_sync) -> None:
        """With allow_noop and nothing to merge only the marker commit remains."""
        local = subtree["local"]
        sync = make_sync(local, subtree["filtered"], last_upstream_sha="aaa111")
        before = head(local)

        sync.pull(upstream_commit="bbb222", allow_noop=True)

        assert git(local, "rev-parse", "HEAD~1") == before


class TestPostPullOperations:
    """Tests for commands run after a successful pull."""

    def _config(self, *ops: PostPullOperation) -> JoshConfig:
        return JoshConfig(repo="x", path="lib/x", post_pull=list(ops))

    def test_op_changing_files_is_committed(self, subtree, make_sync) -> None:
        """An operation that edits tracked files gets its own commit."""
        local, filtered = subtree["local"], subtree["filtered"]
        commit_file(filtered, "lib.rs", "fn main() {}\n")
        op = PostPullOperation(
            cmd=[sys.executable, "-c", "open('README.md', 'a').write('formatted\\n')"],
            commit_message="Format after pull",
        )
        sync = make_sync(local, filtered, last_upstream_sha="aaa111", config=self._config(op))

        result = sync.pull(upstream_commit="bbb222")

        assert git(local, "log", "-1", "--format=%s") == "Format after pull"
        assert result.head_sha == head(local)
        assert git(local, "status", "--porcelain") == ""

    def test_op_without_changes_adds_no_commit(self, subtree, make_sync) -> None:
        """An operation that changes nothing leaves the merge commit at HEAD."""
        local, filtered = subtree["local"], subtree["filtered"]
        commit_file(filtered, "lib.rs", "fn main() {}\n")
        op = PostPullOperation(cmd=[sys.executable, "-c", "pass"], commit_message="never")
        sync = make_sync(local, filtered, last_upstream_sha="aaa111", config=self._config(op))

        sync.pull(upstream_commit="bbb222")

        assert git(local, "log", "-1", "--format=%s").startswith("Merge ref 'bbb222'")

    def test_ops_run_in_order(self, subtree, make_sync) -> None:
        """Each changing operation produces one commit, in configuration order."""
        local, filtered = subtree["local"], subtree["filtered"]
        commit_file(filtered, "lib.rs", "fn main() {}\n")
        first = PostPullOperation(
            cmd=[sys.executable, "-c", "open('README.md', 'a').write('one\\n')"],
            commit_message="First op",
        )
        second = PostPullOperation(
            cmd=[sys.executable, "-c", "open('README.md', 'a').write('two\\n')"],
            commit_message="Second op",
        )
        sync = make_sync(
            local, filtered, last_upstream_sha="aaa111", config=self._config(first, second)
        )

        sync.pull(upstream_commit="bbb222")

        subjects = git(local, "log", "-2", "--format=%s").splitlines()
        assert subjects == ["Second op", "First op"]


class TestRootCommitInvariant:
    """Tests for detection of fabricated disconnected history."""

    def test_new_root_commit_is_fatal(self, subtree, make_sync) -> None:
        """Filtered history with an extra root commit raises IntegrityError."""
        local, filtered = subtree["local"], subtree["filtered"]
        main_branch = git(filtered, "rev-parse", "--abbrev-ref", "HEAD")
        git(filtered, "checkout", "--orphan", "fabricated")
        git(filtered, "rm", "-rf", ".")
        commit_file(filtered, "other.txt", "unrelated\n", "Disconnected root")
        git(filtered, "checkout", main_branch)
        git(filtered, "merge", "--allow-unrelated-histories", "-m", "Join", "fabricated")

        sync = make_sync(local, filtered, last_upstream_sha="aaa111")

        with pytest.raises(IntegrityError, match="new root commit"):
            sync.pull(upstream_commit="bbb222")

        # The merge itself succeeded and is not rolled back
        assert git(local, "rev-list", "HEAD", "--max-parents=0", "--count") == "2"
        assert (local / "other.txt").exists()


def test_pull_result_head_matches_repo(subtree, make_sync) -> None:
    """PullResult.head_sha is the final HEAD of the repository."""
    local, filtered = subtree["local"], subtree["filtered"]
    commit_file(filtered, "lib.rs", "fn main() {}\n")
    sync = make_sync(local, filtered, last_upstream_sha="aaa111")

    result = sync.pull(upstream_commit="bbb222")

    check = subprocess.run(
        ["git", "cat-file", "-t", result.head_sha],
        cwd=local,
        capture_output=True,
        text=True,
    )
    assert check.stdout.strip() == "commit"
    assert Path(local / "rust-version").read_text().strip() == "bbb222"
