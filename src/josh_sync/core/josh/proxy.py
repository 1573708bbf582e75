"""
josh-proxy process management.

josh-proxy serves a filtered view of a GitHub repository over local HTTP.
We start one instance per pull/push and make sure it is gone when that
operation finishes:

    proxy = JoshProxy.lookup() or try_install_josh()
    with proxy.start(config) as josh:
        url = josh.git_url("rust-lang/rust", sha, config.construct_josh_filter())
        ...

Shutdown escalates: SIGINT, a short grace period, then SIGKILL.
"""

from __future__ import annotations

import logging
import shutil
import signal
import socket
import subprocess
import sys
import time
from pathlib import Path
from types import TracebackType

from josh_sync.core.config import JoshConfig, get_xdg_cache_home
from josh_sync.core.errors import ProxyInstallError, ProxyStartupError
from josh_sync.utils.command import CommandError, stream_command

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"
IS_UNIX = not IS_WINDOWS

JOSH_EXECUTABLE = "josh-proxy"
JOSH_PORT = 42042
# Version of josh-proxy that gets installed for the user
JOSH_VERSION = "r24.10.04"
JOSH_REPOSITORY = "https://github.com/josh-project/josh"
JOSH_REMOTE = "https://github.com"

READY_POLL_ATTEMPTS = 100
READY_POLL_INTERVAL = 0.01
CONNECT_TIMEOUT = 0.001
SHUTDOWN_GRACE_PERIOD = 0.1


def get_cache_dir(config: JoshConfig) -> Path:
    """Cache directory josh uses for this subtree repository.

    Stable across runs so josh can reuse its filtered history.
    """
    return get_xdg_cache_home() / "rustc-josh" / config.org / config.repo


def _port_is_open(port: int) -> bool:
    try:
        with socket.create_connection(("127.0.0.1", port), timeout=CONNECT_TIMEOUT):
            return True
    except OSError:
        return False


class RunningJoshProxy:
    """
    A running josh-proxy instance, stopped when the context exits.

    Attributes:
        process: The josh-proxy child process
        port: Local port josh-proxy listens on
    """

    def __init__(self, process: subprocess.Popen[bytes], port: int) -> None:
        self.process = process
        self.port = port

    def git_url(self, repo: str, commit: str | None, filter: str) -> str:
        """
        Build a git remote URL serving `repo` through josh.

        Args:
            repo: GitHub repository, e.g. "rust-lang/rust"
            commit: Pin the view to this upstream commit (None for all refs)
            filter: josh filter, e.g. ":/src/doc/rustc-dev-guide"
        """
        commit_part = f"@{commit}" if commit else ""
        return f"http://localhost:{self.port}/{repo}.git{commit_part}{filter}.git"

    def is_running(self) -> bool:
        """Check if the josh-proxy process is still running."""
        return self.process.poll() is None

    def stop(self) -> None:
        """
        Stop josh-proxy, gracefully if possible.

        Safe to call more than once.
        """
        if not self.is_running():
            return

        if IS_UNIX:
            logger.debug("Sending SIGINT to josh-proxy (pid %s)", self.process.pid)
            try:
                self.process.send_signal(signal.SIGINT)
            except ProcessLookupError:
                pass
            try:
                self.process.wait(timeout=SHUTDOWN_GRACE_PERIOD)
                logger.debug("josh-proxy terminated gracefully")
                return
            except subprocess.TimeoutExpired:
                pass

        logger.warning(
            "I have to kill josh-proxy the hard way, let's hope this does not break anything."
        )
        self.process.kill()
        self.process.wait()

    def __enter__(self) -> RunningJoshProxy:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()


class JoshProxy:
    """An installed josh-proxy executable."""

    def __init__(self, path: Path, port: int = JOSH_PORT) -> None:
        self.path = path
        self.port = port

    @classmethod
    def lookup(cls) -> JoshProxy | None:
        """Find josh-proxy on PATH, returning None if it is not installed."""
        found = shutil.which(JOSH_EXECUTABLE)
        if found is None:
            return None
        return cls(Path(found))

    def start(self, config: JoshConfig) -> RunningJoshProxy:
        """
        Spawn josh-proxy and wait until it accepts connections.

        Args:
            config: Subtree config, used to pick the josh cache directory

        Returns:
            RunningJoshProxy, to be used as a context manager

        Raises:
            ProxyStartupError: If the cache directory cannot be created,
                josh-proxy cannot be spawned, or it does not open its port
                within about a second.
        """
        cache_dir = get_cache_dir(config)
        try:
            cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ProxyStartupError(
                f"cannot create josh cache directory {cache_dir}: {e}",
                hint="check that XDG_CACHE_HOME points to a writable directory",
            ) from e

        cmd = [
            str(self.path),
            "--local",
            str(cache_dir),
            f"--remote={JOSH_REMOTE}",
            f"--port={self.port}",
            "--no-background",
        ]
        logger.debug("Starting josh-proxy: %s", " ".join(cmd))

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise ProxyStartupError(
                f"failed to start josh-proxy: {e}",
                hint="make sure josh-proxy is installed",
            ) from e

        running = RunningJoshProxy(process, self.port)
        for _ in range(READY_POLL_ATTEMPTS):
            if _port_is_open(self.port):
                logger.info("josh up and running on port %d", self.port)
                return running
            if not running.is_running():
                break
            time.sleep(READY_POLL_INTERVAL)

        running.stop()
        raise ProxyStartupError(
            f"Even after waiting for 1s, josh-proxy is still not available on port {self.port}.",
            hint=f"check that nothing else is using port {self.port}",
        )


def try_install_josh() -> JoshProxy:
    """
    Install (or update) josh-proxy with cargo, pinned to JOSH_VERSION.

    Returns:
        The freshly installed JoshProxy

    Raises:
        ProxyInstallError: If cargo fails or josh-proxy is still not on PATH.
    """
    try:
        stream_command(
            [
                "cargo",
                "install",
                "--locked",
                "--git",
                JOSH_REPOSITORY,
                "--tag",
                JOSH_VERSION,
                JOSH_EXECUTABLE,
            ]
        )
    except CommandError as e:
        raise ProxyInstallError(
            "cannot install josh-proxy",
            hint="make sure cargo is installed and on PATH",
        ) from e

    proxy = JoshProxy.lookup()
    if proxy is None:
        raise ProxyInstallError(
            "josh-proxy was installed but cannot be found on PATH",
            hint="add cargo's bin directory (usually ~/.cargo/bin) to PATH",
        )
    return proxy
