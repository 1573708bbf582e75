"""
Locate or install josh-proxy for the pull and push commands.
"""

from rich.console import Console

from josh_sync.core.errors import ProxyNotFound
from josh_sync.core.josh import JOSH_VERSION, JoshProxy, try_install_josh
from josh_sync.utils.prompt import prompt

console = Console()


def get_josh_proxy(force_install: bool = False) -> JoshProxy:
    """
    Return an installed josh-proxy, offering to install it if missing.

    Args:
        force_install: Install/update the pinned version even if one is found

    Raises:
        ProxyNotFound: If josh-proxy is missing and the user declined to install it.
        ProxyInstallError: If the installation failed.
    """
    if not force_install:
        proxy = JoshProxy.lookup()
        if proxy is not None:
            return proxy

    if force_install or prompt("josh-proxy not found. Do you want to install it?", True):
        console.print("Updating/installing josh-proxy binary...")
        return try_install_josh()

    raise ProxyNotFound(
        "josh-proxy could not be found",
        hint=(
            "cargo install --locked --git https://github.com/josh-project/josh "
            f"--tag {JOSH_VERSION} josh-proxy"
        ),
    )
