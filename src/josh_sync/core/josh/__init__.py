"""
josh-proxy lifecycle management.

Example:
    >>> from josh_sync.core.josh import JoshProxy
    >>> proxy = JoshProxy.lookup()
    >>> with proxy.start(config) as josh:
    ...     url = josh.git_url("rust-lang/rust", None, ":/library/core")
"""

from josh_sync.core.josh.proxy import (
    JOSH_PORT,
    JOSH_VERSION,
    JoshProxy,
    RunningJoshProxy,
    get_cache_dir,
    try_install_josh,
)

__all__ = [
    "JOSH_PORT",
    "JOSH_VERSION",
    "JoshProxy",
    "RunningJoshProxy",
    "get_cache_dir",
    "try_install_josh",
]
