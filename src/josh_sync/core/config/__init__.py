"""
Configuration models and loading.

This module provides Pydantic models for `josh-sync.toml` and helpers to
load it together with the `rust-version` sync marker.
"""

from josh_sync.core.errors import ConfigError

from .env import load_layered_env
from .loader import (
    CONFIG_TEMPLATE,
    DEFAULT_CONFIG_PATH,
    DEFAULT_RUST_VERSION_PATH,
    get_xdg_cache_home,
    get_xdg_config_home,
    load_config,
    load_context,
    load_last_upstream_sha,
    write_empty_marker,
    write_template_config,
)
from .models import DEFAULT_ORG, JoshConfig, PostPullOperation, SyncContext

__all__ = [
    # Models
    "DEFAULT_ORG",
    "JoshConfig",
    "PostPullOperation",
    "SyncContext",
    # Errors
    "ConfigError",
    # Loader functions
    "CONFIG_TEMPLATE",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_RUST_VERSION_PATH",
    "get_xdg_cache_home",
    "get_xdg_config_home",
    "load_config",
    "load_context",
    "load_last_upstream_sha",
    "load_layered_env",
    "write_empty_marker",
    "write_template_config",
]
