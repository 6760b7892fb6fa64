"""
Configuration for obsidian-e2e runs.

- env: typed environment variable readers
- timeouts: every bounded wait, overridable via OBSIDIAN_E2E_* variables
- paths: plugin/app path resolution and Electron launch options

Usage:
    from obsidian_e2e.config import E2EConfig, resolve_config, get_timeouts
"""

from obsidian_e2e.config.paths import (
    E2EConfig,
    LaunchOptions,
    ResolvedPaths,
    config_from_env,
    create_launch_options,
    resolve_config,
)
from obsidian_e2e.config.timeouts import E2ETimeouts, get_timeouts, reset_timeouts

__all__ = [
    "E2EConfig",
    "LaunchOptions",
    "ResolvedPaths",
    "config_from_env",
    "create_launch_options",
    "resolve_config",
    "E2ETimeouts",
    "get_timeouts",
    "reset_timeouts",
]
