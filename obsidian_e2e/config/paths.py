"""
Path resolution and launch options for Obsidian E2E runs.

The resolved configuration is an immutable value built once per test run and
passed explicitly to the launcher; nothing in the toolkit reads paths from
module globals.

Usage:
    from obsidian_e2e.config.paths import E2EConfig, resolve_config

    paths = resolve_config(E2EConfig(plugin_dir="/path/to/plugin"))
    options = create_launch_options(paths)
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from obsidian_e2e.config.env import get_env_str
from obsidian_e2e.constants import (
    BASE_LAUNCH_FLAGS,
    DEFAULT_APP_MAIN_FILE,
    DEFAULT_ASSETS_DIR_NAME,
    DEFAULT_DIST_DIR_NAME,
    DEFAULT_UNPACKED_DIR_NAME,
    MANIFEST_FILE,
)
from obsidian_e2e.core.errors import PreconditionError

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


# =============================================================================
# Configuration input
# =============================================================================

@dataclass(frozen=True)
class E2EConfig:
    """
    User-supplied configuration. Only ``plugin_dir`` is required.

    Attributes:
        plugin_dir: Plugin project root (where manifest.json lives)
        dist_dir: Plugin build output (default: <plugin_dir>/dist)
        toolkit_dir: Directory holding assets and the unpacked app
            (default: <plugin_dir>/e2e/obsidian-e2e)
        assets_dir: Obsidian assets (default: <toolkit_dir>/assets)
        obsidian_unpacked_dir: Unpacked app.asar (default: <toolkit_dir>/.obsidian-unpacked)
        app_main_file: Entry file inside the unpacked dir (default: main.cjs)
        plugin_id: Overrides the id read from the manifest
        manifest: Manifest data; read from <plugin_dir>/manifest.json when omitted
        electron_executable: Electron binary (default: $OBSIDIAN_E2E_ELECTRON,
            then ``electron`` on PATH, then node_modules/.bin/electron)
    """
    plugin_dir: PathLike
    dist_dir: Optional[PathLike] = None
    toolkit_dir: Optional[PathLike] = None
    assets_dir: Optional[PathLike] = None
    obsidian_unpacked_dir: Optional[PathLike] = None
    app_main_file: Optional[str] = None
    plugin_id: Optional[str] = None
    manifest: Optional[Mapping[str, Any]] = None
    electron_executable: Optional[PathLike] = None


@dataclass(frozen=True)
class ResolvedPaths:
    """Resolved, absolute paths for one test run."""
    plugin_dir: Path
    dist_dir: Path
    assets_dir: Path
    obsidian_unpacked_dir: Path
    app_main_file: str
    app_main_js_path: Path
    plugin_id: str
    manifest: Mapping[str, Any] = field(default_factory=dict)
    electron_executable: Optional[Path] = None


@dataclass(frozen=True)
class LaunchOptions:
    """Command line and environment for the controlled Electron process."""
    executable: Path
    args: Tuple[str, ...]
    env: Dict[str, str]


# =============================================================================
# Resolution
# =============================================================================

def _read_manifest(manifest_path: Path) -> Dict[str, Any]:
    with open(manifest_path, "r", encoding="utf-8") as f:
        return json.load(f)


def _find_electron(plugin_dir: Path, explicit: Optional[PathLike]) -> Optional[Path]:
    if explicit:
        return Path(explicit).resolve()

    env_path = get_env_str("OBSIDIAN_E2E_ELECTRON")
    if env_path:
        return Path(env_path).resolve()

    on_path = shutil.which("electron")
    if on_path:
        return Path(on_path)

    local = plugin_dir / "node_modules" / ".bin" / "electron"
    if local.exists():
        return local
    return None


def resolve_config(config: E2EConfig) -> ResolvedPaths:
    """
    Resolve and validate all paths for an E2E run.

    Raises:
        PreconditionError: plugin dir, manifest or plugin id missing.
    """
    plugin_dir = Path(config.plugin_dir).resolve()
    if not plugin_dir.exists():
        raise PreconditionError("Plugin directory", str(plugin_dir))

    manifest_path = plugin_dir / MANIFEST_FILE
    if config.manifest is not None:
        manifest = dict(config.manifest)
    elif manifest_path.exists():
        manifest = _read_manifest(manifest_path)
    else:
        raise PreconditionError(
            MANIFEST_FILE,
            str(manifest_path),
            hint="Provide plugin_dir or manifest in the config.",
        )

    plugin_id = config.plugin_id or manifest.get("id")
    if not plugin_id:
        raise PreconditionError(
            "Plugin ID",
            hint="Provide plugin_id in the config or add an 'id' field to manifest.json.",
        )

    dist_dir = (
        Path(config.dist_dir).resolve() if config.dist_dir
        else plugin_dir / DEFAULT_DIST_DIR_NAME
    )
    toolkit_dir = (
        Path(config.toolkit_dir).resolve() if config.toolkit_dir
        else plugin_dir / "e2e" / "obsidian-e2e"
    )
    assets_dir = (
        Path(config.assets_dir).resolve() if config.assets_dir
        else toolkit_dir / DEFAULT_ASSETS_DIR_NAME
    )
    unpacked_dir = (
        Path(config.obsidian_unpacked_dir).resolve() if config.obsidian_unpacked_dir
        else toolkit_dir / DEFAULT_UNPACKED_DIR_NAME
    )
    app_main_file = config.app_main_file or DEFAULT_APP_MAIN_FILE

    return ResolvedPaths(
        plugin_dir=plugin_dir,
        dist_dir=dist_dir,
        assets_dir=assets_dir,
        obsidian_unpacked_dir=unpacked_dir,
        app_main_file=app_main_file,
        app_main_js_path=unpacked_dir / app_main_file,
        plugin_id=plugin_id,
        manifest=manifest,
        electron_executable=_find_electron(plugin_dir, config.electron_executable),
    )


def config_from_env(default_plugin_dir: Optional[PathLike] = None) -> E2EConfig:
    """
    Build an ``E2EConfig`` from ``OBSIDIAN_E2E_*`` environment variables.

    ``OBSIDIAN_E2E_PLUGIN_DIR`` falls back to ``default_plugin_dir`` and then to
    the current working directory.
    """
    return E2EConfig(
        plugin_dir=get_env_str("OBSIDIAN_E2E_PLUGIN_DIR") or default_plugin_dir or os.getcwd(),
        dist_dir=get_env_str("OBSIDIAN_E2E_DIST_DIR"),
        toolkit_dir=get_env_str("OBSIDIAN_E2E_TOOLKIT_DIR"),
        assets_dir=get_env_str("OBSIDIAN_E2E_ASSETS_DIR"),
        obsidian_unpacked_dir=get_env_str("OBSIDIAN_E2E_UNPACKED_DIR"),
        app_main_file=get_env_str("OBSIDIAN_E2E_APP_MAIN_FILE"),
        plugin_id=get_env_str("OBSIDIAN_E2E_PLUGIN_ID"),
        electron_executable=get_env_str("OBSIDIAN_E2E_ELECTRON"),
    )


def create_launch_options(paths: ResolvedPaths) -> LaunchOptions:
    """
    Build the baseline command line for the controlled process.

    Raises:
        PreconditionError: unpacked app or Electron binary missing.
    """
    if not paths.app_main_js_path.exists():
        raise PreconditionError(
            "Obsidian app",
            str(paths.app_main_js_path),
            hint="Please run the setup script to unpack Obsidian assets.",
        )
    if paths.electron_executable is None or not paths.electron_executable.exists():
        raise PreconditionError(
            "Electron executable",
            str(paths.electron_executable) if paths.electron_executable else None,
            hint="Set OBSIDIAN_E2E_ELECTRON or install electron on PATH.",
        )

    env = dict(os.environ)
    env["NODE_ENV"] = "development"
    env["PLAYWRIGHT"] = "true"
    env["CI"] = os.environ.get("CI") or "false"

    return LaunchOptions(
        executable=paths.electron_executable,
        args=(str(paths.app_main_js_path), *BASE_LAUNCH_FLAGS),
        env=env,
    )


__all__ = [
    "E2EConfig",
    "ResolvedPaths",
    "LaunchOptions",
    "resolve_config",
    "config_from_env",
    "create_launch_options",
]
