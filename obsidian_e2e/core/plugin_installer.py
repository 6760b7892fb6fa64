"""
Fixture (plugin) installer.

Stages plugin directories into ``<vault>/.obsidian/plugins/<id>`` either as a
directory symlink or as a copy of the allow-listed top-level files, records
the staged ids in ``community-plugins.json``, and enables them in the running
host once restricted mode is off.

A plugin whose source or manifest is missing is skipped with a warning; the
remaining plugins are still installed.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import aiofiles

from obsidian_e2e.config.timeouts import E2ETimeouts, get_timeouts
from obsidian_e2e.constants import (
    COMMUNITY_PLUGINS_FILE,
    COMMUNITY_PLUGINS_TAB_ID,
    CONFIG_DIR_NAME,
    LABEL_TURN_ON_AND_RELOAD,
    LABEL_TURN_ON_COMMUNITY_PLUGINS,
    MANIFEST_FILE,
    PLUGIN_FILES_TO_COPY,
    PLUGINS_DIR_NAME,
)
from obsidian_e2e.core.errors import CommunityPluginsError
from obsidian_e2e.core.host_api import HostApi
from obsidian_e2e.core.readiness import settle, wait_for_plugins_api
from obsidian_e2e.core.types import TestPlugin

logger = logging.getLogger(__name__)


# =============================================================================
# On-disk staging
# =============================================================================

def _link_plugin(source: Path, dest: Path, plugin_id: str) -> bool:
    if dest.exists() or dest.is_symlink():
        logger.debug(f"[PLUGINS] {dest} already exists, skipping symlink")
        return True
    try:
        os.symlink(source, dest, target_is_directory=True)
    except OSError as e:
        logger.error(f"[PLUGINS] Failed to create symlink for {plugin_id}: {e}")
        return False
    logger.debug(f"[PLUGINS] Linked {source} -> {dest}")
    return True


def _copy_plugin(source: Path, dest: Path) -> None:
    if dest.is_symlink():
        # Left by an earlier link-mode install; copying through it would write into the source.
        logger.debug(f"[PLUGINS] Replacing symlink {dest} with a copy")
        dest.unlink()
    dest.mkdir(parents=True, exist_ok=True)
    for entry in source.iterdir():
        if entry.is_dir() or entry.name not in PLUGIN_FILES_TO_COPY:
            continue
        shutil.copyfile(entry, dest / entry.name)
        logger.debug(f"[PLUGINS] Copied {entry.name} to {dest}")


async def install_plugins(
    vault_path: Union[str, os.PathLike],
    plugins: Sequence[TestPlugin],
) -> List[str]:
    """
    Stage plugins into a vault and write ``community-plugins.json``.

    Re-running with the same arguments leaves the vault in the same state.

    Returns:
        Ids actually installed, in input order.
    """
    config_dir = Path(vault_path) / CONFIG_DIR_NAME
    plugins_dir = config_dir / PLUGINS_DIR_NAME
    plugins_dir.mkdir(parents=True, exist_ok=True)

    installed: List[str] = []
    for plugin in plugins:
        source = Path(plugin.path)
        if not source.exists():
            logger.warning(f"[PLUGINS] Plugin path not found: {source}")
            continue
        if not (source / MANIFEST_FILE).exists():
            logger.warning(f"[PLUGINS] {MANIFEST_FILE} not found in: {source}")
            continue

        dest = plugins_dir / plugin.plugin_id
        if plugin.use_symlink:
            if not _link_plugin(source.resolve(), dest, plugin.plugin_id):
                continue
        else:
            try:
                _copy_plugin(source, dest)
            except OSError as e:
                logger.warning(f"[PLUGINS] Failed to copy {plugin.plugin_id}: {e}")
                continue

        installed.append(plugin.plugin_id)
        logger.debug(f"[PLUGINS] Installed {plugin.plugin_id}")

    registry = config_dir / COMMUNITY_PLUGINS_FILE
    async with aiofiles.open(registry, "w", encoding="utf-8") as f:
        await f.write(json.dumps(installed))
    logger.info(f"[PLUGINS] Installed plugins: {', '.join(installed) or '<none>'}")
    return installed


# =============================================================================
# In-host activation
# =============================================================================

async def ensure_community_plugins_enabled(page: Any, timeouts: Optional[E2ETimeouts] = None) -> None:
    """
    Turn off restricted mode through the settings modal if it is on.

    Raises:
        ReadinessTimeoutError: the plugins API never appeared.
        CommunityPluginsError: restricted mode is still on afterwards.
    """
    timeouts = timeouts or get_timeouts()
    api = HostApi(page)

    await wait_for_plugins_api(page, timeouts.plugin_load_timeout)
    if await api.community_plugins_enabled():
        logger.debug("[PLUGINS] Community plugins already enabled")
        return

    logger.info("[PLUGINS] Enabling community plugins...")
    await api.open_settings_tab(COMMUNITY_PLUGINS_TAB_ID)

    # Labels are matched exactly; a localized or renamed button falls through.
    label = await api.settings_cta_label()
    if label == LABEL_TURN_ON_AND_RELOAD:
        logger.debug(f"[PLUGINS] Clicking '{LABEL_TURN_ON_AND_RELOAD}'")
        await api.click_settings_cta()
        await settle(page, "turn-on-and-reload click", timeouts.settle_delay)
        label = await api.settings_cta_label()

    if label == LABEL_TURN_ON_COMMUNITY_PLUGINS:
        logger.debug(f"[PLUGINS] Clicking '{LABEL_TURN_ON_COMMUNITY_PLUGINS}'")
        await api.click_settings_cta()
        await settle(page, "turn-on-community-plugins click", timeouts.settle_delay)

    await page.keyboard.press("Escape")

    if not await api.community_plugins_enabled():
        raise CommunityPluginsError(
            f"Failed to enable community plugins (settings button read {label!r})"
        )


async def enable_plugins(
    page: Any,
    plugin_ids: Sequence[str],
    timeouts: Optional[E2ETimeouts] = None,
) -> List[str]:
    """Enable and persist each plugin, one after another. Returns the enabled ids."""
    await ensure_community_plugins_enabled(page, timeouts)
    enabled = await HostApi(page).enable_plugins(plugin_ids)
    logger.info(f"[PLUGINS] Enabled plugins: {', '.join(enabled) or '<none>'}")
    return enabled


__all__ = [
    "install_plugins",
    "enable_plugins",
    "ensure_community_plugins_enabled",
]
