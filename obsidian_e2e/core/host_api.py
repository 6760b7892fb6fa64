"""
Host Query Surface
==================

Every JavaScript snippet the toolkit evaluates inside an Obsidian window lives
in this module. The rest of the package talks to ``HostApi`` (or, for the
readiness waiters, to the ``JS_*`` predicates below) and never embeds
``window.app`` / ``window.electron`` expressions itself, so a host upgrade
that renames an internal only needs a change here.

Usage:
    api = HostApi(page)
    name = await api.vault_name()
    ok = await api.execute_command("workspace:close")
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

logger = logging.getLogger(__name__)


# =============================================================================
# Renderer / session
# =============================================================================

JS_MARK_AUTOMATION = "() => { window.playwright = true; }"

JS_VAULT_NAME = "() => window.app?.vault?.getName() ?? null"

JS_IPC_SEND_SYNC = """
([channel, ...args]) => window.electron.ipcRenderer.sendSync(channel, ...args)
"""

JS_USER_DATA_PATH = """
() => {
  try {
    return window.electron?.remote?.app?.getPath('userData') ?? null;
  } catch (e) {
    return null;
  }
}
"""

JS_CLEAR_RENDERER_STORAGE = """
async () => {
  const win = window.electron?.remote?.BrowserWindow?.getFocusedWindow();
  const webContents = win?.webContents;
  if (!webContents) return false;
  webContents.session.flushStorageData();
  await webContents.session.clearStorageData({
    storages: ['indexdb', 'localstorage', 'websql'],
  });
  await webContents.session.clearCache();
  return true;
}
"""

# Resolves true (not undefined) so wait_for_function treats it as satisfied.
JS_LAYOUT_READY = """
async () => {
  const workspace = window.app?.workspace;
  if (!workspace?.onLayoutReady) return false;
  return await new Promise((resolve) => workspace.onLayoutReady(() => resolve(true)));
}
"""

JS_LAYOUT_READY_FLAG = "() => window.app?.workspace?.layoutReady === true"

JS_ADAPTER_BASE_PATH = "() => window.app?.vault?.adapter?.basePath ?? null"


# =============================================================================
# Commands and plugins
# =============================================================================

JS_EXECUTE_COMMAND = "(id) => window.app.commands.executeCommandById(id)"

JS_PLUGINS_API_READY = "() => window.app?.plugins?.isEnabled !== undefined"

JS_COMMUNITY_PLUGINS_ENABLED = "() => window.app?.plugins?.isEnabled?.() ?? false"

JS_PLUGIN_LOADED = """
(id) => {
  const plugin = window.app?.plugins?.getPlugin(id);
  return plugin !== null && plugin !== undefined;
}
"""

JS_PLUGINS_LOADED = """
(ids) => {
  const plugins = window.app?.plugins;
  if (!plugins) return false;
  return ids.every((id) => plugins.getPlugin(id));
}
"""

JS_ENABLE_PLUGINS = """
async (ids) => {
  const enabled = [];
  for (const id of ids) {
    if (await window.app.plugins.enablePluginAndSave(id)) enabled.push(id);
  }
  return enabled;
}
"""

JS_PLUGIN_ENABLED = "(id) => !!window.app.plugins.enabledPlugins.has(id)"

JS_BUILD_PLUGIN_MAP = """
(ids) => {
  const map = new Map();
  for (const id of ids) {
    const plugin = window.app?.plugins?.getPlugin(id);
    if (plugin) map.set(id, plugin);
  }
  return map;
}
"""

JS_MAP_GET = "(map, id) => map.get(id)"

JS_MAP_KEYS = "(map) => Array.from(map.keys())"

JS_OPEN_PLUGIN_WITH_URL = """
([id, url]) => {
  const plugin = window.app.plugins.getPlugin(id);
  if (plugin && plugin.openWithURL) {
    plugin.openWithURL(url);
    return true;
  }
  return false;
}
"""


# =============================================================================
# Settings modal
# =============================================================================

JS_OPEN_SETTINGS_TAB = """
(tabId) => {
  window.app.setting.open();
  window.app.setting.openTabById(tabId);
}
"""

JS_SETTINGS_CTA_LABEL = """
() => {
  const button = window.app.setting.activeTab?.setting?.contentEl?.querySelector('button.mod-cta');
  return button?.textContent?.trim() || null;
}
"""

JS_CLICK_SETTINGS_CTA = """
() => {
  const button = window.app.setting.activeTab?.setting?.contentEl?.querySelector('button.mod-cta');
  if (!button) return false;
  button.click();
  return true;
}
"""


# =============================================================================
# Vault adapter
# =============================================================================

JS_FILE_EXISTS = "(path) => window.app.vault.adapter.exists(path)"
JS_READ_FILE = "(path) => window.app.vault.adapter.read(path)"
JS_WRITE_FILE = "([path, content]) => window.app.vault.adapter.write(path, content)"
JS_REMOVE_FILE = "(path) => window.app.vault.adapter.remove(path)"

JS_OPEN_FILE = """
async (path) => {
  const file = window.app.vault.getAbstractFileByPath(path);
  if (!file) return false;
  await window.app.workspace.getLeaf().openFile(file);
  return true;
}
"""


# =============================================================================
# Workspace
# =============================================================================

JS_ACTIVE_FILE_CONTENT = "() => window.app.workspace.activeEditor?.editor?.getValue() ?? null"
JS_ACTIVE_FILE_PATH = "() => window.app.workspace.getActiveFile()?.path ?? null"
JS_TAB_INNER_TITLE = "() => window.app.workspace.activeLeaf?.tabHeaderInnerTitleEl?.textContent ?? null"
JS_ACTIVE_VIEW_TYPE = "() => window.app.workspace.activeLeaf?.view?.getViewType() ?? null"

JS_OPEN_FILE_PATHS = """
() => window.app.workspace.getLeavesOfType('markdown').map((leaf) => leaf.view.file?.path ?? '')
"""

JS_DUPLICATE_ACTIVE_LEAF = """
(direction) => window.app.workspace.duplicateLeaf(window.app.workspace.activeLeaf, direction)
"""

JS_HISTORY_BACK = "() => window.app.workspace.activeLeaf?.history.back()"
JS_HISTORY_FORWARD = "() => window.app.workspace.activeLeaf?.history.forward()"

JS_SET_ACTIVE_MARKDOWN_LEAF = """
(index) => {
  const leaves = window.app.workspace.getLeavesOfType('markdown');
  if (!leaves[index]) return false;
  window.app.workspace.setActiveLeaf(leaves[index], { focus: true });
  return true;
}
"""

JS_VIEW_OF_TYPE_PRESENT = "(type) => window.app?.workspace?.getLeavesOfType(type).length > 0"

JS_ACTIVE_VIEW_IS = "(type) => window.app?.workspace?.activeLeaf?.view?.getViewType() === type"

JS_REVEAL_VIEW = """
async (type) => {
  const leaf = window.app.workspace.getLeavesOfType(type)?.[0];
  await window.app.workspace.revealLeaf(leaf);
  return leaf.view;
}
"""


# =============================================================================
# HostApi
# =============================================================================

class HostApi:
    """
    Typed wrapper over one window's host globals.

    Instances are cheap; create one per page as needed. Every method is a
    single ``evaluate`` round trip.
    """

    def __init__(self, page: Any):
        self.page = page

    # -- renderer -------------------------------------------------------------

    async def mark_automation(self) -> None:
        await self.page.evaluate(JS_MARK_AUTOMATION)

    async def send_sync(self, channel: str, *args: Any) -> Any:
        """Synchronous IPC round trip through the preload bridge."""
        return await self.page.evaluate(JS_IPC_SEND_SYNC, [channel, *args])

    async def user_data_path(self) -> Optional[str]:
        return await self.page.evaluate(JS_USER_DATA_PATH)

    async def clear_renderer_storage(self) -> bool:
        return bool(await self.page.evaluate(JS_CLEAR_RENDERER_STORAGE))

    async def vault_name(self) -> Optional[str]:
        return await self.page.evaluate(JS_VAULT_NAME)

    async def adapter_base_path(self) -> Optional[str]:
        return await self.page.evaluate(JS_ADAPTER_BASE_PATH)

    # -- commands / plugins ---------------------------------------------------

    async def execute_command(self, command_id: str) -> bool:
        """Returns the host's verdict verbatim coerced to ``is True``."""
        return await self.page.evaluate(JS_EXECUTE_COMMAND, command_id) is True

    async def community_plugins_enabled(self) -> bool:
        return bool(await self.page.evaluate(JS_COMMUNITY_PLUGINS_ENABLED))

    async def enable_plugins(self, plugin_ids: Sequence[str]) -> List[str]:
        return list(await self.page.evaluate(JS_ENABLE_PLUGINS, list(plugin_ids)))

    async def is_plugin_enabled(self, plugin_id: str) -> bool:
        return bool(await self.page.evaluate(JS_PLUGIN_ENABLED, plugin_id))

    async def plugin_map_handle(self, plugin_ids: Sequence[str]) -> Any:
        """Remote ``Map<id, plugin>`` handle; callers own its disposal."""
        return await self.page.evaluate_handle(JS_BUILD_PLUGIN_MAP, list(plugin_ids))

    async def open_plugin_with_url(self, plugin_id: str, url: str) -> bool:
        return bool(await self.page.evaluate(JS_OPEN_PLUGIN_WITH_URL, [plugin_id, url]))

    # -- settings -------------------------------------------------------------

    async def open_settings_tab(self, tab_id: str) -> None:
        await self.page.evaluate(JS_OPEN_SETTINGS_TAB, tab_id)

    async def settings_cta_label(self) -> Optional[str]:
        return await self.page.evaluate(JS_SETTINGS_CTA_LABEL)

    async def click_settings_cta(self) -> bool:
        return bool(await self.page.evaluate(JS_CLICK_SETTINGS_CTA))

    # -- vault adapter --------------------------------------------------------

    async def file_exists(self, path: str) -> bool:
        return bool(await self.page.evaluate(JS_FILE_EXISTS, path))

    async def read_file(self, path: str) -> str:
        return await self.page.evaluate(JS_READ_FILE, path)

    async def write_file(self, path: str, content: str) -> None:
        await self.page.evaluate(JS_WRITE_FILE, [path, content])

    async def remove_file(self, path: str) -> None:
        await self.page.evaluate(JS_REMOVE_FILE, path)

    async def open_file(self, path: str) -> bool:
        opened = bool(await self.page.evaluate(JS_OPEN_FILE, path))
        if not opened:
            logger.debug(f"[HOST] No file at {path!r}, nothing opened")
        return opened

    # -- workspace ------------------------------------------------------------

    async def active_file_content(self) -> Optional[str]:
        return await self.page.evaluate(JS_ACTIVE_FILE_CONTENT)

    async def active_file_path(self) -> Optional[str]:
        return await self.page.evaluate(JS_ACTIVE_FILE_PATH)

    async def tab_inner_title(self) -> Optional[str]:
        return await self.page.evaluate(JS_TAB_INNER_TITLE)

    async def active_view_type(self) -> Optional[str]:
        return await self.page.evaluate(JS_ACTIVE_VIEW_TYPE)

    async def open_file_paths(self) -> List[str]:
        return list(await self.page.evaluate(JS_OPEN_FILE_PATHS))

    async def duplicate_active_leaf(self, direction: str) -> None:
        await self.page.evaluate(JS_DUPLICATE_ACTIVE_LEAF, direction)

    async def history_back(self) -> None:
        await self.page.evaluate(JS_HISTORY_BACK)

    async def history_forward(self) -> None:
        await self.page.evaluate(JS_HISTORY_FORWARD)

    async def set_active_markdown_leaf(self, index: int) -> bool:
        return bool(await self.page.evaluate(JS_SET_ACTIVE_MARKDOWN_LEAF, index))

    async def reveal_view(self, view_type: str) -> Any:
        """Reveal the first leaf of ``view_type`` and return a handle to its view."""
        return await self.page.evaluate_handle(JS_REVEAL_VIEW, view_type)


__all__ = [
    "HostApi",
    "JS_ACTIVE_VIEW_IS",
    "JS_FILE_EXISTS",
    "JS_LAYOUT_READY",
    "JS_LAYOUT_READY_FLAG",
    "JS_MAP_GET",
    "JS_MAP_KEYS",
    "JS_PLUGIN_LOADED",
    "JS_PLUGINS_API_READY",
    "JS_PLUGINS_LOADED",
    "JS_VIEW_OF_TYPE_PRESENT",
]
