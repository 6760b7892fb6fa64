"""
Remote handle arena for plugin instances.

A ``PluginHandleMap`` wraps a Playwright ``JSHandle`` to a ``Map<id, plugin>``
living in the renderer. Each map carries a token and the pid of the process
that issued it; the launcher invalidates every map it handed out when the
owning window closes or the process is torn down, after which any use raises
``StaleHandleError`` instead of failing deep inside Playwright.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, List, Optional, Sequence, Tuple

from obsidian_e2e.core.errors import StaleHandleError
from obsidian_e2e.core.host_api import JS_MAP_GET, JS_MAP_KEYS, HostApi
from obsidian_e2e.core.readiness import wait_for_plugins_loaded

logger = logging.getLogger(__name__)


class PluginHandleMap:
    """Token-tagged remote ``Map`` of plugin instances."""

    def __init__(self, handle: Any, plugin_ids: Sequence[str], owner_pid: Optional[int] = None):
        self.token = uuid.uuid4().hex[:12]
        self.owner_pid = owner_pid
        self.plugin_ids: Tuple[str, ...] = tuple(plugin_ids)
        self._handle = handle
        self._valid = True

    @classmethod
    async def build(
        cls,
        page: Any,
        plugin_ids: Sequence[str],
        owner_pid: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> "PluginHandleMap":
        """Wait until every plugin is registered in the host, then capture the map."""
        await wait_for_plugins_loaded(page, plugin_ids, timeout)
        handle = await HostApi(page).plugin_map_handle(plugin_ids)
        handle_map = cls(handle, plugin_ids, owner_pid)
        logger.debug(
            f"[HANDLES] Issued plugin map {handle_map.token} "
            f"(pid={owner_pid}, plugins={list(plugin_ids)})"
        )
        return handle_map

    @property
    def is_valid(self) -> bool:
        return self._valid

    @property
    def handle(self) -> Any:
        self._check()
        return self._handle

    def _check(self) -> None:
        if not self._valid:
            raise StaleHandleError(self.token, self.owner_pid)

    async def get(self, plugin_id: str) -> Any:
        """Handle to one plugin instance (``undefined`` if the id was not loaded)."""
        self._check()
        return await self._handle.evaluate_handle(JS_MAP_GET, plugin_id)

    async def keys(self) -> List[str]:
        self._check()
        return list(await self._handle.evaluate(JS_MAP_KEYS))

    async def invalidate(self) -> None:
        """Mark stale and release the remote object. Safe to call twice."""
        if not self._valid:
            return
        self._valid = False
        try:
            await self._handle.dispose()
        except Exception as e:
            # Disposal after the window is gone is expected to fail.
            logger.debug(f"[HANDLES] Dispose of {self.token} failed: {e}")
        logger.debug(f"[HANDLES] Invalidated plugin map {self.token}")

    def __repr__(self) -> str:
        state = "valid" if self._valid else "stale"
        return f"PluginHandleMap(token={self.token!r}, pid={self.owner_pid}, {state})"


__all__ = ["PluginHandleMap"]
