"""
IPC Bridge
==========

Typed request/reply calls into Obsidian's main process over the renderer's
``ipcRenderer.sendSync``. Before every call the bridge collapses the window
set to one window and waits for that window's screen to be ready, so a call
never lands on a window that is about to be closed.

One call is in flight at a time; a second caller waits on the bridge lock.

Channels:
    vault-open               (path, force_new) -> True | failure string
    sandbox                  () -> ignored (window transition follows)
    get-sandbox-vault-path   () -> str
    starter                  () -> ack (window transition follows)
    vault-list               () -> {name: {"path": ...}}
    vault-remove             (path) -> ack
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from obsidian_e2e.constants import (
    IPC_GET_SANDBOX_PATH,
    IPC_SANDBOX,
    IPC_STARTER,
    IPC_VAULT_LIST,
    IPC_VAULT_OPEN,
    IPC_VAULT_REMOVE,
)
from obsidian_e2e.core.host_api import HostApi
from obsidian_e2e.core.readiness import (
    is_starter_page,
    wait_for_dom_content_loaded,
    wait_for_vault_ready,
)

if TYPE_CHECKING:
    from obsidian_e2e.core.launcher import ObsidianTestLauncher

logger = logging.getLogger(__name__)


class IPCBridge:
    """Serialized IPC calls against the single active window."""

    def __init__(self, launcher: "ObsidianTestLauncher"):
        self._launcher = launcher
        self._lock: Optional[asyncio.Lock] = None
        self._calls = 0

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def call_count(self) -> int:
        return self._calls

    async def _ensure_page_loaded(self) -> Any:
        page = await self._launcher.ensure_single_window()
        await wait_for_dom_content_loaded(page, self._launcher.timeouts.readiness_timeout)
        if not is_starter_page(page):
            await wait_for_vault_ready(page, self._launcher.timeouts.readiness_timeout)
        return page

    async def _send(self, channel: str, *args: Any) -> Any:
        async with self._get_lock():
            page = await self._ensure_page_loaded()
            self._calls += 1
            logger.debug(f"[IPC] -> {channel} {list(args)}")
            reply = await HostApi(page).send_sync(channel, *args)
            logger.debug(f"[IPC] <- {channel}: {reply!r}")
            return reply

    # =========================================================================
    # Channels
    # =========================================================================

    async def open_vault(self, vault_path: Union[str, os.PathLike], force_new: bool = False) -> Union[bool, str]:
        """``True`` on success, otherwise the host's failure string verbatim."""
        return await self._send(IPC_VAULT_OPEN, str(vault_path), bool(force_new))

    async def open_sandbox(self) -> None:
        await self._send(IPC_SANDBOX)

    async def get_sandbox_path(self) -> str:
        return await self._send(IPC_GET_SANDBOX_PATH)

    async def open_starter(self) -> None:
        await self._send(IPC_STARTER)

    async def get_vault_list(self) -> Dict[str, Dict[str, Any]]:
        return await self._send(IPC_VAULT_LIST) or {}

    async def remove_vault(self, vault_path: Union[str, os.PathLike]) -> None:
        await self._send(IPC_VAULT_REMOVE, str(vault_path))


__all__ = ["IPCBridge"]
