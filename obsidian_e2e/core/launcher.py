"""
Obsidian Test Launcher
======================

Lifecycle manager for the one Obsidian process a test drives.

    IDLE -> LAUNCHING -> WINDOW_WAIT -> READY -> SESSION_OPEN -> CLOSING -> CLOSED

``launch()`` brings the app up on a throwaway profile and leaves exactly one
window on the starter screen. ``open_vault()`` / ``open_sandbox()`` /
``open_starter()`` each trigger a window transition over IPC, wait for the new
window's readiness and close every window that existed before it, so tests
always see a single window. ``cleanup()`` tears everything down and never
raises.

Usage:
    launcher = ObsidianTestLauncher(resolve_config(E2EConfig(plugin_dir=".")))
    await launcher.launch()
    try:
        vault = await launcher.open_sandbox(VaultOptions(plugins=[...]))
        ...
    finally:
        await launcher.cleanup()
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from obsidian_e2e.config.env import is_ci
from obsidian_e2e.config.paths import LaunchOptions, ResolvedPaths, create_launch_options
from obsidian_e2e.config.timeouts import E2ETimeouts, get_timeouts
from obsidian_e2e.constants import (
    DEFAULT_VAULTS_DIR_NAME,
    SANDBOX_VAULT_NAME,
    TEMP_DIR_PREFIX,
    VAULT_REGISTRY_FILE,
)
from obsidian_e2e.core.electron_process import ElectronProcess
from obsidian_e2e.core.errors import LauncherStateError, RemoteOperationError
from obsidian_e2e.core.host_api import HostApi
from obsidian_e2e.core.ipc_bridge import IPCBridge
from obsidian_e2e.core.plugin_installer import enable_plugins, install_plugins
from obsidian_e2e.core.readiness import (
    bounded_wait,
    wait_for_dom_content_loaded,
    wait_for_page,
    wait_for_starter_ready,
    wait_for_vault_ready,
)
from obsidian_e2e.core.remote_handles import PluginHandleMap
from obsidian_e2e.core.types import TestContext, VaultContext, VaultOptions
from obsidian_e2e.logging_config import colorize

logger = logging.getLogger(__name__)

ProcessFactory = Callable[[LaunchOptions, E2ETimeouts], ElectronProcess]
PageWaiter = Callable[[Any], Awaitable[None]]


class LauncherState(Enum):
    IDLE = "idle"
    LAUNCHING = "launching"
    WINDOW_WAIT = "window_wait"
    READY = "ready"
    SESSION_OPEN = "session_open"
    CLOSING = "closing"
    CLOSED = "closed"


class ObsidianTestLauncher:
    """Drives one Obsidian process through launch, session switches and teardown."""

    def __init__(
        self,
        paths: ResolvedPaths,
        timeouts: Optional[E2ETimeouts] = None,
        process_factory: Optional[ProcessFactory] = None,
    ):
        self.paths = paths
        self.timeouts = timeouts or get_timeouts()
        self._process_factory: ProcessFactory = process_factory or ElectronProcess

        self._state = LauncherState.IDLE
        self._process: Optional[ElectronProcess] = None
        self._temp_user_data_dir: Optional[Path] = None
        self._ipc: Optional[IPCBridge] = None
        self._handle_maps: List[Tuple[Any, PluginHandleMap]] = []
        self._created_vault_dirs: List[Path] = []

    async def __aenter__(self) -> "ObsidianTestLauncher":
        await self.launch()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.cleanup()

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> LauncherState:
        return self._state

    @property
    def ipc(self) -> IPCBridge:
        if self._ipc is None:
            raise LauncherStateError("use the IPC bridge", self._state, "Setup not initialized. Call launch() first.")
        return self._ipc

    @property
    def temp_user_data_dir(self) -> Optional[Path]:
        return self._temp_user_data_dir

    def _transition(self, new_state: LauncherState) -> None:
        old = self._state
        self._state = new_state
        logger.debug(f"[LAUNCHER] State: {old.value} -> {new_state.value}")

    def _require(self, operation: str, *allowed: LauncherState) -> None:
        if self._state not in allowed:
            raise LauncherStateError(operation, self._state)

    # =========================================================================
    # Launch & Cleanup
    # =========================================================================

    async def launch(self) -> None:
        """
        Start the app on a fresh temp profile and settle on the starter screen.

        Raises:
            LauncherStateError: not in IDLE (a launcher is single use).
            PreconditionError: app main file or Electron binary missing.
            ReadinessTimeoutError: no window / starter screen in time.
        """
        self._require("launch", LauncherState.IDLE)
        options = create_launch_options(self.paths)

        self._transition(LauncherState.LAUNCHING)
        self._temp_user_data_dir = Path(tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX))
        logger.debug(f"[LAUNCHER] Using temporary user data dir: {self._temp_user_data_dir}")

        self._process = self._process_factory(options, self.timeouts)
        await self._process.start(extra_args=[f"--user-data-dir={self._temp_user_data_dir}"])

        self._transition(LauncherState.WINDOW_WAIT)
        page = await self._process.first_window(self.timeouts.window_timeout)
        await HostApi(page).mark_automation()
        await self._wait_for_page(page)
        logger.debug("[LAUNCHER] First window ready")

        await self._clear_data()
        await page.reload(wait_until="domcontentloaded")

        current = await self.ensure_single_window()
        await self._wait_for_starter(current)

        self._ipc = IPCBridge(self)
        self._transition(LauncherState.READY)
        logger.info(f"[LAUNCHER] Obsidian ready (PID={self._process.pid})")

    async def cleanup(self) -> None:
        """Tear down the process and temp state. Logs failures, never raises."""
        if self._state is LauncherState.CLOSED:
            return
        self._transition(LauncherState.CLOSING)

        await self._invalidate_handles()

        if self._process is not None:
            for window in self._process.windows():
                try:
                    await window.close()
                except Exception as e:
                    logger.warning(f"[LAUNCHER] Failed to close window: {e}")
            try:
                await self._process.close()
            except Exception as e:
                logger.warning(f"[LAUNCHER] Failed to stop Electron: {e}")

        dirs = list(self._created_vault_dirs)
        if self._temp_user_data_dir is not None:
            dirs.append(self._temp_user_data_dir)
        for path in dirs:
            logger.debug(f"[LAUNCHER] Removing temp dir: {path}")
            try:
                shutil.rmtree(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"[LAUNCHER] Failed to remove {path}: {e}")

        self._ipc = None
        self._created_vault_dirs = []
        self._transition(LauncherState.CLOSED)
        logger.debug("[LAUNCHER] Cleaned up")

    # =========================================================================
    # Accessors
    # =========================================================================

    def windows(self) -> List[Any]:
        return self._process.windows() if self._process is not None else []

    def get_current_page(self) -> Optional[Any]:
        current = self.windows()
        return current[0] if current else None

    def get_electron_app(self) -> ElectronProcess:
        if self._process is None:
            raise LauncherStateError("access the Electron app", self._state, "ElectronApp not initialized")
        return self._process

    def get_paths(self) -> ResolvedPaths:
        return self.paths

    # =========================================================================
    # Vault operations
    # =========================================================================

    async def open_vault(self, options: Optional[VaultOptions] = None) -> VaultContext:
        """
        Open (or switch to) a vault and stage its plugins.

        Raises:
            LauncherStateError: launch() has not completed.
            RemoteOperationError: the host refused the vault (reply carried verbatim).
        """
        options = options or VaultOptions()
        self._require("open a vault", LauncherState.READY, LauncherState.SESSION_OPEN)
        ipc = self.ipc

        if options.use_sandbox and not is_ci():
            logger.debug(colorize("[LAUNCHER] Opening sandbox vault...", "green"))
            page = await self.execute_action_and_wait_for_new_window(ipc.open_sandbox, self._wait_for_vault)
            vault_path = await ipc.get_sandbox_path()
            logger.debug(colorize(f"[LAUNCHER] Sandbox vault opened at: {vault_path}", "green"))
        else:
            vault_path = await self._resolve_vault_path(options)
            if options.force_new_vault and os.path.exists(vault_path):
                logger.debug(f"[LAUNCHER] force_new_vault: removing {vault_path}")
                shutil.rmtree(vault_path)

            async def _open() -> None:
                reply = await ipc.open_vault(vault_path, options.force_new_vault)
                if reply is not True:
                    raise RemoteOperationError("open-vault", reply, f"Failed to open vault: {reply}")

            page = await self.execute_action_and_wait_for_new_window(_open, self._wait_for_vault)
            logger.debug(f"[LAUNCHER] Vault opened: {vault_path}")

        plugin_ids: List[str] = []
        if options.plugins:
            plugin_ids = await install_plugins(vault_path, options.plugins)
            if plugin_ids:
                plugin_ids = await enable_plugins(page, plugin_ids, self.timeouts)
                logger.debug(colorize("[LAUNCHER] Reloading vault to apply plugin changes...", "blue"))
                await page.reload()
                await self._wait_for_vault(page)

        vault_name = await HostApi(page).vault_name()
        handle_map = await PluginHandleMap.build(
            page, plugin_ids, owner_pid=self._process.pid, timeout=self.timeouts.plugin_load_timeout,
        )
        self._handle_maps.append((page, handle_map))
        self._transition(LauncherState.SESSION_OPEN)
        logger.info(f"[LAUNCHER] Vault '{vault_name}' open with plugins {plugin_ids}")

        return VaultContext(
            electron_app=self._process,
            window=page,
            vault_name=vault_name,
            plugin_handle_map=handle_map,
            paths=self.paths,
            vault_path=str(vault_path),
        )

    async def open_sandbox(self, options: Optional[VaultOptions] = None) -> VaultContext:
        return await self.open_vault(replace(options or VaultOptions(), use_sandbox=True))

    async def open_starter(self) -> TestContext:
        self._require("open the starter", LauncherState.READY, LauncherState.SESSION_OPEN)
        page = await self.execute_action_and_wait_for_new_window(self.ipc.open_starter, self._wait_for_starter)
        await self._wait_for_starter(page)
        self._transition(LauncherState.READY)
        return TestContext(electron_app=self._process, window=page)

    async def _resolve_vault_path(self, options: VaultOptions) -> str:
        if options.vault_path:
            return str(options.vault_path)
        if options.name:
            return await self.get_vault_path(options.name)
        created = Path(tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX))
        self._created_vault_dirs.append(created)
        logger.debug(f"[LAUNCHER] No name or path given, created temp vault dir: {created}")
        return str(created)

    async def get_vault_path(self, name: str) -> str:
        """Sibling of the current vault named ``name``; ``~/ObsidianVaults/<name>`` otherwise."""
        page = await self.ensure_single_window()
        base_path = await HostApi(page).adapter_base_path()
        if base_path:
            return str(Path(base_path).parent / name)
        return str(Path.home() / DEFAULT_VAULTS_DIR_NAME / name)

    # =========================================================================
    # Window management
    # =========================================================================

    async def ensure_single_window(self) -> Any:
        """Collapse the window set to the newest window once it is ready."""
        process = self.get_electron_app()
        current = process.windows()
        logger.debug(f"[LAUNCHER] ensure_single_window: {len(current)} open")

        if not current:
            page = await process.first_window(self.timeouts.window_timeout)
            await wait_for_dom_content_loaded(page, self.timeouts.readiness_timeout)
            return page

        page = current[-1]
        await self._wait_for_page(page)
        await self._close_all_except(page)
        return page

    async def execute_action_and_wait_for_new_window(
        self,
        action: Callable[[], Awaitable[Any]],
        wait: Optional[PageWaiter] = None,
    ) -> Any:
        """
        Run ``action``, wait for the window it opens, then close the old ones.

        If ``action`` raises, windows that appeared meanwhile are closed and
        the error propagates.
        """
        process = self.get_electron_app()
        wait = wait or self._wait_for_page
        before = process.windows()
        timeout = self.timeouts.window_timeout
        target = getattr(action, "__name__", "action")

        try:
            async with bounded_wait("new-window", target, timeout):
                async with process.expect_window(timeout) as window_info:
                    await action()
                new_page = await window_info.value
        except BaseException:
            await self._close_windows_not_in(before)
            raise

        await wait(new_page)

        for window in before:
            if window is not new_page and not window.is_closed():
                logger.debug(colorize(f"[LAUNCHER] Closing old window: {await window.title()}", "yellow"))
                await self._close_window(window)

        logger.debug(colorize(f"[LAUNCHER] New window is ready: {new_page.url}", "green"))
        return new_page

    async def _close_all_except(self, keep: Any) -> None:
        for window in self.windows():
            if window is not keep and not window.is_closed():
                logger.debug(colorize(f"[LAUNCHER] close {window.url}", "red"))
                await self._close_window(window)

    async def _close_windows_not_in(self, keep: List[Any]) -> None:
        for window in self.windows():
            if not any(window is k for k in keep):
                try:
                    await self._close_window(window)
                except Exception as e:
                    logger.warning(f"[LAUNCHER] Failed to close stray window: {e}")

    async def _close_window(self, window: Any) -> None:
        await self._invalidate_handles(window)
        await window.close()

    async def _invalidate_handles(self, window: Any = None) -> None:
        """Invalidate handle maps issued for ``window`` (all maps when None)."""
        remaining = []
        for page, handle_map in self._handle_maps:
            if window is None or page is window:
                await handle_map.invalidate()
            else:
                remaining.append((page, handle_map))
        self._handle_maps = remaining

    # =========================================================================
    # Readiness shortcuts
    # =========================================================================

    async def _wait_for_page(self, page: Any) -> None:
        await wait_for_page(page, self.timeouts.readiness_timeout)

    async def _wait_for_vault(self, page: Any) -> None:
        await wait_for_vault_ready(page, self.timeouts.readiness_timeout)

    async def _wait_for_starter(self, page: Any) -> None:
        await wait_for_starter_ready(page, self.timeouts.readiness_timeout)

    # =========================================================================
    # Profile reset
    # =========================================================================

    async def _clear_data(self) -> None:
        """Drop the vault registry, sandbox vault and renderer storage of the profile."""
        current = self.windows()
        if not current:
            return
        api = HostApi(current[0])

        user_data = await api.user_data_path()
        if not user_data:
            logger.debug("[LAUNCHER] Host did not report userData, using the temp profile dir")
            user_data = str(self._temp_user_data_dir)

        for target in (Path(user_data) / VAULT_REGISTRY_FILE, Path(user_data) / SANDBOX_VAULT_NAME):
            logger.debug(f"[LAUNCHER] delete {target}")
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target, ignore_errors=True)
            elif target.exists() or target.is_symlink():
                target.unlink()

        logger.debug(colorize("[LAUNCHER] clearing renderer storage...", "magenta"))
        if await api.clear_renderer_storage():
            logger.debug(colorize("[LAUNCHER] Renderer storage cleared", "magenta"))
        else:
            logger.warning("[LAUNCHER] Failed to clear renderer storage (no focused window)")


__all__ = ["ObsidianTestLauncher", "LauncherState"]
