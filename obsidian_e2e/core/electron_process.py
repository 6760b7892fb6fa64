"""
Controlled Electron Process
===========================

Owns the one Electron process a test run drives and the Playwright CDP
connection attached to it.

Python Playwright has no Electron driver, so the process is spawned directly
with ``--remote-debugging-port=0``; the DevTools websocket Electron prints on
stderr is then handed to ``chromium.connect_over_cdp``. Electron windows show
up as pages of the default browser context.

Lifecycle:
    start()  spawn, read endpoint (bounded), connect
    close()  disconnect, SIGTERM, bounded wait, SIGKILL, reap helpers

Usage:
    process = ElectronProcess(create_launch_options(paths))
    await process.start(extra_args=[f"--user-data-dir={tmp}"])
    page = await process.first_window()
    ...
    await process.close()
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections import deque
from typing import Any, Deque, List, Optional, Sequence

from playwright.async_api import async_playwright

from obsidian_e2e.config.paths import LaunchOptions
from obsidian_e2e.config.timeouts import E2ETimeouts, get_timeouts
from obsidian_e2e.core.errors import ReadinessTimeoutError, RemoteOperationError
from obsidian_e2e.core.process_reaper import reap_processes_async, snapshot_children
from obsidian_e2e.core.readiness import bounded_wait

logger = logging.getLogger(__name__)

DEVTOOLS_ENDPOINT_RE = re.compile(r"DevTools listening on (ws://\S+)")
REMOTE_DEBUGGING_FLAG = "--remote-debugging-port=0"


class ElectronProcess:
    """One spawned Electron process plus its CDP browser connection."""

    def __init__(self, options: LaunchOptions, timeouts: Optional[E2ETimeouts] = None):
        self.options = options
        self.timeouts = timeouts or get_timeouts()

        self._process: Optional[asyncio.subprocess.Process] = None
        self._playwright = None
        self._browser = None
        self._context = None
        self._endpoint: Optional[str] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._stderr_tail: Deque[str] = deque(maxlen=50)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def endpoint(self) -> Optional[str]:
        return self._endpoint

    @property
    def stderr_tail(self) -> List[str]:
        return list(self._stderr_tail)

    # =========================================================================
    # Start
    # =========================================================================

    async def start(self, extra_args: Sequence[str] = ()) -> None:
        cmd = [
            str(self.options.executable),
            *self.options.args,
            *extra_args,
            REMOTE_DEBUGGING_FLAG,
        ]
        logger.info(f"[ELECTRON] Spawning {self.options.executable} ({len(cmd) - 1} args)")
        logger.debug(f"[ELECTRON] Command: {' '.join(cmd)}")

        self._process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
            env=self.options.env,
        )

        timeout = self.timeouts.devtools_endpoint_timeout
        try:
            self._endpoint = await asyncio.wait_for(self._read_endpoint(), timeout=timeout)
        except asyncio.TimeoutError as e:
            await self._terminate()
            raise ReadinessTimeoutError("devtools-endpoint", str(self.options.executable), timeout) from e
        except RemoteOperationError:
            await self._terminate()
            raise

        self._stderr_task = asyncio.create_task(self._drain_stderr())
        logger.debug(f"[ELECTRON] DevTools endpoint: {self._endpoint} (PID={self.pid})")

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.connect_over_cdp(
            self._endpoint, timeout=E2ETimeouts.ms(timeout),
        )
        contexts = self._browser.contexts
        if not contexts:
            raise RemoteOperationError("connect", "no browser context", "Electron exposed no browser context over CDP")
        self._context = contexts[0]
        logger.info(f"[ELECTRON] Connected over CDP (PID={self.pid})")

    async def _read_endpoint(self) -> str:
        assert self._process is not None and self._process.stderr is not None
        while True:
            raw = await self._process.stderr.readline()
            if not raw:
                code = await self._process.wait()
                tail = " | ".join(self._stderr_tail)
                raise RemoteOperationError(
                    "launch",
                    code,
                    f"Electron exited with code {code} before exposing DevTools: {tail}",
                )
            line = raw.decode("utf-8", errors="replace").rstrip()
            self._stderr_tail.append(line)
            match = DEVTOOLS_ENDPOINT_RE.search(line)
            if match:
                return match.group(1)

    async def _drain_stderr(self) -> None:
        # An unread PIPE eventually blocks the child on write.
        assert self._process is not None and self._process.stderr is not None
        while True:
            raw = await self._process.stderr.readline()
            if not raw:
                return
            line = raw.decode("utf-8", errors="replace").rstrip()
            self._stderr_tail.append(line)
            logger.debug(f"[ELECTRON:stderr] {line}")

    # =========================================================================
    # Windows
    # =========================================================================

    def windows(self) -> List[Any]:
        if self._context is None:
            return []
        return [page for page in self._context.pages if not page.is_closed()]

    async def first_window(self, timeout: Optional[float] = None) -> Any:
        current = self.windows()
        if current:
            return current[0]
        return await self.wait_for_window(timeout)

    async def wait_for_window(self, timeout: Optional[float] = None) -> Any:
        if self._context is None:
            raise RemoteOperationError("wait-for-window", None, "Electron process is not connected")
        timeout = self.timeouts.window_timeout if timeout is None else timeout
        async with bounded_wait("new-window", f"pid {self.pid}", timeout):
            return await self._context.wait_for_event("page", timeout=E2ETimeouts.ms(timeout))

    def expect_window(self, timeout: Optional[float] = None) -> Any:
        """
        Playwright event context manager for the next window.

            async with process.expect_window() as info:
                await trigger()
            page = await info.value
        """
        if self._context is None:
            raise RemoteOperationError("expect-window", None, "Electron process is not connected")
        timeout = self.timeouts.window_timeout if timeout is None else timeout
        return self._context.expect_page(timeout=E2ETimeouts.ms(timeout))

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def close(self) -> None:
        """Disconnect and stop the process. Each step runs even if a prior one failed."""
        children = snapshot_children(self.pid) if self.is_running else []

        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.warning(f"[ELECTRON] CDP disconnect failed: {e}")
            self._browser = None
            self._context = None

        try:
            await self._terminate()
        except Exception as e:
            logger.warning(f"[ELECTRON] Process termination failed: {e}")

        if self._stderr_task is not None:
            self._stderr_task.cancel()
            try:
                await self._stderr_task
            except asyncio.CancelledError:
                pass
            self._stderr_task = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning(f"[ELECTRON] Playwright stop failed: {e}")
            self._playwright = None

        try:
            killed = await reap_processes_async(children, self.timeouts.process_exit_timeout)
            if killed:
                logger.warning(f"[ELECTRON] Force killed {killed} leftover helper process(es)")
        except Exception as e:
            logger.warning(f"[ELECTRON] Helper reaping failed: {e}")

    async def _terminate(self) -> None:
        if self._process is None:
            return
        if self._process.returncode is None:
            self._process.terminate()
            try:
                await asyncio.wait_for(self._process.wait(), timeout=self.timeouts.process_exit_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"[ELECTRON] PID {self._process.pid} ignored SIGTERM, killing")
                self._process.kill()
                await self._process.wait()
        logger.debug(f"[ELECTRON] Process exited with code {self._process.returncode}")


__all__ = ["ElectronProcess", "DEVTOOLS_ENDPOINT_RE"]
