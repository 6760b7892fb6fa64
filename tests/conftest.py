"""
Pytest configuration and shared fixtures for obsidian-e2e tests.

This file contains:
- An in-memory stand-in for the Obsidian host (windows, IPC channels, ``app``)
- Fake Playwright page / JSHandle / locator objects that answer the
  ``HostApi`` JavaScript snippets
- A fake ``ElectronProcess`` usable as the launcher's process factory
- Path and timeout fixtures

No test launches a real Electron process.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from obsidian_e2e.config.paths import E2EConfig, resolve_config
from obsidian_e2e.config.timeouts import E2ETimeouts
from obsidian_e2e.constants import (
    IPC_GET_SANDBOX_PATH,
    IPC_SANDBOX,
    IPC_STARTER,
    IPC_VAULT_LIST,
    IPC_VAULT_OPEN,
    IPC_VAULT_REMOVE,
    SANDBOX_VAULT_NAME,
    STARTER_READY_SELECTOR,
)
from obsidian_e2e.core import host_api as js
from obsidian_e2e.core.launcher import ObsidianTestLauncher
from obsidian_e2e.core.types import VaultContext

STARTER_URL = "app://obsidian.md/starter.html"
VAULT_URL = "app://obsidian.md/index.html"
NOTICE_SELECTOR = ".notice-container .notice"


# =============================================================================
# Fake Playwright objects
# =============================================================================

class FakeJSHandle:
    def __init__(self, value: Any, fail_dispose: bool = False):
        self.value = value
        self.disposed = False
        self.fail_dispose = fail_dispose

    async def evaluate_handle(self, expression: str, arg: Any = None) -> "FakeJSHandle":
        assert expression == js.JS_MAP_GET
        return FakeJSHandle(self.value.get(arg))

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        assert expression == js.JS_MAP_KEYS
        return list(self.value.keys())

    async def dispose(self) -> None:
        if self.fail_dispose:
            raise RuntimeError("Target page, context or browser has been closed")
        self.disposed = True


class FakeKeyboard:
    def __init__(self, page: "FakePage"):
        self._page = page
        self.pressed: List[str] = []

    async def press(self, key: str) -> None:
        self.pressed.append(key)
        if key == "Escape":
            self._page.settings_tab = None


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str, index: Optional[int] = None):
        self.page = page
        self.selector = selector
        self.index = index
        self.actions: List[Any] = []

    async def all(self) -> List["FakeLocator"]:
        if self.selector == NOTICE_SELECTOR:
            return [FakeLocator(self.page, self.selector, i) for i in range(len(self.page.notices))]
        return []

    async def click(self) -> None:
        self.page.clicked.append((self.selector, self.index))

    async def focus(self) -> None:
        self.page.focused.append(self.selector)

    async def fill(self, text: str) -> None:
        self.page.filled.append((self.selector, text))

    async def clear(self) -> None:
        self.page.filled.append((self.selector, ""))

    async def text_content(self) -> Optional[str]:
        return self.page.text_by_selector.get(self.selector)

    @property
    def last(self) -> "FakeLocator":
        return FakeLocator(self.page, self.selector, -1)


class FakePage:
    """One Obsidian window: starter or vault."""

    def __init__(self, host: "FakeObsidianHost", kind: str, vault_path: Optional[Path] = None,
                 vault_name: Optional[str] = None):
        self.host = host
        self.kind = kind
        self.url = STARTER_URL if kind == "starter" else VAULT_URL
        self.vault_path = vault_path
        self.vault_name = vault_name
        self.closed = False
        self.fail_close = False
        self.layout_ready = kind == "vault"
        self.marked = False
        self.reloads = 0

        self.enabled_plugins: set = set()
        self.loaded_plugins: set = set()
        self.settings_tab: Optional[str] = None
        self.commands: Dict[str, Any] = {}
        self.executed: List[str] = []
        self.active_file: Optional[str] = None
        self.open_files: List[str] = []
        self.active_view_type: Optional[str] = "empty" if kind == "vault" else None
        self.view_types: set = set()
        self.splits: List[str] = []
        self.history: List[str] = []
        self.opened_urls: List[Any] = []
        self.notices: List[str] = []

        self.keyboard = FakeKeyboard(self)
        self.clicked: List[Any] = []
        self.focused: List[str] = []
        self.filled: List[Any] = []
        self.text_by_selector: Dict[str, str] = {}
        self.waited_ms: List[float] = []
        self.listeners: Dict[str, List[Any]] = {}
        self.handles: List[FakeJSHandle] = []

    # -- lifecycle ------------------------------------------------------------

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        if self.fail_close:
            raise RuntimeError("close failed")
        self.closed = True

    async def title(self) -> str:
        return self.vault_name or "Obsidian"

    async def reload(self, wait_until: Optional[str] = None, **kwargs) -> None:
        self.reloads += 1
        self.loaded_plugins = set(self.enabled_plugins)

    async def wait_for_load_state(self, state: str = "load", timeout: Optional[float] = None) -> None:
        return None

    async def wait_for_timeout(self, timeout: float) -> None:
        self.waited_ms.append(timeout)

    async def wait_for_selector(self, selector: str, state: str = "visible", timeout: Optional[float] = None):
        if self.closed or self.kind != "starter" or selector != STARTER_READY_SELECTOR:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")
        return FakeLocator(self, selector)

    async def wait_for_function(self, expression: str, arg: Any = None, timeout: Optional[float] = None,
                                polling: Any = None) -> bool:
        if not await self.evaluate(expression, arg):
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded")
        return True

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    def on(self, event: str, handler: Any) -> None:
        self.listeners.setdefault(event, []).append(handler)

    def emit(self, event: str, payload: Any) -> None:
        for handler in self.listeners.get(event, []):
            handler(payload)

    # -- evaluation -----------------------------------------------------------

    def _vault_file(self, path: str) -> Path:
        assert self.vault_path is not None, "adapter used on a starter window"
        return self.vault_path / path

    def _plugin_installed(self, plugin_id: str) -> bool:
        if self.vault_path is None:
            return False
        return (self.vault_path / ".obsidian" / "plugins" / plugin_id / "manifest.json").exists()

    async def evaluate_handle(self, expression: str, arg: Any = None) -> FakeJSHandle:
        if expression == js.JS_BUILD_PLUGIN_MAP:
            handle = FakeJSHandle({pid: {"id": pid} for pid in arg if pid in self.loaded_plugins})
        elif expression == js.JS_REVEAL_VIEW:
            handle = FakeJSHandle({"viewType": arg})
        else:
            raise AssertionError(f"unexpected evaluate_handle: {expression}")
        handle.fail_dispose = self.host.fail_dispose
        self.handles.append(handle)
        return handle

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        if self.closed:
            raise RuntimeError("Target page, context or browser has been closed")
        vault = self.kind == "vault"

        if expression == js.JS_IPC_SEND_SYNC:
            return self.host.handle_ipc(arg[0], *arg[1:])
        if expression == js.JS_MARK_AUTOMATION:
            self.marked = True
            return None
        if expression == js.JS_USER_DATA_PATH:
            return self.host.user_data_dir
        if expression == js.JS_CLEAR_RENDERER_STORAGE:
            self.host.storage_cleared += 1
            return True
        if expression in (js.JS_LAYOUT_READY, js.JS_LAYOUT_READY_FLAG):
            return vault and self.layout_ready
        if expression == js.JS_VAULT_NAME:
            return self.vault_name
        if expression == js.JS_ADAPTER_BASE_PATH:
            return str(self.vault_path) if self.vault_path else None

        if expression == js.JS_EXECUTE_COMMAND:
            self.executed.append(arg)
            return self.commands.get(arg, False)
        if expression == js.JS_PLUGINS_API_READY:
            return vault
        if expression == js.JS_COMMUNITY_PLUGINS_ENABLED:
            return self.host.community_enabled
        if expression == js.JS_PLUGIN_LOADED:
            return arg in self.loaded_plugins
        if expression == js.JS_PLUGINS_LOADED:
            return vault and all(pid in self.loaded_plugins for pid in arg)
        if expression == js.JS_ENABLE_PLUGINS:
            enabled = []
            for pid in arg:
                if self._plugin_installed(pid) and pid not in self.host.refuse_enable:
                    self.enabled_plugins.add(pid)
                    self.loaded_plugins.add(pid)
                    enabled.append(pid)
            return enabled
        if expression == js.JS_PLUGIN_ENABLED:
            return arg in self.enabled_plugins
        if expression == js.JS_OPEN_PLUGIN_WITH_URL:
            self.opened_urls.append(tuple(arg))
            return arg[0] in self.loaded_plugins

        if expression == js.JS_OPEN_SETTINGS_TAB:
            self.settings_tab = arg
            return None
        if expression == js.JS_SETTINGS_CTA_LABEL:
            if self.settings_tab and self.host.cta_labels:
                return self.host.cta_labels[0]
            return None
        if expression == js.JS_CLICK_SETTINGS_CTA:
            return self.host.click_cta()

        if expression == js.JS_FILE_EXISTS:
            return self._vault_file(arg).exists()
        if expression == js.JS_READ_FILE:
            return self._vault_file(arg).read_text(encoding="utf-8")
        if expression == js.JS_WRITE_FILE:
            target = self._vault_file(arg[0])
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(arg[1], encoding="utf-8")
            return None
        if expression == js.JS_REMOVE_FILE:
            self._vault_file(arg).unlink()
            return None
        if expression == js.JS_OPEN_FILE:
            if not self._vault_file(arg).exists():
                return False
            self.active_file = arg
            self.open_files.append(arg)
            self.active_view_type = "markdown"
            return True

        if expression == js.JS_ACTIVE_FILE_CONTENT:
            return self._vault_file(self.active_file).read_text(encoding="utf-8") if self.active_file else None
        if expression == js.JS_ACTIVE_FILE_PATH:
            return self.active_file
        if expression == js.JS_TAB_INNER_TITLE:
            return Path(self.active_file).stem if self.active_file else None
        if expression == js.JS_ACTIVE_VIEW_TYPE:
            return self.active_view_type
        if expression == js.JS_OPEN_FILE_PATHS:
            return list(self.open_files)
        if expression == js.JS_DUPLICATE_ACTIVE_LEAF:
            self.splits.append(arg)
            if self.active_file:
                self.open_files.append(self.active_file)
            return None
        if expression == js.JS_HISTORY_BACK:
            self.history.append("back")
            return None
        if expression == js.JS_HISTORY_FORWARD:
            self.history.append("forward")
            return None
        if expression == js.JS_SET_ACTIVE_MARKDOWN_LEAF:
            if arg >= len(self.open_files):
                return False
            self.active_file = self.open_files[arg]
            return True
        if expression == js.JS_VIEW_OF_TYPE_PRESENT:
            return arg in self.view_types or arg == self.active_view_type
        if expression == js.JS_ACTIVE_VIEW_IS:
            return self.active_view_type == arg

        raise AssertionError(f"unexpected evaluate: {expression}")


# =============================================================================
# Fake host and process
# =============================================================================

class FakeExpectWindow:
    """Mimics Playwright's ``expect_page`` event context manager."""

    def __init__(self, host: "FakeObsidianHost"):
        self._host = host
        self._start = 0

    async def __aenter__(self) -> "FakeExpectWindow":
        self._start = len(self._host.created)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False

    async def _resolve(self) -> FakePage:
        created = self._host.created[self._start:]
        if not created:
            raise PlaywrightTimeoutError("Timeout exceeded while waiting for event \"page\"")
        return created[0]

    @property
    def value(self):
        return self._resolve()


class FakeElectronProcess:
    def __init__(self, host: "FakeObsidianHost", options: Any, timeouts: E2ETimeouts):
        self.host = host
        self.options = options
        self.timeouts = timeouts
        self.pid = 4242
        self.extra_args: List[str] = []
        self.closed = False
        self.fail_close = False

    async def start(self, extra_args=()) -> None:
        self.extra_args = list(extra_args)
        for arg in self.extra_args:
            if arg.startswith("--user-data-dir="):
                self.host.user_data_dir = arg.split("=", 1)[1]
        self.host.open_window("starter")

    def windows(self) -> List[FakePage]:
        return [w for w in self.host.created if not w.is_closed()]

    async def first_window(self, timeout: Optional[float] = None) -> FakePage:
        current = self.windows()
        if not current:
            raise PlaywrightTimeoutError("no window")
        return current[0]

    async def wait_for_window(self, timeout: Optional[float] = None) -> FakePage:
        return await self.first_window(timeout)

    def expect_window(self, timeout: Optional[float] = None) -> FakeExpectWindow:
        return FakeExpectWindow(self.host)

    async def close(self) -> None:
        if self.fail_close:
            raise RuntimeError("process close failed")
        self.closed = True
        for window in self.host.created:
            window.closed = True


class FakeObsidianHost:
    """The Obsidian main process as seen through IPC and ``window.app``."""

    def __init__(self, root: Path):
        self.root = root
        self.sandbox_path = root / "userdata" / SANDBOX_VAULT_NAME
        self.user_data_dir: Optional[str] = None
        self.created: List[FakePage] = []
        self.rejected: Dict[str, Any] = {}
        self.ipc_calls: List[tuple] = []
        self.vault_registry: Dict[str, Dict[str, str]] = {}
        self.community_enabled = False
        self.cta_labels: List[str] = ["Turn on community plugins"]
        self.storage_cleared = 0
        self.fail_dispose = False
        self.refuse_enable: set = set()
        self.processes: List[FakeElectronProcess] = []

    def process_factory(self, options: Any, timeouts: E2ETimeouts) -> FakeElectronProcess:
        process = FakeElectronProcess(self, options, timeouts)
        self.processes.append(process)
        return process

    def open_window(self, kind: str, vault_path: Optional[Path] = None,
                    vault_name: Optional[str] = None) -> FakePage:
        page = FakePage(self, kind, vault_path, vault_name)
        self.created.append(page)
        return page

    def open_windows(self) -> List[FakePage]:
        return [w for w in self.created if not w.is_closed()]

    def click_cta(self) -> bool:
        if not self.cta_labels:
            return False
        self.cta_labels.pop(0)
        if not self.cta_labels:
            self.community_enabled = True
        return True

    def handle_ipc(self, channel: str, *args: Any) -> Any:
        self.ipc_calls.append((channel, *args))
        if channel == IPC_VAULT_OPEN:
            path, _force = args
            if path in self.rejected:
                return self.rejected[path]
            vault_path = Path(path)
            vault_path.mkdir(parents=True, exist_ok=True)
            self.vault_registry[vault_path.name] = {"path": str(vault_path)}
            self.open_window("vault", vault_path, vault_path.name)
            return True
        if channel == IPC_SANDBOX:
            self.sandbox_path.mkdir(parents=True, exist_ok=True)
            self.open_window("vault", self.sandbox_path, SANDBOX_VAULT_NAME)
            return None
        if channel == IPC_GET_SANDBOX_PATH:
            return str(self.sandbox_path)
        if channel == IPC_STARTER:
            self.open_window("starter")
            return None
        if channel == IPC_VAULT_LIST:
            return dict(self.vault_registry)
        if channel == IPC_VAULT_REMOVE:
            name = Path(args[0]).name
            self.vault_registry.pop(name, None)
            return True
        raise AssertionError(f"unknown IPC channel {channel}")


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def _not_ci(monkeypatch):
    """Tests assume a developer machine unless they set CI themselves."""
    monkeypatch.delenv("CI", raising=False)


@pytest.fixture
def fast_timeouts() -> E2ETimeouts:
    return E2ETimeouts(
        max_timeout=5.0,
        window_timeout=0.5,
        readiness_timeout=0.5,
        plugin_load_timeout=0.5,
        file_wait_timeout=0.5,
        view_wait_timeout=0.5,
        settle_delay=0.0,
        process_exit_timeout=0.5,
        devtools_endpoint_timeout=1.0,
    )


@pytest.fixture
def plugin_project(tmp_path: Path) -> Path:
    """A plugin project with a build, an unpacked app and an electron binary."""
    project = tmp_path / "my-plugin"
    dist = project / "dist"
    dist.mkdir(parents=True)
    manifest = {"id": "my-plugin", "name": "My Plugin", "version": "1.0.0"}
    (project / "manifest.json").write_text(json.dumps(manifest), encoding="utf-8")
    (dist / "manifest.json").write_text(json.dumps(manifest), encoding="utf-8")
    (dist / "main.js").write_text("module.exports = {};", encoding="utf-8")

    unpacked = project / "e2e" / "obsidian-e2e" / ".obsidian-unpacked"
    unpacked.mkdir(parents=True)
    (unpacked / "main.cjs").write_text("// app", encoding="utf-8")

    electron = tmp_path / "bin" / "electron"
    electron.parent.mkdir()
    electron.write_text("#!/bin/sh\n", encoding="utf-8")
    return project


@pytest.fixture
def resolved_paths(plugin_project: Path, tmp_path: Path):
    return resolve_config(E2EConfig(plugin_dir=plugin_project, electron_executable=tmp_path / "bin" / "electron"))


@pytest.fixture
def host(tmp_path: Path) -> FakeObsidianHost:
    return FakeObsidianHost(tmp_path / "host")


@pytest.fixture
def launcher(resolved_paths, fast_timeouts, host) -> ObsidianTestLauncher:
    return ObsidianTestLauncher(resolved_paths, timeouts=fast_timeouts, process_factory=host.process_factory)


@pytest.fixture
def make_plugin(tmp_path: Path):
    """Factory for plugin source directories."""

    def _make(plugin_id: str, with_manifest: bool = True, extra_files: Optional[Dict[str, str]] = None) -> Path:
        source = tmp_path / "plugins-src" / plugin_id
        source.mkdir(parents=True)
        if with_manifest:
            (source / "manifest.json").write_text(json.dumps({"id": plugin_id}), encoding="utf-8")
        (source / "main.js").write_text(f"// {plugin_id}", encoding="utf-8")
        for name, content in (extra_files or {}).items():
            (source / name).write_text(content, encoding="utf-8")
        return source

    return _make


@pytest.fixture
def vault_page(host: FakeObsidianHost, tmp_path: Path) -> FakePage:
    vault_path = tmp_path / "vault"
    vault_path.mkdir()
    return host.open_window("vault", vault_path, "vault")


@pytest.fixture
def vault_context(vault_page: FakePage) -> VaultContext:
    return VaultContext(electron_app=None, window=vault_page, vault_name="vault",
                        vault_path=str(vault_page.vault_path))
