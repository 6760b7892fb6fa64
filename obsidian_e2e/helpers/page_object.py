"""
Obsidian Page Object
====================

Session-scoped facade over one vault window: DOM locators for the workspace,
host-backed actions (commands, files, leaves) and Playwright ``expect``
assertions.

Usage:
    po = ObsidianPageObject(vault)
    await po.write_file("note.md", "# hi")
    await po.open_file("note.md")
    await po.expect_active_tab_type("markdown")

    custom = CustomViewPageObject("my-view", vault)
    await custom.open_custom_view("my-plugin:open", content="hello")
    await custom.expect_custom_view_count(1)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from playwright.async_api import expect

from obsidian_e2e.config.timeouts import E2ETimeouts, get_timeouts
from obsidian_e2e.constants import CMD_ID_CLOSE_TAB, CMD_ID_UNDO_CLOSE_TAB
from obsidian_e2e.core.errors import CommandFailedError, E2EError
from obsidian_e2e.core.host_api import HostApi
from obsidian_e2e.core.readiness import (
    settle,
    wait_for_active_view_type,
    wait_for_file,
    wait_for_layout_flag,
    wait_for_plugin_loaded,
    wait_for_view_of_type,
)
from obsidian_e2e.core.remote_handles import PluginHandleMap
from obsidian_e2e.core.types import VaultContext, VaultOptions

logger = logging.getLogger(__name__)

SEARCH_INPUT_SELECTOR = 'input[type="text"]'


@dataclass(frozen=True)
class PageObjectConfig:
    view_type: Optional[str] = None
    plugin_id: Optional[str] = None


class ObsidianPageObject:
    """Generic page object for an open vault window."""

    ACTIVE_LEAF = ".workspace-leaf.mod-active"
    ACTIVE_TAB_HEADER = ".workspace-tab-header.mod-active.is-active"
    ACTIVE_EDITOR = ".cm-content"
    TAB_HEADER_CONTAINER = ".mod-root .workspace-tab-header-container-inner"

    def __init__(
        self,
        vault_context: VaultContext,
        config: Optional[PageObjectConfig] = None,
        timeouts: Optional[E2ETimeouts] = None,
    ):
        if vault_context is None or vault_context.window is None:
            raise E2EError("ObsidianPageObject needs a vault context with an open window")
        self.vault_context = vault_context
        self.config = config or PageObjectConfig()
        self.timeouts = timeouts or get_timeouts()
        self.page = vault_context.window
        self.host = HostApi(self.page)

    # =========================================================================
    # Selector helpers
    # =========================================================================

    @staticmethod
    def _data_type(view_type: str) -> str:
        return f'[data-type="{view_type}"]'

    def _active_view_selector(self, view_type: str) -> str:
        return f"{self.ACTIVE_LEAF} > .workspace-leaf-content{self._data_type(view_type)}"

    def _active_title_selector(self, view_type: str) -> str:
        return f"{self.ACTIVE_TAB_HEADER}{self._data_type(view_type)}"

    def _all_views_selector(self, view_type: str) -> str:
        return self._active_view_selector(view_type).replace(".mod-active", "")

    # =========================================================================
    # Locators
    # =========================================================================

    @property
    def active_leaf(self) -> Any:
        return self.page.locator(self.ACTIVE_LEAF)

    @property
    def active_editor(self) -> Any:
        return self.page.locator(f"{self.ACTIVE_LEAF} {self.ACTIVE_EDITOR}")

    @property
    def active_tab_header(self) -> Any:
        return self.page.locator(self.ACTIVE_TAB_HEADER)

    @property
    def all_tabs(self) -> Any:
        return self.page.locator(self.TAB_HEADER_CONTAINER)

    def get_view_by_type(self, view_type: str) -> Any:
        return self.page.locator(self._active_view_selector(view_type))

    def get_title_by_type(self, view_type: str) -> Any:
        return self.page.locator(self._active_title_selector(view_type))

    def get_all_views_by_type(self, view_type: str) -> Any:
        return self.page.locator(self._all_views_selector(view_type))

    async def rebuild_references(self, options: VaultOptions) -> PluginHandleMap:
        """Re-capture plugin handles after a reload invalidated the old ones."""
        old = self.vault_context.plugin_handle_map
        if old is not None:
            await old.invalidate()
        handle_map = await PluginHandleMap.build(
            self.page,
            options.plugin_ids,
            owner_pid=old.owner_pid if old is not None else None,
            timeout=self.timeouts.plugin_load_timeout,
        )
        self.vault_context.plugin_handle_map = handle_map
        return handle_map

    # =========================================================================
    # Actions
    # =========================================================================

    async def run_command(self, command_id: str) -> None:
        """
        Raises:
            CommandFailedError: the host did not report success.
        """
        if not await self.host.execute_command(command_id):
            raise CommandFailedError(command_id, False)

    async def open_plugin_with_url(self, plugin_id: str, url: str) -> None:
        await wait_for_plugin_loaded(self.page, plugin_id, self.timeouts.plugin_load_timeout)
        if not await self.host.open_plugin_with_url(plugin_id, url):
            logger.debug(f"[PAGE] Plugin {plugin_id} has no openWithURL")

    async def clear_active_editor(self) -> None:
        await self.active_editor.focus()
        await self.page.keyboard.press("Control+A")
        await self.page.keyboard.press("Backspace")

    async def split_vertically(self) -> None:
        await self.host.duplicate_active_leaf("vertical")

    async def split_horizontally(self) -> None:
        await self.host.duplicate_active_leaf("horizontal")

    async def close_active_tab(self) -> None:
        await self.active_leaf.focus()
        await self.run_command(CMD_ID_CLOSE_TAB)

    async def click_close_button_on_active_tab(self) -> None:
        close_button = self.page.locator(
            f"{self.ACTIVE_TAB_HEADER} .workspace-tab-header-inner-close-button"
        )
        await expect(close_button).to_be_visible()
        await close_button.click()

    async def undo_close_tab(self) -> None:
        await self.run_command(CMD_ID_UNDO_CLOSE_TAB)

    async def go_back_in_history(self) -> None:
        await self.host.history_back()

    async def go_forward_in_history(self) -> None:
        await self.host.history_forward()

    async def switch_to_leaf_index(self, index: int) -> None:
        """Activate the ``index``-th markdown leaf; out-of-range is a no-op."""
        await self.host.set_active_markdown_leaf(index)

    # -- files ----------------------------------------------------------------

    async def file_exists(self, path: str) -> bool:
        return await self.host.file_exists(path)

    async def read_file(self, path: str) -> str:
        return await self.host.read_file(path)

    async def write_file(self, path: str, content: str) -> None:
        await self.host.write_file(path, content)

    async def delete_file(self, path: str) -> None:
        await self.host.remove_file(path)

    async def open_file(self, path: str) -> None:
        await self.host.open_file(path)

    # -- queries --------------------------------------------------------------

    async def get_active_file_content(self) -> Optional[str]:
        return await self.host.active_file_content()

    async def get_active_file_path(self) -> Optional[str]:
        return await self.host.active_file_path()

    async def get_tab_inner_title(self) -> Optional[str]:
        return await self.host.tab_inner_title()

    async def get_active_view_type(self) -> Optional[str]:
        return await self.host.active_view_type()

    async def get_open_files(self) -> List[str]:
        return await self.host.open_file_paths()

    async def get_plugin(self, plugin_id: str) -> Any:
        handle_map = self.vault_context.plugin_handle_map
        if handle_map is None:
            raise E2EError("vault_context.plugin_handle_map is not initialized")
        return await handle_map.get(plugin_id)

    async def is_plugin_enabled(self, plugin_id: str) -> bool:
        return await self.host.is_plugin_enabled(plugin_id)

    # =========================================================================
    # Waits
    # =========================================================================

    async def wait_for_layout_ready(self) -> None:
        await wait_for_layout_flag(self.page, self.timeouts.readiness_timeout)

    async def wait_for_view(self, view_type: str) -> Any:
        """Wait for a leaf of ``view_type``, reveal it and return a handle to its view."""
        await wait_for_view_of_type(self.page, view_type, self.timeouts.view_wait_timeout)
        return await self.host.reveal_view(view_type)

    async def wait_for_file_created(self, path: str, timeout: Optional[float] = None) -> None:
        await wait_for_file(self.page, path, timeout or self.timeouts.file_wait_timeout)

    async def wait_for_view_type(self, view_type: str, timeout: Optional[float] = None) -> None:
        await wait_for_active_view_type(self.page, view_type, timeout or self.timeouts.view_wait_timeout)

    # =========================================================================
    # Assertions
    # =========================================================================

    async def expect_view_count(self, view_type: str, count: int) -> None:
        await expect(self.get_all_views_by_type(view_type)).to_have_count(count)

    async def expect_active_title(self, view_type: str, title: str) -> None:
        await expect(self.get_title_by_type(view_type)).to_have_text(title)

    async def expect_active_title_to_contain(self, view_type: str, text: str) -> None:
        await expect(self.get_title_by_type(view_type)).to_contain_text(text)

    async def expect_active_tab_type(self, view_type: str) -> None:
        await expect(self.active_tab_header).to_have_attribute("data-type", view_type)

    async def expect_tab_count(self, count: int) -> None:
        await expect(self.all_tabs).to_have_count(count)

    async def expect_file_exists(self, path: str) -> None:
        if not await self.file_exists(path):
            raise AssertionError(f"Expected {path!r} to exist in the vault")

    async def expect_file_not_exists(self, path: str) -> None:
        if await self.file_exists(path):
            raise AssertionError(f"Expected {path!r} not to exist in the vault")

    async def expect_active_editor_content(self, content: str) -> None:
        await expect(self.active_editor).to_have_text(content)

    async def expect_active_editor_to_contain(self, text: str) -> None:
        await expect(self.active_editor).to_contain_text(text)

    async def expect_error_state(self, should_be_visible: bool) -> None:
        locator = self.page.locator(".error-container")
        if should_be_visible:
            await expect(locator).to_be_visible(timeout=E2ETimeouts.ms(self.timeouts.view_wait_timeout))
        else:
            await expect(locator).not_to_be_visible()

    async def expect_loading_state(self, should_be_visible: bool) -> None:
        locator = self.page.locator(".loading-container")
        if should_be_visible:
            await expect(locator).to_be_visible()
        else:
            await expect(locator).not_to_be_visible()

    # =========================================================================
    # Misc
    # =========================================================================

    async def get_title_bar_text(self) -> Optional[str]:
        return await self.page.locator(f"{self.ACTIVE_LEAF} .view-header-title").text_content()

    async def get_tab_header_text(self) -> Optional[str]:
        return await self.page.locator(
            ".workspace-tab-header.mod-active .workspace-tab-header-inner"
        ).text_content()

    async def measure_load_time(self, action: Callable[[], Awaitable[Any]]) -> float:
        """Wall-clock milliseconds ``action`` took."""
        start = time.perf_counter()
        await action()
        return (time.perf_counter() - start) * 1000.0

    async def apply_search_filter(self, search_text: str, selector: str = SEARCH_INPUT_SELECTOR) -> None:
        await self.page.locator(selector).fill(search_text)
        await settle(self.page, "search filter input", 0.3)

    async def clear_search_filter(self, selector: str = SEARCH_INPUT_SELECTOR) -> None:
        await self.page.locator(selector).clear()
        await settle(self.page, "search filter clear", 0.2)


class CustomViewPageObject(ObsidianPageObject):
    """Page object bound to one plugin-provided view type."""

    def __init__(self, custom_view_type: str, vault_context: VaultContext, timeouts: Optional[E2ETimeouts] = None):
        super().__init__(vault_context, PageObjectConfig(view_type=custom_view_type), timeouts)
        self.custom_view_type = custom_view_type

    @property
    def active_custom_view(self) -> Any:
        return self.get_view_by_type(self.custom_view_type)

    @property
    def active_custom_title(self) -> Any:
        return self.get_title_by_type(self.custom_view_type)

    async def set_active_editor_content(self, content: str) -> None:
        await self.active_editor.focus()
        await self.active_editor.fill(content)

    async def open_custom_view(self, command_id: str, content: Optional[str] = None) -> None:
        await self.run_command(command_id)
        await expect(self.active_custom_view.last).to_be_visible()
        if content:
            await self.set_active_editor_content(content)

    async def expect_custom_view_count(self, count: int) -> None:
        await self.expect_view_count(self.custom_view_type, count)

    async def expect_custom_view_title(self, title: str) -> None:
        await self.expect_active_title(self.custom_view_type, title)


__all__ = ["ObsidianPageObject", "CustomViewPageObject", "PageObjectConfig"]
