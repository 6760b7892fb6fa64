"""Test-facing helpers: the vault page object and browser console forwarding."""

from obsidian_e2e.helpers.console_logging import setup_browser_console_logging
from obsidian_e2e.helpers.page_object import (
    CustomViewPageObject,
    ObsidianPageObject,
    PageObjectConfig,
)

__all__ = [
    "CustomViewPageObject",
    "ObsidianPageObject",
    "PageObjectConfig",
    "setup_browser_console_logging",
]
