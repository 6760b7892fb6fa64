"""
Readiness Waiters
=================

Bounded waits on observable application state. Each waiter names the
predicate it is waiting on so a timeout reads as "vault-layout-ready
(app://obsidian.md/index.html) after 10.0s" instead of a bare Playwright
stack.

Screens:
    starter  URL contains "starter"; ready when the language selector is visible
    vault    any other URL; ready when the workspace layout reports ready

Fixed delays after UI clicks whose effect the host does not expose go through
``settle()`` so they show up in logs with the reason they exist.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Sequence

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from obsidian_e2e.config.timeouts import E2ETimeouts, get_timeouts
from obsidian_e2e.constants import STARTER_READY_SELECTOR, STARTER_URL_MARKER
from obsidian_e2e.core.errors import ReadinessTimeoutError
from obsidian_e2e.core.host_api import (
    JS_ACTIVE_VIEW_IS,
    JS_FILE_EXISTS,
    JS_LAYOUT_READY,
    JS_LAYOUT_READY_FLAG,
    JS_PLUGIN_LOADED,
    JS_PLUGINS_API_READY,
    JS_PLUGINS_LOADED,
    JS_VIEW_OF_TYPE_PRESENT,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def bounded_wait(predicate: str, target: str, timeout: float) -> AsyncIterator[None]:
    """Translate Playwright and asyncio timeouts into ``ReadinessTimeoutError``."""
    try:
        yield
    except (PlaywrightTimeoutError, asyncio.TimeoutError) as e:
        logger.warning(f"[READINESS] {predicate} timed out after {timeout:.1f}s ({target})")
        raise ReadinessTimeoutError(predicate, target, timeout) from e


def _resolve(timeout: Optional[float], default: float) -> float:
    return default if timeout is None else timeout


def is_starter_page(page: Any) -> bool:
    return STARTER_URL_MARKER in (page.url or "")


# =============================================================================
# Screen readiness
# =============================================================================

async def wait_for_dom_content_loaded(page: Any, timeout: Optional[float] = None) -> None:
    timeout = _resolve(timeout, get_timeouts().readiness_timeout)
    async with bounded_wait("dom-content-loaded", page.url, timeout):
        await page.wait_for_load_state("domcontentloaded", timeout=E2ETimeouts.ms(timeout))


async def wait_for_starter_ready(page: Any, timeout: Optional[float] = None) -> None:
    timeout = _resolve(timeout, get_timeouts().readiness_timeout)
    async with bounded_wait("starter-ready", page.url, timeout):
        await page.wait_for_selector(
            STARTER_READY_SELECTOR, state="visible", timeout=E2ETimeouts.ms(timeout)
        )


async def wait_for_vault_ready(page: Any, timeout: Optional[float] = None) -> None:
    timeout = _resolve(timeout, get_timeouts().readiness_timeout)
    async with bounded_wait("vault-layout-ready", page.url, timeout):
        await page.wait_for_load_state("domcontentloaded", timeout=E2ETimeouts.ms(timeout))
        await page.wait_for_function(JS_LAYOUT_READY, timeout=E2ETimeouts.ms(timeout))


async def wait_for_page(page: Any, timeout: Optional[float] = None) -> None:
    """Wait for whichever readiness the page's URL implies."""
    if is_starter_page(page):
        await wait_for_starter_ready(page, timeout)
    else:
        await wait_for_vault_ready(page, timeout)


# =============================================================================
# Host predicates
# =============================================================================

async def wait_for_predicate(
    page: Any,
    name: str,
    expression: str,
    arg: Any = None,
    target: Optional[str] = None,
    timeout: Optional[float] = None,
) -> None:
    """Poll a host predicate until it is truthy or ``timeout`` expires."""
    timeout = _resolve(timeout, get_timeouts().readiness_timeout)
    async with bounded_wait(name, target or page.url, timeout):
        await page.wait_for_function(expression, arg=arg, timeout=E2ETimeouts.ms(timeout))


async def wait_for_layout_flag(page: Any, timeout: Optional[float] = None) -> None:
    await wait_for_predicate(page, "layout-ready-flag", JS_LAYOUT_READY_FLAG, timeout=timeout)


async def wait_for_plugins_api(page: Any, timeout: Optional[float] = None) -> None:
    await wait_for_predicate(
        page, "plugins-api-available", JS_PLUGINS_API_READY,
        timeout=_resolve(timeout, get_timeouts().plugin_load_timeout),
    )


async def wait_for_plugins_loaded(
    page: Any, plugin_ids: Sequence[str], timeout: Optional[float] = None
) -> None:
    await wait_for_predicate(
        page, "plugins-loaded", JS_PLUGINS_LOADED, arg=list(plugin_ids),
        target=", ".join(plugin_ids) or "<none>",
        timeout=_resolve(timeout, get_timeouts().plugin_load_timeout),
    )


async def wait_for_plugin_loaded(page: Any, plugin_id: str, timeout: Optional[float] = None) -> None:
    await wait_for_predicate(
        page, "plugin-loaded", JS_PLUGIN_LOADED, arg=plugin_id, target=plugin_id,
        timeout=_resolve(timeout, get_timeouts().plugin_load_timeout),
    )


async def wait_for_view_of_type(page: Any, view_type: str, timeout: Optional[float] = None) -> None:
    await wait_for_predicate(
        page, "view-present", JS_VIEW_OF_TYPE_PRESENT, arg=view_type, target=view_type,
        timeout=_resolve(timeout, get_timeouts().view_wait_timeout),
    )


async def wait_for_active_view_type(page: Any, view_type: str, timeout: Optional[float] = None) -> None:
    await wait_for_predicate(
        page, "active-view-type", JS_ACTIVE_VIEW_IS, arg=view_type, target=view_type,
        timeout=_resolve(timeout, get_timeouts().view_wait_timeout),
    )


async def wait_for_file(page: Any, path: str, timeout: Optional[float] = None) -> None:
    await wait_for_predicate(
        page, "file-exists", JS_FILE_EXISTS, arg=path, target=path,
        timeout=_resolve(timeout, get_timeouts().file_wait_timeout),
    )


# =============================================================================
# Settle
# =============================================================================

async def settle(page: Any, reason: str, delay: Optional[float] = None) -> None:
    """Fixed pause after an action with no observable completion signal."""
    delay = _resolve(delay, get_timeouts().settle_delay)
    logger.debug(f"[READINESS] Settling {delay:.1f}s after {reason}")
    await page.wait_for_timeout(E2ETimeouts.ms(delay))


__all__ = [
    "bounded_wait",
    "is_starter_page",
    "wait_for_dom_content_loaded",
    "wait_for_starter_ready",
    "wait_for_vault_ready",
    "wait_for_page",
    "wait_for_predicate",
    "wait_for_layout_flag",
    "wait_for_plugins_api",
    "wait_for_plugins_loaded",
    "wait_for_plugin_loaded",
    "wait_for_view_of_type",
    "wait_for_active_view_type",
    "wait_for_file",
    "settle",
]
