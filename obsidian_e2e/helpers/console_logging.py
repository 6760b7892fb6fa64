"""
Browser console forwarding.

Mirrors renderer console output, uncaught page errors, failed requests and
non-OK responses of a vault window into the ``obsidian_e2e.browser`` logger so
plugin logs appear next to the test's own output.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger("obsidian_e2e.browser")

MAX_CONSOLE_TEXT = 500
CONSOLE_PREVIEW_CHARS = 100

_CONSOLE_LEVELS = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "debug": logging.DEBUG,
}


def _on_console(msg: Any) -> None:
    kind = msg.type
    text = msg.text
    level = _CONSOLE_LEVELS.get(kind, logging.INFO)

    if len(text) > MAX_CONSOLE_TEXT:
        logger.log(level, f"[BROWSER:{kind.upper()}] <{len(text)} chars omitted>")
        return

    logger.log(level, f"[BROWSER:{kind.upper()}] {text[:CONSOLE_PREVIEW_CHARS]}")
    location = msg.location or {}
    url = location.get("url")
    if url and url != "about:blank":
        logger.log(level, f"    at {url}:{location.get('lineNumber')}:{location.get('columnNumber')}")


def _on_page_error(error: Any) -> None:
    logger.error(f"[BROWSER:PAGEERROR] {error.message}")
    stack = getattr(error, "stack", None)
    if stack:
        logger.error(f"    stack: {stack}")


def _on_request_failed(request: Any) -> None:
    logger.warning(f"[BROWSER:REQUESTFAILED] {request.url}")
    if request.failure:
        logger.warning(f"    failure: {request.failure}")


def _on_response(response: Any) -> None:
    if not response.ok:
        logger.warning(f"[BROWSER:HTTP] {response.status} {response.status_text} - {response.url}")


def setup_browser_console_logging(page: Any) -> None:
    """Attach the forwarding listeners to ``page``."""
    page.on("console", _on_console)
    page.on("pageerror", _on_page_error)
    page.on("requestfailed", _on_request_failed)
    page.on("response", _on_response)
    logger.debug(f"[BROWSER] Console forwarding enabled for {page.url}")


__all__ = ["setup_browser_console_logging"]
