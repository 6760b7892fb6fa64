"""
Centralized Timeout Configuration for Obsidian E2E Runs
=======================================================

Single source of truth for every bounded wait the toolkit performs. All values
are seconds and can be overridden through environment variables with the
``OBSIDIAN_E2E_`` prefix.

Environment Variables:
----------------------
- OBSIDIAN_E2E_MAX_TIMEOUT: Cap applied to every other timeout (default: 300.0s)
- OBSIDIAN_E2E_WINDOW_TIMEOUT: Wait for a new window after a transition (default: 10.0s)
- OBSIDIAN_E2E_READINESS_TIMEOUT: Starter/vault readiness predicates (default: 10.0s)
- OBSIDIAN_E2E_PLUGIN_LOAD_TIMEOUT: Wait for plugins to register in the host (default: 10.0s)
- OBSIDIAN_E2E_FILE_WAIT_TIMEOUT: Wait for a vault file to appear (default: 5.0s)
- OBSIDIAN_E2E_VIEW_WAIT_TIMEOUT: Wait for a view type to become active (default: 5.0s)
- OBSIDIAN_E2E_SETTLE_DELAY: Fixed delay after UI clicks with no observable state (default: 1.0s)
- OBSIDIAN_E2E_PROCESS_EXIT_TIMEOUT: Grace period between SIGTERM and SIGKILL (default: 5.0s)
- OBSIDIAN_E2E_DEVTOOLS_TIMEOUT: Wait for the DevTools endpoint after spawn (default: 30.0s)

Usage:
    from obsidian_e2e.config.timeouts import get_timeouts

    timeouts = get_timeouts()
    await page.wait_for_selector(selector, timeout=timeouts.ms(timeouts.readiness_timeout))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Dict, Optional

from obsidian_e2e.config.env import get_env_float

logger = logging.getLogger(__name__)


# =============================================================================
# DEFAULT VALUES
# =============================================================================

_DEFAULT_MAX_TIMEOUT = 300.0
_DEFAULT_WINDOW_TIMEOUT = 10.0
_DEFAULT_READINESS_TIMEOUT = 10.0
_DEFAULT_PLUGIN_LOAD_TIMEOUT = 10.0
_DEFAULT_FILE_WAIT_TIMEOUT = 5.0
_DEFAULT_VIEW_WAIT_TIMEOUT = 5.0
_DEFAULT_SETTLE_DELAY = 1.0
_DEFAULT_PROCESS_EXIT_TIMEOUT = 5.0
_DEFAULT_DEVTOOLS_TIMEOUT = 30.0


# =============================================================================
# TIMEOUTS CONFIGURATION CLASS
# =============================================================================


@dataclass
class E2ETimeouts:
    """
    Timeout configuration for one test run.

    Loaded from the environment at instantiation time. Values above
    ``max_timeout`` are capped in ``__post_init__``.
    """

    max_timeout: float = field(default_factory=lambda: get_env_float(
        "OBSIDIAN_E2E_MAX_TIMEOUT", _DEFAULT_MAX_TIMEOUT, min_val=1.0
    ))

    window_timeout: float = field(default_factory=lambda: get_env_float(
        "OBSIDIAN_E2E_WINDOW_TIMEOUT", _DEFAULT_WINDOW_TIMEOUT, min_val=0.1
    ))
    """Wait for the window a session transition is expected to open."""

    readiness_timeout: float = field(default_factory=lambda: get_env_float(
        "OBSIDIAN_E2E_READINESS_TIMEOUT", _DEFAULT_READINESS_TIMEOUT, min_val=0.1
    ))
    """Starter screen and vault layout readiness."""

    plugin_load_timeout: float = field(default_factory=lambda: get_env_float(
        "OBSIDIAN_E2E_PLUGIN_LOAD_TIMEOUT", _DEFAULT_PLUGIN_LOAD_TIMEOUT, min_val=0.1
    ))

    file_wait_timeout: float = field(default_factory=lambda: get_env_float(
        "OBSIDIAN_E2E_FILE_WAIT_TIMEOUT", _DEFAULT_FILE_WAIT_TIMEOUT, min_val=0.1
    ))

    view_wait_timeout: float = field(default_factory=lambda: get_env_float(
        "OBSIDIAN_E2E_VIEW_WAIT_TIMEOUT", _DEFAULT_VIEW_WAIT_TIMEOUT, min_val=0.1
    ))

    settle_delay: float = field(default_factory=lambda: get_env_float(
        "OBSIDIAN_E2E_SETTLE_DELAY", _DEFAULT_SETTLE_DELAY, min_val=0.0
    ))
    """Pause after clicks whose effect the host does not expose."""

    process_exit_timeout: float = field(default_factory=lambda: get_env_float(
        "OBSIDIAN_E2E_PROCESS_EXIT_TIMEOUT", _DEFAULT_PROCESS_EXIT_TIMEOUT, min_val=0.1
    ))

    devtools_endpoint_timeout: float = field(default_factory=lambda: get_env_float(
        "OBSIDIAN_E2E_DEVTOOLS_TIMEOUT", _DEFAULT_DEVTOOLS_TIMEOUT, min_val=1.0
    ))

    def __post_init__(self) -> None:
        for f in fields(self):
            if f.name == "max_timeout":
                continue
            value = getattr(self, f.name)
            if value > self.max_timeout:
                logger.warning(
                    f"[E2ETimeouts] {f.name}={value} exceeds max_timeout={self.max_timeout}, "
                    f"capping to max_timeout"
                )
                setattr(self, f.name, self.max_timeout)

    @staticmethod
    def ms(seconds: float) -> float:
        """Playwright takes milliseconds."""
        return seconds * 1000.0

    def to_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# =============================================================================
# SINGLETON ACCESS
# =============================================================================

_timeouts: Optional[E2ETimeouts] = None


def get_timeouts() -> E2ETimeouts:
    """Get the process-wide timeouts instance, creating it on first use."""
    global _timeouts
    if _timeouts is None:
        _timeouts = E2ETimeouts()
    return _timeouts


def reset_timeouts() -> None:
    """Drop the cached instance so the next call re-reads the environment."""
    global _timeouts
    _timeouts = None


__all__ = [
    "E2ETimeouts",
    "get_timeouts",
    "reset_timeouts",
]
