"""
pytest integration
==================

Fixtures that give each test a freshly launched Obsidian and an open vault.

Registered automatically through the ``pytest11`` entry point. Override
``vault_options`` in a test module or conftest to change what ``vault``
opens:

    @pytest.fixture
    def vault_options(obsidian_paths):
        return default_vault_options(obsidian_paths, use_sandbox=True)

    @pytest.mark.asyncio
    async def test_plugin_loads(vault):
        assert await ObsidianPageObject(vault).is_plugin_enabled("my-plugin")

The plugin directory comes from ``--obsidian-plugin-dir``, then
``$OBSIDIAN_E2E_PLUGIN_DIR``, then the pytest rootdir.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Union

import pytest
import pytest_asyncio

from obsidian_e2e.config.env import is_ci
from obsidian_e2e.config.paths import ResolvedPaths, config_from_env, resolve_config
from obsidian_e2e.core.launcher import ObsidianTestLauncher
from obsidian_e2e.core.types import TestContext, VaultContext, VaultOptions
from obsidian_e2e.helpers.console_logging import setup_browser_console_logging
from obsidian_e2e.logging_config import configure_logging

logger = logging.getLogger(__name__)

NOTICE_SELECTOR = ".notice-container .notice"


# =============================================================================
# Hooks
# =============================================================================

def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("obsidian-e2e")
    group.addoption(
        "--obsidian-plugin-dir",
        action="store",
        default=None,
        help="Plugin project root used by the obsidian_setup fixture",
    )


def pytest_configure(config: pytest.Config) -> None:
    configure_logging()


@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    # Expose each phase's report to fixtures as item.rep_setup / rep_call / rep_teardown.
    outcome = yield
    report = outcome.get_result()
    setattr(item, f"rep_{report.when}", report)


# =============================================================================
# Helpers
# =============================================================================

def handle_test_error(node: Any) -> None:
    """Log a failed test's error with a banner; passed and skipped tests log at DEBUG."""
    report = getattr(node, "rep_call", None)
    if report is None:
        return

    if report.passed or report.skipped:
        logger.debug(f"[PYTEST] Test finished with status: {report.outcome}")
        return

    separator = "=" * 20
    logger.error(f"[PYTEST] Test finished with status: {report.outcome}")
    logger.error(f"\n{separator} TEST FAILED {separator}\n{report.longreprtext}\n{'=' * 53}")
    if not is_ci():
        logger.debug(f"[PYTEST] Sections: {report.sections}")


async def dismiss_notices(page: Any) -> int:
    """Click away every toast notice; returns how many there were."""
    notices = await page.locator(NOTICE_SELECTOR).all()
    logger.debug(f"[PYTEST] Dismissing {len(notices)} notice(s)")
    await asyncio.gather(*(notice.click() for notice in notices))
    return len(notices)


async def setup_vault(
    launcher: ObsidianTestLauncher, options: VaultOptions
) -> Union[VaultContext, TestContext]:
    logger.debug(f"[PYTEST] vault options: {options}")
    if options.use_sandbox:
        context = await launcher.open_sandbox(options)
    else:
        context = await launcher.open_vault(options)

    if options.show_logger_on_node:
        setup_browser_console_logging(context.window)

    await dismiss_notices(context.window)
    return context


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def obsidian_paths(request: pytest.FixtureRequest) -> ResolvedPaths:
    plugin_dir = request.config.getoption("--obsidian-plugin-dir") or str(request.config.rootpath)
    return resolve_config(config_from_env(default_plugin_dir=plugin_dir))


@pytest.fixture
def vault_options() -> VaultOptions:
    return VaultOptions(use_sandbox=False, show_logger_on_node=True, plugins=())


@pytest_asyncio.fixture
async def obsidian_setup(
    request: pytest.FixtureRequest, obsidian_paths: ResolvedPaths
) -> AsyncIterator[ObsidianTestLauncher]:
    launcher = ObsidianTestLauncher(obsidian_paths)
    try:
        logger.debug("[PYTEST] launch")
        await launcher.launch()
        yield launcher
        handle_test_error(request.node)
    except Exception as e:
        logger.error(f"[PYTEST] Error during fixture setup: {e}")
        raise
    finally:
        logger.debug("[PYTEST] clean up app")
        await launcher.cleanup()


@pytest_asyncio.fixture
async def vault(obsidian_setup: ObsidianTestLauncher, vault_options: VaultOptions) -> AsyncIterator[VaultContext]:
    context = await setup_vault(obsidian_setup, vault_options)
    yield context


__all__ = [
    "handle_test_error",
    "dismiss_notices",
    "setup_vault",
]
