"""
obsidian-e2e - end-to-end test orchestration for Obsidian plugins.

Launches the Obsidian desktop app on a throwaway profile, opens vaults (or the
sandbox vault) with the plugin under test installed and enabled, and hands
tests a single ready window plus a page object to drive it.

LAZY LOADING: the public names below are imported on first access so that
``obsidian_e2e.config`` stays importable without Playwright.

Usage:
    from obsidian_e2e import E2EConfig, create_test_setup, default_vault_options

    setup = create_test_setup(E2EConfig(plugin_dir="."))
    await setup.launch()
    vault = await setup.open_vault(default_vault_options(setup.get_paths()))
"""

__version__ = "0.1.0"

__all__ = [
    "E2EConfig",
    "ResolvedPaths",
    "resolve_config",
    "config_from_env",
    "create_launch_options",
    "E2ETimeouts",
    "get_timeouts",
    "ObsidianTestLauncher",
    "ObsidianTestSetup",
    "LauncherState",
    "IPCBridge",
    "PluginHandleMap",
    "TestPlugin",
    "VaultOptions",
    "TestContext",
    "VaultContext",
    "ObsidianPageObject",
    "CustomViewPageObject",
    "setup_browser_console_logging",
    "create_test_setup",
    "default_vault_options",
    "configure_logging",
    "E2EError",
    "PreconditionError",
    "LauncherStateError",
    "ReadinessTimeoutError",
    "RemoteOperationError",
    "CommandFailedError",
    "CommunityPluginsError",
    "StaleHandleError",
]

_lazy_modules = {
    "E2EConfig": (".config.paths", "E2EConfig"),
    "ResolvedPaths": (".config.paths", "ResolvedPaths"),
    "resolve_config": (".config.paths", "resolve_config"),
    "config_from_env": (".config.paths", "config_from_env"),
    "create_launch_options": (".config.paths", "create_launch_options"),
    "E2ETimeouts": (".config.timeouts", "E2ETimeouts"),
    "get_timeouts": (".config.timeouts", "get_timeouts"),
    "ObsidianTestLauncher": (".core.launcher", "ObsidianTestLauncher"),
    "ObsidianTestSetup": (".core.launcher", "ObsidianTestLauncher"),
    "LauncherState": (".core.launcher", "LauncherState"),
    "IPCBridge": (".core.ipc_bridge", "IPCBridge"),
    "PluginHandleMap": (".core.remote_handles", "PluginHandleMap"),
    "TestPlugin": (".core.types", "TestPlugin"),
    "VaultOptions": (".core.types", "VaultOptions"),
    "TestContext": (".core.types", "TestContext"),
    "VaultContext": (".core.types", "VaultContext"),
    "ObsidianPageObject": (".helpers.page_object", "ObsidianPageObject"),
    "CustomViewPageObject": (".helpers.page_object", "CustomViewPageObject"),
    "setup_browser_console_logging": (".helpers.console_logging", "setup_browser_console_logging"),
    "create_test_setup": (".factory", "create_test_setup"),
    "default_vault_options": (".factory", "default_vault_options"),
    "configure_logging": (".logging_config", "configure_logging"),
    "E2EError": (".core.errors", "E2EError"),
    "PreconditionError": (".core.errors", "PreconditionError"),
    "LauncherStateError": (".core.errors", "LauncherStateError"),
    "ReadinessTimeoutError": (".core.errors", "ReadinessTimeoutError"),
    "RemoteOperationError": (".core.errors", "RemoteOperationError"),
    "CommandFailedError": (".core.errors", "CommandFailedError"),
    "CommunityPluginsError": (".core.errors", "CommunityPluginsError"),
    "StaleHandleError": (".core.errors", "StaleHandleError"),
}

_loaded_modules = {}


def __getattr__(name: str):
    """Lazy import handler - imports modules only when accessed."""
    if name in _lazy_modules:
        if name not in _loaded_modules:
            module_path, attr_name = _lazy_modules[name]
            import importlib
            module = importlib.import_module(module_path, package=__name__)
            _loaded_modules[name] = getattr(module, attr_name)
        return _loaded_modules[name]
    raise AttributeError(f"module 'obsidian_e2e' has no attribute '{name}'")
