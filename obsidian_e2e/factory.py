"""
Convenience constructors for test suites.
"""

from __future__ import annotations

from typing import Optional, Union

from obsidian_e2e.config.paths import E2EConfig, ResolvedPaths, resolve_config
from obsidian_e2e.config.timeouts import E2ETimeouts
from obsidian_e2e.core.launcher import ObsidianTestLauncher
from obsidian_e2e.core.types import TestPlugin, VaultOptions


def create_test_setup(
    config: Union[E2EConfig, ResolvedPaths],
    timeouts: Optional[E2ETimeouts] = None,
) -> ObsidianTestLauncher:
    """
    Build a launcher ready for ``launch()``.

    Example:
        setup = create_test_setup(E2EConfig(plugin_dir=os.getcwd()))
        await setup.launch()
        vault = await setup.open_vault(default_vault_options(setup.get_paths()))
    """
    paths = config if isinstance(config, ResolvedPaths) else resolve_config(config)
    return ObsidianTestLauncher(paths, timeouts=timeouts)


def default_vault_options(paths: ResolvedPaths, use_sandbox: bool = False) -> VaultOptions:
    """Temp vault with the plugin under development installed from its build output."""
    return VaultOptions(
        use_sandbox=use_sandbox,
        show_logger_on_node=True,
        plugins=(TestPlugin(path=paths.dist_dir, plugin_id=paths.plugin_id),),
    )


__all__ = ["create_test_setup", "default_vault_options"]
