"""
Value types passed between the launcher, the installer and tests.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Optional, Sequence, Tuple, Union

if TYPE_CHECKING:
    from obsidian_e2e.config.paths import ResolvedPaths
    from obsidian_e2e.core.electron_process import ElectronProcess
    from obsidian_e2e.core.remote_handles import PluginHandleMap


@dataclass(frozen=True)
class TestPlugin:
    """
    A plugin to stage into the vault under test.

    Attributes:
        path: Directory holding manifest.json (and main.js / styles.css)
        plugin_id: Directory name under .obsidian/plugins and the id to enable
        use_symlink: Link the directory instead of copying the allow-listed files
    """
    __test__ = False

    path: Union[str, os.PathLike]
    plugin_id: str
    use_symlink: bool = False


@dataclass(frozen=True)
class VaultOptions:
    """How to open a vault. All fields optional; the default is a fresh temp vault."""
    name: Optional[str] = None
    vault_path: Optional[Union[str, os.PathLike]] = None
    force_new_vault: bool = False
    use_sandbox: bool = False
    show_logger_on_node: bool = False
    plugins: Tuple[TestPlugin, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not isinstance(self.plugins, tuple):
            object.__setattr__(self, "plugins", tuple(self.plugins))

    @property
    def plugin_ids(self) -> Tuple[str, ...]:
        return tuple(p.plugin_id for p in self.plugins)

    def with_sandbox(self) -> "VaultOptions":
        return replace(self, use_sandbox=True)

    def with_plugins(self, plugins: Sequence[TestPlugin]) -> "VaultOptions":
        return replace(self, plugins=tuple(plugins))


@dataclass
class TestContext:
    """A window on the starter screen (or any session without plugin handles)."""
    __test__ = False

    electron_app: "ElectronProcess"
    window: Any
    vault_name: Optional[str] = None


@dataclass
class VaultContext(TestContext):
    """An open vault: its window, its plugin handles and the run's paths."""
    plugin_handle_map: Optional["PluginHandleMap"] = None
    paths: Optional["ResolvedPaths"] = None
    vault_path: Optional[str] = None


__all__ = ["TestPlugin", "VaultOptions", "TestContext", "VaultContext"]
