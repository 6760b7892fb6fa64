"""
Core orchestration: process lifecycle, IPC, plugin staging and readiness.

Import submodules directly (``from obsidian_e2e.core.launcher import
ObsidianTestLauncher``). ``obsidian_e2e.config.paths`` imports
``core.errors``, so this package must not import its siblings.
"""
