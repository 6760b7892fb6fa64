"""
Shared constants for the Obsidian E2E toolkit.

Names of on-disk files, host IPC channels, command ids and view types that
are owned by the Obsidian desktop application. They are versioned by the
host, not by this package.
"""

from __future__ import annotations

from typing import Tuple

# =============================================================================
# Sessions
# =============================================================================

SANDBOX_VAULT_NAME = "Obsidian Sandbox"

# Prefix for every temporary directory the launcher creates
TEMP_DIR_PREFIX = "obsidian-e2e-"

# Persisted vault registry inside the user data directory
VAULT_REGISTRY_FILE = "obsidian.json"

# Fallback parent for named vaults when the host cannot report a base path
DEFAULT_VAULTS_DIR_NAME = "ObsidianVaults"

# =============================================================================
# On-disk vault layout
# =============================================================================

CONFIG_DIR_NAME = ".obsidian"
PLUGINS_DIR_NAME = "plugins"
COMMUNITY_PLUGINS_FILE = "community-plugins.json"
MANIFEST_FILE = "manifest.json"

# Top-level plugin files staged by copy installs; directories are never copied
PLUGIN_FILES_TO_COPY: Tuple[str, ...] = ("manifest.json", "main.js", "styles.css")

# =============================================================================
# Launch
# =============================================================================

DEFAULT_APP_MAIN_FILE = "main.cjs"
DEFAULT_UNPACKED_DIR_NAME = ".obsidian-unpacked"
DEFAULT_ASSETS_DIR_NAME = "assets"
DEFAULT_DIST_DIR_NAME = "dist"

BASE_LAUNCH_FLAGS: Tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--unsafely-disable-devtools-self-xss-warnings",
)

# Screen detection: the pre-vault window is served from starter.html
STARTER_URL_MARKER = "starter"
STARTER_READY_SELECTOR = ".mod-change-language"

# =============================================================================
# IPC channels
# =============================================================================

IPC_VAULT_OPEN = "vault-open"
IPC_SANDBOX = "sandbox"
IPC_GET_SANDBOX_PATH = "get-sandbox-vault-path"
IPC_STARTER = "starter"
IPC_VAULT_LIST = "vault-list"
IPC_VAULT_REMOVE = "vault-remove"

# =============================================================================
# Community plugins settings tab
# =============================================================================

COMMUNITY_PLUGINS_TAB_ID = "community-plugins"
LABEL_TURN_ON_AND_RELOAD = "Turn on and reload"
LABEL_TURN_ON_COMMUNITY_PLUGINS = "Turn on community plugins"

# =============================================================================
# Commands
# =============================================================================

CMD_ID_CLOSE_TAB = "workspace:close"
CMD_ID_UNDO_CLOSE_TAB = "workspace:undo-close-pane"
