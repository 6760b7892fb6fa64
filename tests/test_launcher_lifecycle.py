import json
from pathlib import Path

import pytest

from obsidian_e2e.constants import COMMUNITY_PLUGINS_FILE, SANDBOX_VAULT_NAME, VAULT_REGISTRY_FILE
from obsidian_e2e.core.errors import (
    LauncherStateError,
    PreconditionError,
    ReadinessTimeoutError,
    RemoteOperationError,
    StaleHandleError,
)
from obsidian_e2e.core.launcher import LauncherState, ObsidianTestLauncher
from obsidian_e2e.core.types import TestPlugin, VaultOptions
from obsidian_e2e.helpers.page_object import ObsidianPageObject


# =============================================================================
# launch
# =============================================================================

class TestLaunch:
    @pytest.mark.asyncio
    async def test_launch_leaves_single_ready_starter_window(self, launcher, host):
        await launcher.launch()
        try:
            windows = launcher.windows()
            assert launcher.state is LauncherState.READY
            assert len(windows) == 1
            assert windows[0].kind == "starter"
            assert windows[0].marked is True
            assert windows[0].reloads == 1
            assert host.storage_cleared == 1
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_launch_passes_temp_profile(self, launcher, host):
        await launcher.launch()
        try:
            process = host.processes[0]
            temp_dir = launcher.temp_user_data_dir
            assert temp_dir.name.startswith("obsidian-e2e-")
            assert f"--user-data-dir={temp_dir}" in process.extra_args
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_launch_twice_is_rejected(self, launcher):
        await launcher.launch()
        try:
            with pytest.raises(LauncherStateError):
                await launcher.launch()
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_closed_launcher_cannot_relaunch(self, launcher):
        await launcher.launch()
        await launcher.cleanup()
        assert launcher.state is LauncherState.CLOSED
        with pytest.raises(LauncherStateError):
            await launcher.launch()

    @pytest.mark.asyncio
    async def test_missing_app_fails_before_spawn(self, launcher, host, resolved_paths):
        resolved_paths.app_main_js_path.unlink()
        with pytest.raises(PreconditionError):
            await launcher.launch()
        assert host.processes == []
        assert launcher.state is LauncherState.IDLE

    @pytest.mark.asyncio
    async def test_clear_data_removes_registry_and_sandbox(self, launcher, host):
        await launcher.launch()
        try:
            user_data = Path(host.user_data_dir)
            (user_data / VAULT_REGISTRY_FILE).write_text("{}", encoding="utf-8")
            (user_data / SANDBOX_VAULT_NAME).mkdir()
            (user_data / SANDBOX_VAULT_NAME / "note.md").write_text("x", encoding="utf-8")

            await launcher._clear_data()

            assert not (user_data / VAULT_REGISTRY_FILE).exists()
            assert not (user_data / SANDBOX_VAULT_NAME).exists()
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_operations_before_launch_are_state_errors(self, launcher):
        with pytest.raises(LauncherStateError):
            await launcher.open_vault()
        with pytest.raises(LauncherStateError):
            await launcher.open_starter()
        with pytest.raises(LauncherStateError):
            launcher.get_electron_app()
        assert launcher.get_current_page() is None


# =============================================================================
# vaults
# =============================================================================

class TestOpenVault:
    @pytest.mark.asyncio
    async def test_open_vault_at_path(self, launcher, tmp_path):
        await launcher.launch()
        try:
            target = tmp_path / "my-vault"
            ctx = await launcher.open_vault(VaultOptions(vault_path=target))

            assert launcher.state is LauncherState.SESSION_OPEN
            assert ctx.vault_name == "my-vault"
            assert ctx.paths is launcher.get_paths()
            assert launcher.windows() == [ctx.window]
            assert target.is_dir()
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_force_new_vault_removes_existing_content(self, launcher, tmp_path):
        target = tmp_path / "existing"
        target.mkdir()
        (target / "old.md").write_text("old", encoding="utf-8")

        await launcher.launch()
        try:
            await launcher.open_vault(VaultOptions(vault_path=target, force_new_vault=True))
            assert target.is_dir()
            assert not (target / "old.md").exists()
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_existing_content_preserved_without_force(self, launcher, tmp_path):
        target = tmp_path / "existing"
        target.mkdir()
        (target / "old.md").write_text("old", encoding="utf-8")

        await launcher.launch()
        try:
            await launcher.open_vault(VaultOptions(vault_path=target))
            assert (target / "old.md").read_text(encoding="utf-8") == "old"
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_rejected_open_raises_and_leaves_no_orphan(self, launcher, host, tmp_path):
        target = tmp_path / "locked-vault"
        host.rejected[str(target)] = "locked"

        await launcher.launch()
        try:
            before = launcher.windows()
            with pytest.raises(RemoteOperationError, match="locked") as exc_info:
                await launcher.open_vault(VaultOptions(vault_path=target))

            assert exc_info.value.reply == "locked"
            assert launcher.windows() == before
            assert len(launcher.windows()) == 1
            assert launcher.state is LauncherState.READY
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_temp_vault_created_and_removed_on_cleanup(self, launcher):
        await launcher.launch()
        ctx = await launcher.open_vault()
        vault_path = Path(ctx.vault_path)
        assert vault_path.name.startswith("obsidian-e2e-")
        assert vault_path.is_dir()

        await launcher.cleanup()
        assert not vault_path.exists()

    @pytest.mark.asyncio
    async def test_named_vault_is_sibling_of_current(self, launcher, tmp_path):
        await launcher.launch()
        try:
            first = tmp_path / "vaults" / "first"
            await launcher.open_vault(VaultOptions(vault_path=first))
            ctx = await launcher.open_vault(VaultOptions(name="second"))
            assert Path(ctx.vault_path) == first.parent / "second"
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_named_vault_from_starter_falls_back_to_home(self, launcher, monkeypatch, tmp_path):
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path / "home"))
        await launcher.launch()
        try:
            assert await launcher.get_vault_path("x") == str(tmp_path / "home" / "ObsidianVaults" / "x")
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_demo_plugin_copy_install(self, launcher, host, make_plugin, tmp_path):
        source = make_plugin("demo")
        await launcher.launch()
        try:
            ctx = await launcher.open_vault(VaultOptions(
                vault_path=tmp_path / "demo-vault",
                plugins=[TestPlugin(path=source, plugin_id="demo")],
            ))

            registry = tmp_path / "demo-vault" / ".obsidian" / COMMUNITY_PLUGINS_FILE
            assert json.loads(registry.read_text(encoding="utf-8")) == ["demo"]
            assert await ObsidianPageObject(ctx).is_plugin_enabled("demo") is True
            assert ctx.plugin_handle_map.plugin_ids == ("demo",)
            assert await ctx.plugin_handle_map.keys() == ["demo"]
            assert len(launcher.windows()) == 1
            assert ctx.window.reloads == 1
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_plugin_that_fails_to_enable_is_left_out_of_handles(self, launcher, host, make_plugin, tmp_path):
        host.refuse_enable = {"broken"}
        await launcher.launch()
        try:
            ctx = await launcher.open_vault(VaultOptions(
                vault_path=tmp_path / "mixed-vault",
                plugins=[
                    TestPlugin(path=make_plugin("good"), plugin_id="good"),
                    TestPlugin(path=make_plugin("broken"), plugin_id="broken"),
                ],
            ))

            assert ctx.plugin_handle_map.plugin_ids == ("good",)
            assert await ctx.plugin_handle_map.keys() == ["good"]
        finally:
            await launcher.cleanup()


class TestSandbox:
    @pytest.mark.asyncio
    async def test_sandbox_path_round_trip(self, launcher, host):
        await launcher.launch()
        try:
            ctx = await launcher.open_sandbox()
            assert ctx.vault_name == SANDBOX_VAULT_NAME
            assert ctx.vault_path == str(host.sandbox_path)
            assert await launcher.ipc.get_sandbox_path() == ctx.vault_path
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_sandbox_without_plugins_writes_no_registry(self, launcher, host):
        await launcher.launch()
        try:
            ctx = await launcher.open_sandbox(VaultOptions())
            assert not (Path(ctx.vault_path) / ".obsidian" / COMMUNITY_PLUGINS_FILE).exists()
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_sandbox_ignored_under_ci(self, launcher, host, monkeypatch):
        monkeypatch.setenv("CI", "true")
        await launcher.launch()
        try:
            ctx = await launcher.open_vault(VaultOptions(use_sandbox=True))
            assert ctx.vault_name != SANDBOX_VAULT_NAME
            assert not any(call[0] == "sandbox" for call in host.ipc_calls)
        finally:
            await launcher.cleanup()


# =============================================================================
# windows
# =============================================================================

class TestWindowSet:
    @pytest.mark.asyncio
    async def test_single_window_after_every_transition(self, launcher, tmp_path):
        await launcher.launch()
        try:
            await launcher.open_vault(VaultOptions(vault_path=tmp_path / "a"))
            assert len(launcher.windows()) == 1

            starter = await launcher.open_starter()
            assert launcher.windows() == [starter.window]
            assert launcher.state is LauncherState.READY

            await launcher.open_sandbox()
            assert len(launcher.windows()) == 1

            await launcher.open_vault(VaultOptions(vault_path=tmp_path / "b"))
            assert len(launcher.windows()) == 1
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_ensure_single_window_keeps_newest(self, launcher, host, tmp_path):
        await launcher.launch()
        try:
            host.open_window("vault", tmp_path, "extra-1")
            newest = host.open_window("vault", tmp_path, "extra-2")

            page = await launcher.ensure_single_window()

            assert page is newest
            assert launcher.windows() == [newest]
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_action_without_window_times_out(self, launcher):
        await launcher.launch()
        try:
            async def _noop():
                return None

            with pytest.raises(ReadinessTimeoutError) as exc_info:
                await launcher.execute_action_and_wait_for_new_window(_noop)
            assert exc_info.value.predicate == "new-window"
            assert len(launcher.windows()) == 1
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_failed_action_closes_windows_it_opened(self, launcher, host):
        await launcher.launch()
        try:
            before = launcher.windows()

            async def _opens_then_fails():
                host.open_window("starter")
                raise RuntimeError("boom")

            with pytest.raises(RuntimeError, match="boom"):
                await launcher.execute_action_and_wait_for_new_window(_opens_then_fails)
            assert launcher.windows() == before
        finally:
            await launcher.cleanup()


# =============================================================================
# handles and cleanup
# =============================================================================

class TestCleanup:
    @pytest.mark.asyncio
    async def test_handles_invalidated_when_session_window_closes(self, launcher, make_plugin, tmp_path):
        await launcher.launch()
        try:
            ctx = await launcher.open_vault(VaultOptions(
                vault_path=tmp_path / "v",
                plugins=[TestPlugin(path=make_plugin("p1"), plugin_id="p1")],
            ))
            handle_map = ctx.plugin_handle_map
            assert handle_map.owner_pid == 4242

            await launcher.open_starter()

            assert handle_map.is_valid is False
            with pytest.raises(StaleHandleError):
                await handle_map.get("p1")
        finally:
            await launcher.cleanup()

    @pytest.mark.asyncio
    async def test_cleanup_continues_after_failures(self, launcher, host, tmp_path):
        await launcher.launch()
        ctx = await launcher.open_vault(VaultOptions(vault_path=tmp_path / "v"))
        ctx.plugin_handle_map._handle.fail_dispose = True
        ctx.window.fail_close = True
        host.processes[0].fail_close = True
        temp_dir = launcher.temp_user_data_dir

        await launcher.cleanup()

        assert launcher.state is LauncherState.CLOSED
        assert not temp_dir.exists()
        assert ctx.plugin_handle_map.is_valid is False

    @pytest.mark.asyncio
    async def test_cleanup_is_idempotent_and_safe_before_launch(self, resolved_paths, fast_timeouts, host):
        launcher = ObsidianTestLauncher(resolved_paths, timeouts=fast_timeouts, process_factory=host.process_factory)
        await launcher.cleanup()
        await launcher.cleanup()
        assert launcher.state is LauncherState.CLOSED

    @pytest.mark.asyncio
    async def test_async_context_manager(self, resolved_paths, fast_timeouts, host):
        async with ObsidianTestLauncher(
            resolved_paths, timeouts=fast_timeouts, process_factory=host.process_factory
        ) as launcher:
            assert launcher.state is LauncherState.READY
        assert launcher.state is LauncherState.CLOSED
        assert host.processes[0].closed is True
