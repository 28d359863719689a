"""Tests for build manager."""

import os
from unittest.mock import patch

import pytest

from content_builder_mcp.build.manager import BuildManager
from content_builder_mcp.build.session import TOOL_IDENTITY, ContentBuilder
from content_builder_mcp.build.state import BuildState


class TestBuildManager:
    """Tests for BuildManager singleton."""

    def test_singleton(self, build_manager):
        """Test that BuildManager is singleton."""
        assert BuildManager() is build_manager

    def test_salts_increase(self, build_manager):
        """Test salts start at 1 and are never reused."""
        assert build_manager.next_salt() == 1
        assert build_manager.next_salt() == 2
        assert BuildManager().next_salt() == 3

    def test_create_session(self, build_manager, fake_engine, tmp_path):
        """Test a session gets its own <base>/<pid>/<salt> workspace."""
        builder = build_manager.create_session(engine=fake_engine, temp_root=tmp_path)

        assert isinstance(builder, ContentBuilder)
        ws = builder.workspace
        assert ws.base == tmp_path / TOOL_IDENTITY
        assert ws.process_id == os.getpid()
        assert ws.salt == 1
        assert ws.session_dir.is_dir()

    def test_sessions_get_distinct_salts(self, build_manager, fake_engine, tmp_path):
        """Test two sessions in one process never share a directory."""
        first = build_manager.create_session(engine=fake_engine, temp_root=tmp_path)
        second = build_manager.create_session(engine=fake_engine, temp_root=tmp_path)

        assert first.workspace.session_dir != second.workspace.session_dir
        assert first.workspace.process_dir == second.workspace.process_dir

    def test_create_session_reaps_dead_process(self, build_manager, fake_engine, tmp_path):
        """Test that workspaces of dead processes are removed on creation."""
        stale = tmp_path / "Tool" / "999999" / "1"
        stale.mkdir(parents=True)

        with patch(
            "content_builder_mcp.build.cleanup.is_process_alive",
            side_effect=lambda pid: pid == os.getpid(),
        ):
            builder = build_manager.create_session(
                engine=fake_engine, temp_root=tmp_path, tool_identity="Tool"
            )

        assert not (tmp_path / "Tool" / "999999").exists()
        assert builder.workspace.session_dir.is_dir()

    def test_create_session_keeps_live_process(self, build_manager, fake_engine, tmp_path):
        """Test that workspaces of running processes survive."""
        live = tmp_path / "Tool" / "424242" / "1"
        live.mkdir(parents=True)

        with patch("content_builder_mcp.build.cleanup.is_process_alive", return_value=True):
            build_manager.create_session(engine=fake_engine, temp_root=tmp_path, tool_identity="Tool")

        assert live.is_dir()

    def test_get_session(self, build_manager, fake_engine, tmp_path):
        """Test lookup by salt, and closed sessions disappearing."""
        builder = build_manager.create_session(engine=fake_engine, temp_root=tmp_path)
        salt = builder.workspace.salt

        assert build_manager.get_session(salt) is builder
        builder.close()
        assert build_manager.get_session(salt) is None
        assert build_manager.get_session(12345) is None

    def test_get_all_states(self, build_manager, fake_engine, tmp_path):
        """Test states of open sessions."""
        builder = build_manager.create_session(engine=fake_engine, temp_root=tmp_path)
        builder.build()

        states = build_manager.get_all_states()

        assert states == {builder.workspace.salt: BuildState.COMPLETED}

    def test_close_all(self, build_manager, fake_engine, tmp_path):
        """Test all sessions are closed and their workspaces removed."""
        sessions = [
            build_manager.create_session(engine=fake_engine, temp_root=tmp_path)
            for _ in range(2)
        ]

        assert build_manager.close_all() == 2

        assert all(s.is_closed for s in sessions)
        assert not (tmp_path / TOOL_IDENTITY).exists()
        assert build_manager.close_all() == 0

    def test_to_dict(self, build_manager, fake_engine, tmp_path):
        """Test manager status dict."""
        builder = build_manager.create_session(engine=fake_engine, temp_root=tmp_path)

        d = build_manager.to_dict()

        entry = d["sessions"][str(builder.workspace.salt)]
        assert entry["state"] == "idle"
        assert entry["lastResult"] is None
        assert entry["workspace"]["sessionDir"] == str(builder.workspace.session_dir)

    def test_junk_numeric_directory_does_not_break_creation(
        self, build_manager, fake_engine, tmp_path
    ):
        """Test an oversized numeric directory under base is ignored."""
        junk = tmp_path / "Tool" / "99999999999999999999"
        junk.mkdir(parents=True)

        builder = build_manager.create_session(
            engine=fake_engine, temp_root=tmp_path, tool_identity="Tool"
        )

        assert builder.workspace.session_dir.is_dir()
        assert junk.is_dir()

    def test_failed_setup_removes_workspace(self, build_manager, fake_engine, tmp_path):
        """Test the new workspace is deleted when reaping raises."""
        with patch(
            "content_builder_mcp.build.manager.reap_stale_workspaces",
            side_effect=RuntimeError("reaper broke"),
        ):
            with pytest.raises(RuntimeError):
                build_manager.create_session(
                    engine=fake_engine, temp_root=tmp_path, tool_identity="Tool"
                )

        assert not (tmp_path / "Tool").exists()
        assert build_manager.get_all_states() == {}
