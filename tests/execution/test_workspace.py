"""Tests for WorkspaceManager — create, script writing and removal."""

from __future__ import annotations

import os
import stat

import pytest

from berth.execution.workspace import WorkspaceManager


@pytest.fixture()
def manager(workspace_root):
    return WorkspaceManager(workspace_root)


class TestCreate:
    def test_unique_directories(self, manager, workspace_root):
        first, second = manager.create(), manager.create()
        assert first != second
        assert first.is_dir() and second.is_dir()
        assert first.parent == workspace_root
        assert first.name.startswith("berth-workspace-")

    def test_custom_prefix(self, manager):
        assert manager.create(prefix="workspace").name.startswith("workspace")

    def test_root_created_on_demand(self, tmp_path):
        manager = WorkspaceManager(tmp_path / "nested" / "root")
        assert manager.create().is_dir()


class TestWriteScript:
    def test_posix_script(self, manager):
        ws = manager.create()
        script = manager.write_script(ws, "job.sh", ["echo a", "echo b"], "\n", executable=True)
        assert script.read_bytes() == b"echo a\necho b\n"
        assert script.stat().st_mode & stat.S_IXUSR

    def test_windows_script_keeps_crlf(self, manager):
        ws = manager.create()
        script = manager.write_script(ws, "job.bat", ["echo a", "echo b"], "\r\n")
        assert script.read_bytes() == b"echo a\r\necho b\r\n"

    def test_empty_commands(self, manager):
        ws = manager.create()
        assert manager.write_script(ws, "job.sh", [], "\n").read_bytes() == b""


class TestDestroy:
    def test_removes_tree(self, manager):
        ws = manager.create()
        (ws / "src").mkdir()
        (ws / "src" / "file.txt").write_text("x")
        assert manager.destroy(ws) is True
        assert not ws.exists()

    def test_read_only_files(self, manager):
        ws = manager.create()
        locked = ws / "locked.txt"
        locked.write_text("x")
        os.chmod(locked, stat.S_IREAD)
        assert manager.destroy(ws) is True
        assert not ws.exists()

    def test_missing_is_fine(self, manager, tmp_path):
        assert manager.destroy(tmp_path / "gone") is True

    def test_failure_reported_not_raised(self, manager, monkeypatch):
        ws = manager.create()

        def fail(*args, **kwargs):
            raise PermissionError("denied")

        monkeypatch.setattr("berth.execution.workspace.shutil.rmtree", fail)
        assert manager.destroy(ws) is False
