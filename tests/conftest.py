"""
Shared pytest fixtures for berth tests.

This module provides:
- Environment isolation from ``BERTH_*`` variables and ``.env`` files
- Settings, fake driver and executor fixtures wired to a temp workspace root
- A recording job log
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from berth.core.settings import ExecutorSettings
from berth.execution import DockerExecutor, WorkspaceManager
from berth.framework.logging import clear_context
from tests._support.fake_driver import FakeDriver


class RecordingJobLog:
    """Job log that keeps every line, tagged with its level."""

    def __init__(self) -> None:
        self.lines: list[tuple[str, str]] = []

    def info(self, message: str) -> None:
        self.lines.append(("info", message))

    def warning(self, message: str) -> None:
        self.lines.append(("warning", message))

    def error(self, message: str) -> None:
        self.lines.append(("error", message))

    def messages(self, level: str | None = None) -> list[str]:
        return [msg for lvl, msg in self.lines if level is None or lvl == level]


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Keep host configuration out of the tests."""
    for key in list(os.environ):
        if key.startswith("BERTH_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    clear_context()


@pytest.fixture()
def workspace_root(tmp_path: Path) -> Path:
    root = tmp_path / "workspaces"
    root.mkdir()
    return root


@pytest.fixture()
def settings(workspace_root: Path) -> ExecutorSettings:
    return ExecutorSettings(capacity=2, workspace_root=workspace_root)


@pytest.fixture()
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture()
def job_log() -> RecordingJobLog:
    return RecordingJobLog()


@pytest.fixture()
def executor(settings: ExecutorSettings, driver: FakeDriver, workspace_root: Path) -> DockerExecutor:
    return DockerExecutor(settings, driver=driver, workspaces=WorkspaceManager(workspace_root))
