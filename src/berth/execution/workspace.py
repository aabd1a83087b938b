"""Workspace manager — ephemeral host directories bind-mounted into jobs.

Each job execution gets a fresh, uniquely named directory. The source
snapshot is checked out into it and the generated launcher script is
written next to the sources. After the job, the tree is removed.

``destroy()`` never raises: a workspace that cannot be deleted is logged as
a warning so that it does not mask the job's own result.
"""

from __future__ import annotations

import os
import shutil
import stat
import tempfile
from collections.abc import Iterable
from pathlib import Path

from berth.framework.logging import get_logger

logger = get_logger(__name__)


class WorkspaceManager:
    """Creates, populates and removes job workspaces."""

    def __init__(self, root: str | Path | None = None, prefix: str = "berth-workspace-") -> None:
        """Initialize the manager.

        Args:
            root: Parent directory for workspaces. ``None`` uses the
                system temp directory.
            prefix: Directory name prefix for generated workspaces.
        """
        self._root = Path(root) if root else None
        self._prefix = prefix

    def create(self, prefix: str | None = None) -> Path:
        """Create a fresh, uniquely named workspace directory."""
        if self._root is not None:
            self._root.mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=prefix or self._prefix, dir=self._root))
        logger.debug("workspace.created", path=str(path))
        return path

    def write_script(
        self,
        workspace: Path,
        file_name: str,
        lines: Iterable[str],
        line_terminator: str,
        *,
        executable: bool = False,
    ) -> Path:
        """Write ``lines`` joined by ``line_terminator`` into the workspace.

        Every line, including the last, is followed by the terminator.
        """
        script = Path(workspace) / file_name
        content = "".join(f"{line}{line_terminator}" for line in lines)
        with open(script, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
        if executable:
            mode = script.stat().st_mode
            script.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    def destroy(self, workspace: Path) -> bool:
        """Recursively remove the workspace.

        Returns:
            True if the directory is gone afterwards, False if deletion
            failed (the failure is logged as a warning).
        """
        try:
            shutil.rmtree(workspace, onexc=_make_writable_and_retry)
        except FileNotFoundError:
            return True
        except OSError as exc:
            logger.warning("workspace.delete_failed", path=str(workspace), error=str(exc))
            return False
        logger.debug("workspace.deleted", path=str(workspace))
        return True


def _make_writable_and_retry(func, path, exc) -> None:
    """Clear read-only bits (checked-out git objects) and retry once."""
    if isinstance(exc, FileNotFoundError):
        return
    os.chmod(path, stat.S_IWRITE | stat.S_IREAD | stat.S_IEXEC)
    func(path)
