"""Source snapshots — materialize versioned sources into a job workspace.

A snapshot is anything with ``checkout(target_dir)``. The engine calls it
once, after the workspace exists and before any container activity; any
exception it raises is fatal for the job.

Implementations:
    DirectorySnapshot  copies a local directory tree (without ``.git``)
    GitSnapshot        clones a repository and checks out a ref
"""

from __future__ import annotations

import shutil
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

from berth.core.errors import CheckoutError
from berth.execution.process import LineSink, ProcessDriver


@runtime_checkable
class SourceSnapshot(Protocol):
    """Versioned source content that can be checked out into a directory."""

    def checkout(self, target_dir: Path) -> None:
        """Materialize the sources into the existing ``target_dir``."""
        ...


class DirectorySnapshot:
    """Copies a local source tree into the workspace."""

    def __init__(self, source: str | Path, ignore: tuple[str, ...] = (".git",)) -> None:
        self.source = Path(source)
        self.ignore = ignore

    def checkout(self, target_dir: Path) -> None:
        if not self.source.is_dir():
            raise CheckoutError(f"Source directory does not exist: {self.source}")
        try:
            shutil.copytree(
                self.source,
                target_dir,
                ignore=shutil.ignore_patterns(*self.ignore),
                dirs_exist_ok=True,
                symlinks=True,
            )
        except OSError as exc:
            raise CheckoutError(f"Failed to copy sources from {self.source}: {exc}", cause=exc) from exc

    def __repr__(self) -> str:
        return f"DirectorySnapshot({str(self.source)!r})"


class GitSnapshot:
    """Clones a git repository into the workspace."""

    def __init__(
        self,
        url: str,
        ref: str | None = None,
        *,
        driver: ProcessDriver | None = None,
        git: str = "git",
        on_output: LineSink | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self.url = url
        self.ref = ref
        self.git = git
        self._driver = driver or ProcessDriver()
        self._on_output = on_output
        self._cancel = cancel

    def checkout(self, target_dir: Path) -> None:
        self._driver.execute(
            [self.git, "clone", "--quiet", self.url, str(target_dir)],
            self._on_output,
            self._on_output,
            cancel=self._cancel,
        ).check_ok(CheckoutError)
        if self.ref:
            self._driver.execute(
                [self.git, "-C", str(target_dir), "checkout", "--quiet", self.ref],
                self._on_output,
                self._on_output,
                cancel=self._cancel,
            ).check_ok(CheckoutError)

    def __repr__(self) -> str:
        return f"GitSnapshot({self.url!r}, ref={self.ref!r})"
