"""
CLI utility helpers — consoles, settings loading and job output.
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from berth.core.settings import ExecutorSettings, load_settings
from berth.framework.logging import configure_logging

console = Console()
err_console = Console(stderr=True)


class ConsoleJobLog:
    """Job log that prints streamed job output to the terminal."""

    def __init__(self, out: Console | None = None, err: Console | None = None) -> None:
        self._out = out or console
        self._err = err or err_console

    def info(self, message: str) -> None:
        self._out.print(message, markup=False, highlight=False)

    def warning(self, message: str) -> None:
        self._err.print(message, style="yellow", markup=False, highlight=False)

    def error(self, message: str) -> None:
        self._err.print(message, style="red", markup=False, highlight=False)


def settings_or_exit(**overrides: Any) -> ExecutorSettings:
    """Load settings and configure logging, exiting with code 2 on invalid configuration."""
    try:
        settings = load_settings(**overrides)
    except ValidationError as e:
        err_console.print("[bold red]Configuration Error[/bold red]")
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"]) or "settings"
            err_console.print(f"  {location}: {escape(str(error['msg']))}", highlight=False)
        raise typer.Exit(code=2) from e
    configure_logging(level=settings.log_level, format=settings.log_format)
    return settings
