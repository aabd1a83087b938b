"""
Root Typer application for the berth CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="berth",
    help="berth — run CI job commands in capacity-bounded docker containers.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from berth import __version__

        typer.echo(f"berth {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """berth CLI — run jobs, test and inspect executor configuration."""


# ── Sub-command registration ─────────────────────────────────────────────

from berth.cli.config import app as config_app  # noqa: E402
from berth.cli.jobs import run, test  # noqa: E402

app.command("run")(run)
app.command("test")(test)
app.add_typer(config_app, name="config", help="Configuration management.")
