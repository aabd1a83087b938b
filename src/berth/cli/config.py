"""
CLI: ``berth config`` — configuration inspection and validation.
"""

from __future__ import annotations

import json

import typer
from rich.markup import escape

from berth.cli.utils import console, err_console

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config(
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """Show the effective executor settings (password masked)."""
    from berth.cli.utils import settings_or_exit

    data = settings_or_exit().redacted()

    if json_out:
        console.print_json(json.dumps(data, default=str))
        return

    from rich.table import Table

    table = Table(title="Executor Settings")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in sorted(data.items()):
        table.add_row(key, "" if value is None else str(value))
    console.print(table)


@app.command("validate")
def validate_config() -> None:
    """Validate configuration and list every problem found."""
    from pydantic import ValidationError

    from berth.core.settings import ExecutorSettings

    try:
        settings = ExecutorSettings()
    except ValidationError as e:
        err_console.print("[bold red]Configuration Error[/bold red]")
        for error in e.errors():
            for message in str(error["msg"]).removeprefix("Value error, ").split("; "):
                err_console.print(f"  • {escape(message)}", highlight=False)
        raise typer.Exit(1) from e

    console.print(f"[bold]Capacity:[/bold] {settings.capacity}")
    console.print(f"[bold]Registry:[/bold] {settings.docker_registry or 'official'}")
    console.print("[green]✓ Configuration is valid[/green]")
