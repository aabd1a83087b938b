"""
CLI: ``berth run`` and ``berth test`` — execute jobs and test configuration.

Usage::

    berth run alpine:3.20 -c "echo hello" -c "uname -a"
    berth run python:3.12 -c "pytest -q" --source ./myproject
    berth run node:20 -c "npm test" --git https://github.com/acme/app.git --ref main

    berth test alpine:3.20
    berth test myapp/image --registry myreg.local --run-options "-m 2g"
"""

from __future__ import annotations

import threading
from pathlib import Path

import typer
from rich.markup import escape

from berth.cli.utils import ConsoleJobLog, console, err_console, settings_or_exit
from berth.core.errors import ConfigError

EXIT_CANCELLED = 130


def run(
    image: str = typer.Argument(..., help="Environment image to run the commands in."),
    command: list[str] = typer.Option(
        ..., "--command", "-c", help="Command line to run. Repeatable, runs in order.",
    ),
    source: Path | None = typer.Option(
        None, "--source", "-s", help="Local directory copied into the workspace.",
        exists=True, file_okay=False, dir_okay=True,
    ),
    git: str | None = typer.Option(None, "--git", help="Git repository cloned into the workspace."),
    ref: str | None = typer.Option(None, "--ref", help="Git ref to check out (with --git)."),
    registry: str | None = typer.Option(None, "--registry", help="Docker registry to pull from."),
    run_options: str | None = typer.Option(None, "--run-options", help="Extra docker run options."),
    capacity: int | None = typer.Option(None, "--capacity", min=1, help="Max concurrent jobs."),
    docker: str | None = typer.Option(None, "--docker", help="Docker executable."),
    json_out: bool = typer.Option(False, "--json", help="Print the job result as JSON."),
) -> None:
    """Run commands inside a container and stream their output.

    Ctrl-C stops the container; the workspace is still removed.
    """
    from berth.execution import DirectorySnapshot, DockerExecutor, GitSnapshot, JobRequest, JobState

    if source is not None and git is not None:
        err_console.print("[red]Error:[/red] --source and --git are mutually exclusive")
        raise typer.Exit(code=2)

    settings = settings_or_exit(
        docker_registry=registry,
        run_options=run_options,
        capacity=capacity,
        docker_executable=docker,
    )
    job_log = ConsoleJobLog()

    cancel = threading.Event()
    snapshot = None
    if source is not None:
        snapshot = DirectorySnapshot(source)
    elif git is not None:
        snapshot = GitSnapshot(git, ref, on_output=job_log.info, cancel=cancel)

    executor = DockerExecutor(settings)
    request = JobRequest(image=image, commands=tuple(command), snapshot=snapshot)
    try:
        handle = executor.submit(request, job_log, cancel)
    except ConfigError as e:
        err_console.print(f"[bold red]Configuration Error:[/bold red] {escape(e.message)}")
        raise typer.Exit(code=2) from e

    try:
        while True:
            try:
                result = handle.result(timeout=0.5)
                break
            except TimeoutError:
                continue
    except KeyboardInterrupt:
        err_console.print("[yellow]Cancelling job...[/yellow]")
        handle.cancel()
        result = handle.result()

    if json_out:
        typer.echo(result.model_dump_json(indent=2))
    elif result.state == JobState.COMPLETED:
        console.print(f"[green]✓[/green] Job {result.instance_id} completed")
    elif result.state == JobState.CANCELLED:
        err_console.print(f"[yellow]Job {result.instance_id} cancelled[/yellow]")
    else:
        err_console.print(f"[bold red]✗ Job {result.instance_id} failed:[/bold red] {escape(result.message or '')}")

    if result.state == JobState.CANCELLED:
        raise typer.Exit(code=EXIT_CANCELLED)
    if result.state != JobState.COMPLETED:
        raise typer.Exit(code=1)


def test(
    image: str = typer.Argument(..., help="Image to test the configuration against."),
    registry: str | None = typer.Option(None, "--registry", help="Docker registry to pull from."),
    run_options: str | None = typer.Option(None, "--run-options", help="Extra docker run options."),
    docker: str | None = typer.Option(None, "--docker", help="Docker executable."),
    json_out: bool = typer.Option(False, "--json", help="Print the outcome as JSON."),
) -> None:
    """Test the executor configuration by running a trivial container."""
    from berth.execution import DockerExecutor, TestProbe

    settings = settings_or_exit(
        docker_registry=registry,
        run_options=run_options,
        docker_executable=docker,
    )
    outcome = DockerExecutor(settings).test(TestProbe(image=image), ConsoleJobLog())

    if json_out:
        typer.echo(outcome.model_dump_json(indent=2))
    elif outcome.success:
        console.print(f"[green]✓ Test passed:[/green] {escape(outcome.message)}")
    else:
        err_console.print(f"[bold red]✗ Test failed:[/bold red] {escape(outcome.message)}", highlight=False)

    if not outcome.success:
        raise typer.Exit(code=1)
