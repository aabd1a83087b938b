"""Process driver — run an external command and stream its output.

Every interaction with the container runtime (login, pull, inspect, run,
stop) and with git goes through :class:`ProcessDriver`. It launches the
command, feeds optional stdin, hands stdout and stderr to line sinks as the
lines arrive, and supports cancellation through a caller-owned
``threading.Event``.

Architecture:

    .. code-block:: text

        ProcessDriver.execute(argv, on_stdout, on_stderr, stdin, killer, cancel)
        ┌──────────────────────────────────────────────────────────────┐
        │  subprocess.Popen ──► stdout reader thread ──► on_stdout(line)│
        │                   ──► stderr reader thread ──► on_stderr(line)│
        │  stdin bytes ─────► written once, pipe closed                 │
        │                                                               │
        │  wait loop:  exited? ──► ExecutionResult(exit_code, tail)     │
        │              cancel set? ──► killer(process) exactly once     │
        │                              then wait kill_timeout           │
        │                              then process.kill()              │
        └──────────────────────────────────────────────────────────────┘

The driver is blocking: the calling worker stays inside ``execute`` until
the process has exited and both output streams are drained.
"""

from __future__ import annotations

import subprocess
import threading
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import IO

from berth.core.errors import DockerNotFoundError, ProcessError
from berth.framework.logging import get_logger

logger = get_logger(__name__)

LineSink = Callable[[str], None]
Killer = Callable[[subprocess.Popen], None]

_STDERR_TAIL_LINES = 20


def _discard(line: str) -> None:
    pass


def terminate_process(process: subprocess.Popen) -> None:
    """Default killer: ask the process to terminate."""
    try:
        process.terminate()
    except ProcessLookupError:
        pass


@dataclass
class ExecutionResult:
    """Outcome of one driven command."""

    argv: list[str]
    exit_code: int
    stderr_tail: list[str] = field(default_factory=list)
    killed: bool = False
    forced: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def command_line(self) -> str:
        return " ".join(self.argv)

    def check_ok(self, error_type: type[ProcessError] = ProcessError, message: str | None = None) -> ExecutionResult:
        """Raise ``error_type`` if the command exited non-zero.

        The error message names the command and carries the last stderr
        lines; the exit code lands in the error context.
        """
        if self.exit_code == 0:
            return self
        text = message or f"Command failed (exit {self.exit_code}): {self.command_line}"
        if self.stderr_tail:
            text += "\n" + "\n".join(self.stderr_tail)
        raise error_type(text, exit_code=self.exit_code).with_context(command=self.command_line)


class ProcessDriver:
    """Launches external commands with line-by-line output streaming."""

    def __init__(self, *, kill_timeout_seconds: float = 30.0, poll_interval: float = 0.1) -> None:
        """Initialize the driver.

        Args:
            kill_timeout_seconds: Seconds to wait after the killer ran
                before the local process is force-killed.
            poll_interval: Seconds between exit/cancellation checks.
        """
        self._kill_timeout = kill_timeout_seconds
        self._poll_interval = poll_interval

    def execute(
        self,
        argv: Sequence[str],
        on_stdout: LineSink | None = None,
        on_stderr: LineSink | None = None,
        *,
        stdin: bytes | None = None,
        killer: Killer | None = None,
        cancel: threading.Event | None = None,
        redact: Sequence[str] = (),
    ) -> ExecutionResult:
        """Run ``argv`` to completion.

        Args:
            argv: Command and arguments.
            on_stdout: Called with each stdout line (newline stripped).
            on_stderr: Called with each stderr line (newline stripped).
            stdin: Bytes written to the process's stdin, then closed.
            killer: Invoked exactly once if ``cancel`` becomes set while
                the process is running. Defaults to ``terminate()``.
            cancel: Event the caller sets to request cancellation.
            redact: Strings masked in the recorded command line.

        Raises:
            DockerNotFoundError: If the executable cannot be launched.
        """
        argv = list(argv)
        on_stdout = on_stdout or _discard
        on_stderr = on_stderr or _discard
        killer = killer or terminate_process
        recorded = [_mask(arg, redact) for arg in argv]
        tail: deque[str] = deque(maxlen=_STDERR_TAIL_LINES)

        def stderr_sink(line: str) -> None:
            tail.append(line)
            on_stderr(line)

        logger.debug("process.exec", cmd=" ".join(recorded))
        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise DockerNotFoundError(
                f"Executable not found: {argv[0]}. Install it or configure its path.",
                cause=exc,
            ) from exc
        except PermissionError as exc:
            raise DockerNotFoundError(f"Executable is not runnable: {argv[0]}", cause=exc) from exc

        readers = [
            threading.Thread(target=_pump, args=(process.stdout, on_stdout), daemon=True),
            threading.Thread(target=_pump, args=(process.stderr, stderr_sink), daemon=True),
        ]
        for reader in readers:
            reader.start()

        if stdin is not None:
            _feed(process.stdin, stdin)

        killed, forced = self._wait(process, killer, cancel)

        for reader in readers:
            reader.join()

        return ExecutionResult(
            argv=recorded,
            exit_code=process.returncode,
            stderr_tail=list(tail),
            killed=killed,
            forced=forced,
        )

    def _wait(
        self,
        process: subprocess.Popen,
        killer: Killer,
        cancel: threading.Event | None,
    ) -> tuple[bool, bool]:
        """Wait for exit; run the killer once on cancellation.

        Returns:
            ``(killed, forced)``: whether the killer ran, and whether the
            process then had to be force-killed.
        """
        while process.poll() is None:
            if cancel is not None and cancel.is_set():
                killer(process)
                try:
                    process.wait(timeout=self._kill_timeout)
                except subprocess.TimeoutExpired:
                    logger.warning("process.kill", pid=process.pid, timeout_seconds=self._kill_timeout)
                    process.kill()
                    process.wait()
                    return True, True
                return True, False
            if cancel is not None:
                cancel.wait(self._poll_interval)
            else:
                try:
                    process.wait(timeout=self._poll_interval)
                except subprocess.TimeoutExpired:
                    pass
        return False, False


def _pump(stream: IO[bytes] | None, sink: LineSink) -> None:
    """Forward each line of ``stream`` to ``sink`` until EOF."""
    if stream is None:
        return
    with stream:
        for raw in iter(stream.readline, b""):
            sink(raw.decode("utf-8", errors="replace").rstrip("\r\n"))


def _feed(stream: IO[bytes] | None, data: bytes) -> None:
    if stream is None:
        return
    try:
        stream.write(data)
        stream.flush()
    except BrokenPipeError:
        pass
    finally:
        try:
            stream.close()
        except BrokenPipeError:
            pass


def _mask(arg: str, redact: Sequence[str]) -> str:
    for secret in redact:
        if secret and secret in arg:
            arg = arg.replace(secret, "***")
    return arg
