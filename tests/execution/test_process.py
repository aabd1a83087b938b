"""Tests for ProcessDriver — real subprocesses driven through the Python interpreter."""

from __future__ import annotations

import sys
import threading
import time

import pytest

from berth.core.errors import ContainerRunError, DockerNotFoundError, ProcessError
from berth.execution.process import ExecutionResult, ProcessDriver

PY = sys.executable


@pytest.fixture()
def driver():
    return ProcessDriver(kill_timeout_seconds=5, poll_interval=0.01)


class TestExecute:
    def test_streams_stdout_lines(self, driver):
        lines = []
        result = driver.execute([PY, "-c", "print('one'); print('two')"], lines.append)
        assert result.exit_code == 0
        assert result.ok
        assert lines == ["one", "two"]

    def test_streams_stderr_and_keeps_tail(self, driver):
        err = []
        script = "import sys\nfor i in range(30): print(f'e{i}', file=sys.stderr)\nsys.exit(3)"
        result = driver.execute([PY, "-c", script], None, err.append)
        assert result.exit_code == 3
        assert len(err) == 30
        assert result.stderr_tail == [f"e{i}" for i in range(10, 30)]

    def test_crlf_stripped(self, driver):
        lines = []
        driver.execute([PY, "-c", "import sys; sys.stdout.write('a\\r\\nb\\r\\n')"], lines.append)
        assert lines == ["a", "b"]

    def test_stdin_delivered(self, driver):
        lines = []
        result = driver.execute(
            [PY, "-c", "import sys; print(sys.stdin.read().upper())"],
            lines.append,
            stdin=b"secret",
        )
        assert result.exit_code == 0
        assert lines == ["SECRET"]

    def test_redacted_command_line(self, driver):
        result = driver.execute([PY, "-c", "pass", "token=hunter2"], redact=["hunter2"])
        assert "hunter2" not in result.command_line
        assert "token=***" in result.command_line

    def test_missing_executable(self, driver):
        with pytest.raises(DockerNotFoundError, match="not found"):
            driver.execute(["/nonexistent/berth-docker"])


class TestCheckOk:
    def test_ok_returns_self(self):
        result = ExecutionResult(argv=["docker", "pull", "x"], exit_code=0)
        assert result.check_ok() is result

    def test_failure_raises_typed_error(self):
        result = ExecutionResult(argv=["docker", "run", "x"], exit_code=2, stderr_tail=["boom"])
        with pytest.raises(ContainerRunError) as exc_info:
            result.check_ok(ContainerRunError)
        err = exc_info.value
        assert err.exit_code == 2
        assert "exit 2" in err.message
        assert "boom" in err.message
        assert err.context.command == "docker run x"

    def test_default_error_type(self):
        with pytest.raises(ProcessError):
            ExecutionResult(argv=["x"], exit_code=1).check_ok()


class TestCancellation:
    def test_killer_invoked_once(self, driver):
        cancel = threading.Event()
        calls = []

        def killer(process):
            calls.append(process.pid)
            process.terminate()

        timer = threading.Timer(0.2, cancel.set)
        timer.start()
        started = time.monotonic()
        result = driver.execute(
            [PY, "-c", "import time; time.sleep(30)"],
            killer=killer,
            cancel=cancel,
        )
        timer.cancel()
        assert result.killed is True
        assert result.forced is False
        assert len(calls) == 1
        assert time.monotonic() - started < 10

    def test_force_kill_after_timeout(self):
        driver = ProcessDriver(kill_timeout_seconds=0.2, poll_interval=0.01)
        cancel = threading.Event()
        cancel.set()
        calls = []
        result = driver.execute(
            [PY, "-c", "import time; time.sleep(30)"],
            killer=calls.append,
            cancel=cancel,
        )
        assert result.killed is True
        assert result.forced is True
        assert len(calls) == 1
        assert result.exit_code != 0

    def test_no_cancel_not_killed(self, driver):
        result = driver.execute([PY, "-c", "pass"], cancel=threading.Event())
        assert result.killed is False
