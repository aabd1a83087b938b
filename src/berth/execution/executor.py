"""Docker executor — capacity-bounded container jobs on the local host.

``DockerExecutor`` is the facade callers use. It owns, for its whole
lifetime, one settings object, one :class:`CapacityGate` sized from
``settings.capacity`` and one :class:`JobRunner`.

Example:
    >>> from berth.execution import DockerExecutor, JobRequest
    >>> executor = DockerExecutor()
    >>> handle = executor.submit(JobRequest(image="alpine:3.20", commands=("echo hi",)))
    >>> handle.result().state
    <JobState.COMPLETED: 'completed'>

Concurrency:
    ``submit()`` starts one worker thread per job; the gate decides how
    many of them are past admission. ``execute()`` runs the same pipeline
    on the calling thread. Jobs share nothing but the gate's counter.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from berth.core.errors import ConfigError
from berth.execution.capacity import CapacityGate
from berth.execution.models import JobExecution, JobLog, JobRequest, JobResult, JobState, TestOutcome, TestProbe
from berth.execution.process import ProcessDriver
from berth.execution.runner import JobRunner
from berth.execution.workspace import WorkspaceManager
from berth.framework.logging import get_logger

if TYPE_CHECKING:
    from berth.core.settings import ExecutorSettings

logger = get_logger(__name__)


def default_job_log(instance_id: str | None = None) -> JobLog:
    """Structured logger used when the caller supplies no job log."""
    log = get_logger("berth.job")
    if instance_id:
        log = log.bind(instance_id=instance_id)
    return log


class JobHandle:
    """Caller's view of a submitted job."""

    def __init__(self, execution: JobExecution, cancel: threading.Event) -> None:
        self._execution = execution
        self._cancel = cancel
        self._thread: threading.Thread | None = None
        self._exception: BaseException | None = None

    @property
    def instance_id(self) -> str:
        return self._execution.instance_id

    @property
    def state(self) -> JobState:
        return self._execution.state

    def cancel(self) -> None:
        """Request cancellation. Safe to call more than once."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def done(self) -> bool:
        return self._thread is not None and not self._thread.is_alive()

    def result(self, timeout: float | None = None) -> JobResult:
        """Wait for the job and return its result.

        Raises:
            TimeoutError: If the job is still running after ``timeout``.
        """
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                raise TimeoutError(f"Job {self.instance_id} still running after {timeout}s")
        if self._exception is not None:
            raise self._exception
        return self._execution.to_result()

    def _start(self, target) -> None:
        def work() -> None:
            try:
                target()
            except Exception as exc:
                logger.exception("job.crashed", instance_id=self.instance_id)
                self._exception = exc

        self._thread = threading.Thread(
            target=work,
            name=f"berth-job-{self.instance_id[:8]}",
            daemon=True,
        )
        self._thread.start()


class DockerExecutor:
    """Runs jobs in local docker containers, bounded by capacity."""

    def __init__(
        self,
        settings: ExecutorSettings | None = None,
        *,
        driver: ProcessDriver | None = None,
        workspaces: WorkspaceManager | None = None,
    ) -> None:
        if settings is None:
            from berth.core.settings import load_settings

            settings = load_settings()
        self.settings = settings
        self._driver = driver or ProcessDriver(kill_timeout_seconds=settings.stop_grace_seconds)
        self._workspaces = workspaces or WorkspaceManager(settings.workspace_root)
        self._gate = CapacityGate(settings.capacity)
        self._runner = JobRunner(settings, self._driver, self._workspaces)
        self._handles: dict[str, JobHandle] = {}
        self._handles_lock = threading.Lock()

    @property
    def gate(self) -> CapacityGate:
        return self._gate

    def has_capacity(self) -> bool:
        """Advisory: is a slot free right now? Reserves nothing."""
        return self._gate.has_capacity()

    def execute(
        self,
        request: JobRequest,
        job_log: JobLog | None = None,
        cancel: threading.Event | None = None,
    ) -> JobResult:
        """Run one job on the calling thread and return its result.

        Raises:
            ConfigError: If the executor configuration is invalid.
        """
        self._preflight()
        execution = JobExecution(request=request)
        self._runner.run(
            execution,
            self._gate,
            job_log or default_job_log(execution.instance_id),
            cancel or threading.Event(),
        )
        return execution.to_result()

    def submit(
        self,
        request: JobRequest,
        job_log: JobLog | None = None,
        cancel: threading.Event | None = None,
    ) -> JobHandle:
        """Start one job on its own worker thread.

        ``cancel`` may be shared with the request's snapshot so that a
        cancelled job also stops its checkout; ``JobHandle.cancel()`` sets it.

        Raises:
            ConfigError: If the executor configuration is invalid.
        """
        self._preflight()
        execution = JobExecution(request=request)
        if cancel is None:
            cancel = threading.Event()
        handle = JobHandle(execution, cancel)
        log = job_log or default_job_log(execution.instance_id)

        def work() -> None:
            try:
                self._runner.run(execution, self._gate, log, cancel)
            finally:
                with self._handles_lock:
                    self._handles.pop(execution.instance_id, None)

        with self._handles_lock:
            self._handles[execution.instance_id] = handle
        logger.info("job.submitted", instance_id=execution.instance_id, image=request.image)
        handle._start(work)
        return handle

    def test(self, probe: TestProbe, job_log: JobLog | None = None) -> TestOutcome:
        """Validate registry access, credentials, run options and OS detection."""
        log = job_log or default_job_log()
        try:
            self._preflight()
        except ConfigError as exc:
            log.error(exc.message)
            return TestOutcome(success=False, message=exc.message, image=probe.image)
        return self._runner.test(probe, log)

    def active_jobs(self) -> list[JobHandle]:
        with self._handles_lock:
            return list(self._handles.values())

    def shutdown(self, cancel_running: bool = True, timeout: float | None = None) -> None:
        """Wait for submitted jobs, cancelling them first if asked."""
        handles = self.active_jobs()
        if cancel_running:
            for handle in handles:
                handle.cancel()
        for handle in handles:
            try:
                handle.result(timeout)
            except Exception:
                logger.warning("job.shutdown_error", instance_id=handle.instance_id)

    def _preflight(self) -> None:
        from berth.core.settings import collect_violations

        violations = collect_violations(
            authenticate_to_registry=self.settings.authenticate_to_registry,
            username=self.settings.username,
            password=self.settings.password,
            run_options=self.settings.run_options,
        )
        if violations:
            raise ConfigError("; ".join(violations))

    def __enter__(self) -> DockerExecutor:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown(cancel_running=True)
