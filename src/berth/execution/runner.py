"""Job runner — drives one job through the container pipeline.

Architecture:

    .. code-block:: text

        JobRunner.run(execution, gate, job_log, cancel)

        QUEUED ──admit──► ADMITTED ──create──► WORKSPACE_READY
          (checkout snapshot)──login──► AUTHENTICATED ──pull──► IMAGE_PULLED
          ──inspect──► OS_PROBED ──docker run──► RUNNING
          ──► COMPLETED | FAILED | CANCELLED ──delete workspace──► CLEANED_UP

    Steps run strictly in order on the calling worker; every subprocess
    call blocks. Whatever happens, the workspace is deleted and the
    capacity slot is released.

Cancellation:
    The caller sets ``cancel``. While queued, admission is abandoned. During
    login/pull/inspect the step's process is terminated. Once the container
    runs, exactly one ``docker stop <instance_id>`` is issued and the run
    command is allowed to exit by itself. If it has not exited after the
    stop grace period, the local client is killed and the stop is sent once
    more, since the container may have been created after the first one.
    The job ends CANCELLED and still cleans up.
"""

from __future__ import annotations

import subprocess
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from berth.core.errors import (
    BerthError,
    CheckoutError,
    ContainerRunError,
    ImagePullError,
    JobCancelledError,
    PipelineError,
)
from berth.execution.capacity import CapacityGate
from berth.execution.docker.commands import DockerCommands
from berth.execution.docker.launcher import WINDOWS, LaunchPlan, plan_for
from berth.execution.docker.probe import OSProber
from berth.execution.docker.registry import RegistryAuthenticator, resolve_image
from berth.execution.models import JobExecution, JobLog, JobState, TestOutcome, TestProbe
from berth.execution.process import ProcessDriver
from berth.execution.workspace import WorkspaceManager
from berth.framework.logging import clear_context, get_logger, log_step, set_context

if TYPE_CHECKING:
    from berth.core.settings import ExecutorSettings

logger = get_logger(__name__)


class JobRunner:
    """Runs job executions and configuration tests against one settings object."""

    def __init__(
        self,
        settings: ExecutorSettings,
        driver: ProcessDriver,
        workspaces: WorkspaceManager,
    ) -> None:
        self._settings = settings
        self._driver = driver
        self._workspaces = workspaces
        self._commands = DockerCommands(settings.docker_command)
        self._authenticator = RegistryAuthenticator(driver, self._commands)
        self._prober = OSProber(driver, self._commands)

    # ------------------------------------------------------------------
    # Execute flow
    # ------------------------------------------------------------------

    def run(
        self,
        execution: JobExecution,
        gate: CapacityGate,
        job_log: JobLog,
        cancel: threading.Event,
    ) -> JobExecution:
        """Run ``execution`` to a terminal state.

        Pipeline failures and cancellation are recorded on the execution,
        not raised. Unexpected exceptions propagate after cleanup.
        """
        set_context(instance_id=execution.instance_id, image=execution.request.image)
        try:
            try:
                with gate.admit(cancel):
                    execution.transition_to(JobState.ADMITTED)
                    logger.info("job.admitted", active=gate.active, capacity=gate.capacity)
                    try:
                        self._pipeline(execution, job_log, cancel)
                        execution.transition_to(JobState.COMPLETED)
                    except BerthError as exc:
                        self._record_failure(execution, exc, job_log, cancel)
                    finally:
                        self._cleanup(execution, job_log)
            except JobCancelledError as exc:
                # Cancelled before a slot was granted
                self._record_failure(execution, exc, job_log, cancel)
                execution.transition_to(JobState.CLEANED_UP)
            logger.info(
                "job.finished",
                outcome=execution.outcome.value if execution.outcome else None,
                exit_code=execution.exit_code,
            )
            return execution
        finally:
            clear_context()

    def _pipeline(self, execution: JobExecution, job_log: JobLog, cancel: threading.Event) -> None:
        settings = self._settings
        request = execution.request

        with log_step("workspace.create"):
            try:
                workspace = self._workspaces.create()
            except OSError as exc:
                raise PipelineError(f"Unable to create workspace: {exc}", cause=exc) from exc
        execution.workspace = workspace
        execution.transition_to(JobState.WORKSPACE_READY)

        if request.snapshot is not None:
            job_log.info("Cloning source code...")
            with log_step("source.checkout"):
                self._checkout(request.snapshot, workspace)
        _check_cancelled(cancel)

        self._authenticator.login(settings, job_log, cancel)
        _check_cancelled(cancel)
        execution.transition_to(JobState.AUTHENTICATED)

        execution.pull_image = resolve_image(request.image, settings.docker_registry)
        self._pull(execution.pull_image, job_log, cancel)
        _check_cancelled(cancel)
        execution.transition_to(JobState.IMAGE_PULLED)

        execution.os_family = self._prober.probe(execution.pull_image, job_log, cancel)
        _check_cancelled(cancel)
        execution.transition_to(JobState.OS_PROBED)

        plan = self._plan(execution.os_family, job_log)
        try:
            self._workspaces.write_script(
                workspace,
                plan.script_name,
                request.commands,
                plan.line_terminator,
                executable=not plan.is_windows,
            )
        except OSError as exc:
            raise PipelineError(f"Unable to write launcher script: {exc}", cause=exc) from exc
        argv = self._commands.run(
            execution.pull_image,
            plan.script_invocation(),
            host_dir=str(Path(workspace).resolve()),
            container_dir=plan.container_dir,
            name=execution.instance_id,
            options=settings.run_option_tokens,
        )

        _check_cancelled(cancel)
        execution.transition_to(JobState.RUNNING)
        job_log.info("Running container to execute job...")
        stop_container = self._container_stopper(execution.instance_id, job_log)
        with log_step("container.run", image=execution.pull_image) as timer:
            result = self._driver.execute(
                argv,
                job_log.info,
                job_log.error,
                killer=stop_container,
                cancel=cancel,
            )
            timer.add_metric("exit_code", result.exit_code)
        execution.exit_code = result.exit_code

        if result.forced:
            # The first stop can precede container creation; the client is gone now
            stop_container(None)

        if result.killed or cancel.is_set():
            raise JobCancelledError("Job cancelled, container stopped")
        result.check_ok(ContainerRunError)

    def _checkout(self, snapshot, workspace: Path) -> None:
        try:
            snapshot.checkout(workspace)
        except BerthError:
            raise
        except Exception as exc:
            raise CheckoutError(f"Failed to check out sources: {exc}", cause=exc) from exc

    def _pull(self, image: str, job_log: JobLog, cancel: threading.Event | None) -> None:
        job_log.info("Pulling image...")
        with log_step("image.pull", image=image):
            self._driver.execute(
                self._commands.pull(image),
                job_log.info,
                job_log.error,
                cancel=cancel,
            ).check_ok(ImagePullError)

    def _plan(self, os_family: str, job_log: JobLog) -> LaunchPlan:
        if os_family == WINDOWS:
            job_log.info("Image OS is windows, run commands with cmd.exe...")
        else:
            job_log.info(f"Image OS is {os_family}, run commands with sh...")
        return plan_for(os_family, self._settings.container_workspace, self._settings.script_stem)

    def _container_stopper(self, instance_id: str, job_log: JobLog):
        """Killer for the run command: stop the named container.

        Best effort; the stop command's own exit code is ignored.
        """

        def stop_container(process: subprocess.Popen | None) -> None:
            job_log.info("Stopping container...")
            try:
                result = self._driver.execute(
                    self._commands.stop(instance_id),
                    job_log.info,
                    job_log.error,
                )
            except BerthError as exc:
                job_log.warning(f"Unable to stop container {instance_id}: {exc.message}")
                return
            logger.info("container.stop", container=instance_id, exit_code=result.exit_code)

        return stop_container

    def _record_failure(
        self,
        execution: JobExecution,
        exc: BerthError,
        job_log: JobLog,
        cancel: threading.Event,
    ) -> None:
        exc.with_context(
            instance_id=execution.instance_id,
            image=execution.request.image,
            last_state=execution.state.value,
        )
        execution.error = exc
        if isinstance(exc, JobCancelledError) or cancel.is_set():
            job_log.warning("Job cancelled")
            execution.transition_to(JobState.CANCELLED)
        else:
            job_log.error(exc.message)
            execution.transition_to(JobState.FAILED)

    def _cleanup(self, execution: JobExecution, job_log: JobLog) -> None:
        if execution.outcome is None:
            # Unexpected exception escaping the pipeline
            execution.transition_to(JobState.FAILED)
        if execution.workspace is not None:
            job_log.info("Deleting workspace...")
            if not self._workspaces.destroy(execution.workspace):
                job_log.warning(f"Unable to delete workspace {execution.workspace}")
        execution.transition_to(JobState.CLEANED_UP)

    # ------------------------------------------------------------------
    # Test flow
    # ------------------------------------------------------------------

    def test(self, probe: TestProbe, job_log: JobLog) -> TestOutcome:
        """Validate the configuration against ``probe.image``.

        Logs in, pulls, probes the OS and runs a trivial echo in a
        throwaway container. Failures are reported, never raised.
        """
        settings = self._settings
        set_context(image=probe.image, step="test")
        job_log.info("Testing local docker executor...")
        workspace: Path | None = None
        os_family: str | None = None
        try:
            self._authenticator.login(settings, job_log)
            pull_image = resolve_image(probe.image, settings.docker_registry)
            self._pull(pull_image, job_log, None)
            os_family = self._prober.probe(pull_image, job_log)
            plan = plan_for(os_family, settings.container_workspace, settings.script_stem)

            job_log.info("Running container...")
            workspace = self._workspaces.create(prefix="workspace")
            argv = self._commands.run(
                pull_image,
                plan.test_invocation(),
                host_dir=str(Path(workspace).resolve()),
                container_dir=plan.container_dir,
                options=settings.run_option_tokens,
            )
            with log_step("container.test", image=pull_image):
                self._driver.execute(argv, job_log.info, job_log.error).check_ok(ContainerRunError)
        except BerthError as exc:
            job_log.error(exc.message)
            return TestOutcome(success=False, message=exc.message, image=probe.image, os_family=os_family)
        except OSError as exc:
            job_log.error(str(exc))
            return TestOutcome(success=False, message=str(exc), image=probe.image, os_family=os_family)
        finally:
            if workspace is not None:
                self._workspaces.destroy(workspace)
            clear_context()

        return TestOutcome(
            success=True,
            message=f"Test container ran successfully ({os_family} image)",
            image=probe.image,
            os_family=os_family,
        )


def _check_cancelled(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise JobCancelledError("Job cancelled")
