"""Job execution domain models.

Defines the data structures flowing through the job engine:
- JobRequest: what a caller submits (image, commands, optional snapshot)
- TestProbe: a request variant used to validate a configuration
- JobExecution: runtime record owned by one worker for a job's lifetime
- JobResult / TestOutcome: what the caller gets back
- JobState: lifecycle states with an explicit transition table
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from berth.core.errors import BerthError, InvalidTransitionError, PipelineError
from berth.execution.snapshots import SourceSnapshot


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


class JobLog(Protocol):
    """Line sink for a job's user-visible log stream.

    A structlog logger satisfies this protocol.
    """

    def info(self, message: str) -> Any: ...

    def warning(self, message: str) -> Any: ...

    def error(self, message: str) -> Any: ...


class JobState(str, Enum):
    """Lifecycle state of a job execution.

    Valid transition graph::

        QUEUED → ADMITTED → WORKSPACE_READY → AUTHENTICATED
               → IMAGE_PULLED → OS_PROBED → RUNNING → COMPLETED

        any non-terminal state → FAILED | CANCELLED
        COMPLETED | FAILED | CANCELLED → CLEANED_UP
    """

    QUEUED = "queued"
    ADMITTED = "admitted"
    WORKSPACE_READY = "workspace_ready"
    AUTHENTICATED = "authenticated"
    IMAGE_PULLED = "image_pulled"
    OS_PROBED = "os_probed"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    CLEANED_UP = "cleaned_up"

    @property
    def is_outcome(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED)


_PIPELINE = [
    JobState.QUEUED,
    JobState.ADMITTED,
    JobState.WORKSPACE_READY,
    JobState.AUTHENTICATED,
    JobState.IMAGE_PULLED,
    JobState.OS_PROBED,
    JobState.RUNNING,
    JobState.COMPLETED,
]

VALID_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    current: frozenset({following, JobState.FAILED, JobState.CANCELLED})
    for current, following in zip(_PIPELINE, _PIPELINE[1:])
}
VALID_TRANSITIONS.update({
    JobState.COMPLETED: frozenset({JobState.CLEANED_UP}),
    JobState.FAILED: frozenset({JobState.CLEANED_UP}),
    JobState.CANCELLED: frozenset({JobState.CLEANED_UP}),
    JobState.CLEANED_UP: frozenset(),  # terminal
})


def validate_transition(current: JobState, target: JobState) -> None:
    """Raise :class:`InvalidTransitionError` if *current → target* is illegal."""
    if target not in VALID_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current.value, target.value)


class JobRequest(BaseModel):
    """A job submitted for execution. Immutable once built."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    image: str = Field(min_length=1, description="Environment image reference")
    commands: tuple[str, ...] = Field(default=(), description="Command lines, run in order")
    snapshot: SourceSnapshot | None = Field(default=None, exclude=True)


class TestProbe(BaseModel):
    """Image to validate an executor configuration against."""

    __test__ = False  # not a pytest test class

    model_config = ConfigDict(frozen=True)

    image: str = Field(min_length=1)


@dataclass
class JobExecution:
    """Runtime record of one job execution.

    Owned by a single worker; the capacity gate never touches it.
    """

    request: JobRequest
    instance_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: JobState = JobState.QUEUED
    outcome: JobState | None = None
    workspace: Path | None = None
    pull_image: str | None = None
    os_family: str | None = None
    exit_code: int | None = None
    error: BerthError | None = None
    created_at: datetime = field(default_factory=utcnow)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    history: list[tuple[JobState, datetime]] = field(default_factory=list)

    def transition_to(self, target: JobState) -> None:
        """Move to ``target``, enforcing ``VALID_TRANSITIONS``."""
        validate_transition(self.state, target)
        self.state = target
        now = utcnow()
        self.history.append((target, now))
        if target == JobState.ADMITTED:
            self.started_at = now
        if target.is_outcome:
            self.outcome = target
            self.finished_at = now

    def to_result(self) -> JobResult:
        """Summarize the execution for the caller."""
        duration = None
        if self.started_at and self.finished_at:
            duration = (self.finished_at - self.started_at).total_seconds()
        return JobResult(
            instance_id=self.instance_id,
            image=self.request.image,
            state=self.outcome or self.state,
            exit_code=self.exit_code,
            message=self.error.message if self.error else None,
            error=self.error.to_dict() if self.error else None,
            started_at=self.started_at,
            finished_at=self.finished_at,
            duration_seconds=duration,
            raised=self.error,
        )


class JobResult(BaseModel):
    """Final outcome of a job execution."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    instance_id: str
    image: str
    state: JobState
    exit_code: int | None = None
    message: str | None = None
    error: dict[str, Any] | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    duration_seconds: float | None = None
    raised: BerthError | None = Field(default=None, exclude=True, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.state == JobState.COMPLETED

    def check_ok(self) -> JobResult:
        """Re-raise the pipeline error of a FAILED job."""
        if self.state == JobState.FAILED:
            if self.raised is not None:
                raise self.raised
            raise PipelineError(self.message or "Job failed")
        return self


class TestOutcome(BaseModel):
    """Pass/fail report of an executor configuration test."""

    __test__ = False  # not a pytest test class

    success: bool
    message: str
    image: str
    os_family: str | None = None
