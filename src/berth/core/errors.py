"""
Structured error types for berth.

Every failure the job engine can report is a :class:`BerthError` carrying a
category, a retry hint, structured context and an optional chained cause.
The hierarchy mirrors how a job can go wrong:

Architecture:
    ::

        ┌───────────────────────────────────────────────────────────────┐
        │                          BerthError                            │
        │        (category, retryable, context, cause)                   │
        ├───────────────────────────────────────────────────────────────┤
        │                                                                │
        │  ConfigError          PipelineError           JobCancelledError│
        │  (CONFIG)             (PIPELINE)              (CANCELLED)      │
        │     │                     │                                    │
        │  DockerNotFoundError  ProcessError ─┬─ CheckoutError           │
        │                                     ├─ RegistryLoginError      │
        │                                     ├─ ImagePullError          │
        │                                     ├─ ImageProbeError         │
        │                                     └─ ContainerRunError       │
        │                                                                │
        │  InvalidTransitionError (INTERNAL)                             │
        └───────────────────────────────────────────────────────────────┘

Propagation:
    - ``ConfigError`` is raised before any container activity.
    - ``PipelineError`` subclasses abort the remaining steps of one job
      only; the runner catches them, records a FAILED result and still
      cleans the workspace.
    - ``JobCancelledError`` unwinds a worker after cancellation and maps
      to a CANCELLED result, not a failure.

Usage:
    from berth.core.errors import ImagePullError

    raise ImagePullError("pull failed").with_context(image="nginx", exit_code=1)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification and reporting."""

    CONFIG = "CONFIG"           # Invalid executor configuration or job request
    AUTH = "AUTH"               # Registry login rejected
    REGISTRY = "REGISTRY"       # Image pull failures
    RUNTIME = "RUNTIME"         # Container runtime inspect/run failures
    STORAGE = "STORAGE"         # Workspace and checkout I/O
    PROCESS = "PROCESS"         # Generic driven command failure
    PIPELINE = "PIPELINE"       # Step failure without a narrower category
    CANCELLED = "CANCELLED"     # Caller cancelled the job
    INTERNAL = "INTERNAL"       # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        instance_id: Job instance identifier (also the container name)
        image: Environment image the job was using
        step: Pipeline step that failed (``pull``, ``run``, ...)
        command: Redacted command line of the failing process
        exit_code: Exit code of the failing process
        metadata: Additional key-value pairs
    """

    instance_id: str | None = None
    image: str | None = None
    step: str | None = None
    command: str | None = None
    exit_code: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["instance_id", "image", "step", "command", "exit_code"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class BerthError(Exception):
    """
    Base exception for all berth errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    call sites only pass what differs from the defaults.

    Examples:
        >>> error = BerthError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(step="pull").context.step
        'pull'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> BerthError:
        """
        Add context to this error (fluent API).

        Known ErrorContext fields are set directly, anything else lands in
        ``context.metadata``.
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context = self.context.to_dict()
        if context:
            result["context"] = context
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION
# =============================================================================


class ConfigError(BerthError):
    """Invalid executor configuration or job request. Never retryable."""

    default_category = ErrorCategory.CONFIG


class DockerNotFoundError(ConfigError):
    """Raised when the container runtime executable cannot be launched."""


# =============================================================================
# PIPELINE
# =============================================================================


class PipelineError(BerthError):
    """A fatal failure in one step of a job's pipeline."""

    default_category = ErrorCategory.PIPELINE


class ProcessError(PipelineError):
    """A driven command exited with a non-zero code."""

    default_category = ErrorCategory.PROCESS

    def __init__(self, message: str, *, exit_code: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.exit_code = exit_code
        if exit_code is not None:
            self.context.exit_code = exit_code


class CheckoutError(ProcessError):
    """Materializing the source snapshot into the workspace failed."""

    default_category = ErrorCategory.STORAGE


class RegistryLoginError(ProcessError):
    """The container runtime rejected the registry credentials."""

    default_category = ErrorCategory.AUTH


class ImagePullError(ProcessError):
    """Pulling the environment image failed."""

    default_category = ErrorCategory.REGISTRY
    default_retryable = True


class ImageProbeError(ProcessError):
    """Inspecting the pulled image failed or returned unexpected output."""

    default_category = ErrorCategory.RUNTIME


class ContainerRunError(ProcessError):
    """The job container exited with a non-zero code."""

    default_category = ErrorCategory.RUNTIME


# =============================================================================
# CONTROL FLOW
# =============================================================================


class JobCancelledError(BerthError):
    """Raised inside a worker to unwind a cancelled job."""

    default_category = ErrorCategory.CANCELLED


class InvalidTransitionError(BerthError):
    """Raised when an illegal job state transition is attempted."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid JobState transition: {current} → {target}")
