"""Berth Core -- configuration and the structured error hierarchy.

Architecture::

    errors.py      Structured error hierarchy (BerthError, PipelineError, ...)
    settings.py    ExecutorSettings (pydantic-settings, BERTH_* env vars)
"""

from berth.core.errors import (
    BerthError,
    CheckoutError,
    ConfigError,
    ContainerRunError,
    DockerNotFoundError,
    ErrorCategory,
    ErrorContext,
    ImageProbeError,
    ImagePullError,
    InvalidTransitionError,
    JobCancelledError,
    PipelineError,
    ProcessError,
    RegistryLoginError,
)

__all__ = [
    "BerthError",
    "CheckoutError",
    "ConfigError",
    "ContainerRunError",
    "DockerNotFoundError",
    "ErrorCategory",
    "ErrorContext",
    "ImageProbeError",
    "ImagePullError",
    "InvalidTransitionError",
    "JobCancelledError",
    "PipelineError",
    "ProcessError",
    "RegistryLoginError",
]
