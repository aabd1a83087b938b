"""
Berth - capacity-bounded container job execution.

Runs a job's shell commands inside a docker container on the local host,
streaming output back to the caller while bounding how many jobs run at once.
"""

__version__ = "0.1.0"

from berth.core.settings import ExecutorSettings, load_settings  # noqa: E402
from berth.execution import (  # noqa: E402
    DockerExecutor,
    JobRequest,
    JobResult,
    JobState,
    TestOutcome,
    TestProbe,
)

__all__ = [
    "DockerExecutor",
    "ExecutorSettings",
    "JobRequest",
    "JobResult",
    "JobState",
    "TestOutcome",
    "TestProbe",
    "load_settings",
]
