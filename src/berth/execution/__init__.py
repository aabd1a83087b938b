"""Container job execution engine.

Architecture:

    .. code-block:: text

        berth.execution
        ├── capacity.py    ← CapacityGate (bounded concurrent admission)
        ├── process.py     ← ProcessDriver (streamed, cancellable subprocesses)
        ├── workspace.py   ← WorkspaceManager (ephemeral bind-mounted dirs)
        ├── snapshots.py   ← SourceSnapshot protocol + directory/git snapshots
        ├── models.py      ← JobRequest, JobExecution, JobState, JobResult, ...
        ├── docker/        ← registry, OS probe, launcher plans, run options
        ├── runner.py      ← JobRunner (execute + test flows)
        └── executor.py    ← DockerExecutor facade, JobHandle

Tags:
    berth, execution, docker, capacity, cancellation
"""

from berth.execution.capacity import CapacityGate
from berth.execution.executor import DockerExecutor, JobHandle
from berth.execution.models import (
    JobExecution,
    JobLog,
    JobRequest,
    JobResult,
    JobState,
    TestOutcome,
    TestProbe,
)
from berth.execution.process import ExecutionResult, ProcessDriver
from berth.execution.runner import JobRunner
from berth.execution.snapshots import DirectorySnapshot, GitSnapshot, SourceSnapshot
from berth.execution.workspace import WorkspaceManager

__all__ = [
    "CapacityGate",
    "DirectorySnapshot",
    "DockerExecutor",
    "ExecutionResult",
    "GitSnapshot",
    "JobExecution",
    "JobHandle",
    "JobLog",
    "JobRequest",
    "JobResult",
    "JobRunner",
    "JobState",
    "ProcessDriver",
    "SourceSnapshot",
    "TestOutcome",
    "TestProbe",
    "WorkspaceManager",
]
