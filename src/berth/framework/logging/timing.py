"""
Step timing for the job pipeline.

``log_step`` wraps one pipeline step (login, pull, inspect, run, ...)::

    with log_step("image.pull", image=ref) as timer:
        pull(ref)
        timer.add_metric("exit_code", 0)

and emits ``image.pull.start`` (debug), then ``image.pull.end`` with
``duration_ms`` or ``image.pull.error`` with the exception type. Inside
the block the step name and a fresh span id are part of the job context,
so events logged by the step itself carry them too.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from berth.framework.logging.context import get_context, get_logger, push_context


@dataclass
class StepTimer:
    """Elapsed time and extra fields for one timed step."""

    step: str
    span_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    parent_span_id: str | None = None
    metrics: dict[str, Any] = field(default_factory=dict)
    _start: float = field(default_factory=time.perf_counter, repr=False)
    _end: float | None = field(default=None, repr=False)

    @property
    def duration_ms(self) -> float:
        end = time.perf_counter() if self._end is None else self._end
        return (end - self._start) * 1000

    def add_metric(self, key: str, value: Any) -> StepTimer:
        self.metrics[key] = value
        return self

    def finish(self) -> StepTimer:
        if self._end is None:
            self._end = time.perf_counter()
        return self

    def fields(self) -> dict[str, Any]:
        out: dict[str, Any] = {"span_id": self.span_id, "duration_ms": round(self.duration_ms, 2)}
        if self.parent_span_id:
            out["parent_span_id"] = self.parent_span_id
        out.update(self.metrics)
        return out


@contextmanager
def log_step(event: str, level: str = "info", **metrics: Any) -> Iterator[StepTimer]:
    """Time the enclosed block and log its start and end (or error)."""
    log = get_logger("berth.timing")
    timer = StepTimer(step=event, parent_span_id=get_context().span_id, metrics=dict(metrics))

    with push_context(step=event, span_id=timer.span_id, parent_span_id=timer.parent_span_id):
        log.debug(f"{event}.start", span_id=timer.span_id, **metrics)
        try:
            yield timer
        except Exception as exc:
            log.error(
                f"{event}.error",
                error_type=type(exc).__name__,
                error_message=str(exc),
                **timer.finish().fields(),
            )
            raise
        timer.finish()

    getattr(log, level)(f"{event}.end", **timer.fields())
