"""
Per-worker job context for log events.

Each job runs on its own worker thread, and a ``ContextVar`` gives every
thread its own copy, so the fields bound for one job (instance id, image,
pipeline step, span ids) never leak into the events of another job.

    set_context(...)     start a fresh context for a job
    bind_context(...)    add fields to the current context
    push_context(...)    add fields for a scope, ``restore()`` afterwards
    clear_context()      drop everything
"""

from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass, fields, replace
from typing import Any

import structlog


@dataclass(frozen=True)
class LogContext:
    """Job fields attached to every log event emitted on this worker."""

    instance_id: str | None = None
    image: str | None = None
    step: str | None = None
    span_id: str | None = None
    parent_span_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    def merge(self, **values: Any) -> LogContext:
        """Copy with ``values`` applied; ``None`` values keep the current field."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})


_EMPTY = LogContext()
_current: ContextVar[LogContext] = ContextVar("berth_log_context", default=_EMPTY)


def get_context() -> LogContext:
    return _current.get()


def set_context(
    instance_id: str | None = None,
    image: str | None = None,
    step: str | None = None,
) -> LogContext:
    """Replace the current context."""
    ctx = LogContext(instance_id=instance_id, image=image, step=step)
    _current.set(ctx)
    return ctx


def bind_context(**values: Any) -> LogContext:
    ctx = _current.get().merge(**values)
    _current.set(ctx)
    return ctx


def clear_context() -> None:
    _current.set(_EMPTY)


class ContextScope:
    """Handle returned by :func:`push_context`."""

    def __init__(self, token: Token[LogContext]) -> None:
        self._token = token

    def restore(self) -> None:
        _current.reset(self._token)

    def __enter__(self) -> ContextScope:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.restore()


def push_context(**values: Any) -> ContextScope:
    """Layer ``values`` over the current context until ``restore()``."""
    return ContextScope(_current.set(_current.get().merge(**values)))


def add_context_processor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor: copy job context into the event.

    Keys passed explicitly on the log call are left alone.
    """
    for key, value in _current.get().to_dict().items():
        event_dict.setdefault(key, value)
    return event_dict


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)
