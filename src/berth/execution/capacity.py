"""Capacity Gate — bound how many jobs run at once on this host.

WHY
───
Every admitted job launches its own container. Without a bound, a burst
of submissions would start as many containers as there are callers and
starve the host. The gate is a counting semaphore: at most ``capacity``
jobs may be past admission at any instant, the rest wait.

ARCHITECTURE
────────────
::

    CapacityGate(capacity)
      ├── .admit(cancel=None)   ─ context manager; blocks until a slot is free
      ├── .has_capacity()       ─ advisory, non-blocking, reserves nothing
      ├── .active               ─ slots currently held
      └── .capacity             ─ configured slot count

BEST PRACTICES
──────────────
- Only use ``admit()`` as a ``with`` block. The slot is released on every
  exit path, including exceptions and cancellation.
- ``has_capacity()`` can race with a concurrent ``admit()``; treat it as a
  scheduling hint, never as a reservation.

Example::

    gate = CapacityGate(4)
    with gate.admit(cancel=job_cancel_event):
        run_job()
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from berth.core.errors import JobCancelledError


class CapacityGate:
    """Counting semaphore over job executions.

    No fairness is promised between waiters beyond eventual admission.
    """

    def __init__(self, capacity: int, *, poll_interval: float = 0.1):
        """Initialize the gate.

        Args:
            capacity: Maximum number of concurrently admitted executions.
            poll_interval: Seconds between cancellation checks while waiting.
        """
        if capacity < 1:
            raise ValueError(f"capacity must be a positive integer, got {capacity}")
        self._capacity = capacity
        self._poll_interval = poll_interval
        self._active = 0
        self._cond = threading.Condition()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def active(self) -> int:
        with self._cond:
            return self._active

    def has_capacity(self) -> bool:
        """Return True if a slot is free right now."""
        with self._cond:
            return self._active < self._capacity

    @contextmanager
    def admit(self, cancel: threading.Event | None = None) -> Iterator[None]:
        """Hold one slot for the duration of the ``with`` block.

        Args:
            cancel: Optional event; if it becomes set while waiting, the
                wait is abandoned without taking a slot.

        Raises:
            JobCancelledError: If ``cancel`` is set before a slot is granted.
        """
        with self._cond:
            while self._active >= self._capacity:
                if cancel is not None and cancel.is_set():
                    raise JobCancelledError("Job cancelled while waiting for capacity")
                self._cond.wait(timeout=self._poll_interval)
            if cancel is not None and cancel.is_set():
                raise JobCancelledError("Job cancelled while waiting for capacity")
            self._active += 1
        try:
            yield
        finally:
            with self._cond:
                self._active -= 1
                self._cond.notify()
