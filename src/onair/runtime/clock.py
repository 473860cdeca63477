"""Wall clocks for the broadcast timeline.

Every instant in the scheduler is UNIX epoch milliseconds so that any number
of stateless instances agree on the same timeline without coordination.
"""

from __future__ import annotations

import time
from threading import Lock
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Protocol implemented by clock providers."""

    def now_ms(self) -> int:
        """Return the current wall time in UNIX milliseconds."""


class SystemClock:
    """Clock backed by :func:`time.time_ns`."""

    def now_ms(self) -> int:
        return time.time_ns() // 1_000_000


class SteppedClock:
    """Deterministic clock used for tests and simulation.

    Time advances only when :meth:`advance` or :meth:`set` is called.
    """

    def __init__(self, start_ms: int = 0) -> None:
        self._current = start_ms
        self._lock = Lock()

    def now_ms(self) -> int:
        with self._lock:
            return self._current

    def advance(self, ms: int) -> int:
        """Advance the clock by ``ms`` (must be non-negative)."""
        if ms < 0:
            raise ValueError("ms must be non-negative")
        with self._lock:
            self._current += ms
            return self._current

    def set(self, ms: int) -> int:
        with self._lock:
            self._current = ms
            return self._current
