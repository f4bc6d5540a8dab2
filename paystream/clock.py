from __future__ import annotations

"""
Time sources for the ledger.

The core only ever calls ``clock.now()`` and expects a non-decreasing integer
timestamp. Two implementations:

- SystemClock: wall time in milliseconds (or seconds), never moving backwards
  even if the host clock is stepped.
- ManualClock: deterministic clock for tests and simulations.
"""

import threading
import time
from typing import Protocol

_UNITS = {"ms": 1000, "s": 1}


class Clock(Protocol):
    def now(self) -> int: ...


class SystemClock:
    """Wall-clock time as an integer in ``unit`` ("ms" or "s"), clamped monotonic."""

    def __init__(self, unit: str = "ms") -> None:
        if unit not in _UNITS:
            raise ValueError(f"unsupported clock unit {unit!r} (expected one of {sorted(_UNITS)})")
        self.unit = unit
        self._scale = _UNITS[unit]
        self._last = 0
        self._lock = threading.Lock()

    def now(self) -> int:
        t = int(time.time() * self._scale)
        with self._lock:
            if t < self._last:
                t = self._last
            self._last = t
            return t


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ValueError("start must be >= 0")
        self._t = int(start)

    def now(self) -> int:
        return self._t

    def advance(self, delta: int) -> int:
        if delta < 0:
            raise ValueError("clock cannot move backwards")
        self._t += int(delta)
        return self._t

    def set(self, t: int) -> int:
        if t < self._t:
            raise ValueError(f"clock cannot move backwards ({t} < {self._t})")
        self._t = int(t)
        return self._t


def make_clock(unit: str = "ms") -> SystemClock:
    return SystemClock(unit)


__all__ = ["Clock", "SystemClock", "ManualClock", "make_clock"]
