"""Local clock ports, system adapters and a millisecond stopwatch.

Two local time sources feed the synchronised clock:

* :class:`MonotonicClockPort` — milliseconds since an arbitrary,
  fixed point (process or device start).  Immune to NTP slews and
  manual wall-clock changes; it is the cheap per-call source behind
  :meth:`ClockState.now`.
* :class:`WallClockPort` — the host's *uncorrected* idea of UTC in
  Unix milliseconds.  Only used for the pre-sync baseline and for the
  skew computation.

All values are **integer milliseconds**.

See Also:
    PEP 418 for the monotonic clock guarantees.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable

_NS_PER_MS = 1_000_000


@runtime_checkable
class MonotonicClockPort(Protocol):
    """Monotonic millisecond counter.

    The default implementation wraps ``time.monotonic_ns()``.  Tests
    inject a deterministic fake for reproducible timing.
    """

    def monotonic_ms(self) -> int:
        """Return monotonic time in whole milliseconds.

        Returns:
            Milliseconds from an arbitrary epoch.  Only the
            *difference* between two calls is meaningful.
        """
        ...


@runtime_checkable
class WallClockPort(Protocol):
    """Uncorrected host wall clock in Unix milliseconds."""

    def utc_ms(self) -> int:
        """Return milliseconds since 1970-01-01T00:00:00Z."""
        ...


class SystemMonotonicClock:
    """Production monotonic counter wrapping ``time.monotonic_ns()``.

    Satisfies :class:`MonotonicClockPort` via structural subtyping.
    """

    def monotonic_ms(self) -> int:
        """Return monotonic time in whole milliseconds."""
        return time.monotonic_ns() // _NS_PER_MS


class SystemWallClock:
    """Production wall clock wrapping ``time.time_ns()``."""

    def utc_ms(self) -> int:
        """Return the host's UTC time in whole milliseconds."""
        return time.time_ns() // _NS_PER_MS


class Stopwatch:
    """Elapsed-time measurement over a :class:`MonotonicClockPort`.

    Usage::

        watch = Stopwatch.start_new(SystemMonotonicClock())
        # ... some work ...
        watch.stop()
        watch.elapsed_ms
    """

    def __init__(self, clock: MonotonicClockPort) -> None:
        self._clock = clock
        self._started: int | None = None
        self._elapsed = 0

    @classmethod
    def start_new(cls, clock: MonotonicClockPort) -> Stopwatch:
        """Create a stopwatch and start it immediately."""
        watch = cls(clock)
        watch.start()
        return watch

    @property
    def is_running(self) -> bool:
        return self._started is not None

    @property
    def elapsed_ms(self) -> int:
        """Accumulated milliseconds, including the running interval."""
        if self._started is None:
            return self._elapsed
        return self._elapsed + self._clock.monotonic_ms() - self._started

    def start(self) -> None:
        if self._started is None:
            self._started = self._clock.monotonic_ms()

    def stop(self) -> None:
        """Freeze the elapsed time.  Stopping twice is a no-op."""
        if self._started is not None:
            self._elapsed += self._clock.monotonic_ms() - self._started
            self._started = None
