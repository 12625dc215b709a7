"""Calibrated clock state and the lock-free ``now()`` read.

:class:`ClockState` owns a single immutable :class:`ClockBaseline`.
Every update builds a new baseline and rebinds one attribute, so a
reader on any thread sees either the old triple or the new one —
never boot time from one sync round paired with the synchronized
flag of another.

Derivation::

    now = baseline.device_boot_time + monotonic_ms()

Before the first successful sync the baseline comes from the host
wall clock (``wall_ms - monotonic_ms``) with zero skew.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass

from driftclock._clock import (
    MonotonicClockPort,
    SystemMonotonicClock,
    SystemWallClock,
    WallClockPort,
)

logger = logging.getLogger(__name__)

FALLBACK_SERVER = "pool.ntp.org"
"""Server used when no default has been configured."""


@dataclass(frozen=True, slots=True)
class ClockBaseline:
    """Immutable calibration published by one reset or sync round.

    Attributes:
        device_boot_time: UTC milliseconds at monotonic counter 0.
        skew_ms: True UTC minus the host's uncorrected UTC at the
            time of calibration.  Informational only.
        synchronized: Whether this baseline came from a successful
            NTP round.
    """

    device_boot_time: int
    skew_ms: int = 0
    synchronized: bool = False


class ClockState:
    """Holds the published baseline and answers "what time is it".

    Args:
        monotonic: Monotonic millisecond counter.  Defaults to
            :class:`SystemMonotonicClock`.
        wall: Uncorrected host wall clock.  Defaults to
            :class:`SystemWallClock`.
        default_server: NTP host used when a sync call names none.
    """

    def __init__(
        self,
        *,
        monotonic: MonotonicClockPort | None = None,
        wall: WallClockPort | None = None,
        default_server: str = FALLBACK_SERVER,
    ) -> None:
        self._monotonic = monotonic if monotonic is not None else SystemMonotonicClock()
        self._wall = wall if wall is not None else SystemWallClock()
        self.default_server = default_server
        self._baseline = self._local_baseline()

    # -- reads (lock-free) ---------------------------------------------------

    def now(self) -> int:
        """Return corrected UTC milliseconds."""
        return self._baseline.device_boot_time + self._monotonic.monotonic_ms()

    @property
    def monotonic(self) -> MonotonicClockPort:
        """The monotonic counter behind :meth:`now`."""
        return self._monotonic

    @property
    def baseline(self) -> ClockBaseline:
        """The currently published baseline (a consistent snapshot)."""
        return self._baseline

    @property
    def device_boot_time(self) -> int:
        return self._baseline.device_boot_time

    @property
    def skew(self) -> int:
        return self._baseline.skew_ms

    @property
    def synchronized(self) -> bool:
        return self._baseline.synchronized

    @property
    def initialized(self) -> bool:
        return self._baseline.device_boot_time != 0

    @property
    def device_up_time(self) -> int:
        """Monotonic milliseconds since the counter's origin."""
        return self._monotonic.monotonic_ms()

    @property
    def device_utc_now(self) -> int:
        """The host's uncorrected UTC milliseconds."""
        return self._wall.utc_ms()

    # -- writes --------------------------------------------------------------

    def reset(self) -> None:
        """Recalibrate from the uncorrected local clock, unsynchronized."""
        self._baseline = self._local_baseline()

    def publish(self, baseline: ClockBaseline) -> None:
        """Atomically replace the baseline."""
        self._baseline = baseline
        logger.debug(
            "Published baseline boot_time=%d skew_ms=%d synchronized=%s",
            baseline.device_boot_time,
            baseline.skew_ms,
            baseline.synchronized,
        )

    def mark_unsynchronized(self) -> None:
        """Publish the current baseline with ``synchronized=False``."""
        current = self._baseline
        if current.synchronized:
            self._baseline = dataclasses.replace(current, synchronized=False)

    def _local_baseline(self) -> ClockBaseline:
        return ClockBaseline(
            device_boot_time=self._wall.utc_ms() - self._monotonic.monotonic_ms(),
        )
