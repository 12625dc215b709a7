"""Conversions between Unix-millisecond timestamps and stdlib types.

Timestamps are ``int`` milliseconds since 1970-01-01T00:00:00Z, the
unit returned by :meth:`ClockState.now`.  Intervals are differences
of two timestamps.

Divisions truncate toward zero, so a negative interval decomposes into
parts that are all zero or negative (``-1500`` ms is ``-1`` s and
``-500`` ms).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

_ONE_MS = timedelta(milliseconds=1)


@dataclass(frozen=True, slots=True)
class IntervalParts:
    """An interval split into whole days, hours, minutes and seconds."""

    days: int
    hours: int
    minutes: int
    seconds: int


def _trunc_div(value: int, divisor: int) -> int:
    quotient = abs(value) // divisor
    return quotient if value >= 0 else -quotient


def _trunc_mod(value: int, divisor: int) -> int:
    return value - _trunc_div(value, divisor) * divisor


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def to_iso8601(timestamp: int, *, suppress_milliseconds: bool = False) -> str:
    """Format *timestamp* as ISO 8601 UTC, e.g. ``2019-08-10T22:08:14.102Z``."""
    moment = to_utc_datetime(timestamp)
    if suppress_milliseconds:
        return moment.strftime("%Y-%m-%dT%H:%M:%SZ")
    millis = moment.microsecond // 1000
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{millis:03d}Z"


def from_datetime(moment: datetime) -> int:
    """Convert *moment* to Unix milliseconds, dropping sub-millisecond parts.

    Naive datetimes are interpreted as local time.
    """
    return (moment.astimezone(UTC) - UNIX_EPOCH) // _ONE_MS


def from_unix_seconds(seconds: int) -> int:
    return seconds * SECOND_MS


def to_unix_seconds(timestamp: int) -> int:
    return _trunc_div(timestamp, SECOND_MS)


def millisecond_part(timestamp: int) -> int:
    """The 0-999 millisecond component (negative for pre-1970 values)."""
    return _trunc_mod(timestamp, SECOND_MS)


def to_utc_datetime(timestamp: int) -> datetime:
    """Aware UTC datetime for *timestamp*."""
    return UNIX_EPOCH + timedelta(milliseconds=timestamp)


def to_local_datetime(timestamp: int) -> datetime:
    """Aware datetime for *timestamp* in the host's local zone."""
    return to_utc_datetime(timestamp).astimezone()


# ---------------------------------------------------------------------------
# Intervals
# ---------------------------------------------------------------------------


def from_timedelta(interval: timedelta) -> int:
    """Convert *interval* to milliseconds, truncating toward zero."""
    seconds = interval.days * 86_400 + interval.seconds
    micros = seconds * 1_000_000 + interval.microseconds
    return _trunc_div(micros, 1000)


def to_timedelta(interval: int) -> timedelta:
    return timedelta(milliseconds=interval)


def interval_days(interval: int) -> int:
    return _trunc_div(interval, DAY_MS)


def interval_hours_part(interval: int) -> int:
    return _trunc_div(_trunc_mod(interval, DAY_MS), HOUR_MS)


def interval_minutes_part(interval: int) -> int:
    return _trunc_div(_trunc_mod(interval, HOUR_MS), MINUTE_MS)


def interval_seconds_part(interval: int) -> int:
    return _trunc_div(_trunc_mod(interval, MINUTE_MS), SECOND_MS)


def interval_milliseconds_part(interval: int) -> int:
    return _trunc_mod(interval, SECOND_MS)


def interval_parts(interval: int) -> IntervalParts:
    """Decompose *interval* into days, hours, minutes and seconds.

    Example::

        >>> interval_parts(90_061_000)
        IntervalParts(days=1, hours=1, minutes=1, seconds=1)
    """
    return IntervalParts(
        days=interval_days(interval),
        hours=interval_hours_part(interval),
        minutes=interval_minutes_part(interval),
        seconds=interval_seconds_part(interval),
    )
