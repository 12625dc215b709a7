"""Unit tests for driftclock._convert — timestamp and interval helpers.

Test Techniques Used:
    - Specification-based Testing: Known timestamps and formats
    - Boundary Value Analysis: Epoch, negative values, truncation
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from driftclock._convert import (
    IntervalParts,
    from_datetime,
    from_timedelta,
    from_unix_seconds,
    interval_days,
    interval_hours_part,
    interval_milliseconds_part,
    interval_minutes_part,
    interval_parts,
    interval_seconds_part,
    millisecond_part,
    to_iso8601,
    to_local_datetime,
    to_timedelta,
    to_unix_seconds,
    to_utc_datetime,
)

# 2019-08-10T22:08:14.102Z
STAMP = 1_565_474_894_102


class TestIso8601:
    """Technique: Specification-based Testing."""

    def test_with_milliseconds(self) -> None:
        """Default format carries three fractional digits and Z."""
        assert to_iso8601(STAMP) == "2019-08-10T22:08:14.102Z"

    def test_without_milliseconds(self) -> None:
        """suppress_milliseconds drops the fraction."""
        assert to_iso8601(STAMP, suppress_milliseconds=True) == "2019-08-10T22:08:14Z"

    def test_epoch(self) -> None:
        """Zero is the Unix epoch."""
        assert to_iso8601(0) == "1970-01-01T00:00:00.000Z"


class TestTimestamps:
    """Technique: Boundary Value Analysis."""

    def test_from_aware_datetime(self) -> None:
        """Aware datetimes convert regardless of zone."""
        moment = datetime(
            2019, 8, 11, 0, 8, 14, 102_999, tzinfo=timezone(timedelta(hours=2))
        )
        assert from_datetime(moment) == STAMP

    def test_utc_datetime_round_trip(self) -> None:
        """to_utc_datetime is aware and converts back."""
        moment = to_utc_datetime(STAMP)
        assert moment.tzinfo == UTC
        assert from_datetime(moment) == STAMP

    def test_local_datetime_same_instant(self) -> None:
        """Local conversion changes the zone, not the instant."""
        assert from_datetime(to_local_datetime(STAMP)) == STAMP

    def test_unix_seconds(self) -> None:
        """Seconds multiply and truncate."""
        assert from_unix_seconds(1_565_474_894) == 1_565_474_894_000
        assert to_unix_seconds(STAMP) == 1_565_474_894

    def test_unix_seconds_truncates_toward_zero(self) -> None:
        """Negative timestamps truncate toward zero."""
        assert to_unix_seconds(-1500) == -1

    @pytest.mark.parametrize(
        ("stamp", "expected"), [(STAMP, 102), (1000, 0), (-1500, -500)]
    )
    def test_millisecond_part(self, stamp: int, expected: int) -> None:
        """Millisecond component keeps the sign of the timestamp."""
        assert millisecond_part(stamp) == expected


class TestIntervals:
    """Technique: Specification-based Testing — decomposition."""

    INTERVAL = 2 * 86_400_000 + 3 * 3_600_000 + 4 * 60_000 + 5 * 1000 + 6

    def test_parts(self) -> None:
        """Each component is extracted."""
        assert interval_days(self.INTERVAL) == 2
        assert interval_hours_part(self.INTERVAL) == 3
        assert interval_minutes_part(self.INTERVAL) == 4
        assert interval_seconds_part(self.INTERVAL) == 5
        assert interval_milliseconds_part(self.INTERVAL) == 6

    def test_interval_parts(self) -> None:
        """interval_parts() bundles days..seconds."""
        assert interval_parts(self.INTERVAL) == IntervalParts(2, 3, 4, 5)

    def test_negative_interval(self) -> None:
        """Negative intervals have non-positive parts."""
        assert interval_parts(-self.INTERVAL) == IntervalParts(-2, -3, -4, -5)
        assert interval_milliseconds_part(-self.INTERVAL) == -6

    def test_timedelta_conversions(self) -> None:
        """timedelta in and out, truncating microseconds."""
        assert to_timedelta(1500) == timedelta(seconds=1.5)
        assert from_timedelta(timedelta(milliseconds=1500, microseconds=999)) == 1500
        assert from_timedelta(timedelta(microseconds=-1500)) == -1
