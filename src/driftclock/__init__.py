"""driftclock.

Drift-corrected, monotonic UTC milliseconds for long-running processes,
calibrated against a single NTP server.
"""

from importlib.metadata import PackageNotFoundError, version

from driftclock._clock import (
    MonotonicClockPort,
    Stopwatch,
    SystemMonotonicClock,
    SystemWallClock,
    WallClockPort,
)
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
from driftclock._engine import RECEIVE_TIMEOUT_MS, SyncAttempt, SyncEngine
from driftclock._events import NetworkTimeAcquired, TimeAcquiredCallback
from driftclock._logging import JsonFormatter, configure_logging
from driftclock._network import (
    NetworkMonitorPort,
    ResolverPort,
    RouteNetworkMonitor,
    SystemResolver,
)
from driftclock._packet import NTP_TO_UNIX_MS, NtpPacketError
from driftclock._service import TimeService
from driftclock._settings import (
    LoggingSettings,
    NetworkSettings,
    NtpSettings,
    Settings,
)
from driftclock._state import FALLBACK_SERVER, ClockBaseline, ClockState
from driftclock._tasks import fire_and_forget

try:
    __version__ = version("driftclock")
except PackageNotFoundError:
    # Running from a source tree without installed metadata
    __version__ = "0.0.0+unknown"

__all__ = [
    # Version
    "__version__",
    # Service
    "TimeService",
    # Clock state
    "FALLBACK_SERVER",
    "ClockBaseline",
    "ClockState",
    # Sync engine
    "RECEIVE_TIMEOUT_MS",
    "NTP_TO_UNIX_MS",
    "NetworkTimeAcquired",
    "NtpPacketError",
    "SyncAttempt",
    "SyncEngine",
    "TimeAcquiredCallback",
    # Local clocks
    "MonotonicClockPort",
    "Stopwatch",
    "SystemMonotonicClock",
    "SystemWallClock",
    "WallClockPort",
    # Network
    "NetworkMonitorPort",
    "ResolverPort",
    "RouteNetworkMonitor",
    "SystemResolver",
    # Tasks
    "fire_and_forget",
    # Conversions
    "IntervalParts",
    "from_datetime",
    "from_timedelta",
    "from_unix_seconds",
    "interval_days",
    "interval_hours_part",
    "interval_milliseconds_part",
    "interval_minutes_part",
    "interval_parts",
    "interval_seconds_part",
    "millisecond_part",
    "to_iso8601",
    "to_local_datetime",
    "to_timedelta",
    "to_unix_seconds",
    "to_utc_datetime",
    # Logging
    "JsonFormatter",
    "configure_logging",
    # Settings
    "LoggingSettings",
    "NetworkSettings",
    "NtpSettings",
    "Settings",
]
