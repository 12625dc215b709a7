"""Process-level time service.

:class:`TimeService` wires one :class:`ClockState`, one
:class:`SyncEngine` and the network collaborators together from
:class:`Settings`.  Construct it once during process start-up and hand
the instance to whatever needs the time::

    async with TimeService(Settings()) as clock:
        clock.on_time_acquired(lambda event: print(event.skew_ms))
        ...
        stamp = clock.now()

Sync triggers:

1. :meth:`start` — one round right away, when indicated.
2. Network regained — the monitor's availability callback.
3. :attr:`suppress_network_calls` switched off at runtime.
4. :meth:`try_sync` / :meth:`sync` — on demand.

Parameters other than *settings* exist for testability: inject fake
clocks, a fake resolver and a fake monitor to avoid real I/O.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from types import TracebackType
from typing import Protocol, runtime_checkable

from driftclock._clock import MonotonicClockPort, WallClockPort
from driftclock._engine import SyncEngine
from driftclock._events import TimeAcquiredCallback
from driftclock._network import NetworkMonitorPort, ResolverPort, RouteNetworkMonitor
from driftclock._settings import Settings
from driftclock._state import ClockState

logger = logging.getLogger(__name__)


@runtime_checkable
class MonitorLifecycle(Protocol):
    """Monitors that poll in the background and need start/stop."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


class TimeService:
    """The single authoritative time source of a process.

    Args:
        settings: Loaded configuration.
        monotonic: Override the monotonic counter.
        wall: Override the host wall clock.
        resolver: Override host-name resolution.
        monitor: Override network-availability monitoring.  Defaults
            to a :class:`RouteNetworkMonitor` built from
            ``settings.network``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        monotonic: MonotonicClockPort | None = None,
        wall: WallClockPort | None = None,
        resolver: ResolverPort | None = None,
        monitor: NetworkMonitorPort | None = None,
    ) -> None:
        self._settings = settings if settings is not None else Settings()
        ntp = self._settings.ntp
        self._monitor = (
            monitor
            if monitor is not None
            else RouteNetworkMonitor(
                probe_host=self._settings.network.probe_host,
                poll_interval=self._settings.network.poll_interval,
            )
        )
        self._state = ClockState(
            monotonic=monotonic,
            wall=wall,
            default_server=ntp.default_server,
        )
        self._engine = SyncEngine(
            self._state,
            resolver=resolver,
            monitor=self._monitor,
            port=ntp.port,
            resolve_timeout=ntp.resolve_timeout,
            suppress_network_calls=ntp.suppress_network_calls,
        )
        self._unsubscribe_monitor: Callable[[], None] | None = None

    # -- lifecycle -----------------------------------------------------------

    @property
    def started(self) -> bool:
        return self._unsubscribe_monitor is not None

    async def start(self) -> None:
        """Subscribe to availability changes and kick off the first round."""
        if self.started:
            return
        self._unsubscribe_monitor = self._monitor.subscribe(
            self._engine.on_network_availability_changed,
        )
        if isinstance(self._monitor, MonitorLifecycle):
            await self._monitor.start()
        logger.info(
            "Time service started (server=%s, suppressed=%s)",
            self._state.default_server,
            self._engine.suppress_network_calls,
        )
        self._engine.trigger()

    async def stop(self) -> None:
        """Unsubscribe, stop monitoring and wait out any in-flight round."""
        if self._unsubscribe_monitor is None:
            return
        self._unsubscribe_monitor()
        self._unsubscribe_monitor = None
        if isinstance(self._monitor, MonitorLifecycle):
            await self._monitor.stop()
        await self._engine.wait_idle()
        logger.info("Time service stopped")

    async def __aenter__(self) -> TimeService:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    # -- components ----------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def state(self) -> ClockState:
        return self._state

    @property
    def engine(self) -> SyncEngine:
        return self._engine

    # -- clock API -----------------------------------------------------------

    def now(self) -> int:
        """Corrected UTC milliseconds."""
        return self._state.now()

    @property
    def skew(self) -> int:
        return self._state.skew

    @property
    def synchronized(self) -> bool:
        return self._state.synchronized

    @property
    def initialized(self) -> bool:
        return self._state.initialized

    @property
    def device_boot_time(self) -> int:
        return self._state.device_boot_time

    @property
    def device_up_time(self) -> int:
        return self._state.device_up_time

    @property
    def device_utc_now(self) -> int:
        return self._state.device_utc_now

    @property
    def default_server(self) -> str:
        return self._state.default_server

    @default_server.setter
    def default_server(self, value: str) -> None:
        self._state.default_server = value

    @property
    def suppress_network_calls(self) -> bool:
        return self._engine.suppress_network_calls

    @suppress_network_calls.setter
    def suppress_network_calls(self, value: bool) -> None:
        self._engine.suppress_network_calls = value

    def on_time_acquired(self, callback: TimeAcquiredCallback) -> Callable[[], None]:
        """Subscribe to "time acquired" events; returns an unsubscriber."""
        return self._engine.subscribe(callback)

    def try_sync(self, server_host: str | None = None) -> asyncio.Task[bool] | None:
        """Fire-and-forget one round (see :meth:`SyncEngine.try_sync`)."""
        return self._engine.try_sync(server_host)

    async def sync(self, server_host: str | None = None) -> bool:
        """Run one round and wait for it (see :meth:`SyncEngine.sync`)."""
        return await self._engine.sync(server_host)
