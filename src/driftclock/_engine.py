"""NTP synchronisation engine.

Runs one best-effort NTP round trip at a time and turns its result into
a new :class:`~driftclock._state.ClockBaseline`.

Round outline::

    reset baseline ─► policy gate ─► resolve ─► connect ─► send ─► receive
          │                                                           │
          └──────────── any failure: unsynchronized ◄── decode, publish ┘

Guarantees:

- **At most one attempt in flight.**  The slot is claimed
  synchronously when a round is requested and held across every
  suspension point; a second request while it is held is dropped.
- **Silent failure.**  Resolution errors, socket errors, timeouts and
  nonsensical replies all end the round with ``synchronized=False``.
  Nothing propagates to the caller.
- **Clean teardown.**  The socket and stopwatches of an attempt are
  released however the round ends.
- **One notification per transition.**  :class:`NetworkTimeAcquired`
  fires only when the clock was unsynchronized before the attempt.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
from collections.abc import Callable
from dataclasses import dataclass, field

from driftclock._clock import Stopwatch
from driftclock._events import (
    EventBroadcaster,
    NetworkTimeAcquired,
    TimeAcquiredCallback,
)
from driftclock._network import NetworkMonitorPort, ResolverPort, SystemResolver
from driftclock._packet import (
    PACKET_SIZE,
    NtpPacketError,
    build_request,
    compute_time_now,
)
from driftclock._state import FALLBACK_SERVER, ClockBaseline, ClockState
from driftclock._tasks import fire_and_forget

logger = logging.getLogger(__name__)

NTP_PORT = 123
RECEIVE_TIMEOUT_MS = 3000
STAGE_COUNT = 3
"""connect, send, receive."""


@dataclass
class SyncAttempt:
    """Per-round state, discarded when the round ends.

    Attributes:
        prior_sync_state: ``synchronized`` before the round started.
        buffer: Request buffer, overwritten in place by the reply.
        stages_completed: Network stages finished so far.
        server_resolved: Host name the round runs against.
        latency: Brackets the whole attempt.
        round_trip: Brackets the network stages only.
        sock: The transient UDP socket, once opened.
    """

    prior_sync_state: bool
    latency: Stopwatch | None
    buffer: bytearray = field(default_factory=build_request)
    stages_completed: int = 0
    server_resolved: str = ""
    round_trip: Stopwatch | None = None
    sock: socket.socket | None = field(default=None, repr=False)

    def log_context(self) -> dict[str, object]:
        """Fields attached to this attempt's log records."""
        return {
            "server": self.server_resolved,
            "stages_completed": self.stages_completed,
        }

    def orderly_shutdown(self) -> None:
        """Stop and drop the stopwatches, shut down and close the socket.

        Idempotent.  Socket errors during teardown are ignored.
        """
        if self.round_trip is not None:
            self.round_trip.stop()
            self.round_trip = None

        if self.sock is not None:
            with contextlib.suppress(OSError):
                self.sock.shutdown(socket.SHUT_RDWR)
            with contextlib.suppress(OSError):
                self.sock.close()
            self.sock = None

        if self.latency is not None:
            self.latency.stop()
            self.latency = None


class SyncEngine:
    """Owns the at-most-one-in-flight NTP synchronisation protocol.

    Args:
        state: Clock state to calibrate.
        resolver: Host-name resolver.  Defaults to
            :class:`SystemResolver`.
        monitor: Optional network-availability monitor.  Without one
            the network is assumed available.
        port: NTP server UDP port.
        resolve_timeout: Seconds allowed for name resolution.
        receive_timeout_ms: Deadline for the reply datagram.
        suppress_network_calls: Start with network I/O disabled.
    """

    def __init__(
        self,
        state: ClockState,
        *,
        resolver: ResolverPort | None = None,
        monitor: NetworkMonitorPort | None = None,
        port: int = NTP_PORT,
        resolve_timeout: float = 3.0,
        receive_timeout_ms: int = RECEIVE_TIMEOUT_MS,
        suppress_network_calls: bool = False,
    ) -> None:
        self._state = state
        self._resolver = resolver if resolver is not None else SystemResolver(port)
        self._monitor = monitor
        self._port = port
        self._resolve_timeout = resolve_timeout
        self._receive_timeout = receive_timeout_ms / 1000
        self._suppress = suppress_network_calls
        self._events = EventBroadcaster()
        self._attempt: SyncAttempt | None = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._loop: asyncio.AbstractEventLoop | None = None

    # -- policy --------------------------------------------------------------

    @property
    def state(self) -> ClockState:
        return self._state

    @property
    def in_flight(self) -> bool:
        return self._attempt is not None

    @property
    def attempt(self) -> SyncAttempt | None:
        """The running attempt, if any."""
        return self._attempt

    @property
    def suppress_network_calls(self) -> bool:
        return self._suppress

    @suppress_network_calls.setter
    def suppress_network_calls(self, value: bool) -> None:
        if value == self._suppress:
            return
        self._suppress = value
        logger.info("Network calls %s", "suppressed" if value else "enabled")
        self.trigger()

    @property
    def network_available(self) -> bool:
        return self._monitor is None or self._monitor.is_available()

    @property
    def indicated(self) -> bool:
        """Whether a round would be worth running right now."""
        return (
            not self._suppress
            and not self._state.synchronized
            and self.network_available
        )

    def subscribe(self, callback: TimeAcquiredCallback) -> Callable[[], None]:
        """Register a "time acquired" listener; returns an unsubscriber."""
        return self._events.subscribe(callback)

    # -- triggers ------------------------------------------------------------

    def trigger(self) -> asyncio.Task[bool] | None:
        """Start a background round if one is indicated.

        Callable from any thread; see :meth:`try_sync`.
        """
        if not self._on_loop():
            self._call_soon_threadsafe(self.trigger)
            return None
        if not self.indicated:
            return None
        return self.try_sync()

    def on_network_availability_changed(self, available: bool) -> None:
        """Availability listener: resync when the network comes back.

        Monitors may call this from their own thread.
        """
        if available:
            self.trigger()

    def try_sync(self, server_host: str | None = None) -> asyncio.Task[bool] | None:
        """Fire-and-forget one round.

        Called off the event loop (from a monitor thread, say), the
        request is handed to the loop the engine last ran on and
        ``None`` is returned.  Before the engine has seen a loop such
        requests are dropped.

        Returns:
            The background task, or ``None`` when the request was
            deferred to the loop or dropped because an attempt is
            already in flight.
        """
        if not self._on_loop():
            self._call_soon_threadsafe(self.try_sync, server_host)
            return None
        if self._attempt is not None:
            logger.debug("Sync already in flight; request dropped")
            return None
        attempt = self._claim()
        task = fire_and_forget(
            self._run(attempt, server_host),
            name="driftclock-sync",
        )
        task.add_done_callback(lambda _: self._release(attempt))
        return task

    async def sync(self, server_host: str | None = None) -> bool:
        """Run one round and wait for it.

        Returns:
            Whether the clock is synchronized afterwards.  When another
            attempt is in flight nothing is done and the current state
            is returned.
        """
        self._on_loop()
        if self._attempt is not None:
            logger.debug("Sync already in flight; request dropped")
            return self._state.synchronized
        return await self._run(self._claim(), server_host)

    async def wait_idle(self) -> None:
        """Wait until no attempt is in flight."""
        await self._idle.wait()

    # -- loop affinity -------------------------------------------------------

    def _on_loop(self) -> bool:
        """Whether the caller runs on the engine's loop, binding it if unset."""
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            return False
        if self._loop is None or self._loop.is_closed():
            self._loop = running
        return running is self._loop

    def _call_soon_threadsafe(
        self, callback: Callable[..., object], *args: object
    ) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("No event loop to run on; sync request dropped")
            return
        loop.call_soon_threadsafe(callback, *args)

    # -- round ---------------------------------------------------------------

    def _claim(self) -> SyncAttempt:
        attempt = SyncAttempt(
            prior_sync_state=self._state.synchronized,
            latency=Stopwatch.start_new(self._state.monotonic),
        )
        self._attempt = attempt
        self._idle.clear()
        return attempt

    def _release(self, attempt: SyncAttempt) -> None:
        attempt.orderly_shutdown()
        if self._attempt is attempt:
            self._attempt = None
            self._idle.set()

    async def _run(self, attempt: SyncAttempt, server_host: str | None) -> bool:
        try:
            self._state.reset()
            if not self._state.initialized or not self.indicated:
                logger.debug("Sync not indicated; skipping round")
                return False

            attempt.server_resolved = self._select_server(server_host)
            round_trip_ms = await self._exchange(attempt)
            return self._apply(attempt, round_trip_ms // 2)
        except (OSError, NtpPacketError) as exc:
            self._state.mark_unsynchronized()
            logger.info(
                "Not synchronized with %s: %s",
                attempt.server_resolved or "<unresolved>",
                str(exc) or type(exc).__name__,
                extra=attempt.log_context(),
            )
            return False
        except Exception:
            self._state.mark_unsynchronized()
            logger.warning(
                "Not synchronized with %s: unexpected error",
                attempt.server_resolved,
                exc_info=True,
                extra=attempt.log_context(),
            )
            return False
        finally:
            self._release(attempt)

    def _select_server(self, server_host: str | None) -> str:
        default = self._state.default_server
        if server_host is None or (server_host == FALLBACK_SERVER and default):
            return default or FALLBACK_SERVER
        return server_host

    async def _exchange(self, attempt: SyncAttempt) -> int:
        """Resolve, connect, send and receive into ``attempt.buffer``.

        Returns:
            The measured round trip in milliseconds.
        """
        loop = asyncio.get_running_loop()
        addresses = await asyncio.wait_for(
            self._resolver.resolve(attempt.server_resolved),
            self._resolve_timeout,
        )
        if not addresses:
            raise OSError(f"no addresses for {attempt.server_resolved!r}")
        address = addresses[0]
        logger.debug("Resolved %s to %s", attempt.server_resolved, address)

        family = socket.AF_INET6 if ":" in address else socket.AF_INET
        attempt.sock = sock = socket.socket(family, socket.SOCK_DGRAM)
        sock.setblocking(False)

        attempt.round_trip = round_trip = Stopwatch.start_new(self._state.monotonic)
        await loop.sock_connect(sock, (address, self._port))
        attempt.stages_completed += 1

        await loop.sock_sendall(sock, attempt.buffer)
        attempt.stages_completed += 1

        received = await asyncio.wait_for(
            loop.sock_recv_into(sock, attempt.buffer),
            self._receive_timeout,
        )
        attempt.stages_completed += 1
        round_trip.stop()
        if received < PACKET_SIZE:
            raise NtpPacketError(
                f"NTP reply too short: {received} bytes, expected {PACKET_SIZE}"
            )
        return round_trip.elapsed_ms

    def _apply(self, attempt: SyncAttempt, half_round_trip: int) -> bool:
        """Decode the reply in ``attempt.buffer`` and publish it."""
        time_now = compute_time_now(attempt.buffer, half_round_trip)
        if time_now <= 0:
            self._state.mark_unsynchronized()
            logger.info(
                "Not synchronized with %s: non-positive time %d",
                attempt.server_resolved,
                time_now,
                extra=attempt.log_context(),
            )
            return False

        synchronized = attempt.stages_completed == STAGE_COUNT
        baseline = ClockBaseline(
            device_boot_time=time_now - self._state.device_up_time,
            skew_ms=time_now - self._state.device_utc_now,
            synchronized=synchronized,
        )
        self._state.publish(baseline)

        latency_ms = 0
        if attempt.latency is not None:
            attempt.latency.stop()
            latency_ms = attempt.latency.elapsed_ms
        if synchronized and not attempt.prior_sync_state:
            self._events.publish(
                NetworkTimeAcquired(
                    server=attempt.server_resolved,
                    latency_ms=latency_ms,
                    skew_ms=baseline.skew_ms,
                ),
            )
        return synchronized
