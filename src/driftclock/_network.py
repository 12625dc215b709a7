"""Name-resolution and network-availability ports with system adapters.

Both collaborators sit at the edge of the sync engine:

- :class:`ResolverPort` turns a host name into candidate addresses.
  :class:`SystemResolver` delegates to the event loop's
  ``getaddrinfo`` (run in the default executor, so it never blocks
  the loop).
- :class:`NetworkMonitorPort` answers "is a network path plausibly
  available" and notifies subscribers when that answer changes.
  :class:`RouteNetworkMonitor` checks for a route by ``connect()``-ing
  a UDP socket to a well-known address — no packet is sent — and
  polls that check in a background task.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
from collections.abc import Callable
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

AvailabilityCallback = Callable[[bool], None]
"""Listener invoked with the new availability on each transition."""

_PROBE_PORT = 53


# ---------------------------------------------------------------------------
# Ports (Protocols)
# ---------------------------------------------------------------------------


@runtime_checkable
class ResolverPort(Protocol):
    """Host name → list of IP address strings."""

    async def resolve(self, host: str) -> list[str]:
        """Resolve *host*.

        Returns:
            Candidate addresses, best first.  May be empty.

        Raises:
            OSError: On resolver failure.
        """
        ...


@runtime_checkable
class NetworkMonitorPort(Protocol):
    """Network-availability signal."""

    def is_available(self) -> bool: ...

    def subscribe(self, callback: AvailabilityCallback) -> Callable[[], None]: ...


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


class SystemResolver:
    """Resolve IPv4 UDP endpoints through ``loop.getaddrinfo``.

    Args:
        port: Service port passed to ``getaddrinfo``.  Only affects
            which records are returned, not the addresses themselves.
    """

    def __init__(self, port: int = 123) -> None:
        self._port = port

    async def resolve(self, host: str) -> list[str]:
        loop = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(
            host,
            self._port,
            family=socket.AF_INET,
            type=socket.SOCK_DGRAM,
        )
        addresses: list[str] = []
        for *_, sockaddr in infos:
            address = str(sockaddr[0])
            if address not in addresses:
                addresses.append(address)
        return addresses


class RouteNetworkMonitor:
    """Polling availability monitor based on routing-table lookups.

    Args:
        probe_host: IPv4 literal used for the route check.  Must not
            be a host name — the check has to work without DNS.
        poll_interval: Seconds between checks while started.
    """

    def __init__(
        self,
        probe_host: str = "8.8.8.8",
        poll_interval: float = 30.0,
    ) -> None:
        self._probe_host = probe_host
        self._poll_interval = poll_interval
        self._subscribers: list[AvailabilityCallback] = []
        self._last: bool | None = None
        self._task: asyncio.Task[None] | None = None

    def is_available(self) -> bool:
        """Return whether the host has a route to the probe address."""
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sock.connect((self._probe_host, _PROBE_PORT))
                local_address = sock.getsockname()[0]
        except OSError:
            return False
        return not local_address.startswith("0.")

    def subscribe(self, callback: AvailabilityCallback) -> Callable[[], None]:
        """Register *callback* and return a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def poll_once(self) -> bool:
        """Check availability now and notify subscribers on a change."""
        available = self.is_available()
        previous, self._last = self._last, available
        if previous is not None and previous != available:
            logger.info(
                "Network availability changed: %s",
                "available" if available else "unavailable",
            )
            self._notify(available)
        return available

    async def start(self) -> None:
        """Record the current state and start polling in the background."""
        if self._task is not None:
            return
        self._last = self.is_available()
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        """Stop polling.  Safe to call when not started."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            self.poll_once()

    def _notify(self, available: bool) -> None:
        for callback in list(self._subscribers):
            try:
                callback(available)
            except Exception:
                logger.exception("Availability subscriber %r failed", callback)
