"""Pytest plugin providing shared driftclock fixtures.

Registers ``fake_monotonic``, ``fake_wall``, ``fake_resolver``,
``fake_monitor``, ``ntp_server`` and ``time_service`` for any test
suite that depends on driftclock.

Discovered automatically via the ``pytest11`` entry point.

Imports of driftclock modules are deferred into the fixture bodies:
this module is loaded during plugin discovery, before ``pytest-cov``
starts tracing, and eager imports would be missed by coverage.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

import pytest
import pytest_asyncio

if TYPE_CHECKING:
    from driftclock._service import TimeService
    from driftclock.testing._clock import FakeMonotonicClock, FakeWallClock
    from driftclock.testing._network import FakeNetworkMonitor, FakeResolver
    from driftclock.testing._server import ReferenceNtpServer


@pytest.fixture
def fake_monotonic() -> FakeMonotonicClock:
    """Monotonic counter frozen at 10 000 ms."""
    from driftclock.testing._clock import FakeMonotonicClock

    return FakeMonotonicClock(10_000)


@pytest.fixture
def fake_wall() -> FakeWallClock:
    """Wall clock frozen at 2023-11-14T22:13:20Z."""
    from driftclock.testing._clock import FakeWallClock

    return FakeWallClock()


@pytest.fixture
def fake_resolver() -> FakeResolver:
    """Resolver mapping every host to 127.0.0.1."""
    from driftclock.testing._network import FakeResolver

    return FakeResolver()


@pytest.fixture
def fake_monitor() -> FakeNetworkMonitor:
    """Network monitor reporting the network as available."""
    from driftclock.testing._network import FakeNetworkMonitor

    return FakeNetworkMonitor()


@pytest_asyncio.fixture
async def ntp_server(fake_wall: FakeWallClock) -> AsyncIterator[ReferenceNtpServer]:
    """Started loopback NTP server sharing ``fake_wall``, zero offset."""
    from driftclock.testing._server import ReferenceNtpServer

    async with ReferenceNtpServer(wall=fake_wall) as server:
        yield server


@pytest_asyncio.fixture
async def time_service(
    ntp_server: ReferenceNtpServer,
    fake_monotonic: FakeMonotonicClock,
    fake_wall: FakeWallClock,
    fake_resolver: FakeResolver,
    fake_monitor: FakeNetworkMonitor,
) -> AsyncIterator[TimeService]:
    """TimeService wired to the fakes and the loopback server (not started).

    Stopped on teardown if the test started it.
    """
    from driftclock._service import TimeService
    from driftclock._settings import NtpSettings
    from driftclock.testing._settings import make_settings

    settings = make_settings(
        ntp=NtpSettings(default_server="ntp.test", port=ntp_server.port),
    )
    service = TimeService(
        settings,
        monotonic=fake_monotonic,
        wall=fake_wall,
        resolver=fake_resolver,
        monitor=fake_monitor,
    )
    yield service
    await service.stop()
    await service.engine.wait_idle()
