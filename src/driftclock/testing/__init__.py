"""Public test-support utilities for driftclock.

Re-exports test doubles and factories so that consumer test suites
can import everything from a single ``driftclock.testing`` namespace
instead of reaching into private modules.

Provided symbols:

- :class:`FakeMonotonicClock` / :class:`FakeWallClock` — deterministic clocks.
- :class:`FakeResolver` — scripted host-name resolution.
- :class:`FakeNetworkMonitor` — availability set by the test.
- :class:`ReferenceNtpServer` — loopback NTP responder.
- :func:`make_settings` — factory for ``Settings`` without ``.env`` files.
"""

from driftclock.testing._clock import FakeMonotonicClock, FakeWallClock
from driftclock.testing._network import FakeNetworkMonitor, FakeResolver
from driftclock.testing._server import ReferenceNtpServer
from driftclock.testing._settings import make_settings

__all__ = [
    "FakeMonotonicClock",
    "FakeNetworkMonitor",
    "FakeResolver",
    "FakeWallClock",
    "ReferenceNtpServer",
    "make_settings",
]
