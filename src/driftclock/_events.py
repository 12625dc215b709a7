"""Synchronisation events and their subscriber list.

A single event is published: :class:`NetworkTimeAcquired`, fired after
the baseline of a successful round has been published, and only on an
unsynchronized → synchronized transition.

Delivery is synchronous and in subscription order.  A subscriber that
raises is logged and skipped — one broken listener must not stop the
others or leak into the sync engine.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NetworkTimeAcquired:
    """Payload of the "time acquired" notification.

    Attributes:
        server: Host name the round was run against.
        latency_ms: Duration of the whole attempt, resolution included.
        skew_ms: Computed true UTC minus the host's uncorrected UTC.
    """

    server: str
    latency_ms: int
    skew_ms: int

    def to_json(self) -> str:
        """Serialise to a JSON string."""
        return json.dumps(asdict(self))


TimeAcquiredCallback = Callable[[NetworkTimeAcquired], None]
"""Listener invoked with each :class:`NetworkTimeAcquired` event."""


@dataclass
class EventBroadcaster:
    """Ordered list of :data:`TimeAcquiredCallback` subscribers."""

    _subscribers: list[TimeAcquiredCallback] = field(
        default_factory=list,
        init=False,
        repr=False,
    )

    def subscribe(self, callback: TimeAcquiredCallback) -> Callable[[], None]:
        """Register *callback* and return a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: NetworkTimeAcquired) -> None:
        """Deliver *event* to every subscriber, swallowing their errors."""
        logger.info(
            "Network time acquired from %s (latency=%d ms, skew=%d ms)",
            event.server,
            event.latency_ms,
            event.skew_ms,
            extra=asdict(event),
        )
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Time-acquired subscriber %r failed", callback)
