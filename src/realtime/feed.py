"""In-process change feed for table-level realtime updates.

Every write made through the service layer is published here as an
INSERT, UPDATE or DELETE event. Listeners subscribe with optional
table and event filters, and polling clients read the bounded history
by sequence number.
"""

import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from src.utils.logger import get_logger

logger = get_logger(__name__)

EVENT_TYPES = ("INSERT", "UPDATE", "DELETE")


@dataclass
class ChangeEvent:
    """A single row-level change on a table."""

    seq: int
    table: str
    event: str
    record: dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Listener = Callable[[ChangeEvent], None]


@dataclass
class _Registration:
    callback: Listener
    table: str | None
    event: str | None

    def matches(self, change: ChangeEvent) -> bool:
        if self.table is not None and self.table != change.table:
            return False
        if self.event not in (None, "*") and self.event != change.event:
            return False
        return True


class Subscription:
    """Handle returned by :meth:`ChangeFeed.subscribe`."""

    def __init__(self, feed: "ChangeFeed", registration: _Registration) -> None:
        self._feed = feed
        self._registration = registration
        self.active = True

    def unsubscribe(self) -> None:
        """Stop delivering events to this subscriber."""
        if self.active:
            self._feed._remove(self._registration)
            self.active = False


class ChangeFeed:
    """Publish/subscribe hub with a bounded, sequence-numbered history.

    Args:
        history_size: Number of most recent events kept for polling.
    """

    def __init__(self, history_size: int = 500) -> None:
        self._lock = threading.Lock()
        self._history: deque[ChangeEvent] = deque(maxlen=history_size)
        self._registrations: list[_Registration] = []
        self._seq = 0

    @property
    def last_seq(self) -> int:
        return self._seq

    def subscribe(
        self,
        callback: Listener,
        table: str | None = None,
        event: str | None = None,
    ) -> Subscription:
        """Register a listener.

        Args:
            callback: Called with each matching :class:`ChangeEvent`.
            table: Only deliver events for this table.
            event: Only deliver this event type (``"*"`` for all).

        Returns:
            Subscription handle used to detach the listener.
        """
        if event not in (None, "*") and event not in EVENT_TYPES:
            raise ValueError(f"Unsupported event type: {event}")
        registration = _Registration(callback, table, event)
        with self._lock:
            self._registrations.append(registration)
        return Subscription(self, registration)

    def _remove(self, registration: _Registration) -> None:
        with self._lock:
            if registration in self._registrations:
                self._registrations.remove(registration)

    def publish(self, table: str, event: str, record: dict[str, Any]) -> ChangeEvent:
        """Record a change and notify matching subscribers."""
        if event not in EVENT_TYPES:
            raise ValueError(f"Unsupported event type: {event}")
        with self._lock:
            self._seq += 1
            change = ChangeEvent(seq=self._seq, table=table, event=event, record=record)
            self._history.append(change)
            listeners = [r for r in self._registrations if r.matches(change)]

        logger.debug("Change #%d: %s on %s", change.seq, event, table)
        for registration in listeners:
            try:
                registration.callback(change)
            except Exception:
                logger.exception("Change listener failed for %s on %s", event, table)
        return change

    def since(self, seq: int = 0, table: str | None = None) -> list[ChangeEvent]:
        """Return retained events newer than ``seq``, oldest first."""
        with self._lock:
            return [
                c
                for c in self._history
                if c.seq > seq and (table is None or c.table == table)
            ]
