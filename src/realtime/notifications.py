"""Live notifications derived from change-feed inserts.

Turns new uploads, results and voter statistics into short
human-readable messages for the admin dashboard.
"""

import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from src.utils.logger import get_logger

from .feed import ChangeEvent, ChangeFeed, Subscription

logger = get_logger(__name__)


@dataclass
class Notification:
    """A dashboard notification."""

    seq: int
    table: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class UploadNotifier:
    """Subscribes to inserts and keeps the most recent notifications.

    Args:
        feed: Change feed to listen on.
        station_name: Looks up a station name by id, ``None`` if unknown.
        history_size: Number of notifications retained.
    """

    def __init__(
        self,
        feed: ChangeFeed,
        station_name: Callable[[str], str | None],
        history_size: int = 100,
    ) -> None:
        self._station_name = station_name
        self._lock = threading.Lock()
        self._items: deque[Notification] = deque(maxlen=history_size)
        self._subscriptions: list[Subscription] = [
            feed.subscribe(self._on_upload, table="uploads", event="INSERT"),
            feed.subscribe(self._on_stats, table="voter_statistics", event="INSERT"),
            feed.subscribe(self._on_results, table="results", event="INSERT"),
        ]

    def close(self) -> None:
        """Detach from the change feed."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()

    def since(self, seq: int = 0) -> list[Notification]:
        with self._lock:
            return [n for n in self._items if n.seq > seq]

    def _push(self, change: ChangeEvent, message: str) -> None:
        with self._lock:
            self._items.append(
                Notification(seq=change.seq, table=change.table, message=message)
            )
        logger.info(message)

    def _on_upload(self, change: ChangeEvent) -> None:
        station_id = change.record.get("station_id")
        if not station_id:
            logger.error("Invalid upload payload received: %s", change.record)
            return
        name = self._station_name(station_id) or "Unknown station"
        self._push(change, f"{name} has submitted new results")

    def _on_stats(self, change: ChangeEvent) -> None:
        self._push(change, "New voter statistics have been recorded")

    def _on_results(self, change: ChangeEvent) -> None:
        self._push(change, "New voting results have been recorded")
