"""Batch queue and daily delivery counter."""

from datetime import date, datetime, timezone
from typing import Callable, Optional

from src.notifications.calendar import to_civil
from src.notifications.config import DEFAULT_NOTIFICATION_CONFIG
from src.notifications.models import ChurchNotification


class BatchQueue:
    """FIFO of notifications waiting for one flush.

    Holds at most one pending flush timer handle. ``drain`` hands back the
    current batch and starts an empty one, so anything enqueued while a
    flush is in progress belongs to the next batch.
    """

    def __init__(self):
        self._items: list[ChurchNotification] = []
        self._timer = None
        self.total_enqueued = 0
        self.total_flushed = 0

    def __len__(self) -> int:
        return len(self._items)

    @property
    def pending(self) -> tuple[ChurchNotification, ...]:
        return tuple(self._items)

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    def enqueue(self, notification: ChurchNotification) -> int:
        """Append to the current batch; returns the new batch size."""
        self._items.append(notification)
        self.total_enqueued += 1
        return len(self._items)

    def drain(self) -> list[ChurchNotification]:
        batch, self._items = self._items, []
        self.total_flushed += len(batch)
        return batch

    def set_timer(self, handle) -> None:
        if self._timer is not None:
            raise RuntimeError("A flush timer is already pending")
        self._timer = handle

    def cancel_timer(self) -> bool:
        """Cancel and forget the pending timer. Returns False when none was set."""
        if self._timer is None:
            return False
        handle, self._timer = self._timer, None
        handle.cancel()
        return True

    def timer_fired(self) -> None:
        """Forget the handle of a timer that has already run."""
        self._timer = None

    def get_stats(self) -> dict:
        return {
            "queue_size": len(self._items),
            "timer_pending": self.has_pending_timer,
            "total_enqueued": self.total_enqueued,
            "total_flushed": self.total_flushed,
        }


class DailyCounter:
    """Count of notifications handed to the transport today.

    Resets lazily: the first check or increment on a new civil date
    zeroes the count. There is no background timer.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        tz_name: Optional[str] = None,
    ):
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._tz_name = tz_name or DEFAULT_NOTIFICATION_CONFIG.civil_timezone
        self.count = 0
        self.last_reset_date: Optional[date] = None

    def _roll(self) -> None:
        today = to_civil(self._clock(), self._tz_name).date()
        if today != self.last_reset_date:
            self.count = 0
            self.last_reset_date = today

    def check(self, limit: int) -> bool:
        """True while today's count is below ``limit``."""
        self._roll()
        return self.count < limit

    def increment(self) -> int:
        self._roll()
        self.count += 1
        return self.count

    def remaining(self, limit: int) -> int:
        self._roll()
        return max(limit - self.count, 0)
