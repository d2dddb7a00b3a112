"""Pytest configuration and shared fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.notifications.config import NotificationConfig  # noqa: E402
from src.notifications.preferences import PreferenceStore  # noqa: E402
from src.notifications.service import NotificationService  # noqa: E402
from src.notifications.transport import InMemoryTransport  # noqa: E402

HKT = ZoneInfo("Asia/Hong_Kong")


class FixedClock:
    """Callable clock pinned to an instant; move it with ``advance``/``set``."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class ManualTimer:
    def __init__(self, scheduler, delay, callback):
        self.scheduler = scheduler
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Timer port whose callbacks only run when a test fires them."""

    def __init__(self):
        self.timers: list[ManualTimer] = []

    def schedule_once(self, delay_seconds, callback):
        timer = ManualTimer(self, delay_seconds, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    async def fire(self, timer: ManualTimer):
        timer.fired = True
        result = timer.callback()
        if hasattr(result, "__await__"):
            result = await result
        return result

    async def fire_all(self) -> list:
        return [await self.fire(t) for t in list(self.pending)]


@pytest.fixture
def clock():
    """Thursday 2025-06-12 07:00 in Hong Kong."""
    return FixedClock(datetime(2025, 6, 12, 7, 0, tzinfo=HKT).astimezone(timezone.utc))


@pytest.fixture
def manual_scheduler():
    return ManualScheduler()


@pytest.fixture
def transport():
    return InMemoryTransport()


@pytest.fixture
def config():
    return NotificationConfig()


@pytest.fixture
def preference_store(config):
    return PreferenceStore(config=config)


@pytest.fixture
def make_service(transport, manual_scheduler, preference_store, config, clock):
    """Factory for a NotificationService wired to in-memory collaborators."""

    def _make(**overrides) -> NotificationService:
        components = {
            "transport": transport,
            "scheduler": manual_scheduler,
            "preferences": preference_store,
            "config": config,
            "clock": clock,
        }
        components.update(overrides)
        return NotificationService(**components)

    return _make
