"""Recurring notification scheduling.

Computes the next fire instant for each recurring notification kind in
the deployment's civil timezone, hands it to the transport as a deferred
delivery and keeps a local one-shot timer that renews the schedule once
it has fired. Timers go through a small port so the engine runs against
asyncio in production and a manual clock in tests.
"""

import asyncio
import calendar as month_calendar
import logging
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Iterator, Optional, Protocol

from src.notifications.calendar import is_holiday, to_civil, wall_clock
from src.notifications.config import (
    DEFAULT_NOTIFICATION_CONFIG,
    NotificationConfig,
    NotificationType,
    RecurrencePattern,
)
from src.notifications.exceptions import TransportError
from src.notifications.models import (
    NotificationPreferences,
    NotificationSchedule,
    Recurrence,
    ScheduleConditions,
)
from src.notifications.transport import PushTransport, cancel_message, schedule_message

logger = logging.getLogger(__name__)

DAILY_DEVOTION = "daily-devotion"
WEEKLY_CHECKIN = "weekly-checkin"


# =========================================================================
# Timer port
# =========================================================================


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class SchedulerPort(Protocol):
    """``schedule_once(delay, callback) -> handle``; the callback may be async."""

    def schedule_once(self, delay_seconds: float, callback: Callable[[], Any]) -> TimerHandle: ...


class AsyncioScheduler:
    """Timer port backed by the running event loop's ``call_later``."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._tasks: set[asyncio.Task] = set()

    def schedule_once(self, delay_seconds: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(delay_seconds, 0.0), self._run, callback)

    def _run(self, callback: Callable[[], Any]) -> None:
        result = callback()
        if asyncio.iscoroutine(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)


# =========================================================================
# Next-fire computation
# =========================================================================


def _sunday_index(day: date) -> int:
    """Day of week with Sunday = 0."""
    return day.isoweekday() % 7


def _clamped(year: int, month: int, day_of_month: int) -> date:
    last = month_calendar.monthrange(year, month)[1]
    return date(year, month, min(day_of_month, last))


def _candidate_days(start: date, recurrence: Recurrence) -> Iterator[date]:
    """Matching days from ``start`` onwards, in order."""
    if recurrence.pattern == RecurrencePattern.MONTHLY:
        day_of_month = recurrence.day_of_month or start.day
        year, month = start.year, start.month
        while True:
            day = _clamped(year, month, day_of_month)
            if day >= start:
                yield day
            month += 1
            if month > 12:
                year, month = year + 1, 1

    if recurrence.pattern == RecurrencePattern.WEEKLY:
        days = set(recurrence.days_of_week or [_sunday_index(start)])
    else:
        days = set(range(7))
    day = start
    while True:
        if _sunday_index(day) in days:
            yield day
        day += timedelta(days=1)


def next_occurrence(
    now: datetime,
    recurrence: Recurrence,
    tz_name: Optional[str] = None,
    skip_holidays: bool = False,
    max_skips: int = DEFAULT_NOTIFICATION_CONFIG.max_holiday_skip_days,
) -> datetime:
    """Earliest instant strictly after ``now`` matching ``recurrence``.

    With ``skip_holidays`` set, holiday occurrences are passed over, but
    never more than ``max_skips`` of them in a row.
    """
    local_now = to_civil(now, tz_name)
    skipped = 0
    for day in _candidate_days(local_now.date(), recurrence):
        candidate = wall_clock(day, recurrence.time, tz_name)
        if candidate <= local_now:
            continue
        if skip_holidays and skipped < max_skips and is_holiday(day):
            skipped += 1
            continue
        return candidate
    raise AssertionError("unreachable: candidate days are unbounded")


def next_daily(now: datetime, hhmm: str, tz_name: Optional[str] = None, skip_holidays: bool = False) -> datetime:
    """Today at ``hhmm`` if still ahead, otherwise tomorrow."""
    return next_occurrence(now, Recurrence(RecurrencePattern.DAILY, hhmm), tz_name, skip_holidays)


def next_weekly(
    now: datetime,
    hhmm: str,
    days_of_week: list[int],
    tz_name: Optional[str] = None,
    skip_holidays: bool = False,
) -> datetime:
    recurrence = Recurrence(RecurrencePattern.WEEKLY, hhmm, days_of_week=days_of_week)
    return next_occurrence(now, recurrence, tz_name, skip_holidays)


def next_monthly(now: datetime, hhmm: str, day_of_month: int, tz_name: Optional[str] = None) -> datetime:
    recurrence = Recurrence(RecurrencePattern.MONTHLY, hhmm, day_of_month=day_of_month)
    return next_occurrence(now, recurrence, tz_name)


# =========================================================================
# Engine
# =========================================================================


class SchedulingEngine:
    """Keeps at most one active schedule per schedule id.

    Example:
        engine = SchedulingEngine(transport, AsyncioScheduler())
        await engine.update_scheduled_notifications(preferences)
        engine.active_schedules["daily-devotion"].scheduled_time
    """

    def __init__(
        self,
        transport: PushTransport,
        scheduler: SchedulerPort,
        config: Optional[NotificationConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.transport = transport
        self.scheduler = scheduler
        self.config = config or DEFAULT_NOTIFICATION_CONFIG
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._schedules: dict[str, NotificationSchedule] = {}
        self._handles: dict[str, TimerHandle] = {}

    @property
    def active_schedules(self) -> dict[str, NotificationSchedule]:
        return dict(self._schedules)

    # -- schedule construction ------------------------------------------

    def _next(self, recurrence: Recurrence, conditions: ScheduleConditions, after: Optional[datetime] = None) -> datetime:
        return next_occurrence(
            after or self._clock(),
            recurrence,
            self.config.civil_timezone,
            skip_holidays=conditions.skip_holidays,
            max_skips=self.config.max_holiday_skip_days,
        )

    def build_daily_devotion(self, preferences: NotificationPreferences) -> NotificationSchedule:
        recurrence = Recurrence(RecurrencePattern.DAILY, preferences.devotions.time)
        conditions = ScheduleConditions(
            respect_quiet_hours=preferences.quiet_hours.enabled,
            skip_holidays=False,
            batch_with_others=preferences.batch_notifications,
        )
        return NotificationSchedule(
            id=DAILY_DEVOTION,
            type=NotificationType.DEVOTION,
            scheduled_time=self._next(recurrence, conditions),
            time_zone=self.config.civil_timezone,
            recurrence=recurrence,
            conditions=conditions,
        )

    def build_weekly_checkin(self, preferences: NotificationPreferences) -> NotificationSchedule:
        recurrence = Recurrence(RecurrencePattern.WEEKLY, preferences.devotions.time, days_of_week=[0])
        conditions = ScheduleConditions(
            respect_quiet_hours=preferences.quiet_hours.enabled,
            skip_holidays=True,
            batch_with_others=preferences.batch_notifications,
        )
        return NotificationSchedule(
            id=WEEKLY_CHECKIN,
            type=NotificationType.REMINDER,
            scheduled_time=self._next(recurrence, conditions),
            time_zone=self.config.civil_timezone,
            recurrence=recurrence,
            conditions=conditions,
        )

    # -- registration -----------------------------------------------------

    async def schedule_daily_devotion(self, preferences: NotificationPreferences) -> Optional[NotificationSchedule]:
        if not (preferences.enabled and preferences.devotions.enabled):
            await self.cancel(DAILY_DEVOTION)
            return None
        return await self.register(self.build_daily_devotion(preferences))

    async def schedule_weekly_checkin(self, preferences: NotificationPreferences) -> Optional[NotificationSchedule]:
        community = preferences.community
        if not (preferences.enabled and community.enabled and community.weekly_checkins):
            await self.cancel(WEEKLY_CHECKIN)
            return None
        return await self.register(self.build_weekly_checkin(preferences))

    async def update_scheduled_notifications(self, preferences: NotificationPreferences) -> list[NotificationSchedule]:
        """Recompute every schedule from ``preferences``.

        Schedules that are re-registered supersede the active ones; any
        previously active id that is not re-registered is cancelled with
        the transport as well.
        """
        previous = set(self._schedules)
        scheduled = [
            await self.schedule_daily_devotion(preferences),
            await self.schedule_weekly_checkin(preferences),
        ]
        scheduled = [s for s in scheduled if s is not None]
        for schedule_id in previous - {s.id for s in scheduled}:
            await self.cancel(schedule_id)
        return scheduled

    async def register(self, schedule: NotificationSchedule) -> Optional[NotificationSchedule]:
        """Make ``schedule`` the active one for its id.

        A schedule whose fire time is not in the future is dropped.
        """
        delay = (schedule.scheduled_time - self._clock()).total_seconds()
        if delay <= 0:
            logger.debug("Dropping schedule %s with non-positive delay %.3fs", schedule.id, delay)
            return None

        self._cancel_timer(schedule.id)
        self._schedules[schedule.id] = schedule
        self._handles[schedule.id] = self.scheduler.schedule_once(
            delay, lambda schedule_id=schedule.id: self._renew(schedule_id)
        )

        try:
            await self.transport.post_message(schedule_message(schedule, delay))
        except TransportError as e:
            logger.warning("Transport refused schedule %s: %s", schedule.id, e)

        logger.info(
            "Scheduled %s at %s",
            schedule.id,
            schedule.scheduled_time.isoformat(),
            extra={"schedule_id": schedule.id},
        )
        return schedule

    async def _renew(self, schedule_id: str) -> Optional[NotificationSchedule]:
        """Timer callback: replace a fired schedule with its next occurrence."""
        self._handles.pop(schedule_id, None)
        schedule = self._schedules.get(schedule_id)
        if schedule is None or schedule.recurrence is None:
            self._schedules.pop(schedule_id, None)
            return None

        # An early timer must not land on the same occurrence again
        after = max(self._clock(), schedule.scheduled_time)
        renewed = replace(schedule, scheduled_time=self._next(schedule.recurrence, schedule.conditions, after))
        return await self.register(renewed)

    def _cancel_timer(self, schedule_id: str) -> None:
        handle = self._handles.pop(schedule_id, None)
        if handle is not None:
            handle.cancel()

    async def cancel(self, schedule_id: str) -> bool:
        """Remove one schedule and tell the transport to forget it."""
        self._cancel_timer(schedule_id)
        if self._schedules.pop(schedule_id, None) is None:
            return False
        try:
            await self.transport.post_message(cancel_message(schedule_id))
        except TransportError as e:
            logger.warning("Transport refused cancel of %s: %s", schedule_id, e)
        return True

    def clear(self) -> None:
        for schedule_id in list(self._handles):
            self._cancel_timer(schedule_id)
        self._schedules.clear()
