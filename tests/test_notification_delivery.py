"""Tests for the delivery gate, batch queue, daily counter and scheduling engine."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from src.notifications.config import (
    CommunityType,
    DeliveryStatus,
    EngagementAction,
    NotificationType,
    PrayerRequestType,
    RecurrencePattern,
)
from src.notifications.engagement import EngagementReporter
from src.notifications.exceptions import InvalidPreferencesError, TransportError
from src.notifications.factory import NotificationFactory
from src.notifications.models import (
    CommunityRecord,
    DevotionRecord,
    EventRecord,
    NotificationPreferences,
    NotificationSchedule,
    PrayerRecord,
    Recurrence,
)
from src.notifications.preferences import PreferenceStore
from src.notifications.queue import BatchQueue, DailyCounter
from src.notifications.scheduler import (
    DAILY_DEVOTION,
    WEEKLY_CHECKIN,
    SchedulingEngine,
    next_daily,
    next_monthly,
    next_occurrence,
    next_weekly,
)
from src.notifications.sender import DeliveryGate, is_category_enabled
from src.notifications.transport import SCHEDULE_NOTIFICATION, InMemoryTransport

HKT = ZoneInfo("Asia/Hong_Kong")


def hkt(*args) -> datetime:
    return datetime(*args, tzinfo=HKT)


@pytest.fixture
def factory(clock):
    return NotificationFactory(clock=clock)


@pytest.fixture
def reporter():
    return EngagementReporter()


@pytest.fixture
def gate(preference_store, transport, manual_scheduler, config, clock, reporter):
    return DeliveryGate(
        preference_store, transport, manual_scheduler,
        user_id="u1", config=config, clock=clock, reporter=reporter,
    )


async def store_prefs(store, **changes) -> NotificationPreferences:
    prefs = NotificationPreferences.defaults("u1")
    for key, value in changes.items():
        setattr(prefs, key, value)
    await store.set("u1", prefs)
    return prefs


def devotion(factory, prefs, n):
    return factory.create_devotion_notification(DevotionRecord(id=f"d{n}", title=f"Devotion {n}"), prefs)


def prayer(factory, prefs, request_type=PrayerRequestType.NEW, pid="p1"):
    return factory.create_prayer_notification(
        PrayerRecord(id=pid, request_text="Please pray", request_type=request_type), prefs,
    )


def community(factory, prefs, community_type, cid="c1"):
    return factory.create_community_notification(
        CommunityRecord(id=cid, community_type=community_type, title="Group", message="Hello"), prefs,
    )


class TestCategoryChecks:
    """Tests for per-category enablement."""

    def test_prayer_urgent_only(self, factory):
        prefs = NotificationPreferences.defaults("u1")
        prefs.prayers.urgent_only = True
        assert is_category_enabled(prayer(factory, prefs, PrayerRequestType.URGENT), prefs) == (True, "")
        allowed, reason = is_category_enabled(prayer(factory, prefs, PrayerRequestType.NEW), prefs)
        assert not allowed
        assert reason == "urgent prayers only"

    @pytest.mark.parametrize("community_type,toggle", [
        (CommunityType.GROUP_MESSAGE, "group_messages"),
        (CommunityType.GROUP_MILESTONE, "achievements"),
        (CommunityType.ACHIEVEMENT, "achievements"),
        (CommunityType.ENCOURAGEMENT, "weekly_checkins"),
    ])
    def test_community_sub_toggles(self, factory, community_type, toggle):
        prefs = NotificationPreferences.defaults("u1")
        n = community(factory, prefs, community_type)
        assert is_category_enabled(n, prefs)[0]
        setattr(prefs.community, toggle, False)
        assert not is_category_enabled(n, prefs)[0]

    def test_category_switches(self, factory):
        prefs = NotificationPreferences.defaults("u1")
        prefs.devotions.enabled = False
        prefs.events.enabled = False
        assert not is_category_enabled(devotion(factory, prefs, 1), prefs)[0]
        event = factory.create_event_notification(
            EventRecord(id="e1", title="Service", start_time=hkt(2025, 6, 15, 10, 0)), prefs,
        )
        assert not is_category_enabled(event, prefs)[0]


class TestDeliveryGate:
    """Tests for the send decision procedure."""

    @pytest.mark.asyncio
    async def test_master_switch_off(self, gate, preference_store, factory, transport, manual_scheduler):
        prefs = await store_prefs(preference_store, enabled=False)
        result = await gate.send(devotion(factory, prefs, 1))
        assert result.status == DeliveryStatus.SUPPRESSED_DISABLED
        assert transport.shown == []
        assert len(gate.queue) == 0
        assert manual_scheduler.pending == []

    @pytest.mark.asyncio
    async def test_urgent_only_delivers_urgent_and_drops_new(self, gate, preference_store, factory, transport):
        prefs = NotificationPreferences.defaults("u1")
        prefs.prayers.urgent_only = True
        await preference_store.set("u1", prefs)

        urgent = await gate.send(prayer(factory, prefs, PrayerRequestType.URGENT, "p1"))
        new = await gate.send(prayer(factory, prefs, PrayerRequestType.NEW, "p2"))

        assert urgent.status == DeliveryStatus.SENT
        assert new.status == DeliveryStatus.SUPPRESSED_PREFERENCE
        assert transport.shown_tags == ["prayer-urgent"]

    @pytest.mark.asyncio
    async def test_three_non_urgent_flush_once_in_order(self, gate, preference_store, factory, transport, manual_scheduler):
        prefs = await store_prefs(preference_store)
        results = [await gate.send(devotion(factory, prefs, i)) for i in (1, 2, 3)]

        assert [r.status for r in results] == [DeliveryStatus.QUEUED] * 3
        assert transport.shown == []
        assert len(manual_scheduler.pending) == 1
        assert manual_scheduler.pending[0].delay == 120

        delivered = (await manual_scheduler.fire_all())[0]

        assert delivered == ["devotion-d1", "devotion-d2", "devotion-d3"]
        assert [p["devotionId"] for p in transport.shown] == ["d1", "d2", "d3"]
        assert len(gate.queue) == 0
        assert not gate.queue.has_pending_timer
        assert manual_scheduler.pending == []

    @pytest.mark.asyncio
    async def test_urgent_flushes_batch_immediately(self, gate, preference_store, factory, transport, manual_scheduler):
        prefs = await store_prefs(preference_store)
        await gate.send(devotion(factory, prefs, 1))
        await gate.send(community(factory, prefs, CommunityType.GROUP_MESSAGE))
        timer = manual_scheduler.pending[0]

        result = await gate.send(prayer(factory, prefs, PrayerRequestType.URGENT))

        assert result.status == DeliveryStatus.SENT
        assert transport.shown_tags == ["daily-devotion", "community-group_message-c1", "prayer-urgent"]
        assert timer.cancelled
        assert not gate.queue.has_pending_timer
        assert len(gate.queue) == 0

    @pytest.mark.asyncio
    async def test_batching_disabled_sends_immediately(self, gate, preference_store, factory, transport, manual_scheduler):
        prefs = await store_prefs(preference_store, batch_notifications=False)
        result = await gate.send(devotion(factory, prefs, 1))
        assert result.status == DeliveryStatus.SENT
        assert transport.shown_tags == ["daily-devotion"]
        assert manual_scheduler.timers == []

    @pytest.mark.asyncio
    async def test_daily_cap_and_next_day_reset(self, gate, preference_store, factory, transport, clock):
        prefs = await store_prefs(preference_store, batch_notifications=False, max_per_day=2)

        statuses = [(await gate.send(devotion(factory, prefs, i))).status for i in (1, 2, 3)]
        assert statuses == [DeliveryStatus.SENT, DeliveryStatus.SENT, DeliveryStatus.SUPPRESSED_DAILY_CAP]

        clock.advance(days=1)
        result = await gate.send(devotion(factory, prefs, 4))
        assert result.status == DeliveryStatus.SENT
        assert gate.counter.count == 1
        assert len(transport.shown) == 3

    @pytest.mark.asyncio
    async def test_daily_cap_applies_at_flush(self, gate, preference_store, factory, manual_scheduler):
        prefs = await store_prefs(preference_store, max_per_day=2)
        for i in (1, 2, 3):
            await gate.send(devotion(factory, prefs, i))
        delivered = (await manual_scheduler.fire_all())[0]
        assert delivered == ["devotion-d1", "devotion-d2"]

    @pytest.mark.asyncio
    async def test_transport_failure_is_swallowed(self, gate, preference_store, factory, transport):
        prefs = await store_prefs(preference_store, batch_notifications=False)
        transport.fail_with = TransportError("gateway down")
        result = await gate.send(devotion(factory, prefs, 1))
        assert result.status == DeliveryStatus.FAILED
        assert "gateway down" in result.reason
        assert gate.counter.count == 0

    @pytest.mark.asyncio
    async def test_enqueue_during_flush_starts_new_batch(self, preference_store, manual_scheduler, config, clock, factory):
        prefs = await store_prefs(preference_store)
        late = devotion(factory, prefs, 99)

        class ReentrantTransport(InMemoryTransport):
            async def show(self, notification):
                await super().show(notification)
                if len(self.shown) == 1:
                    await gate.send(late)

        transport = ReentrantTransport()
        gate = DeliveryGate(preference_store, transport, manual_scheduler, user_id="u1", config=config, clock=clock)
        await gate.send(devotion(factory, prefs, 1))
        await gate.send(devotion(factory, prefs, 2))

        delivered = await manual_scheduler.fire(manual_scheduler.pending[0])

        assert delivered == ["devotion-d1", "devotion-d2"]
        assert gate.queue.pending == (late,)
        assert len(manual_scheduler.pending) == 1

    @pytest.mark.asyncio
    async def test_sent_engagement_recorded(self, gate, preference_store, factory, reporter):
        prefs = await store_prefs(preference_store, batch_notifications=False)
        await gate.send(devotion(factory, prefs, 1))
        assert [e.action for e in reporter.history] == [EngagementAction.SENT]
        assert reporter.history[0].notification_id == "devotion-d1"

    @pytest.mark.asyncio
    async def test_flush_with_empty_queue(self, gate):
        assert await gate.flush() == []

    @pytest.mark.asyncio
    async def test_send_while_flush_loads_preferences_starts_new_batch(
        self, transport, manual_scheduler, config, clock, factory,
    ):
        class HookedStore(PreferenceStore):
            hook = None

            async def get(self, user_id):
                hook, self.hook = self.hook, None
                if hook is not None:
                    await hook()
                return await super().get(user_id)

        store = HookedStore(config=config)
        gate = DeliveryGate(store, transport, manual_scheduler, user_id="u1", config=config, clock=clock)
        prefs = await store_prefs(store)
        await gate.send(devotion(factory, prefs, 1))
        await gate.send(devotion(factory, prefs, 2))
        late = devotion(factory, prefs, 99)
        store.hook = lambda: gate.send(late)

        delivered = await manual_scheduler.fire(manual_scheduler.pending[0])

        assert delivered == ["devotion-d1", "devotion-d2"]
        assert gate.queue.pending == (late,)
        assert len(manual_scheduler.pending) == 1
        assert transport.shown_tags == ["daily-devotion", "daily-devotion"]

    @pytest.mark.asyncio
    async def test_unexpected_transport_error_is_contained(self, gate, preference_store, factory, transport):
        prefs = await store_prefs(preference_store, batch_notifications=False)
        transport.fail_with = TypeError("Object of type set is not JSON serializable")
        result = await gate.send(devotion(factory, prefs, 1))
        assert result.status == DeliveryStatus.FAILED
        assert result.reason.startswith("TypeError")
        assert gate.counter.count == 0


class TestBatchQueue:

    def test_single_timer(self):
        class Handle:
            cancelled = False

            def cancel(self):
                self.cancelled = True

        queue = BatchQueue()
        handle = Handle()
        queue.set_timer(handle)
        with pytest.raises(RuntimeError):
            queue.set_timer(Handle())
        assert queue.cancel_timer() is True
        assert handle.cancelled
        assert queue.cancel_timer() is False

    def test_drain_swaps_batch(self, factory):
        prefs = NotificationPreferences.defaults()
        queue = BatchQueue()
        queue.enqueue(devotion(factory, prefs, 1))
        batch = queue.drain()
        queue.enqueue(devotion(factory, prefs, 2))
        assert len(batch) == 1
        assert len(queue) == 1
        assert queue.get_stats()["total_enqueued"] == 2


class TestDailyCounter:

    def test_resets_on_civil_date_change(self, clock):
        clock.set(hkt(2025, 6, 12, 23, 59))
        counter = DailyCounter(clock, "Asia/Hong_Kong")
        counter.increment()
        counter.increment()
        assert counter.count == 2

        # Still 12 June in UTC, but a new day in Hong Kong
        clock.set(hkt(2025, 6, 13, 0, 1))
        assert counter.check(2) is True
        assert counter.count == 0

    def test_remaining(self, clock):
        counter = DailyCounter(clock)
        counter.increment()
        assert counter.remaining(3) == 2
        assert counter.remaining(0) == 0


class TestNextFire:
    """Tests for next-fire computation."""

    def test_later_today(self):
        assert next_daily(hkt(2025, 6, 12, 7, 0), "08:00") == hkt(2025, 6, 12, 8, 0)

    def test_passed_moves_to_tomorrow(self):
        assert next_daily(hkt(2025, 6, 12, 9, 30), "09:00") == hkt(2025, 6, 13, 9, 0)

    def test_equal_time_moves_to_tomorrow(self):
        assert next_daily(hkt(2025, 6, 12, 8, 0), "08:00") == hkt(2025, 6, 13, 8, 0)

    def test_utc_input_projected_to_civil_time(self):
        # 23:30 UTC on the 11th is 07:30 HKT on the 12th
        fire = next_daily(datetime(2025, 6, 11, 23, 30, tzinfo=timezone.utc), "08:00")
        assert fire == hkt(2025, 6, 12, 8, 0)

    def test_skip_holidays(self):
        fire = next_daily(hkt(2025, 12, 24, 9, 0), "08:00", skip_holidays=True)
        assert fire == hkt(2025, 12, 27, 8, 0)

    def test_holidays_not_skipped_by_default(self):
        assert next_daily(hkt(2025, 12, 24, 9, 0), "08:00") == hkt(2025, 12, 25, 8, 0)

    def test_holiday_skip_is_bounded(self):
        recurrence = Recurrence(RecurrencePattern.DAILY, "08:00")
        fire = next_occurrence(hkt(2025, 12, 24, 9, 0), recurrence, skip_holidays=True, max_skips=1)
        assert fire == hkt(2025, 12, 26, 8, 0)

    def test_weekly_next_sunday(self):
        # 12 June 2025 is a Thursday
        assert next_weekly(hkt(2025, 6, 12, 7, 0), "08:00", [0]) == hkt(2025, 6, 15, 8, 0)

    def test_weekly_same_day_when_ahead(self):
        assert next_weekly(hkt(2025, 6, 15, 7, 0), "08:00", [0]) == hkt(2025, 6, 15, 8, 0)

    def test_weekly_multiple_days(self):
        # Thursday 09:00 with Monday/Friday targets
        assert next_weekly(hkt(2025, 6, 12, 9, 0), "08:00", [1, 5]) == hkt(2025, 6, 13, 8, 0)

    def test_monthly_later_this_month(self):
        assert next_monthly(hkt(2025, 6, 12, 7, 0), "08:00", 20) == hkt(2025, 6, 20, 8, 0)

    def test_monthly_clamped_to_month_length(self):
        assert next_monthly(hkt(2025, 1, 31, 10, 0), "08:00", 31) == hkt(2025, 2, 28, 8, 0)


class TestSchedulingEngine:
    """Tests for schedule registration and renewal."""

    @pytest.fixture
    def engine(self, transport, manual_scheduler, config, clock):
        return SchedulingEngine(transport, manual_scheduler, config, clock)

    @pytest.mark.asyncio
    async def test_daily_devotion_same_day(self, engine, transport, manual_scheduler):
        prefs = NotificationPreferences.defaults("u1")
        schedule = await engine.schedule_daily_devotion(prefs)

        assert schedule.id == DAILY_DEVOTION
        assert schedule.scheduled_time == hkt(2025, 6, 12, 8, 0)
        assert schedule.time_zone == "Asia/Hong_Kong"
        assert schedule.recurrence.pattern == RecurrencePattern.DAILY
        assert schedule.conditions.skip_holidays is False
        assert manual_scheduler.pending[0].delay == 3600

        message = transport.messages[-1]
        assert message["type"] == SCHEDULE_NOTIFICATION
        assert message["schedule"]["id"] == DAILY_DEVOTION
        assert message["delay"] == 3_600_000

    @pytest.mark.asyncio
    async def test_daily_devotion_next_day_when_passed(self, engine, clock):
        clock.set(hkt(2025, 6, 12, 9, 30))
        prefs = NotificationPreferences.defaults("u1")
        prefs.devotions.time = "09:00"
        schedule = await engine.schedule_daily_devotion(prefs)
        assert schedule.scheduled_time == hkt(2025, 6, 13, 9, 0)

    @pytest.mark.asyncio
    async def test_update_builds_devotion_and_checkin(self, engine):
        schedules = await engine.update_scheduled_notifications(NotificationPreferences.defaults("u1"))
        assert [s.id for s in schedules] == [DAILY_DEVOTION, WEEKLY_CHECKIN]
        checkin = engine.active_schedules[WEEKLY_CHECKIN]
        assert checkin.type == NotificationType.REMINDER
        assert checkin.scheduled_time == hkt(2025, 6, 15, 8, 0)
        assert checkin.recurrence.days_of_week == [0]
        assert checkin.conditions.skip_holidays is True

    @pytest.mark.asyncio
    async def test_disabled_categories_are_not_scheduled(self, engine):
        prefs = NotificationPreferences.defaults("u1")
        prefs.devotions.enabled = False
        prefs.community.weekly_checkins = False
        assert await engine.update_scheduled_notifications(prefs) == []
        assert engine.active_schedules == {}

    @pytest.mark.asyncio
    async def test_reregistering_supersedes(self, engine, manual_scheduler):
        prefs = NotificationPreferences.defaults("u1")
        await engine.schedule_daily_devotion(prefs)
        prefs.devotions.time = "10:00"
        await engine.schedule_daily_devotion(prefs)

        assert len(engine.active_schedules) == 1
        assert engine.active_schedules[DAILY_DEVOTION].scheduled_time == hkt(2025, 6, 12, 10, 0)
        assert [t.delay for t in manual_scheduler.pending] == [3 * 3600]
        assert manual_scheduler.timers[0].cancelled

    @pytest.mark.asyncio
    async def test_recompute_is_idempotent(self, engine):
        prefs = NotificationPreferences.defaults("u1")
        first = await engine.update_scheduled_notifications(prefs)
        second = await engine.update_scheduled_notifications(prefs)
        assert [s.to_dict() for s in first] == [s.to_dict() for s in second]
        assert len(engine.active_schedules) == 2

    @pytest.mark.asyncio
    async def test_fired_schedule_renews_for_next_day(self, engine, manual_scheduler, clock, transport):
        await engine.schedule_daily_devotion(NotificationPreferences.defaults("u1"))
        clock.set(hkt(2025, 6, 12, 8, 0))

        renewed = await manual_scheduler.fire(manual_scheduler.pending[0])

        assert renewed.scheduled_time == hkt(2025, 6, 13, 8, 0)
        assert engine.active_schedules[DAILY_DEVOTION] is renewed
        assert [t.delay for t in manual_scheduler.pending] == [86400]
        assert transport.messages[-1]["delay"] == 86_400_000

    @pytest.mark.asyncio
    async def test_early_timer_does_not_repeat_occurrence(self, engine, manual_scheduler, clock):
        await engine.schedule_daily_devotion(NotificationPreferences.defaults("u1"))
        clock.set(hkt(2025, 6, 12, 7, 59, 59))
        renewed = await manual_scheduler.fire(manual_scheduler.pending[0])
        assert renewed.scheduled_time == hkt(2025, 6, 13, 8, 0)

    @pytest.mark.asyncio
    async def test_non_positive_delay_dropped(self, engine, clock, transport, manual_scheduler):
        schedule = NotificationSchedule(
            id="stale",
            type=NotificationType.DEVOTION,
            scheduled_time=clock() - timedelta(seconds=1),
            time_zone="Asia/Hong_Kong",
        )
        assert await engine.register(schedule) is None
        assert "stale" not in engine.active_schedules
        assert transport.messages == []
        assert manual_scheduler.timers == []

    @pytest.mark.asyncio
    async def test_transport_refusal_keeps_local_timer(self, engine, transport, manual_scheduler):
        transport.fail_with = TransportError("no worker")
        schedule = await engine.schedule_daily_devotion(NotificationPreferences.defaults("u1"))
        assert schedule is not None
        assert len(manual_scheduler.pending) == 1

    @pytest.mark.asyncio
    async def test_cancel_on_disable_posts_cancel(self, engine, transport):
        prefs = NotificationPreferences.defaults("u1")
        await engine.schedule_daily_devotion(prefs)
        prefs.devotions.enabled = False
        assert await engine.schedule_daily_devotion(prefs) is None
        assert transport.messages[-1] == {"type": "CANCEL_SCHEDULE", "id": DAILY_DEVOTION}

    @pytest.mark.asyncio
    async def test_update_cancels_schedules_no_longer_wanted(self, engine, transport, manual_scheduler):
        prefs = NotificationPreferences.defaults("u1")
        await engine.update_scheduled_notifications(prefs)
        prefs.devotions.enabled = False
        prefs.community.weekly_checkins = False

        assert await engine.update_scheduled_notifications(prefs) == []

        cancels = [m["id"] for m in transport.messages if m["type"] == "CANCEL_SCHEDULE"]
        assert sorted(cancels) == [DAILY_DEVOTION, WEEKLY_CHECKIN]
        assert engine.active_schedules == {}
        assert manual_scheduler.pending == []


class TestServiceDelivery:
    """End-to-end delivery through the service context object."""

    @pytest.mark.asyncio
    async def test_unsupported_environment_is_no_op(self, make_service, factory):
        service = make_service(transport=InMemoryTransport(supported=False))
        assert await service.initialize() is False

        n = devotion(factory, NotificationPreferences.defaults(), 1)
        result = await service.send_notification(n)
        assert result.status == DeliveryStatus.SUPPRESSED_UNSUPPORTED
        assert await service.schedule_local_notification(n) is False
        assert await service.flush_batch() == []

    @pytest.mark.asyncio
    async def test_initialize_builds_schedules(self, make_service):
        service = make_service()
        assert await service.initialize() is True
        assert set(service.engine.active_schedules) == {DAILY_DEVOTION, WEEKLY_CHECKIN}

    @pytest.mark.asyncio
    async def test_set_preferences_reschedules(self, make_service):
        service = make_service()
        await service.initialize()
        prefs = await service.get_preferences()
        prefs.devotions.time = "09:00"
        await service.set_preferences(prefs)
        assert service.engine.active_schedules[DAILY_DEVOTION].scheduled_time == hkt(2025, 6, 12, 9, 0)

    @pytest.mark.asyncio
    async def test_set_preferences_twice_same_schedules(self, make_service):
        service = make_service()
        await service.initialize()
        prefs = await service.get_preferences()
        await service.set_preferences(prefs)
        first = {k: v.to_dict() for k, v in service.engine.active_schedules.items()}
        await service.set_preferences(prefs)
        second = {k: v.to_dict() for k, v in service.engine.active_schedules.items()}
        assert first == second
        assert (await service.get_preferences()) == prefs

    @pytest.mark.asyncio
    async def test_invalid_preferences_surface(self, make_service):
        service = make_service()
        prefs = NotificationPreferences.defaults()
        prefs.quiet_hours.start = "late"
        with pytest.raises(InvalidPreferencesError):
            await service.set_preferences(prefs)

    @pytest.mark.asyncio
    async def test_create_and_send(self, make_service, transport):
        service = make_service()
        await service.initialize()
        n = await service.create_prayer_notification(
            PrayerRecord(id="p9", request_text="Help", request_type=PrayerRequestType.URGENT),
        )
        result = await service.send_notification(n)
        assert result.delivered
        assert transport.shown_tags == ["prayer-urgent"]

    @pytest.mark.asyncio
    async def test_schedule_local_notification(self, make_service, transport, clock, factory):
        service = make_service()
        await service.initialize()
        n = devotion(factory, NotificationPreferences.defaults(), 1)
        assert await service.schedule_local_notification(n, delay_seconds=30) is True
        message = transport.messages[-1]
        assert message["type"] == SCHEDULE_NOTIFICATION
        assert message["notification"]["tag"] == "daily-devotion"
        assert message["scheduleTime"] == int((clock() + timedelta(seconds=30)).timestamp() * 1000)

    @pytest.mark.asyncio
    async def test_quiet_hours_helper(self, make_service, clock):
        service = make_service()
        assert await service.is_in_quiet_hours() is False
        clock.set(hkt(2025, 6, 12, 23, 30))
        assert await service.is_in_quiet_hours() is True

    @pytest.mark.asyncio
    async def test_disabling_devotions_cancels_transport_schedule(self, make_service, transport):
        service = make_service()
        await service.initialize()
        prefs = await service.get_preferences()
        prefs.devotions.enabled = False

        await service.set_preferences(prefs)

        assert {"type": "CANCEL_SCHEDULE", "id": DAILY_DEVOTION} in transport.messages
        assert set(service.engine.active_schedules) == {WEEKLY_CHECKIN}
