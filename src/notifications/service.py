"""Notification service: one shared context per user session.

Wires the preference store, factory, delivery gate, scheduling engine
and engagement tracker around a single transport and timer port. Build
one per session and pass it to whatever needs to notify.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from src.cache.memory_store import InMemoryKeyValueStore
from src.cache.redis_client import RedisCache
from src.notifications.api_client import ChurchApiClient
from src.notifications.calendar import is_in_quiet_hours
from src.notifications.config import DEFAULT_NOTIFICATION_CONFIG, DeliveryStatus, NotificationConfig
from src.notifications.engagement import (
    EngagementReporter,
    EngagementTracker,
    Navigator,
    RecordingNavigator,
    SavedItemsStore,
)
from src.notifications.exceptions import TransportError
from src.notifications.factory import NotificationFactory
from src.notifications.models import (
    ChurchNotification,
    CommunityNotification,
    CommunityRecord,
    DeliveryResult,
    DevotionNotification,
    DevotionRecord,
    EventNotification,
    EventRecord,
    NotificationPreferences,
    PrayerNotification,
    PrayerRecord,
    PushSubscription,
    ReminderNotification,
    ReminderRecord,
)
from src.notifications.preferences import PreferenceServerClient, PreferenceStore
from src.notifications.scheduler import AsyncioScheduler, SchedulerPort, SchedulingEngine
from src.notifications.sender import DeliveryGate
from src.notifications.subscriptions import SubscriptionManager
from src.notifications.transport import (
    GatewayTransport,
    InMemoryTransport,
    PushTransport,
    deferred_notification_message,
)

logger = logging.getLogger(__name__)

NOTIFICATION_CLICKED = "NOTIFICATION_CLICKED"
NOTIFICATION_CLOSED = "NOTIFICATION_CLOSED"
BACKGROUND_SYNC = "BACKGROUND_SYNC"


class NotificationService:
    """Entry point for building, gating, scheduling and tracking notifications.

    Until ``initialize`` succeeds every delivery call is a no-op that
    reports ``suppressed_unsupported``; nothing here raises to the caller
    except ``set_preferences`` on a malformed record.

    Example:
        service = NotificationService.from_settings()
        if await service.initialize():
            notification = await service.create_prayer_notification(record)
            await service.send_notification(notification)
    """

    def __init__(
        self,
        user_id: str = "anonymous",
        transport: Optional[PushTransport] = None,
        scheduler: Optional[SchedulerPort] = None,
        preferences: Optional[PreferenceStore] = None,
        config: Optional[NotificationConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        reporter: Optional[EngagementReporter] = None,
        navigator: Optional[Navigator] = None,
        saved_items: Optional[SavedItemsStore] = None,
        subscriptions: Optional[SubscriptionManager] = None,
    ):
        self.user_id = user_id
        self.config = config or DEFAULT_NOTIFICATION_CONFIG
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.transport = transport or InMemoryTransport()
        self.scheduler = scheduler or AsyncioScheduler()
        self.preferences = preferences or PreferenceStore(config=self.config)
        self.reporter = reporter or EngagementReporter()
        self.subscriptions = subscriptions or SubscriptionManager()

        self.factory = NotificationFactory(self.config, self._clock)
        self.gate = DeliveryGate(
            self.preferences, self.transport, self.scheduler,
            user_id=user_id, config=self.config, clock=self._clock, reporter=self.reporter,
        )
        self.engine = SchedulingEngine(self.transport, self.scheduler, self.config, self._clock)
        self.tracker = EngagementTracker(
            navigator or RecordingNavigator(), self.reporter, saved_items,
            user_id=user_id, config=self.config, clock=self._clock,
        )

        self.supported = False
        self.preferences.add_listener(self._on_preferences_changed)

    @classmethod
    def from_settings(cls, settings=None, user_id: Optional[str] = None, **overrides) -> "NotificationService":
        """Build a service wired to the backends the environment selects."""
        if settings is None:
            from src.settings import get_settings
            settings = get_settings()

        config = NotificationConfig.from_settings(settings)
        user_id = user_id or settings.default_user_id
        api = ChurchApiClient(settings.api_base_url, settings.request_timeout)
        backend = RedisCache(settings.redis_url) if settings.use_redis else InMemoryKeyValueStore()
        mirror = PreferenceServerClient(api) if settings.use_server_mirror else None

        components = {
            "transport": GatewayTransport(api, user_id),
            "preferences": PreferenceStore(backend, mirror, config, ttl=settings.redis_preferences_ttl),
            "reporter": EngagementReporter(api, enabled=settings.report_engagement),
            "saved_items": SavedItemsStore(backend, ttl=settings.redis_saved_items_ttl),
        }
        components.update(overrides)
        return cls(user_id=user_id, config=config, **components)

    # -- lifecycle ------------------------------------------------------------

    async def initialize(self) -> bool:
        """Check push support and rebuild recurring schedules.

        Timers do not survive a restart, so this must run on every start.
        """
        if not self.transport.is_supported():
            logger.warning("Push notifications are not supported in this environment")
            self.supported = False
            return False

        self.supported = True
        prefs = await self.preferences.get(self.user_id)
        await self.engine.update_scheduled_notifications(prefs)
        logger.info("Notification service initialized for %s", self.user_id)
        return True

    async def close(self) -> None:
        self.gate.queue.cancel_timer()
        self.engine.clear()
        close = getattr(self.preferences.backend, "close", None)
        if close is not None:
            await close()

    async def _on_preferences_changed(self, prefs: NotificationPreferences) -> None:
        if self.supported and prefs.user_id == self.user_id:
            await self.engine.update_scheduled_notifications(prefs)

    # -- preferences ----------------------------------------------------------

    async def get_preferences(self, user_id: Optional[str] = None) -> NotificationPreferences:
        return await self.preferences.get(user_id or self.user_id)

    async def set_preferences(self, prefs: NotificationPreferences, user_id: Optional[str] = None) -> None:
        await self.preferences.set(user_id or self.user_id, prefs)

    async def is_in_quiet_hours(self, now: Optional[datetime] = None) -> bool:
        prefs = await self.get_preferences()
        return is_in_quiet_hours(now or self._clock(), prefs.quiet_hours, self.config.civil_timezone)

    # -- builders -------------------------------------------------------------

    async def create_devotion_notification(self, devotion: DevotionRecord) -> DevotionNotification:
        return self.factory.create_devotion_notification(devotion, await self.get_preferences())

    async def create_prayer_notification(self, prayer: PrayerRecord) -> PrayerNotification:
        return self.factory.create_prayer_notification(prayer, await self.get_preferences())

    async def create_event_notification(self, event: EventRecord) -> EventNotification:
        return self.factory.create_event_notification(event, await self.get_preferences())

    async def create_community_notification(self, community: CommunityRecord) -> CommunityNotification:
        return self.factory.create_community_notification(community, await self.get_preferences())

    async def create_reminder_notification(self, reminder: ReminderRecord) -> ReminderNotification:
        return self.factory.create_reminder_notification(reminder, await self.get_preferences())

    # -- delivery -------------------------------------------------------------

    async def send_notification(self, notification: ChurchNotification) -> DeliveryResult:
        if not self.supported:
            return DeliveryResult(
                notification_id=notification.notification_id,
                notification_type=notification.notification_type,
                status=DeliveryStatus.SUPPRESSED_UNSUPPORTED,
                reason="push not supported",
                timestamp=self._clock(),
            )
        result = await self.gate.send(notification)
        if result.status == DeliveryStatus.FAILED:
            await self.reporter.report_error("notification_delivery", result.reason, {
                "notificationId": result.notification_id,
            })
        return result

    async def flush_batch(self) -> list[str]:
        if not self.supported:
            return []
        return await self.gate.flush()

    async def schedule_local_notification(self, notification: ChurchNotification, delay_seconds: float = 0) -> bool:
        """Ask the transport to show ``notification`` after ``delay_seconds``."""
        if not self.supported:
            logger.debug("Local schedule of %s skipped: unsupported", notification.notification_id)
            return False
        schedule_time = self._clock() + timedelta(seconds=delay_seconds)
        try:
            await self.transport.post_message(deferred_notification_message(notification, schedule_time))
        except TransportError as e:
            logger.warning("Could not schedule %s locally: %s", notification.notification_id, e)
            await self.reporter.report_error("local_schedule", str(e), {
                "notificationId": notification.notification_id,
            })
            return False
        return True

    # -- inbound from the transport --------------------------------------------

    async def handle_transport_message(self, message: dict) -> Optional[str]:
        """Route a message from the delivery surface.

        Returns the click effect for clicks, otherwise None.
        """
        kind = message.get("type")
        data = message.get("data") or {}

        if kind == NOTIFICATION_CLICKED:
            return await self.tracker.handle_click(data, message.get("action"))
        if kind == NOTIFICATION_CLOSED:
            await self.tracker.handle_close(data)
        elif kind == BACKGROUND_SYNC:
            logger.info("Background sync completed")
        else:
            logger.debug("Ignoring transport message %r", kind)
        return None

    def engagement_summary(self) -> dict:
        return self.reporter.summary()

    # -- push subscriptions -----------------------------------------------------

    async def subscribe_user(
        self,
        endpoint: str,
        keys: Optional[dict] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[PushSubscription]:
        if not self.supported:
            return None
        subscription = self.subscriptions.register(endpoint, self.user_id, keys, user_agent)
        try:
            await self.transport.subscribe(subscription)
        except TransportError as e:
            logger.warning("Push subscription failed for %s: %s", self.user_id, e)
            if e.subscription_gone:
                self.subscriptions.mark_invalid(endpoint)
            await self.reporter.report_error("push_subscribe", str(e), {"userId": self.user_id})
            return None
        return subscription

    async def unsubscribe_user(self, endpoint: str) -> bool:
        subscription = self.subscriptions.get(endpoint)
        if subscription is None:
            return False
        self.subscriptions.unregister(endpoint)
        if not self.supported:
            return True
        try:
            await self.transport.unsubscribe(subscription)
        except TransportError as e:
            logger.warning("Push unsubscribe failed for %s: %s", self.user_id, e)
            return False
        return True

    def get_stats(self) -> dict:
        return {
            "supported": self.supported,
            "delivery": self.gate.get_stats(),
            "schedules": sorted(self.engine.active_schedules),
            "subscriptions": self.subscriptions.get_stats(),
        }
