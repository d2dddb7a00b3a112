"""Delivery gate and batcher.

Decides, for each built notification, whether it is dropped, held for
the next batch flush, or handed to the transport right away.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from src.logging_config import NotificationContext, PerformanceTimer
from src.notifications.config import (
    DEFAULT_NOTIFICATION_CONFIG,
    CommunityType,
    DeliveryStatus,
    EngagementAction,
    NotificationConfig,
    NotificationType,
)
from src.notifications.engagement import EngagementReporter
from src.notifications.exceptions import TransportError
from src.notifications.models import (
    ChurchNotification,
    DeliveryResult,
    EngagementEvent,
    NotificationPreferences,
)
from src.notifications.preferences import PreferenceStore
from src.notifications.queue import BatchQueue, DailyCounter
from src.notifications.scheduler import SchedulerPort
from src.notifications.transport import PushTransport

logger = logging.getLogger(__name__)


# Community sub-type -> the preference toggle that controls it
COMMUNITY_TOGGLES: dict[CommunityType, str] = {
    CommunityType.GROUP_MESSAGE: "group_messages",
    CommunityType.GROUP_MILESTONE: "achievements",
    CommunityType.ACHIEVEMENT: "achievements",
    CommunityType.ENCOURAGEMENT: "weekly_checkins",
}


def _devotion_enabled(notification, prefs: NotificationPreferences) -> tuple[bool, str]:
    return prefs.devotions.enabled, "devotions disabled"


def _event_enabled(notification, prefs: NotificationPreferences) -> tuple[bool, str]:
    return prefs.events.enabled, "events disabled"


def _prayer_enabled(notification, prefs: NotificationPreferences) -> tuple[bool, str]:
    if not prefs.prayers.enabled:
        return False, "prayers disabled"
    if prefs.prayers.urgent_only and not notification.is_urgent:
        return False, "urgent prayers only"
    return True, ""


def _community_enabled(notification, prefs: NotificationPreferences) -> tuple[bool, str]:
    if not prefs.community.enabled:
        return False, "community disabled"
    toggle = COMMUNITY_TOGGLES.get(notification.community_type)
    if toggle and not getattr(prefs.community, toggle):
        return False, f"community {toggle} disabled"
    return True, ""


def _reminder_enabled(notification, prefs: NotificationPreferences) -> tuple[bool, str]:
    # Reminders follow the master switch only
    return True, ""


CATEGORY_CHECKS: dict[NotificationType, Callable[..., tuple[bool, str]]] = {
    NotificationType.DEVOTION: _devotion_enabled,
    NotificationType.EVENT: _event_enabled,
    NotificationType.PRAYER: _prayer_enabled,
    NotificationType.COMMUNITY: _community_enabled,
    NotificationType.REMINDER: _reminder_enabled,
}


def is_category_enabled(notification: ChurchNotification, prefs: NotificationPreferences) -> tuple[bool, str]:
    """(allowed, reason) for the notification's category settings."""
    check = CATEGORY_CHECKS.get(notification.notification_type)
    if check is None:
        return False, f"unknown type {notification.notification_type}"
    return check(notification, prefs)


class DeliveryGate:
    """Policy core: preference checks, batching, urgent bypass and daily cap.

    All state (the batch and the day's counter) belongs to one user
    session. Transport failures are logged and never reach the caller.
    """

    def __init__(
        self,
        preferences: PreferenceStore,
        transport: PushTransport,
        scheduler: SchedulerPort,
        user_id: str = "anonymous",
        config: Optional[NotificationConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        reporter: Optional[EngagementReporter] = None,
    ):
        self.preferences = preferences
        self.transport = transport
        self.scheduler = scheduler
        self.user_id = user_id
        self.config = config or DEFAULT_NOTIFICATION_CONFIG
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.reporter = reporter
        self.queue = BatchQueue()
        self.counter = DailyCounter(self._clock, self.config.civil_timezone)

    def _result(self, notification: ChurchNotification, status: DeliveryStatus, reason: str = "") -> DeliveryResult:
        return DeliveryResult(
            notification_id=notification.notification_id,
            notification_type=notification.notification_type,
            status=status,
            reason=reason,
            timestamp=self._clock(),
        )

    async def send(self, notification: ChurchNotification) -> DeliveryResult:
        """Gate one notification. It is sent, queued or suppressed, never two of these."""
        with NotificationContext(user_id=self.user_id, notification_id=notification.notification_id):
            prefs = await self.preferences.get(self.user_id)

            if not prefs.enabled:
                logger.debug("Suppressed %s: notifications disabled", notification.notification_id)
                return self._result(notification, DeliveryStatus.SUPPRESSED_DISABLED, "notifications disabled")

            allowed, reason = is_category_enabled(notification, prefs)
            if not allowed:
                logger.debug("Suppressed %s: %s", notification.notification_id, reason)
                return self._result(notification, DeliveryStatus.SUPPRESSED_PREFERENCE, reason)

            if notification.is_urgent:
                await self._deliver_batch(self._take_batch(), prefs)
                return await self._deliver(notification, prefs)

            if prefs.batch_notifications:
                size = self.queue.enqueue(notification)
                if not self.queue.has_pending_timer:
                    self.queue.set_timer(
                        self.scheduler.schedule_once(self.config.batch_delay_seconds, self._on_timer)
                    )
                logger.debug(
                    "Queued %s for batch", notification.notification_id, extra={"queue_size": size},
                )
                return self._result(notification, DeliveryStatus.QUEUED)

            return await self._deliver(notification, prefs)

    async def _on_timer(self) -> list[str]:
        self.queue.timer_fired()
        return await self.flush()

    async def flush(self) -> list[str]:
        """Deliver the whole pending batch in enqueue order.

        The batch is taken before anything is awaited, so a send arriving
        mid-flush starts the next batch. Returns the ids of the
        notifications handed to the transport.
        """
        batch = self._take_batch()
        if not batch:
            return []
        prefs = await self.preferences.get(self.user_id)
        return await self._deliver_batch(batch, prefs)

    def _take_batch(self) -> list[ChurchNotification]:
        self.queue.cancel_timer()
        return self.queue.drain()

    async def _deliver_batch(self, batch: list[ChurchNotification], prefs: NotificationPreferences) -> list[str]:
        if not batch:
            return []

        delivered = []
        with PerformanceTimer("batch_flush"):
            for notification in batch:
                result = await self._deliver(notification, prefs)
                if result.delivered:
                    delivered.append(result.notification_id)

        logger.info(
            "Flushed batch: %d of %d delivered", len(delivered), len(batch),
            extra={"queue_size": len(batch)},
        )
        return delivered

    async def _deliver(self, notification: ChurchNotification, prefs: NotificationPreferences) -> DeliveryResult:
        if not self.counter.check(prefs.max_per_day):
            logger.debug(
                "Suppressed %s: daily cap %d reached", notification.notification_id, prefs.max_per_day,
            )
            return self._result(notification, DeliveryStatus.SUPPRESSED_DAILY_CAP, "daily cap reached")

        try:
            await self.transport.show(notification)
        except TransportError as e:
            logger.warning("Transport failed for %s: %s", notification.notification_id, e)
            return self._result(notification, DeliveryStatus.FAILED, str(e))
        except Exception as e:
            logger.error(
                "Unexpected transport error for %s: %s", notification.notification_id, e, exc_info=True,
            )
            return self._result(notification, DeliveryStatus.FAILED, f"{type(e).__name__}: {e}")

        self.counter.increment()
        logger.info(
            "Sent %s", notification.notification_id,
            extra={
                "notification_type": notification.notification_type.value,
                "delivery_status": DeliveryStatus.SENT.value,
            },
        )
        if self.reporter is not None:
            await self.reporter.report(EngagementEvent(
                action=EngagementAction.SENT,
                notification_id=notification.notification_id,
                notification_type=notification.notification_type.value,
                user_id=self.user_id,
                timestamp=self._clock(),
            ))
        return self._result(notification, DeliveryStatus.SENT)

    def get_stats(self) -> dict:
        return {
            **self.queue.get_stats(),
            "sent_today": self.counter.count,
            "last_reset_date": self.counter.last_reset_date.isoformat() if self.counter.last_reset_date else None,
        }
