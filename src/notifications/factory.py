"""Notification templates for church content.

Each builder turns a source record plus the user's preferences into a
fully formed, immutable notification. Builders have no side effects.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from src.notifications.calendar import to_civil
from src.notifications.config import (
    ACTION_ICONS,
    CATEGORY_CONFIGS,
    DEFAULT_NOTIFICATION_CONFIG,
    Language,
    NotificationConfig,
    NotificationType,
    REMINDER_URLS,
)
from src.notifications.localization import Localizer
from src.notifications.models import (
    CommunityNotification,
    CommunityRecord,
    DevotionNotification,
    DevotionRecord,
    EventNotification,
    EventRecord,
    NotificationAction,
    NotificationPreferences,
    PrayerNotification,
    PrayerRecord,
    ReminderNotification,
    ReminderRecord,
)


def truncate(text: str, limit: int, ellipsis: str = "...") -> str:
    """Cut ``text`` so the result, ellipsis included, fits in ``limit`` characters."""
    if len(text) <= limit:
        return text
    return text[: max(limit - len(ellipsis), 0)] + ellipsis


def _action(t: Localizer, action: str, label_key: str) -> NotificationAction:
    return NotificationAction(action=action, title=t(label_key), icon=ACTION_ICONS.get(action, ""))


class NotificationFactory:
    """Builds notification payloads, one builder per category.

    Example:
        factory = NotificationFactory()
        notification = factory.create_prayer_notification(
            PrayerRecord(id="p1", request_text="...", request_type=PrayerRequestType.URGENT),
            preferences,
        )
    """

    def __init__(
        self,
        config: Optional[NotificationConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or DEFAULT_NOTIFICATION_CONFIG
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _common(self, notification_type: NotificationType) -> dict:
        category = CATEGORY_CONFIGS[notification_type]
        return {
            "icon": category["icon"],
            "badge": self.config.badge_icon,
            "timestamp": self._clock(),
        }

    def create_devotion_notification(
        self, devotion: DevotionRecord, preferences: NotificationPreferences,
    ) -> DevotionNotification:
        t = Localizer(preferences.devotions.language)
        return DevotionNotification(
            devotion_id=devotion.id,
            verse=devotion.verse,
            title=t("devotion.title"),
            body=devotion.title,
            image=CATEGORY_CONFIGS[NotificationType.DEVOTION]["image"],
            tag="daily-devotion",
            data={
                "url": f"/devotions/{devotion.id}",
                "author": devotion.author,
                "verse": devotion.verse,
            },
            actions=(
                _action(t, "read", "devotion.read"),
                _action(t, "save", "devotion.save"),
            ),
            **self._common(NotificationType.DEVOTION),
        )

    def create_prayer_notification(
        self, prayer: PrayerRecord, preferences: NotificationPreferences,
    ) -> PrayerNotification:
        t = Localizer(preferences.prayers.language)
        request_type = prayer.request_type
        return PrayerNotification(
            prayer_id=prayer.id,
            request_type=request_type,
            title=t(f"prayer.{request_type.value}"),
            body=truncate(prayer.request_text, self.config.prayer_body_limit, self.config.ellipsis),
            tag=f"prayer-{request_type.value}",
            data={
                "url": f"/prayers/{prayer.id}",
                "requester": prayer.requester,
                "requestType": request_type.value,
            },
            actions=(
                _action(t, "pray", "prayer.pray"),
                _action(t, "support", "prayer.support"),
            ),
            **self._common(NotificationType.PRAYER),
        )

    def create_event_notification(
        self, event: EventRecord, preferences: NotificationPreferences,
    ) -> EventNotification:
        t = Localizer(preferences.events.language)
        local_start = to_civil(event.start_time, self.config.civil_timezone)
        if t.language == Language.ZH:
            time_string = local_start.strftime("%H:%M")
        else:
            time_string = local_start.strftime("%I:%M %p")

        body = t("event.starts_at", title=event.title, time=time_string)
        if event.location:
            body += t("event.at_location", location=event.location)

        return EventNotification(
            event_id=event.id,
            event_time=event.start_time.isoformat(),
            location=event.location,
            title=t("event.reminder"),
            body=body,
            tag=f"event-{event.id}",
            data={
                "url": f"/events/{event.id}",
                "eventTime": event.start_time.isoformat(),
                "location": event.location,
                "eventType": event.event_type,
            },
            actions=(
                _action(t, "view", "event.view"),
                _action(t, "directions", "event.directions"),
            ),
            **self._common(NotificationType.EVENT),
        )

    def create_community_notification(
        self, community: CommunityRecord, preferences: NotificationPreferences,
    ) -> CommunityNotification:
        t = Localizer(preferences.community.language)
        url = f"/groups/{community.group_id}" if community.group_id else "/community"
        return CommunityNotification(
            community_id=community.id,
            community_type=community.community_type,
            priority=community.priority,
            group_id=community.group_id,
            title=t(f"community.{community.community_type.value}"),
            body=truncate(community.message, self.config.community_body_limit, self.config.ellipsis),
            tag=f"community-{community.community_type.value}-{community.id}",
            data={
                **community.metadata,
                "url": url,
                "communityType": community.community_type.value,
                "priority": community.priority.value,
                "groupId": community.group_id,
            },
            actions=(
                _action(t, "view", "community.view"),
                _action(t, "join", "community.join"),
            ),
            **self._common(NotificationType.COMMUNITY),
        )

    def create_reminder_notification(
        self, reminder: ReminderRecord, preferences: NotificationPreferences,
    ) -> ReminderNotification:
        # Reminders follow the community language setting
        t = Localizer(preferences.community.language)
        return ReminderNotification(
            reminder_id=reminder.id,
            reminder_type=reminder.reminder_type,
            scheduled_for=reminder.scheduled_for,
            recurrence=reminder.recurrence,
            title=t(f"reminder.{reminder.reminder_type.value}"),
            body=reminder.message,
            tag=f"reminder-{reminder.reminder_type.value}",
            data={
                **reminder.metadata,
                "url": REMINDER_URLS.get(reminder.reminder_type, "/"),
                "reminderType": reminder.reminder_type.value,
                "scheduledFor": reminder.scheduled_for,
            },
            actions=(_action(t, "view", "community.view"),),
            **self._common(NotificationType.REMINDER),
        )
