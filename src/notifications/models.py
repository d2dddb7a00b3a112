"""Data models for church push notifications."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Optional

from src.notifications.config import (
    CommunityPriority,
    CommunityType,
    DEFAULT_NOTIFICATION_CONFIG,
    DeliveryStatus,
    EngagementAction,
    EventReminderLead,
    Language,
    NotificationConfig,
    NotificationType,
    PrayerRequestType,
    RecurrencePattern,
    ReminderType,
)
from src.notifications.exceptions import InvalidPreferencesError


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def parse_hhmm(value: str, field_name: str = "time") -> tuple[int, int]:
    """Parse an ``HH:MM`` string into (hour, minute)."""
    try:
        hour_str, minute_str = value.split(":")
        hour, minute = int(hour_str), int(minute_str)
    except (ValueError, AttributeError):
        raise InvalidPreferencesError(f"Expected HH:MM, got {value!r}", field=field_name)
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise InvalidPreferencesError(f"Time out of range: {value!r}", field=field_name)
    return hour, minute


def _pick(data: dict, *keys: str, default: Any = None) -> Any:
    """First present key wins; accepts camelCase and snake_case spellings."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _language(value: Any) -> Language:
    try:
        return Language(value)
    except ValueError:
        raise InvalidPreferencesError(f"Unsupported language {value!r}", field="language")


# =========================================================================
# Preferences
# =========================================================================


@dataclass
class QuietHours:
    """Local time window during which non-urgent delivery is unwelcome.

    ``start > end`` means the window wraps midnight.
    """

    enabled: bool = True
    start: str = "22:00"
    end: str = "07:00"

    def to_dict(self) -> dict:
        return {"enabled": self.enabled, "start": self.start, "end": self.end}


@dataclass
class DevotionPreferences:
    enabled: bool = True
    time: str = "08:00"
    language: Language = Language.EN

    def to_dict(self) -> dict:
        return {"enabled": self.enabled, "time": self.time, "language": self.language.value}


@dataclass
class EventPreferences:
    enabled: bool = True
    reminders: list[EventReminderLead] = field(
        default_factory=lambda: [EventReminderLead.DAY, EventReminderLead.HOUR]
    )
    language: Language = Language.EN

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "reminders": [r.value for r in self.reminders],
            "language": self.language.value,
        }


@dataclass
class PrayerPreferences:
    enabled: bool = True
    urgent_only: bool = False
    language: Language = Language.EN

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "urgentOnly": self.urgent_only,
            "language": self.language.value,
        }


@dataclass
class CommunityPreferences:
    enabled: bool = True
    group_messages: bool = True
    achievements: bool = True
    weekly_checkins: bool = True
    language: Language = Language.EN

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "groupMessages": self.group_messages,
            "achievements": self.achievements,
            "weeklyCheckins": self.weekly_checkins,
            "language": self.language.value,
        }


@dataclass
class NotificationPreferences:
    """One user's complete notification configuration.

    Always written wholesale; there is no partial update path. The JSON
    layout (``to_dict``) is the one stored in the local cache and mirrored
    to the server.
    """

    user_id: str = "anonymous"
    enabled: bool = True
    devotions: DevotionPreferences = field(default_factory=DevotionPreferences)
    events: EventPreferences = field(default_factory=EventPreferences)
    prayers: PrayerPreferences = field(default_factory=PrayerPreferences)
    community: CommunityPreferences = field(default_factory=CommunityPreferences)
    quiet_hours: QuietHours = field(default_factory=QuietHours)
    batch_notifications: bool = True
    max_per_day: int = 8

    @classmethod
    def defaults(
        cls,
        user_id: str = "anonymous",
        config: Optional[NotificationConfig] = None,
    ) -> "NotificationPreferences":
        """Fresh preferences for a user with nothing stored yet."""
        config = config or DEFAULT_NOTIFICATION_CONFIG
        return cls(
            user_id=user_id,
            devotions=DevotionPreferences(time=config.default_devotion_time),
            quiet_hours=QuietHours(
                start=config.default_quiet_start,
                end=config.default_quiet_end,
            ),
            max_per_day=config.default_max_per_day,
        )

    def validate(self) -> "NotificationPreferences":
        """Raise InvalidPreferencesError unless every field is usable."""
        parse_hhmm(self.devotions.time, "devotions.time")
        parse_hhmm(self.quiet_hours.start, "quietHours.start")
        parse_hhmm(self.quiet_hours.end, "quietHours.end")
        if not isinstance(self.max_per_day, int) or self.max_per_day < 0:
            raise InvalidPreferencesError(
                f"maxPerDay must be a non-negative integer, got {self.max_per_day!r}",
                field="maxPerDay",
            )
        return self

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "enabled": self.enabled,
            "devotions": self.devotions.to_dict(),
            "events": self.events.to_dict(),
            "prayers": self.prayers.to_dict(),
            "community": self.community.to_dict(),
            "quietHours": self.quiet_hours.to_dict(),
            "batchNotifications": self.batch_notifications,
            "maxPerDay": self.max_per_day,
        }

    def to_server_dict(self) -> dict:
        """Body for the server mirror, which keys rows by ``user_id``."""
        body = self.to_dict()
        body["user_id"] = body.pop("userId")
        return body

    @classmethod
    def from_dict(
        cls,
        data: dict,
        user_id: Optional[str] = None,
        config: Optional[NotificationConfig] = None,
    ) -> "NotificationPreferences":
        """Build from stored JSON, resolving every missing field to its default."""
        if not isinstance(data, dict):
            raise InvalidPreferencesError("Preferences must be a JSON object")

        base = cls.defaults(user_id or _pick(data, "userId", "user_id", default="anonymous"), config)

        devotions = _pick(data, "devotions", default={})
        events = _pick(data, "events", default={})
        prayers = _pick(data, "prayers", default={})
        community = _pick(data, "community", default={})
        quiet = _pick(data, "quietHours", "quiet_hours", default={})

        try:
            reminders = [
                EventReminderLead(r)
                for r in _pick(events, "reminders", default=[r.value for r in base.events.reminders])
            ]
        except ValueError as e:
            raise InvalidPreferencesError(str(e), field="events.reminders")

        prefs = cls(
            user_id=base.user_id,
            enabled=bool(_pick(data, "enabled", default=base.enabled)),
            devotions=DevotionPreferences(
                enabled=bool(_pick(devotions, "enabled", default=True)),
                time=_pick(devotions, "time", default=base.devotions.time),
                language=_language(_pick(devotions, "language", default="en")),
            ),
            events=EventPreferences(
                enabled=bool(_pick(events, "enabled", default=True)),
                reminders=reminders,
                language=_language(_pick(events, "language", default="en")),
            ),
            prayers=PrayerPreferences(
                enabled=bool(_pick(prayers, "enabled", default=True)),
                urgent_only=bool(_pick(prayers, "urgentOnly", "urgent_only", default=False)),
                language=_language(_pick(prayers, "language", default="en")),
            ),
            community=CommunityPreferences(
                enabled=bool(_pick(community, "enabled", default=True)),
                group_messages=bool(_pick(community, "groupMessages", "group_messages", default=True)),
                achievements=bool(_pick(community, "achievements", default=True)),
                weekly_checkins=bool(_pick(community, "weeklyCheckins", "weekly_checkins", default=True)),
                language=_language(_pick(community, "language", default="en")),
            ),
            quiet_hours=QuietHours(
                enabled=bool(_pick(quiet, "enabled", default=base.quiet_hours.enabled)),
                start=_pick(quiet, "start", default=base.quiet_hours.start),
                end=_pick(quiet, "end", default=base.quiet_hours.end),
            ),
            batch_notifications=bool(
                _pick(data, "batchNotifications", "batch_notifications", default=base.batch_notifications)
            ),
            max_per_day=_pick(data, "maxPerDay", "max_per_day", default=base.max_per_day),
        )
        return prefs.validate()


# =========================================================================
# Source records (plain content handed in by the data layer)
# =========================================================================


@dataclass
class DevotionRecord:
    id: str
    title: str
    verse: str = ""
    author: str = ""


@dataclass
class PrayerRecord:
    id: str
    request_text: str
    request_type: PrayerRequestType = PrayerRequestType.NEW
    requester: str = ""


@dataclass
class EventRecord:
    id: str
    title: str
    start_time: datetime
    location: Optional[str] = None
    event_type: str = "service"


@dataclass
class CommunityRecord:
    id: str
    community_type: CommunityType
    title: str
    message: str
    group_id: Optional[str] = None
    priority: CommunityPriority = CommunityPriority.MEDIUM
    metadata: dict = field(default_factory=dict)


@dataclass
class ReminderRecord:
    id: str
    reminder_type: ReminderType
    title: str
    message: str
    scheduled_for: str
    recurrence: Optional[RecurrencePattern] = None
    metadata: dict = field(default_factory=dict)


# =========================================================================
# Notifications (closed set of variants, dispatched on ``notification_type``)
# =========================================================================


@dataclass(frozen=True)
class NotificationAction:
    """An action button: (action key, label, icon)."""

    action: str
    title: str
    icon: str = ""

    def to_dict(self) -> dict:
        return {"action": self.action, "title": self.title, "icon": self.icon}


@dataclass(frozen=True, kw_only=True)
class ChurchNotification:
    """Fields shared by every notification variant. Immutable once built."""

    notification_type: ClassVar[NotificationType]

    title: str
    body: str
    icon: str
    badge: str
    tag: str
    data: dict = field(default_factory=dict)
    actions: tuple[NotificationAction, ...] = ()
    image: Optional[str] = None
    timestamp: datetime = field(default_factory=_now)

    @property
    def source_id(self) -> str:
        raise NotImplementedError

    @property
    def notification_id(self) -> str:
        return f"{self.notification_type.value}-{self.source_id}"

    @property
    def url(self) -> str:
        return self.data.get("url", "/")

    @property
    def is_urgent(self) -> bool:
        return False

    def _variant_fields(self) -> dict:
        return {}

    def to_payload(self) -> dict:
        """Payload handed to the push transport / service worker."""
        payload = {
            "type": self.notification_type.value,
            "title": self.title,
            "body": self.body,
            "icon": self.icon,
            "badge": self.badge,
            "tag": self.tag,
            "data": {
                **self.data,
                "id": self.source_id,
                "type": self.notification_type.value,
            },
            "actions": [a.to_dict() for a in self.actions],
            "timestamp": _epoch_ms(self.timestamp),
        }
        if self.image:
            payload["image"] = self.image
        payload.update(self._variant_fields())
        return payload


@dataclass(frozen=True, kw_only=True)
class DevotionNotification(ChurchNotification):
    notification_type: ClassVar[NotificationType] = NotificationType.DEVOTION

    devotion_id: str
    verse: str = ""

    @property
    def source_id(self) -> str:
        return self.devotion_id

    def _variant_fields(self) -> dict:
        return {"devotionId": self.devotion_id, "verse": self.verse}


@dataclass(frozen=True, kw_only=True)
class PrayerNotification(ChurchNotification):
    notification_type: ClassVar[NotificationType] = NotificationType.PRAYER

    prayer_id: str
    request_type: PrayerRequestType

    @property
    def source_id(self) -> str:
        return self.prayer_id

    @property
    def is_urgent(self) -> bool:
        return self.request_type == PrayerRequestType.URGENT

    def _variant_fields(self) -> dict:
        return {"prayerId": self.prayer_id, "requestType": self.request_type.value}


@dataclass(frozen=True, kw_only=True)
class EventNotification(ChurchNotification):
    notification_type: ClassVar[NotificationType] = NotificationType.EVENT

    event_id: str
    event_time: str
    location: Optional[str] = None

    @property
    def source_id(self) -> str:
        return self.event_id

    def _variant_fields(self) -> dict:
        return {"eventId": self.event_id, "eventTime": self.event_time, "location": self.location}


@dataclass(frozen=True, kw_only=True)
class CommunityNotification(ChurchNotification):
    notification_type: ClassVar[NotificationType] = NotificationType.COMMUNITY

    community_id: str
    community_type: CommunityType
    priority: CommunityPriority = CommunityPriority.MEDIUM
    group_id: Optional[str] = None

    @property
    def source_id(self) -> str:
        return self.community_id

    def _variant_fields(self) -> dict:
        return {
            "communityType": self.community_type.value,
            "priority": self.priority.value,
            "groupId": self.group_id,
        }


@dataclass(frozen=True, kw_only=True)
class ReminderNotification(ChurchNotification):
    notification_type: ClassVar[NotificationType] = NotificationType.REMINDER

    reminder_id: str
    reminder_type: ReminderType
    scheduled_for: str
    recurrence: Optional[RecurrencePattern] = None

    @property
    def source_id(self) -> str:
        return self.reminder_id

    def _variant_fields(self) -> dict:
        return {
            "reminderType": self.reminder_type.value,
            "scheduledFor": self.scheduled_for,
            "recurrence": self.recurrence.value if self.recurrence else None,
        }


# =========================================================================
# Scheduling
# =========================================================================


@dataclass
class Recurrence:
    pattern: RecurrencePattern
    time: str  # HH:MM, civil timezone
    days_of_week: Optional[list[int]] = None  # 0-6, Sunday = 0
    day_of_month: Optional[int] = None

    def to_dict(self) -> dict:
        data = {"pattern": self.pattern.value, "time": self.time}
        if self.days_of_week is not None:
            data["daysOfWeek"] = list(self.days_of_week)
        if self.day_of_month is not None:
            data["dayOfMonth"] = self.day_of_month
        return data


@dataclass
class ScheduleConditions:
    respect_quiet_hours: bool = True
    skip_holidays: bool = False
    batch_with_others: bool = True

    def to_dict(self) -> dict:
        return {
            "respectQuietHours": self.respect_quiet_hours,
            "skipHolidays": self.skip_holidays,
            "batchWithOthers": self.batch_with_others,
        }


@dataclass
class NotificationSchedule:
    """The single active fire time for one recurring notification kind."""

    id: str
    type: NotificationType
    scheduled_time: datetime
    time_zone: str
    recurrence: Optional[Recurrence] = None
    conditions: ScheduleConditions = field(default_factory=ScheduleConditions)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "scheduledTime": self.scheduled_time.isoformat(),
            "timeZone": self.time_zone,
            "recurrence": self.recurrence.to_dict() if self.recurrence else None,
            "conditions": self.conditions.to_dict(),
        }


# =========================================================================
# Outcomes and engagement
# =========================================================================


@dataclass
class DeliveryResult:
    """Outcome of one notification passing through the delivery gate."""

    notification_id: str
    notification_type: NotificationType
    status: DeliveryStatus
    reason: str = ""
    timestamp: datetime = field(default_factory=_now)

    @property
    def delivered(self) -> bool:
        return self.status == DeliveryStatus.SENT

    def to_dict(self) -> dict:
        return {
            "notification_id": self.notification_id,
            "notification_type": self.notification_type.value,
            "status": self.status.value,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class EngagementEvent:
    """A click, close or send signal for one notification."""

    action: EngagementAction
    notification_id: Optional[str]
    notification_type: Optional[str]
    user_id: str = "anonymous"
    metadata: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_now)

    def to_report(self) -> dict:
        """Body for the analytics ingestion endpoint."""
        return {
            "action": self.action.value,
            "notificationId": self.notification_id,
            "notificationType": self.notification_type,
            "userId": self.user_id,
            "metadata": self.metadata,
            "timestamp": _epoch_ms(self.timestamp),
        }


@dataclass
class SavedItem:
    id: str
    type: str
    url: str
    saved_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "url": self.url,
            "savedAt": _epoch_ms(self.saved_at),
        }


@dataclass
class PushSubscription:
    """A browser push subscription registered for a user."""

    endpoint: str
    user_id: str = "anonymous"
    keys: dict = field(default_factory=dict)
    user_agent: Optional[str] = None
    is_active: bool = True
    created_at: datetime = field(default_factory=_now)
    last_used_at: Optional[datetime] = None

    def mark_used(self) -> None:
        self.last_used_at = _now()

    def deactivate(self) -> None:
        self.is_active = False

    def to_dict(self) -> dict:
        return {
            "endpoint": self.endpoint,
            "keys": dict(self.keys),
        }
