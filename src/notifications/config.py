"""Configuration for church push notifications."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class NotificationType(str, Enum):
    """Notification categories (the variant tag of a ChurchNotification)."""
    DEVOTION = "devotion"
    PRAYER = "prayer"
    EVENT = "event"
    COMMUNITY = "community"
    REMINDER = "reminder"


class Language(str, Enum):
    """Display languages."""
    EN = "en"
    ZH = "zh"


class PrayerRequestType(str, Enum):
    NEW = "new"
    ANSWERED = "answered"
    URGENT = "urgent"


class CommunityType(str, Enum):
    GROUP_MESSAGE = "group_message"
    GROUP_MILESTONE = "group_milestone"
    ACHIEVEMENT = "achievement"
    ENCOURAGEMENT = "encouragement"


class CommunityPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ReminderType(str, Enum):
    DEVOTION = "devotion"
    PRAYER = "prayer"
    EVENT = "event"
    WEEKLY_CHECKIN = "weekly_checkin"


class RecurrencePattern(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class EventReminderLead(str, Enum):
    """How long before an event its reminder fires."""
    DAY = "24h"
    HOUR = "1h"
    QUARTER_HOUR = "15m"


class DeliveryStatus(str, Enum):
    """Outcome of one pass through the delivery gate."""
    SENT = "sent"
    QUEUED = "queued"
    SUPPRESSED_DISABLED = "suppressed_disabled"
    SUPPRESSED_PREFERENCE = "suppressed_preference"
    SUPPRESSED_DAILY_CAP = "suppressed_daily_cap"
    SUPPRESSED_UNSUPPORTED = "suppressed_unsupported"
    FAILED = "failed"


class EngagementAction(str, Enum):
    """Engagement signals returned by the delivery surface or recorded on send."""
    SENT = "sent"
    CLICK = "click"
    CLOSE = "close"
    DISMISS = "dismiss"


@dataclass
class NotificationConfig:
    """Notification core tunables."""

    # Deployment
    civil_timezone: str = "Asia/Hong_Kong"

    # Batching
    batch_delay_seconds: float = 120.0

    # Platform body limits (characters, before the ellipsis)
    prayer_body_limit: int = 100
    community_body_limit: int = 120
    ellipsis: str = "..."

    # Defaults for a fresh preference record
    default_max_per_day: int = 8
    default_devotion_time: str = "08:00"
    default_quiet_start: str = "22:00"
    default_quiet_end: str = "07:00"

    # Holiday skipping never searches further than this many days ahead
    max_holiday_skip_days: int = 7

    # Shared assets
    badge_icon: str = "/icons/badge-72x72.png"
    maps_search_url: str = "https://www.google.com/maps/search/{query}"

    @classmethod
    def from_settings(cls, settings: Optional[object] = None) -> "NotificationConfig":
        """Build a config from the environment-backed settings."""
        if settings is None:
            from src.settings import get_settings
            settings = get_settings()
        return cls(
            civil_timezone=settings.civil_timezone,
            batch_delay_seconds=settings.batch_delay_seconds,
            default_max_per_day=settings.default_max_per_day,
        )


DEFAULT_NOTIFICATION_CONFIG = NotificationConfig()


# Category-specific presentation
CATEGORY_CONFIGS: dict[NotificationType, dict] = {
    NotificationType.DEVOTION: {
        "description": "Daily devotion published",
        "icon": "/icons/devotion-icon-96x96.png",
        "image": "/images/devotion-banner.jpg",
        "landing_url": "/devotions",
    },
    NotificationType.PRAYER: {
        "description": "New, answered and urgent prayer requests",
        "icon": "/icons/prayer-icon-96x96.png",
        "image": None,
        "landing_url": "/prayers",
    },
    NotificationType.EVENT: {
        "description": "Upcoming church event reminders",
        "icon": "/icons/events-icon-96x96.png",
        "image": None,
        "landing_url": "/events",
    },
    NotificationType.COMMUNITY: {
        "description": "Small group messages, milestones and encouragement",
        "icon": "/icons/community-icon-96x96.png",
        "image": None,
        "landing_url": "/community",
    },
    NotificationType.REMINDER: {
        "description": "Recurring devotion, prayer and check-in reminders",
        "icon": "/icons/reminder-icon-96x96.png",
        "image": None,
        "landing_url": "/",
    },
}


# Action icons shared by the factory
ACTION_ICONS: dict[str, str] = {
    "read": "/icons/read-icon.png",
    "save": "/icons/bookmark-icon.png",
    "pray": "/icons/pray-icon.png",
    "support": "/icons/support-icon.png",
    "view": "/icons/view-icon.png",
    "details": "/icons/info-icon.png",
    "directions": "/icons/directions-icon.png",
    "join": "/icons/join-icon.png",
}


REMINDER_URLS: dict[ReminderType, str] = {
    ReminderType.DEVOTION: "/devotions",
    ReminderType.PRAYER: "/prayers",
    ReminderType.EVENT: "/events",
    ReminderType.WEEKLY_CHECKIN: "/community/checkin",
}
