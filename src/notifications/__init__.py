"""Church push notifications.

Scheduling and engagement core for the church community app:
- Per-user preferences (local cache, optional server mirror)
- Bilingual notification templates (devotion, prayer, event, community, reminder)
- Quiet hours and holiday calendar
- Recurring schedules with self-renewal
- Delivery gate with batching, urgent bypass and daily cap
- Click/close engagement tracking
"""

from src.notifications.config import (
    CATEGORY_CONFIGS,
    DEFAULT_NOTIFICATION_CONFIG,
    CommunityPriority,
    CommunityType,
    DeliveryStatus,
    EngagementAction,
    Language,
    NotificationConfig,
    NotificationType,
    PrayerRequestType,
    RecurrencePattern,
    ReminderType,
)
from src.notifications.models import (
    ChurchNotification,
    CommunityNotification,
    CommunityRecord,
    DeliveryResult,
    DevotionNotification,
    DevotionRecord,
    EngagementEvent,
    EventNotification,
    EventRecord,
    NotificationPreferences,
    NotificationSchedule,
    PrayerNotification,
    PrayerRecord,
    PushSubscription,
    QuietHours,
    Recurrence,
    ReminderNotification,
    ReminderRecord,
)
from src.notifications.exceptions import (
    InvalidPreferencesError,
    NotificationError,
    PreferenceStoreError,
    ReportingError,
    TransportError,
    UnsupportedEnvironmentError,
)
from src.notifications.localization import Localizer, resolve
from src.notifications.calendar import is_holiday, is_in_quiet_hours
from src.notifications.factory import NotificationFactory
from src.notifications.preferences import PreferenceServerClient, PreferenceStore
from src.notifications.scheduler import AsyncioScheduler, SchedulingEngine, next_daily, next_occurrence
from src.notifications.sender import DeliveryGate
from src.notifications.engagement import EngagementReporter, EngagementTracker, summarize_engagement
from src.notifications.transport import GatewayTransport, InMemoryTransport, PushTransport
from src.notifications.subscriptions import SubscriptionManager
from src.notifications.service import NotificationService

__all__ = [
    # Config
    "CATEGORY_CONFIGS",
    "DEFAULT_NOTIFICATION_CONFIG",
    "CommunityPriority",
    "CommunityType",
    "DeliveryStatus",
    "EngagementAction",
    "Language",
    "NotificationConfig",
    "NotificationType",
    "PrayerRequestType",
    "RecurrencePattern",
    "ReminderType",
    # Models
    "ChurchNotification",
    "CommunityNotification",
    "CommunityRecord",
    "DeliveryResult",
    "DevotionNotification",
    "DevotionRecord",
    "EngagementEvent",
    "EventNotification",
    "EventRecord",
    "NotificationPreferences",
    "NotificationSchedule",
    "PrayerNotification",
    "PrayerRecord",
    "PushSubscription",
    "QuietHours",
    "Recurrence",
    "ReminderNotification",
    "ReminderRecord",
    # Errors
    "InvalidPreferencesError",
    "NotificationError",
    "PreferenceStoreError",
    "ReportingError",
    "TransportError",
    "UnsupportedEnvironmentError",
    # Pure helpers
    "Localizer",
    "resolve",
    "is_holiday",
    "is_in_quiet_hours",
    "next_daily",
    "next_occurrence",
    "summarize_engagement",
    # Components
    "AsyncioScheduler",
    "DeliveryGate",
    "EngagementReporter",
    "EngagementTracker",
    "GatewayTransport",
    "InMemoryTransport",
    "NotificationFactory",
    "NotificationService",
    "PreferenceServerClient",
    "PreferenceStore",
    "PushTransport",
    "SchedulingEngine",
    "SubscriptionManager",
]
