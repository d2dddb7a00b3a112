"""CLI entry point: python main.py next-fire --time 08:00"""

import argparse
import json
import sys
from datetime import datetime, timedelta, timezone

from src.logging_config import LogFormat, LogLevel, LoggingConfig, configure_logging
from src.notifications.calendar import is_holiday, is_in_quiet_hours, to_civil
from src.notifications.config import (
    CommunityType,
    Language,
    NotificationConfig,
    NotificationType,
    PrayerRequestType,
    ReminderType,
)
from src.notifications.exceptions import InvalidPreferencesError
from src.notifications.factory import NotificationFactory
from src.notifications.models import (
    CommunityRecord,
    DevotionPreferences,
    DevotionRecord,
    EventRecord,
    NotificationPreferences,
    PrayerRecord,
    QuietHours,
    ReminderRecord,
)
from src.notifications.scheduler import next_daily


def _parse_now(value):
    if value is None:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(value)


SAMPLE_RECORDS = {
    NotificationType.DEVOTION: lambda now: DevotionRecord(
        id="sample", title="Walking in the Light", verse="1 John 1:7", author="Pastor Chan",
    ),
    NotificationType.PRAYER: lambda now: PrayerRecord(
        id="sample",
        request_text="Please pray for my mother's surgery tomorrow morning and for peace for our family.",
        request_type=PrayerRequestType.URGENT,
    ),
    NotificationType.EVENT: lambda now: EventRecord(
        id="sample", title="Sunday Service", start_time=now + timedelta(hours=24), location="Main Sanctuary",
    ),
    NotificationType.COMMUNITY: lambda now: CommunityRecord(
        id="sample",
        community_type=CommunityType.GROUP_MESSAGE,
        title="Youth Fellowship",
        message="See everyone on Friday for worship night!",
        group_id="youth",
    ),
    NotificationType.REMINDER: lambda now: ReminderRecord(
        id="sample",
        reminder_type=ReminderType.WEEKLY_CHECKIN,
        title="Check-in",
        message="How was your walk with God this week?",
        scheduled_for=now.isoformat(),
    ),
}

BUILDERS = {
    NotificationType.DEVOTION: "create_devotion_notification",
    NotificationType.PRAYER: "create_prayer_notification",
    NotificationType.EVENT: "create_event_notification",
    NotificationType.COMMUNITY: "create_community_notification",
    NotificationType.REMINDER: "create_reminder_notification",
}


def cmd_next_fire(args, config: NotificationConfig) -> int:
    now = _parse_now(args.now)
    fire = next_daily(now, args.time, config.civil_timezone, skip_holidays=args.skip_holidays)
    print(f"Now (local):   {to_civil(now, config.civil_timezone).isoformat()}")
    print(f"Next fire:     {fire.isoformat()}")
    print(f"Delay:         {(fire - now).total_seconds():.0f}s")
    if is_holiday(fire.date()):
        print("Note:          fire date is a holiday")
    return 0


def cmd_quiet_hours(args, config: NotificationConfig) -> int:
    now = _parse_now(args.now)
    window = QuietHours(enabled=True, start=args.start, end=args.end)
    quiet = is_in_quiet_hours(now, window, config.civil_timezone)
    local = to_civil(now, config.civil_timezone)
    print(f"{local.strftime('%H:%M')} is {'inside' if quiet else 'outside'} quiet hours {args.start}-{args.end}")
    return 0


def cmd_preview(args, config: NotificationConfig) -> int:
    kind = NotificationType(args.type)
    language = Language(args.language)
    now = datetime.now(timezone.utc)
    prefs = NotificationPreferences.defaults(config=config)
    for block in (prefs.devotions, prefs.events, prefs.prayers, prefs.community):
        block.language = language

    factory = NotificationFactory(config)
    notification = getattr(factory, BUILDERS[kind])(SAMPLE_RECORDS[kind](now), prefs)
    print(json.dumps(notification.to_payload(), indent=2, ensure_ascii=False))
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Church notify - notification scheduling tools"
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Enable debug logging"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_next = sub.add_parser("next-fire", help="Next daily fire time for a preferred HH:MM")
    p_next.add_argument("--time", default=DevotionPreferences().time, help="Preferred time, HH:MM")
    p_next.add_argument("--now", default=None, help="Current instant, ISO 8601 (default: now)")
    p_next.add_argument("--skip-holidays", action="store_true", help="Pass over holidays")
    p_next.set_defaults(func=cmd_next_fire)

    p_quiet = sub.add_parser("quiet-hours", help="Check a quiet-hours window")
    p_quiet.add_argument("--start", default="22:00", help="Window start, HH:MM")
    p_quiet.add_argument("--end", default="07:00", help="Window end, HH:MM")
    p_quiet.add_argument("--now", default=None, help="Current instant, ISO 8601 (default: now)")
    p_quiet.set_defaults(func=cmd_quiet_hours)

    p_preview = sub.add_parser("preview", help="Print a sample notification payload")
    p_preview.add_argument("--type", choices=[t.value for t in NotificationType], default="devotion")
    p_preview.add_argument("--language", choices=[lang.value for lang in Language], default="en")
    p_preview.set_defaults(func=cmd_preview)

    args = parser.parse_args(argv)

    configure_logging(LoggingConfig(
        level=LogLevel.DEBUG if args.verbose else LogLevel.WARNING,
        format=LogFormat.CONSOLE,
    ))
    config = NotificationConfig.from_settings()

    try:
        return args.func(args, config)
    except InvalidPreferencesError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
