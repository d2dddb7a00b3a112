"""Bilingual display strings for notification titles and action labels."""

from typing import Union

from src.notifications.config import Language


TRANSLATIONS: dict[Language, dict[str, str]] = {
    Language.EN: {
        "devotion.title": "📖 Today's Devotion",
        "devotion.read": "Read Now",
        "devotion.save": "Save for Later",
        "prayer.new": "🙏 New Prayer Request",
        "prayer.answered": "✨ Prayer Answered!",
        "prayer.urgent": "🚨 Urgent Prayer Needed",
        "prayer.pray": "Pray Now",
        "prayer.support": "Send Support",
        "event.reminder": "⛪ Church Event Reminder",
        "event.starts_at": "{title} starts at {time}",
        "event.at_location": " at {location}",
        "event.view": "View Details",
        "event.directions": "Get Directions",
        "community.group_message": "💬 New Group Message",
        "community.group_milestone": "🎉 Group Milestone!",
        "community.achievement": "🌟 Community Achievement",
        "community.encouragement": "💝 Spiritual Encouragement",
        "community.view": "View",
        "community.join": "Join Discussion",
        "reminder.weekly_checkin": "🤗 Weekly Spiritual Check-in",
        "reminder.devotion": "📖 Time for Daily Devotion",
        "reminder.prayer": "🙏 Prayer Time Reminder",
        "reminder.event": "⛪ Upcoming Church Event",
    },
    Language.ZH: {
        "devotion.title": "📖 今日靈修",
        "devotion.read": "立即閱讀",
        "devotion.save": "稍後閱讀",
        "prayer.new": "🙏 新的代禱請求",
        "prayer.answered": "✨ 禱告得應允！",
        "prayer.urgent": "🚨 緊急代禱需要",
        "prayer.pray": "立即禱告",
        "prayer.support": "發送支持",
        "event.reminder": "⛪ 教會活動提醒",
        "event.starts_at": "{title} 將於 {time} 開始",
        "event.at_location": "，地點：{location}",
        "event.view": "查看詳情",
        "event.directions": "獲取路線",
        "community.group_message": "💬 新的小組消息",
        "community.group_milestone": "🎉 小組里程碑！",
        "community.achievement": "🌟 社群成就",
        "community.encouragement": "💝 屬靈鼓勵",
        "community.view": "查看",
        "community.join": "加入討論",
        "reminder.weekly_checkin": "🤗 每週屬靈檢視",
        "reminder.devotion": "📖 每日靈修時間",
        "reminder.prayer": "🙏 禱告時間提醒",
        "reminder.event": "⛪ 即將舉行的教會活動",
    },
}


def resolve(key: str, language: Union[Language, str]) -> str:
    """Look up a display string.

    Falls back to English, then to the key itself. Never raises and never
    returns an empty string.
    """
    try:
        lang = Language(language)
    except ValueError:
        lang = Language.EN

    for table in (TRANSLATIONS[lang], TRANSLATIONS[Language.EN]):
        value = table.get(key)
        if value:
            return value
    return key if key else "?"


class Localizer:
    """Resolver bound to one language, as handed to the factory builders."""

    def __init__(self, language: Union[Language, str] = Language.EN):
        try:
            self.language = Language(language)
        except ValueError:
            self.language = Language.EN

    def __call__(self, key: str, **fields: str) -> str:
        text = resolve(key, self.language)
        if fields:
            try:
                return text.format(**fields)
            except (KeyError, IndexError):
                return text
        return text
