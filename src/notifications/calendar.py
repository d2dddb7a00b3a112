"""Quiet-hours and holiday calendar.

Two independent predicates. Quiet hours are evaluated in the deployment's
fixed civil timezone; holidays are a fixed annual set plus a per-year table
of Easter-derived dates.
"""

from datetime import date, datetime, time
from typing import Optional
from zoneinfo import ZoneInfo

from src.notifications.config import DEFAULT_NOTIFICATION_CONFIG
from src.notifications.models import QuietHours, parse_hhmm


# (month, day) observed every year
FIXED_HOLIDAYS: frozenset[tuple[int, int]] = frozenset({
    (1, 1),    # New Year's Day
    (12, 25),  # Christmas Day
    (12, 26),  # Boxing Day
})

# Good Friday and Easter Monday by year
EASTER_HOLIDAYS: dict[int, frozenset[date]] = {
    2024: frozenset({date(2024, 3, 29), date(2024, 4, 1)}),
    2025: frozenset({date(2025, 4, 18), date(2025, 4, 21)}),
    2026: frozenset({date(2026, 4, 3), date(2026, 4, 6)}),
    2027: frozenset({date(2027, 3, 26), date(2027, 3, 29)}),
    2028: frozenset({date(2028, 4, 14), date(2028, 4, 17)}),
    2029: frozenset({date(2029, 3, 30), date(2029, 4, 2)}),
    2030: frozenset({date(2030, 4, 19), date(2030, 4, 22)}),
}


def civil_zone(name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(name or DEFAULT_NOTIFICATION_CONFIG.civil_timezone)


def to_civil(now: datetime, tz_name: Optional[str] = None) -> datetime:
    """Project an instant onto the civil timezone's wall clock.

    Naive datetimes are taken to be UTC.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=ZoneInfo("UTC"))
    return now.astimezone(civil_zone(tz_name))


def _minutes(value: str, field_name: str) -> int:
    hour, minute = parse_hhmm(value, field_name)
    return hour * 60 + minute


def is_in_quiet_hours(now: datetime, window: QuietHours, tz_name: Optional[str] = None) -> bool:
    """True when ``now`` falls inside the window ``[start, end)``.

    A window with ``start >= end`` wraps midnight.
    """
    if not window.enabled:
        return False

    local = to_civil(now, tz_name)
    current = local.hour * 60 + local.minute
    start = _minutes(window.start, "quietHours.start")
    end = _minutes(window.end, "quietHours.end")

    if start < end:
        return start <= current < end
    return current >= start or current < end


def movable_holidays(year: int) -> frozenset[date]:
    """Easter-derived holidays for ``year``; empty for years not in the table."""
    return EASTER_HOLIDAYS.get(year, frozenset())


def is_holiday(day: date) -> bool:
    if isinstance(day, datetime):
        day = day.date()
    if (day.month, day.day) in FIXED_HOLIDAYS:
        return True
    return day in movable_holidays(day.year)


def wall_clock(day: date, hhmm: str, tz_name: Optional[str] = None) -> datetime:
    """Aware datetime for ``HH:MM`` on ``day`` in the civil timezone."""
    hour, minute = parse_hhmm(hhmm)
    return datetime.combine(day, time(hour, minute), tzinfo=civil_zone(tz_name))
