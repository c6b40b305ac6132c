"""Availability rule engine - the fixed weekly slot template

Everything here is pure: no I/O, no clock reads unless a caller passes ``today`` or ``now``.
Times are UK local (Europe/London) ``HH:MM`` strings.
"""

from datetime import date, datetime, timedelta
from typing import Mapping, Optional

SLOT_DURATION_MINUTES = 90

# Keyed by Python weekday (Monday=0 .. Sunday=6); 90-minute slots that never overlap
WEEKLY_TEMPLATE: dict[int, tuple[str, ...]] = {
    0: ("08:00", "09:30", "11:00", "12:30", "14:00", "15:30"),  # Monday
    1: (),  # Tuesday
    2: ("10:00", "11:30", "13:00", "14:30"),  # Wednesday
    3: ("11:00", "12:30", "14:00", "15:30"),  # Thursday
    4: ("08:00",),  # Friday
    5: ("17:00",),  # Saturday
    6: (),  # Sunday
}

WeeklyTemplate = Mapping[int, tuple[str, ...]]


def slots_for_date(day: date, template: Optional[WeeklyTemplate] = None) -> list[str]:
    """Start times offered on ``day`` by the weekly template, ascending"""
    template = WEEKLY_TEMPLATE if template is None else template
    return sorted(template.get(day.weekday(), ()))


def is_open_day(day: date, template: Optional[WeeklyTemplate] = None) -> bool:
    return bool(slots_for_date(day, template))


def is_rule_slot(day: date, slot_time: str, template: Optional[WeeklyTemplate] = None) -> bool:
    return slot_time in slots_for_date(day, template)


def is_date_bookable(day: date, today: date, template: Optional[WeeklyTemplate] = None) -> bool:
    """Open day that is not in the past"""
    return day >= today and is_open_day(day, template)


def dates_in_range(from_date: date, to_date: date) -> list[date]:
    """Every calendar date from ``from_date`` to ``to_date`` inclusive"""
    if to_date < from_date:
        return []
    return [from_date + timedelta(days=i) for i in range((to_date - from_date).days + 1)]


def bookable_dates(
    count: int, today: date, template: Optional[WeeklyTemplate] = None
) -> list[date]:
    """The next ``count`` open dates starting from ``today``"""
    template = WEEKLY_TEMPLATE if template is None else template
    out: list[date] = []
    day = today
    # A template with no open days would loop forever
    if not any(template.values()):
        return out
    while len(out) < count:
        if is_open_day(day, template):
            out.append(day)
        day += timedelta(days=1)
    return out


def slot_minutes(slot_time: str) -> int:
    """Minutes after midnight for an ``HH:MM`` string"""
    hours, minutes = slot_time.split(":")
    return int(hours) * 60 + int(minutes)


def slot_has_started(day: date, slot_time: str, now: datetime) -> bool:
    """True when ``day`` is the date of ``now`` (UK local) and the slot start has been reached"""
    return day == now.date() and slot_minutes(slot_time) <= now.hour * 60 + now.minute
