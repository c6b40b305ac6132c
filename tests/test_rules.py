"""
Tests for the weekly slot template.
"""

from datetime import date, timedelta

from conftest import MONDAY, TODAY, TUESDAY

from stancastle.domain.availability import rules


def test_monday_slots():
    assert rules.slots_for_date(MONDAY) == ["08:00", "09:30", "11:00", "12:30", "14:00", "15:30"]


def test_closed_days_have_no_slots():
    sunday = MONDAY - timedelta(days=1)
    assert rules.slots_for_date(TUESDAY) == []
    assert rules.slots_for_date(sunday) == []
    assert not rules.is_open_day(TUESDAY)


def test_single_slot_days():
    friday = MONDAY + timedelta(days=4)
    saturday = MONDAY + timedelta(days=5)
    assert rules.slots_for_date(friday) == ["08:00"]
    assert rules.slots_for_date(saturday) == ["17:00"]


def test_template_slots_never_overlap():
    for weekday, slots in rules.WEEKLY_TEMPLATE.items():
        starts = [rules.slot_minutes(s) for s in sorted(slots, key=rules.slot_minutes)]
        for earlier, later in zip(starts, starts[1:]):
            assert later - earlier >= rules.SLOT_DURATION_MINUTES, f"weekday {weekday}"


def test_is_rule_slot():
    assert rules.is_rule_slot(MONDAY, "09:30")
    assert not rules.is_rule_slot(MONDAY, "09:00")
    assert not rules.is_rule_slot(TUESDAY, "09:30")


def test_is_date_bookable_rejects_past_and_closed_days():
    assert rules.is_date_bookable(MONDAY, TODAY)
    assert rules.is_date_bookable(TODAY, TODAY)
    assert not rules.is_date_bookable(TODAY - timedelta(days=7), TODAY)
    assert not rules.is_date_bookable(TUESDAY, TODAY)


def test_dates_in_range_is_inclusive():
    days = rules.dates_in_range(date(2026, 1, 30), date(2026, 2, 2))
    assert days == [date(2026, 1, 30), date(2026, 1, 31), date(2026, 2, 1), date(2026, 2, 2)]
    assert rules.dates_in_range(date(2026, 2, 2), date(2026, 1, 30)) == []


def test_bookable_dates_skips_closed_days():
    # Mon 5th, Wed 7th, Thu 8th, Fri 9th, Sat 10th
    assert rules.bookable_dates(5, TODAY) == [
        date(2026, 1, 5),
        date(2026, 1, 7),
        date(2026, 1, 8),
        date(2026, 1, 9),
        date(2026, 1, 10),
    ]


def test_bookable_dates_with_custom_template():
    template = {0: ("08:00", "09:30")}
    assert rules.bookable_dates(2, TODAY, template) == [TODAY, MONDAY]
    assert rules.slots_for_date(MONDAY, template) == ["08:00", "09:30"]
    assert rules.slots_for_date(MONDAY + timedelta(days=2), template) == []


def test_bookable_dates_with_no_open_days():
    assert rules.bookable_dates(3, TODAY, {}) == []
