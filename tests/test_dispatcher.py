"""
Tests for post-payment side effects: meeting, calendar mirror and the two emails.
"""

import asyncio

from conftest import MONDAY, FakeCalendar, FakeMeetings, FakeNotifier

from stancastle.database import SessionLocal
from stancastle.domain.bookings import dispatcher as dispatch_module
from stancastle.domain.bookings.dispatcher import SideEffectDispatcher
from stancastle.domain.bookings.repository import BookingRepository


def _paid_booking(db, slot_time="08:00"):
    booking = BookingRepository.create_pending(
        db,
        service_type="diagnostic",
        date=MONDAY,
        time=slot_time,
        duration_minutes=90,
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        phone="02080642496",
        company="Analytical Engines Ltd",
    )
    assert BookingRepository.mark_paid(db, booking.id, "pay_1", 15999, "GBP")
    return booking.id


def _dispatch(booking_id, **collaborators):
    collaborators.setdefault("meetings", FakeMeetings())
    collaborators.setdefault("calendar", FakeCalendar())
    collaborators.setdefault("notifier", FakeNotifier())
    dispatcher = SideEffectDispatcher(session_factory=SessionLocal, **collaborators)
    return asyncio.run(dispatcher.dispatch(booking_id))


def _reload(db, booking_id):
    db.expire_all()
    return BookingRepository.get_booking(db, booking_id)


def test_all_side_effects_run(db):
    booking_id = _paid_booking(db)
    meetings, calendar, notifier = FakeMeetings(), FakeCalendar(), FakeNotifier()

    report = _dispatch(booking_id, meetings=meetings, calendar=calendar, notifier=notifier)

    assert report.failed_steps == []
    assert set(report.steps.values()) == {dispatch_module.STEP_OK}
    assert meetings.created == [("Stancastle - Diagnostic Session", MONDAY, "08:00", 90)]
    assert "https://zoom.us/j/123" in calendar.events[0]["body"]
    assert notifier.confirmations == ["ada@example.com"]
    assert notifier.meeting_details == [("ada@example.com", "https://zoom.us/j/123")]

    booking = _reload(db, booking_id)
    assert booking.status == "paid"
    assert booking.meeting_ref == "zm_123"
    assert booking.meeting_join_url == "https://zoom.us/j/123"
    assert booking.calendar_event_ref == "evt_1"
    assert booking.notified_at is not None


def test_meeting_failure_does_not_block_emails_or_revert_payment(db, caplog):
    booking_id = _paid_booking(db)
    notifier = FakeNotifier()

    report = _dispatch(booking_id, meetings=FakeMeetings(fail=True), notifier=notifier)

    assert report.failed_steps == [dispatch_module.STEP_MEETING]
    assert report.steps[dispatch_module.STEP_CONFIRMATION_EMAIL] == dispatch_module.STEP_OK
    # Meeting email still goes out, without a link
    assert notifier.meeting_details == [("ada@example.com", None)]
    assert booking_id in caplog.text
    assert "meeting" in caplog.text

    booking = _reload(db, booking_id)
    assert booking.status == "paid"
    assert booking.meeting_ref is None


def test_email_failure_leaves_booking_unnotified(db):
    booking_id = _paid_booking(db)

    report = _dispatch(booking_id, notifier=FakeNotifier(fail_confirmation=True))

    assert report.failed_steps == [dispatch_module.STEP_CONFIRMATION_EMAIL]
    booking = _reload(db, booking_id)
    assert booking.status == "paid"
    assert booking.meeting_ref == "zm_123"
    assert booking.notified_at is None


def test_calendar_failure_is_isolated(db):
    booking_id = _paid_booking(db)

    report = _dispatch(booking_id, calendar=FakeCalendar(fail=True))

    assert report.failed_steps == [dispatch_module.STEP_CALENDAR]
    booking = _reload(db, booking_id)
    assert booking.meeting_ref == "zm_123"
    assert booking.notified_at is not None


def test_unconfigured_services_are_skipped(db):
    booking_id = _paid_booking(db)

    report = _dispatch(
        booking_id,
        meetings=FakeMeetings(configured=False),
        calendar=FakeCalendar(configured=False),
        notifier=FakeNotifier(configured=False),
    )

    assert report.failed_steps == []
    assert set(report.steps.values()) == {dispatch_module.STEP_SKIPPED}
    booking = _reload(db, booking_id)
    assert booking.status == "paid"
    assert booking.notified_at is None


def test_second_dispatch_does_not_create_another_meeting(db):
    booking_id = _paid_booking(db)
    meetings = FakeMeetings()

    _dispatch(booking_id, meetings=meetings)
    _dispatch(booking_id, meetings=meetings)

    assert len(meetings.created) == 1
    assert _reload(db, booking_id).calendar_event_ref == "evt_1"


def test_unknown_booking_reports_nothing(db):
    report = _dispatch("missing")
    assert report.steps == {}


def test_calendar_body_escapes_customer_text(db):
    booking = BookingRepository.create_pending(
        db,
        service_type="diagnostic",
        date=MONDAY,
        time="09:30",
        duration_minutes=90,
        first_name="<script>alert(1)</script>",
        last_name="Lovelace",
        email="ada@example.com",
        phone="02080642496",
        company='<img src=x onerror="alert(2)">',
    )
    assert BookingRepository.mark_paid(db, booking.id, "pay_2", 15999, "GBP")
    calendar = FakeCalendar()

    _dispatch(booking.id, calendar=calendar)

    body = calendar.events[0]["body"]
    assert "<script>" not in body
    assert "<img" not in body
    assert "&lt;script&gt;alert(1)&lt;/script&gt; Lovelace" in body
    assert "&lt;img src=x onerror=&quot;alert(2)&quot;&gt;" in body
