"""
Concurrent reservations for the same slot: exactly one wins.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest
from conftest import MONDAY, TODAY, FakeGateway

from stancastle.database import SessionLocal
from stancastle.domain.bookings.exceptions import SlotTakenError
from stancastle.domain.bookings.orchestrator import BookingOrchestrator, ContactDetails
from stancastle.models import Booking

ATTEMPTS = 8


def _attempt(index):
    db = SessionLocal()
    try:
        orchestrator = BookingOrchestrator(db, gateway=FakeGateway(), today=lambda: TODAY)
        contact = ContactDetails(
            first_name=f"Customer{index}",
            last_name="Test",
            email=f"customer{index}@example.com",
            phone="07700900123",
        )
        try:
            booking = asyncio.run(orchestrator.reserve(MONDAY, "09:30", "diagnostic", contact))
            return booking.id
        except SlotTakenError:
            return None
    finally:
        db.close()


def test_concurrent_reserves_produce_one_booking(db):
    with ThreadPoolExecutor(max_workers=ATTEMPTS) as pool:
        results = list(pool.map(_attempt, range(ATTEMPTS)))

    winners = [booking_id for booking_id in results if booking_id]
    assert len(winners) == 1
    assert results.count(None) == ATTEMPTS - 1

    active = db.query(Booking).filter(Booking.date == MONDAY, Booking.time == "09:30").all()
    assert [booking.id for booking in active] == winners
    assert active[0].status == "pending"


def test_storage_rejects_duplicate_active_slot(db):
    """The unique index holds even when the availability check is skipped."""
    from stancastle.domain.bookings.repository import BookingRepository

    fields = dict(
        service_type="diagnostic",
        date=MONDAY,
        time="11:00",
        duration_minutes=90,
        first_name="A",
        last_name="B",
        email="a@example.com",
        phone="07700900123",
    )
    first = BookingRepository.create_pending(db, **fields)

    with pytest.raises(SlotTakenError):
        BookingRepository.create_pending(db, **fields)

    BookingRepository.cancel(db, first.id, "customer_request", ("pending",))
    assert BookingRepository.create_pending(db, **fields).status == "pending"
