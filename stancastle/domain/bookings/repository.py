"""Booking repository - Database operations for bookings

Every status change is a conditional UPDATE guarded by the expected current
status, so concurrent writers cannot move a booking backwards.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import ACTIVE_STATUSES, Booking, utcnow
from .exceptions import SlotTakenError


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_booking(db: Session, booking_id: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def active_slots_between(db: Session, from_date: date, to_date: date) -> set[tuple[date, str]]:
        """(date, time) pairs held by pending or paid bookings"""
        rows = (
            db.query(Booking.date, Booking.time)
            .filter(
                Booking.date >= from_date,
                Booking.date <= to_date,
                Booking.status.in_(ACTIVE_STATUSES),
            )
            .all()
        )
        return {(row.date, row.time) for row in rows}

    @staticmethod
    def paid_slots_until(db: Session, last_day: date) -> list[tuple[str, date, str, int]]:
        """(id, date, time, duration) of paid bookings on or before ``last_day``"""
        rows = (
            db.query(Booking.id, Booking.date, Booking.time, Booking.duration_minutes)
            .filter(Booking.status == "paid", Booking.date <= last_day)
            .all()
        )
        return [(row.id, row.date, row.time, row.duration_minutes) for row in rows]

    @staticmethod
    def create_pending(db: Session, **booking_data) -> Booking:
        """
        Insert a pending booking.
        The partial unique index on (date, time) rejects a second active booking
        for the same slot; that surfaces here as SlotTakenError.
        """
        booking = Booking(status="pending", **booking_data)
        db.add(booking)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise SlotTakenError() from e
        db.refresh(booking)
        return booking

    @staticmethod
    def set_payment_session(db: Session, booking_id: str, session_ref: str) -> bool:
        updated = (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.status == "pending")
            .update({"payment_session_ref": session_ref, "updated_at": utcnow()}, synchronize_session=False)
        )
        db.commit()
        return updated == 1

    @staticmethod
    def mark_paid(
        db: Session,
        booking_id: str,
        payment_ref: Optional[str],
        amount: Optional[int],
        currency: Optional[str],
        session_ref: Optional[str] = None,
    ) -> bool:
        """pending -> paid. Returns True only for the call that performed the transition"""
        values = {
            "status": "paid",
            "payment_ref": payment_ref,
            "amount_paid": amount,
            "currency": currency,
            "paid_at": utcnow(),
            "hold_expires_at": None,
            "updated_at": utcnow(),
        }
        if session_ref:
            values["payment_session_ref"] = session_ref
        updated = (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.status == "pending")
            .update(values, synchronize_session=False)
        )
        db.commit()
        return updated == 1

    @staticmethod
    def mark_completed(db: Session, booking_id: str) -> bool:
        updated = (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.status == "paid")
            .update({"status": "completed", "updated_at": utcnow()}, synchronize_session=False)
        )
        db.commit()
        return updated == 1

    @staticmethod
    def cancel(db: Session, booking_id: str, reason: str, from_statuses: tuple[str, ...]) -> bool:
        updated = (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.status.in_(from_statuses))
            .update(
                {
                    "status": "cancelled",
                    "cancelled_reason": reason,
                    "cancelled_at": utcnow(),
                    "updated_at": utcnow(),
                },
                synchronize_session=False,
            )
        )
        db.commit()
        return updated == 1

    @staticmethod
    def attach_meeting(db: Session, booking_id: str, meeting_ref: str, join_url: str) -> bool:
        """Set the meeting once, and only on a paid booking"""
        updated = (
            db.query(Booking)
            .filter(
                Booking.id == booking_id,
                Booking.status == "paid",
                Booking.meeting_ref.is_(None),
            )
            .update(
                {"meeting_ref": meeting_ref, "meeting_join_url": join_url, "updated_at": utcnow()},
                synchronize_session=False,
            )
        )
        db.commit()
        return updated == 1

    @staticmethod
    def set_calendar_event(db: Session, booking_id: str, event_ref: str) -> bool:
        updated = (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.calendar_event_ref.is_(None))
            .update({"calendar_event_ref": event_ref, "updated_at": utcnow()}, synchronize_session=False)
        )
        db.commit()
        return updated == 1

    @staticmethod
    def mark_notified(db: Session, booking_id: str) -> bool:
        updated = (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.notified_at.is_(None))
            .update({"notified_at": utcnow(), "updated_at": utcnow()}, synchronize_session=False)
        )
        db.commit()
        return updated == 1

    @staticmethod
    def expire_stale_pending(db: Session, now: datetime) -> list[str]:
        """Cancel pending bookings whose hold has lapsed; returns the ids released"""
        stale_ids = [
            row.id
            for row in db.query(Booking.id)
            .filter(
                Booking.status == "pending",
                Booking.hold_expires_at.isnot(None),
                Booking.hold_expires_at < now,
            )
            .all()
        ]
        released = []
        for booking_id in stale_ids:
            if BookingRepository.cancel(db, booking_id, "expired", ("pending",)):
                released.append(booking_id)
        return released
