"""Booking orchestrator - the booking state machine

    reserve ──> pending ──confirm_payment──> paid ──> completed
                   │                           │
                   └──────── cancelled <───────┘

A slot conflict at reserve time never produces a row. Status only moves along
the arrows above; each move is a conditional update in BookingRepository.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Mapping, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ...config import BUSINESS_TIMEZONE, FRONTEND_URL, PENDING_HOLD_MINUTES
from ...models import ALLOWED_TRANSITIONS, Booking, utcnow
from ...services.payment_gateway import CheckoutSession, PaymentGatewayError
from ...shared.validators import validate_email, validate_uk_phone, validate_website
from ...webhook_security import WebhookSignatureError
from ..accounts.repository import AccountRepository
from ..availability import rules
from ..availability.service import AvailabilityService, business_today
from .catalog import CURRENCY, get_offering
from .exceptions import (
    BookingNotFoundError,
    BookingValidationError,
    InvalidSignatureError,
    InvalidStatusTransitionError,
    PaymentInitError,
    SlotTakenError,
)
from .repository import BookingRepository

logger = logging.getLogger(__name__)


@dataclass
class ContactDetails:
    first_name: str
    last_name: str
    email: str
    phone: str
    company: Optional[str] = None
    company_website: Optional[str] = None


@dataclass
class ConfirmationOutcome:
    """What confirm_payment did with a verified event"""

    result: str  # confirmed | duplicate | cancelled_booking | unknown_booking | subscription_ended | ignored
    booking_id: Optional[str] = None
    dispatched: bool = False


class BookingOrchestrator:
    def __init__(
        self,
        db: Session,
        gateway,
        dispatcher=None,
        calendar=None,
        availability: Optional[AvailabilityService] = None,
        template: Optional[rules.WeeklyTemplate] = None,
        today: Optional[Callable[[], date]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.template = template
        self.today = today or business_today
        self.availability = availability or AvailabilityService(
            db, calendar=calendar, template=template, today=self.today, now=now
        )
        self.repo = BookingRepository()
        self.accounts = AccountRepository()

    # ------------------------------------------------------------------
    # Reservation
    # ------------------------------------------------------------------

    async def reserve(
        self,
        day: date,
        slot_time: str,
        service_type: str,
        contact: ContactDetails,
        customer_ref: Optional[str] = None,
    ) -> Booking:
        """
        Create a pending booking for a slot that is open right now.

        Raises:
            BookingValidationError: unknown service, past date or started slot, not a rule slot, bad contact details
            SlotTakenError: slot is busy on the calendar or already held by another booking
        """
        offering = get_offering(service_type)
        if offering is None:
            raise BookingValidationError(f"Unknown service type '{service_type}'")
        if day < self.today():
            raise BookingValidationError("Cannot book a date in the past")
        if not rules.is_rule_slot(day, slot_time, self.template):
            raise BookingValidationError(f"{slot_time} is not a bookable time on {day.isoformat()}")
        if rules.slot_has_started(day, slot_time, self.availability.now()):
            raise BookingValidationError(f"The {slot_time} slot on {day.isoformat()} has already started")

        contact = self._validate_contact(contact)

        if customer_ref and self.accounts.get_by_id(self.db, customer_ref) is None:
            raise BookingValidationError("Unknown customer account")

        # Live re-check, never from cache; the unique index settles any race after this
        if not await self.availability.is_slot_open(day, slot_time):
            logger.info(f"⚠️ Slot {day} {slot_time} not available at reserve time")
            raise SlotTakenError()

        booking = self.repo.create_pending(
            self.db,
            customer_ref=customer_ref,
            service_type=offering.service_type,
            date=day,
            time=slot_time,
            duration_minutes=offering.duration_minutes,
            first_name=contact.first_name,
            last_name=contact.last_name,
            email=contact.email,
            phone=contact.phone,
            company=contact.company,
            company_website=contact.company_website,
            hold_expires_at=utcnow() + timedelta(minutes=PENDING_HOLD_MINUTES),
        )
        self.availability.invalidate_cache()
        logger.info(f"📥 Booking {booking.id} reserved: {service_type} on {day} at {slot_time}")
        return booking

    def _validate_contact(self, contact: ContactDetails) -> ContactDetails:
        first_name = (contact.first_name or "").strip()
        last_name = (contact.last_name or "").strip()
        if not first_name or not last_name:
            raise BookingValidationError("First and last name are required")
        if not (contact.email or "").strip():
            raise BookingValidationError("Email is required")
        if not (contact.phone or "").strip():
            raise BookingValidationError("Phone number is required")
        try:
            email = validate_email(contact.email)
            phone = validate_uk_phone(contact.phone)
            website = validate_website(contact.company_website)
        except ValueError as e:
            raise BookingValidationError(str(e)) from e
        return ContactDetails(
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
            company=(contact.company or "").strip() or None,
            company_website=website,
        )

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------

    async def begin_payment(self, booking_id: str) -> CheckoutSession:
        """
        Open a checkout session for a pending booking.
        PaymentInitError leaves the booking pending, so the caller can simply retry.
        """
        booking = self.get(booking_id)
        if booking.status != "pending":
            raise InvalidStatusTransitionError(
                f"Booking is {booking.status}; payment can only start for pending bookings",
                booking_id=booking_id,
            )
        offering = get_offering(booking.service_type)

        success_url = f"{FRONTEND_URL}/?booking=success&booking_id={booking.id}"
        cancel_url = f"{FRONTEND_URL}/?booking=cancelled&booking_id={booking.id}"
        try:
            session = await self.gateway.create_checkout_session(
                booking, offering, success_url=success_url, cancel_url=cancel_url
            )
        except PaymentGatewayError as e:
            logger.error(f"❌ Payment init failed for booking {booking_id}: {e}")
            raise PaymentInitError(
                "Could not start payment. Please try again.", booking_id=booking_id
            ) from e

        if not self.repo.set_payment_session(self.db, booking_id, session.session_id):
            # Hold expired or booking cancelled while the session was being created
            raise InvalidStatusTransitionError(
                "Booking is no longer pending", booking_id=booking_id
            )
        logger.info(f"💳 Payment started for booking {booking_id} (session {session.session_id})")
        return session

    async def confirm_payment(
        self,
        raw_body: bytes,
        headers: Mapping[str, str],
        defer: Optional[Callable] = None,
    ) -> ConfirmationOutcome:
        """
        Apply a gateway webhook delivery.

        The signature is checked before anything in the body is used. The first
        delivery that moves a booking pending -> paid commits, then hands the
        booking to the dispatcher (through ``defer`` when given, e.g.
        BackgroundTasks.add_task). Repeat deliveries are no-ops.
        """
        try:
            event = self.gateway.parse_event(raw_body, headers)
        except WebhookSignatureError as e:
            logger.warning(f"🔒 Security: rejected payment webhook with invalid signature: {e}")
            raise InvalidSignatureError("Invalid webhook signature") from e
        except ValueError as e:
            raise BookingValidationError(str(e)) from e

        logger.info(f"🔔 Payment event {event.event_id} type={event.type} booking={event.booking_id}")

        if event.is_subscription_ended:
            return self._end_partner_subscription(event)

        if not event.is_payment_confirmed:
            logger.info(f"ℹ️ Ignoring payment event type {event.type}")
            return ConfirmationOutcome(result="ignored", booking_id=event.booking_id)

        if not event.booking_id:
            logger.warning(f"⚠️ Payment event {event.event_id} has no booking_id; acknowledged")
            return ConfirmationOutcome(result="unknown_booking")

        booking = self.repo.get_booking(self.db, event.booking_id)
        if booking is None:
            logger.warning(f"⚠️ Payment event for unknown booking {event.booking_id}; acknowledged")
            return ConfirmationOutcome(result="unknown_booking", booking_id=event.booking_id)

        transitioned = self.repo.mark_paid(
            self.db,
            booking.id,
            payment_ref=event.payment_ref,
            amount=event.amount,
            currency=(event.currency or CURRENCY).upper(),
            session_ref=event.session_ref,
        )
        self.db.refresh(booking)

        if not transitioned:
            if booking.status == "cancelled":
                logger.error(
                    f"❌ Payment {event.payment_ref} received for cancelled booking {booking.id} "
                    f"({booking.date} {booking.time}, reason={booking.cancelled_reason}); "
                    f"needs manual refund or rebooking"
                )
                return ConfirmationOutcome(result="cancelled_booking", booking_id=booking.id)
            logger.info(f"🔄 Booking {booking.id} already {booking.status}; duplicate event ignored")
            return ConfirmationOutcome(result="duplicate", booking_id=booking.id)

        logger.info(f"✅ Booking {booking.id} marked paid")
        self.availability.invalidate_cache()
        self._mark_partner(booking, event.customer_id)

        dispatched = await self._hand_off(booking.id, defer)
        return ConfirmationOutcome(result="confirmed", booking_id=booking.id, dispatched=dispatched)

    async def _hand_off(self, booking_id: str, defer: Optional[Callable]) -> bool:
        if self.dispatcher is None:
            logger.warning(f"⚠️ No side-effect dispatcher configured; booking {booking_id} not notified")
            return False
        if defer is not None:
            defer(self.dispatcher.dispatch, booking_id)
            return True
        try:
            await self.dispatcher.dispatch(booking_id)
        except Exception as e:
            logger.error(f"❌ Side-effect dispatch crashed for booking {booking_id}: {e}")
        return True

    def _mark_partner(self, booking: Booking, gateway_customer_id: Optional[str]) -> None:
        offering = get_offering(booking.service_type)
        if not offering or not offering.is_recurring or not booking.customer_ref:
            return
        try:
            self.accounts.mark_partner(self.db, booking.customer_ref, gateway_customer_id)
            logger.info(f"🤝 Account {booking.customer_ref} joined the Partner Programme")
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to mark account {booking.customer_ref} as partner: {e}")

    def _end_partner_subscription(self, event) -> ConfirmationOutcome:
        if not event.customer_id:
            logger.warning(f"⚠️ {event.type} without customer id; acknowledged")
            return ConfirmationOutcome(result="subscription_ended")
        cleared = self.accounts.clear_partner_by_customer(self.db, event.customer_id)
        logger.info(f"🔄 Partner subscription ended for customer {event.customer_id} ({cleared} account(s))")
        return ConfirmationOutcome(result="subscription_ended")

    # ------------------------------------------------------------------
    # Reads and housekeeping
    # ------------------------------------------------------------------

    def get(self, booking_id: str) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id)
        if booking is None:
            raise BookingNotFoundError("Booking not found", booking_id=booking_id)
        return booking

    def cancel(self, booking_id: str, reason: str = "customer_request", allow_paid: bool = False) -> Booking:
        """
        Cancel a booking and free its slot.

        Customers may only drop an unpaid hold. Cancelling a paid booking
        (``allow_paid=True``) is an operator action: the meeting, calendar
        event and refund are handled by hand.
        """
        booking = self.get(booking_id)
        if allow_paid:
            from_statuses = tuple(
                status for status, targets in ALLOWED_TRANSITIONS.items() if "cancelled" in targets
            )
        else:
            from_statuses = ("pending",)
        if not self.repo.cancel(self.db, booking_id, reason, from_statuses):
            raise InvalidStatusTransitionError(
                f"Booking is {booking.status} and cannot be cancelled", booking_id=booking_id
            )
        self.availability.invalidate_cache()
        self.db.refresh(booking)
        if booking.payment_ref:
            logger.warning(f"⚠️ Paid booking {booking_id} cancelled; refund {booking.payment_ref} manually")
        logger.info(f"🗑️ Booking {booking_id} cancelled ({reason})")
        return booking

    def expire_stale_holds(self, now: Optional[datetime] = None) -> list[str]:
        """Release pending bookings whose hold has lapsed"""
        released = self.repo.expire_stale_pending(self.db, now or utcnow())
        if released:
            self.availability.invalidate_cache()
            logger.info(f"🧹 Released {len(released)} expired reservation(s): {released}")
        return released

    def complete_past_bookings(self, now: Optional[datetime] = None) -> list[str]:
        """paid -> completed once the meeting has ended"""
        tz = ZoneInfo(BUSINESS_TIMEZONE)
        if now is None:
            now_local = datetime.now(tz)
        elif now.tzinfo is None:
            # naive values are UTC, as stored in the database
            now_local = now.replace(tzinfo=timezone.utc).astimezone(tz)
        else:
            now_local = now.astimezone(tz)

        completed = []
        for booking_id, day, slot_time, duration in self.repo.paid_slots_until(self.db, now_local.date()):
            ends_at = datetime.combine(
                day, time(*(int(part) for part in slot_time.split(":"))), tzinfo=tz
            ) + timedelta(minutes=duration)
            if ends_at <= now_local and self.repo.mark_completed(self.db, booking_id):
                completed.append(booking_id)
        if completed:
            logger.info(f"✅ Marked {len(completed)} booking(s) completed")
        return completed
