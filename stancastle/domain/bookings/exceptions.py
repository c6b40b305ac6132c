"""Booking domain errors, mapped to HTTP responses in main.py"""

from typing import Optional


class BookingError(Exception):
    """Base class for booking domain errors"""

    status_code = 400

    def __init__(self, message: str, booking_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.booking_id = booking_id


class BookingValidationError(BookingError):
    """Request is well-formed but cannot be booked (past date, not a slot, unknown service)"""

    status_code = 422


class SlotTakenError(BookingError):
    """Slot is no longer available; the caller should refresh availability and pick another"""

    status_code = 409

    def __init__(self, message: str = "This slot is no longer available. Please choose another time."):
        super().__init__(message)


class BookingNotFoundError(BookingError):
    status_code = 404


class InvalidStatusTransitionError(BookingError):
    """Booking is not in the status the operation requires"""

    status_code = 409


class PaymentInitError(BookingError):
    """Checkout session could not be created; safe to retry without re-reserving"""

    status_code = 502


class InvalidSignatureError(BookingError):
    """Webhook failed signature verification; nothing in it may be trusted"""

    status_code = 401
