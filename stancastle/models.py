import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base

# Statuses that hold a slot; at most one such booking may exist per (date, time)
ACTIVE_STATUSES = ("pending", "paid")

BOOKING_STATUSES = ("pending", "paid", "completed", "cancelled")

# Allowed forward moves of Booking.status; anything else is rejected
ALLOWED_TRANSITIONS = {
    "pending": {"paid", "cancelled"},
    "paid": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


def generate_public_id():
    """Generate an opaque identifier for bookings and accounts"""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what SQLite hands back on read"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Account(Base):
    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    company = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    # Set after a paid Partner Programme booking, cleared when the subscription ends
    is_partner = Column(Boolean, default=False, nullable=False)
    # Dodo customer identifier, used to match subscription lifecycle events
    gateway_customer_id = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    bookings = relationship("Booking", back_populates="account")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    customer_ref = Column(String(36), ForeignKey("accounts.id"), nullable=True, index=True)
    service_type = Column(String(50), nullable=False)  # diagnostic, partner
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)  # HH:MM, Europe/London
    duration_minutes = Column(Integer, nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)

    # Contact details captured at reservation (guests have no account)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False)
    company = Column(String(255), nullable=True)
    company_website = Column(String(500), nullable=True)

    # Payment
    payment_session_ref = Column(String(255), nullable=True, index=True)
    payment_ref = Column(String(255), nullable=True)
    amount_paid = Column(Integer, nullable=True)  # minor units (pence)
    currency = Column(String(3), nullable=True)
    paid_at = Column(DateTime, nullable=True)

    # Post-confirmation side effects
    meeting_ref = Column(String(255), nullable=True)
    meeting_join_url = Column(Text, nullable=True)
    calendar_event_ref = Column(String(255), nullable=True)
    notified_at = Column(DateTime, nullable=True)

    # Reservation hold; expired pending bookings are cancelled by the worker
    hold_expires_at = Column(DateTime, nullable=True, index=True)
    cancelled_reason = Column(String(100), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    account = relationship("Account", back_populates="bookings")

    __table_args__ = (
        # No double booking: enforced by storage, not by the application
        Index(
            "uq_bookings_active_slot",
            "date",
            "time",
            unique=True,
            sqlite_where=text("status IN ('pending', 'paid')"),
            postgresql_where=text("status IN ('pending', 'paid')"),
        ),
    )

    @property
    def customer_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
