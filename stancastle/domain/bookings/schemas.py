"""Booking domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_email, validate_slot_time, validate_uk_phone, validate_website
from .catalog import SERVICES


class BookingCreate(BaseModel):
    """Reserve a slot and start payment"""

    service_type: str
    date: date
    time: str
    first_name: str
    last_name: str
    email: str
    phone: str
    company: Optional[str] = None
    company_website: Optional[str] = None
    customer_ref: Optional[str] = None

    @field_validator("service_type")
    @classmethod
    def validate_service_type(cls, v: str) -> str:
        if v not in SERVICES:
            raise ValueError(f"service_type must be one of: {', '.join(sorted(SERVICES))}")
        return v

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return validate_slot_time(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        if not (v or "").strip():
            raise ValueError("Email is required")
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def validate_phone_field(cls, v: str) -> str:
        if not (v or "").strip():
            raise ValueError("Phone number is required")
        return validate_uk_phone(v)

    @field_validator("company_website")
    @classmethod
    def validate_website_field(cls, v: Optional[str]) -> Optional[str]:
        return validate_website(v)


class BookingCreatedResponse(BaseModel):
    booking_id: str
    status: str
    checkout_url: str


class CheckoutResponse(BaseModel):
    booking_id: str
    checkout_url: str


class CancelBookingRequest(BaseModel):
    reason: Optional[str] = None


class BookingResponse(BaseModel):
    """Status read-back for the client after the payment redirect"""

    id: str
    service_type: str
    date: date
    time: str
    duration_minutes: int
    status: str
    meeting_join_url: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
