"""Bookings router - reserve, pay, read back, cancel; plus the payment webhook"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from ...rate_limiter import create_rate_limiter
from .dependencies import get_booking_orchestrator
from .orchestrator import BookingOrchestrator, ContactDetails
from .schemas import (
    BookingCreate,
    BookingCreatedResponse,
    BookingResponse,
    CancelBookingRequest,
    CheckoutResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])
webhooks_router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

rate_limit_reserve = create_rate_limiter(limit=10, window_seconds=60, key_prefix="reserve")


@router.post("", response_model=BookingCreatedResponse, status_code=201)
async def create_booking(
    data: BookingCreate,
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
    _: None = Depends(rate_limit_reserve),
):
    """
    Reserve a slot and return the payment redirect.

    409 when the slot was taken in the meantime; 502 (with booking_id) when the
    payment provider failed, in which case POST /bookings/{id}/checkout retries.
    """
    booking = await orchestrator.reserve(
        data.date,
        data.time,
        data.service_type,
        ContactDetails(
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            phone=data.phone,
            company=data.company,
            company_website=data.company_website,
        ),
        customer_ref=data.customer_ref,
    )
    session = await orchestrator.begin_payment(booking.id)
    return BookingCreatedResponse(booking_id=booking.id, status="pending", checkout_url=session.url)


@router.post("/{booking_id}/checkout", response_model=CheckoutResponse)
async def retry_checkout(
    booking_id: str,
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
):
    """Start payment again for a booking that is still pending"""
    session = await orchestrator.begin_payment(booking_id)
    return CheckoutResponse(booking_id=booking_id, checkout_url=session.url)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
):
    return orchestrator.get(booking_id)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    data: CancelBookingRequest,
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
):
    """Release an unpaid hold; paid bookings are rejected with 409"""
    return orchestrator.cancel(booking_id, reason=data.reason or "customer_request")


@webhooks_router.post("/payments")
async def handle_payment_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
):
    """
    Dodo Payments webhook.

    Headers:
      - 'webhook-id', 'webhook-timestamp'
      - 'webhook-signature': 'v1,{base64(hmac_sha256(webhook-id.webhook-timestamp.payload))}'

    Acknowledges as soon as the booking state is committed; meeting and email
    side effects run after the response is sent.
    """
    raw_body = await request.body()
    outcome = await orchestrator.confirm_payment(
        raw_body, request.headers, defer=background_tasks.add_task
    )
    return {"received": True, "result": outcome.result}
