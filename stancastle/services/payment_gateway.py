"""Payment gateway adapter - Dodo Payments checkout sessions and webhook events

Only two operations cross this boundary: creating a checkout session for a
booking, and turning a signed webhook delivery into a GatewayEvent.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from dodopayments import AsyncDodoPayments  # type: ignore

from ..config import DODO_PAYMENTS_API_KEY, DODO_PAYMENTS_ENVIRONMENT, DODO_PAYMENTS_WEBHOOK_SECRET
from ..webhook_security import verify_webhook

logger = logging.getLogger(__name__)

# Events that mean the customer has paid for the booking in metadata
PAYMENT_CONFIRMED_EVENTS = {"payment.succeeded", "subscription.active"}
# Events that end a Partner Programme membership
SUBSCRIPTION_ENDED_EVENTS = {"subscription.cancelled", "subscription.expired"}


class PaymentGatewayError(Exception):
    """Raised when the gateway cannot create a checkout session"""

    pass


@dataclass
class CheckoutSession:
    url: str
    session_id: str


@dataclass
class GatewayEvent:
    event_id: str
    type: str
    booking_id: Optional[str] = None
    payment_ref: Optional[str] = None
    session_ref: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    customer_id: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @property
    def is_payment_confirmed(self) -> bool:
        return self.type in PAYMENT_CONFIRMED_EVENTS

    @property
    def is_subscription_ended(self) -> bool:
        return self.type in SUBSCRIPTION_ENDED_EVENTS


def normalize_dodo_environment(env: Optional[str]) -> str:
    """Normalize Dodo environment value to expected format"""
    value = (env or "test_mode").strip().lower()
    if value in {"live", "production", "prod"}:
        return "live_mode"
    if value in {"test", "sandbox", "staging", "dev", "development"}:
        return "test_mode"
    if value in {"test_mode", "live_mode"}:
        return value
    logger.warning(f"Unknown DODO environment '{env}', defaulting to test_mode")
    return "test_mode"


def _field(obj: Any, name: str) -> Any:
    """Read a field from an SDK model or a plain dict"""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class DodoPaymentsGateway:
    """Dodo Payments implementation of the payment gateway boundary"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        environment: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        self.api_key = api_key or DODO_PAYMENTS_API_KEY
        self.environment = normalize_dodo_environment(environment or DODO_PAYMENTS_ENVIRONMENT)
        self.webhook_secret = webhook_secret or DODO_PAYMENTS_WEBHOOK_SECRET or ""
        self.client = client

        if self.client is None:
            if not self.api_key:
                logger.warning(
                    "DODO_PAYMENTS_API_KEY not set; checkout will fail until configured"
                )
            else:
                self.client = AsyncDodoPayments(bearer_token=self.api_key, environment=self.environment)
                logger.info(f"Dodo Payments client initialized (env={self.environment})")

    async def create_checkout_session(
        self, booking, offering, success_url: str, cancel_url: str
    ) -> CheckoutSession:
        """Checkout for one booking; ``booking_id`` travels in the session metadata"""
        if not self.client:
            raise PaymentGatewayError("Dodo Payments client not initialized")
        if not offering.product_id:
            raise PaymentGatewayError(f"No Dodo product configured for '{offering.service_type}'")

        metadata = {
            "booking_id": booking.id,
            "service_type": offering.service_type,
            "payment_mode": offering.payment_mode,
            "customer_ref": booking.customer_ref or "",
            "cancel_url": cancel_url,
        }
        try:
            response = await self.client.checkout_sessions.create(
                product_cart=[{"product_id": offering.product_id, "quantity": 1}],
                customer={"email": booking.email, "name": booking.customer_name},
                return_url=success_url,
                metadata=metadata,
            )
        except Exception as e:
            logger.error(f"❌ Failed to create checkout session for booking {booking.id}: {e}")
            raise PaymentGatewayError(str(e)) from e

        checkout_url = _field(response, "checkout_url")
        session_id = _field(response, "session_id")
        if not checkout_url or not session_id:
            raise PaymentGatewayError("Checkout session response missing url or id")

        logger.info(f"💳 Checkout session {session_id} created for booking {booking.id}")
        return CheckoutSession(url=checkout_url, session_id=session_id)

    def parse_event(self, raw_body: bytes, headers: Mapping[str, str]) -> GatewayEvent:
        """
        Verify the signature, then parse the event.

        Raises WebhookSignatureError before any field of the body is read.
        """
        event_id = verify_webhook(raw_body, headers, self.webhook_secret)

        try:
            payload = json.loads(raw_body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValueError("Invalid JSON payload") from e

        data = payload.get("data") or {}
        metadata = data.get("metadata") or {}
        customer = data.get("customer") or {}

        return GatewayEvent(
            event_id=event_id,
            type=payload.get("type") or "",
            booking_id=metadata.get("booking_id") or None,
            payment_ref=data.get("payment_id") or data.get("subscription_id"),
            session_ref=data.get("checkout_session_id"),
            amount=_as_int(
                data.get("total_amount")
                if data.get("total_amount") is not None
                else data.get("recurring_pre_tax_amount")
            ),
            currency=data.get("currency"),
            customer_id=customer.get("customer_id") or data.get("customer_id"),
            metadata=metadata,
        )
