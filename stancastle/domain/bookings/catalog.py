"""Bookable services: price, duration and payment mode per service type"""

from dataclasses import dataclass
from typing import Optional

from ...config import DODO_DIAGNOSTIC_PRODUCT_ID, DODO_PARTNER_PRODUCT_ID

CURRENCY = "GBP"


@dataclass(frozen=True)
class ServiceOffering:
    service_type: str
    name: str
    amount: int  # minor units (pence)
    payment_mode: str  # one_time | subscription
    duration_minutes: int
    meeting_topic: str
    product_id: Optional[str]

    @property
    def is_recurring(self) -> bool:
        return self.payment_mode == "subscription"

    @property
    def display_price(self) -> str:
        suffix = " / month" if self.is_recurring else ""
        return f"£{self.amount / 100:,.2f}{suffix}"


SERVICES: dict[str, ServiceOffering] = {
    "diagnostic": ServiceOffering(
        service_type="diagnostic",
        name="Diagnostic Session",
        amount=15999,
        payment_mode="one_time",
        duration_minutes=90,
        meeting_topic="Stancastle - Diagnostic Session",
        product_id=DODO_DIAGNOSTIC_PRODUCT_ID,
    ),
    "partner": ServiceOffering(
        service_type="partner",
        name="Partner Programme",
        amount=74999,
        payment_mode="subscription",
        duration_minutes=60,
        meeting_topic="Stancastle - Partner Programme Call",
        product_id=DODO_PARTNER_PRODUCT_ID,
    ),
}


def get_offering(service_type: str) -> Optional[ServiceOffering]:
    return SERVICES.get(service_type)
