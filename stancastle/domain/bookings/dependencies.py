"""Providers for the booking domain's external collaborators

Each is created once per process and can be swapped in tests through
``app.dependency_overrides``.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...services.outlook_calendar_service import OutlookCalendarService
from ...services.payment_gateway import DodoPaymentsGateway
from ...services.zoom_service import ZoomService
from ..availability.service import AvailabilityService
from .dispatcher import SideEffectDispatcher
from .orchestrator import BookingOrchestrator


@lru_cache
def get_payment_gateway() -> DodoPaymentsGateway:
    return DodoPaymentsGateway()


@lru_cache
def get_calendar() -> OutlookCalendarService:
    return OutlookCalendarService()


@lru_cache
def get_dispatcher() -> SideEffectDispatcher:
    return SideEffectDispatcher(meetings=ZoomService(), calendar=get_calendar())


def get_availability_service(
    db: Session = Depends(get_db),
    calendar: OutlookCalendarService = Depends(get_calendar),
) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db, calendar=calendar)


def get_booking_orchestrator(
    db: Session = Depends(get_db),
    gateway: DodoPaymentsGateway = Depends(get_payment_gateway),
    dispatcher: SideEffectDispatcher = Depends(get_dispatcher),
    calendar: OutlookCalendarService = Depends(get_calendar),
) -> BookingOrchestrator:
    """Dependency injection for BookingOrchestrator"""
    return BookingOrchestrator(db, gateway=gateway, dispatcher=dispatcher, calendar=calendar)
