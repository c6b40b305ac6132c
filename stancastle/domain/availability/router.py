"""Availability router"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from ..bookings.dependencies import get_availability_service
from .schemas import AvailabilityResponse
from .service import AvailabilityService

router = APIRouter(prefix="/availability", tags=["Availability"])


@router.get("", response_model=AvailabilityResponse)
async def get_availability(
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    service: AvailabilityService = Depends(get_availability_service),
):
    """Open slots per date; defaults to the next three weeks"""
    from_date, default_to = service.default_range(from_date)
    snapshot = await service.availability(from_date, to_date or default_to)
    return snapshot.to_dict()
