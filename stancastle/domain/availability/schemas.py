"""Availability schemas"""

from pydantic import BaseModel


class DateSlots(BaseModel):
    date: str
    slots: list[str]


class AvailabilityResponse(BaseModel):
    dates: list[DateSlots]
    degraded: bool = False
