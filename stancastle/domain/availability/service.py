"""Availability service - which slots are offered right now

rule engine slots  ∩  calendar free/busy  −  pending/paid bookings
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ...cache import AvailabilityCache, cache as default_cache
from ...config import (
    AVAILABILITY_CACHE_TTL_SECONDS,
    AVAILABILITY_DEFAULT_DAYS,
    AVAILABILITY_MAX_RANGE_DAYS,
    BUSINESS_TIMEZONE,
)
from ..bookings.exceptions import BookingValidationError
from ..bookings.repository import BookingRepository
from . import rules

logger = logging.getLogger(__name__)


def business_today(tz_name: str = BUSINESS_TIMEZONE) -> date:
    """Today's date in the business timezone"""
    return datetime.now(ZoneInfo(tz_name)).date()


def business_now(tz_name: str = BUSINESS_TIMEZONE) -> datetime:
    """Current wall-clock time in the business timezone"""
    return datetime.now(ZoneInfo(tz_name))


@dataclass
class AvailabilitySnapshot:
    """Open slot start times per date; a hint for the client, never authoritative"""

    dates: dict[date, list[str]] = field(default_factory=dict)
    # True when the calendar could not be read and rule slots were used instead
    degraded: bool = False

    def slots(self, day: date) -> list[str]:
        return self.dates.get(day, [])

    def to_dict(self) -> dict:
        return {
            "dates": [
                {"date": day.isoformat(), "slots": slots} for day, slots in sorted(self.dates.items())
            ],
            "degraded": self.degraded,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AvailabilitySnapshot":
        return cls(
            dates={date.fromisoformat(item["date"]): list(item["slots"]) for item in data["dates"]},
            degraded=bool(data.get("degraded", False)),
        )


class AvailabilityService:
    """Computes availability from current storage state on every call"""

    def __init__(
        self,
        db: Session,
        calendar=None,
        cache: Optional[AvailabilityCache] = default_cache,
        template: Optional[rules.WeeklyTemplate] = None,
        today: Optional[Callable[[], date]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.calendar = calendar
        self.cache = cache
        self.template = template
        self.today = today or business_today
        self.now = now or business_now
        self.repo = BookingRepository()

    def default_range(self, from_date: Optional[date] = None) -> tuple[date, date]:
        """The default window, counted from ``from_date`` when the caller gave one"""
        start = from_date or self.today()
        return start, start + timedelta(days=AVAILABILITY_DEFAULT_DAYS)

    async def availability(
        self, from_date: date, to_date: date, use_cache: bool = True
    ) -> AvailabilitySnapshot:
        if to_date < from_date:
            raise BookingValidationError("to_date must not be before from_date")
        if (to_date - from_date).days > AVAILABILITY_MAX_RANGE_DAYS:
            raise BookingValidationError(
                f"Availability range is limited to {AVAILABILITY_MAX_RANGE_DAYS} days"
            )

        # Past dates are never offered
        from_date = max(from_date, self.today())
        if to_date < from_date:
            return AvailabilitySnapshot()

        # Read before computing: a booking write after this point moves the
        # generation on, so this snapshot can never be served once stale
        generation = self.cache.generation() if use_cache and self.cache is not None else None
        if generation is not None:
            cached = self.cache.get(generation, from_date, to_date)
            if cached is not None:
                return AvailabilitySnapshot.from_dict(cached)

        snapshot = await self._compute(from_date, to_date)

        # Degraded results are never cached
        if generation is not None and not snapshot.degraded:
            self.cache.put(
                generation, from_date, to_date, snapshot.to_dict(), ttl=AVAILABILITY_CACHE_TTL_SECONDS
            )
        return snapshot

    def invalidate_cache(self) -> None:
        """Called after every booking write"""
        if self.cache is not None:
            self.cache.invalidate()

    async def _compute(self, from_date: date, to_date: date) -> AvailabilitySnapshot:
        days = [
            day for day in rules.dates_in_range(from_date, to_date) if rules.is_open_day(day, self.template)
        ]
        if not days:
            return AvailabilitySnapshot()

        free_busy = None
        degraded = False
        if self.calendar is not None and self.calendar.is_configured():
            try:
                free_busy = await self.calendar.get_free_busy(days[0], days[-1])
            except Exception as e:
                degraded = True
                logger.warning(
                    f"⚠️ Calendar unavailable, serving rule-based slots (degraded=True) "
                    f"for {days[0]}..{days[-1]}: {e}"
                )

        taken = self.repo.active_slots_between(self.db, days[0], days[-1])

        now_local = self.now()
        snapshot = AvailabilitySnapshot(degraded=degraded)
        for day in days:
            open_slots = []
            for slot_time in rules.slots_for_date(day, self.template):
                if rules.slot_has_started(day, slot_time, now_local):
                    continue
                if free_busy is not None and not free_busy.is_free(
                    day, slot_time, rules.SLOT_DURATION_MINUTES
                ):
                    continue
                if (day, slot_time) in taken:
                    continue
                open_slots.append(slot_time)
            snapshot.dates[day] = sorted(open_slots, key=rules.slot_minutes)
        return snapshot

    async def is_slot_open(self, day: date, slot_time: str) -> bool:
        """Live check for a single slot, bypassing the cache"""
        snapshot = await self.availability(day, day, use_cache=False)
        return slot_time in snapshot.slots(day)
