"""
Outlook Calendar Service
Reads free/busy from the business Outlook calendar (Microsoft Graph) and mirrors
paid bookings onto it as calendar events
"""
import logging
import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import httpx

from ..config import (
    BUSINESS_TIMEZONE,
    OUTLOOK_CLIENT_ID,
    OUTLOOK_CLIENT_SECRET,
    OUTLOOK_EMAIL,
    OUTLOOK_REFRESH_TOKEN,
    OUTLOOK_TENANT_ID,
)

logger = logging.getLogger(__name__)

GRAPH_API = "https://graph.microsoft.com/v1.0"
MICROSOFT_TOKEN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
GRAPH_SCOPE = "offline_access Calendars.Read Calendars.ReadWrite"

# availabilityView: one character per interval, "0" means free
VIEW_INTERVAL_MINUTES = 30
# Longest range sent to getSchedule in one call
MAX_BATCH_DAYS = 31


class CalendarUnavailableError(Exception):
    """Raised when the external calendar cannot be read"""

    pass


def normalize_tenant_id(value: Optional[str]) -> str:
    """Strip the "id " prefix the Azure portal adds when copying a tenant ID"""
    tenant = (value or "common").strip()
    if tenant.lower().startswith("id "):
        return tenant[3:].strip()
    return tenant or "common"


def sanitize_refresh_token(value: Optional[str]) -> str:
    """Collapse whitespace and line breaks picked up when pasting secrets"""
    if not value:
        return ""
    return " ".join(value.split())


class FreeBusyWindow:
    """Free/busy view for one contiguous range starting at ``start`` (UTC)"""

    def __init__(self, start: datetime, view: str, interval_minutes: int = VIEW_INTERVAL_MINUTES):
        self.start = start
        self.view = view
        self.interval_minutes = interval_minutes

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=len(self.view) * self.interval_minutes)

    def covers(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    def is_free(self, slot_start: datetime, duration_minutes: int) -> bool:
        offset = (slot_start - self.start).total_seconds() / 60
        first = int(offset // self.interval_minutes)
        needed = math.ceil(duration_minutes / self.interval_minutes)
        if first < 0:
            return False
        for idx in range(first, first + needed):
            if idx >= len(self.view) or self.view[idx] != "0":
                return False
        return True


class FreeBusySchedule:
    """Free/busy for a date range, built from one or more getSchedule calls"""

    def __init__(self, windows: list[FreeBusyWindow], tz_name: str = BUSINESS_TIMEZONE):
        self.windows = windows
        self.tz = ZoneInfo(tz_name)

    def is_free(self, day: date, slot_time: str, duration_minutes: int) -> bool:
        """True only when every interval of the slot is free on the calendar"""
        hours, minutes = (int(part) for part in slot_time.split(":"))
        local_start = datetime.combine(day, time(hours, minutes), tzinfo=self.tz)
        slot_start = local_start.astimezone(timezone.utc)
        for window in self.windows:
            if window.covers(slot_start):
                return window.is_free(slot_start, duration_minutes)
        # Outside every window we have no information
        return False


class OutlookCalendarService:
    """Microsoft Graph calendar client for the business mailbox"""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        tenant_id: Optional[str] = None,
        refresh_token: Optional[str] = None,
        mailbox: Optional[str] = None,
        tz_name: str = BUSINESS_TIMEZONE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.client_id = (client_id or OUTLOOK_CLIENT_ID or "").strip()
        self.client_secret = (client_secret or OUTLOOK_CLIENT_SECRET or "").strip()
        self.tenant_id = normalize_tenant_id(tenant_id or OUTLOOK_TENANT_ID)
        self.refresh_token = sanitize_refresh_token(refresh_token or OUTLOOK_REFRESH_TOKEN)
        self.mailbox = (mailbox or OUTLOOK_EMAIL or "").strip()
        self.tz_name = tz_name
        self.tz = ZoneInfo(tz_name)
        self.transport = transport
        self.timeout = timeout
        self._access_token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token and self.mailbox)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout)

    async def get_access_token(self) -> str:
        """Exchange the stored refresh token for a Graph access token"""
        now = datetime.now(timezone.utc)
        if self._access_token and self._token_expires_at and self._token_expires_at > now + timedelta(minutes=5):
            return self._access_token

        logger.info("🔄 Refreshing Outlook access token...")
        try:
            async with self._client() as client:
                response = await client.post(
                    MICROSOFT_TOKEN_URL.format(tenant=self.tenant_id),
                    data={
                        "grant_type": "refresh_token",
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "refresh_token": self.refresh_token,
                        "scope": GRAPH_SCOPE,
                    },
                )
        except httpx.HTTPError as e:
            raise CalendarUnavailableError(f"Outlook token request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"❌ Outlook token refresh failed: {response.status_code} {response.text}")
            raise CalendarUnavailableError(f"Outlook token refresh failed ({response.status_code})")

        tokens = response.json()
        access_token = tokens.get("access_token")
        if not access_token:
            raise CalendarUnavailableError("No access token in Outlook refresh response")

        self._access_token = access_token
        self._token_expires_at = now + timedelta(seconds=int(tokens.get("expires_in", 3600)))
        logger.info("✅ Outlook access token refreshed")
        return access_token

    async def get_free_busy(self, from_date: date, to_date: date) -> FreeBusySchedule:
        """
        Free/busy for every day from ``from_date`` to ``to_date`` inclusive.

        One getSchedule call covers up to MAX_BATCH_DAYS days. Raises
        CalendarUnavailableError when the calendar cannot be read.
        """
        if not self.is_configured():
            raise CalendarUnavailableError("Outlook calendar is not configured")

        token = await self.get_access_token()
        windows: list[FreeBusyWindow] = []
        batch_start = from_date
        while batch_start <= to_date:
            batch_end = min(batch_start + timedelta(days=MAX_BATCH_DAYS - 1), to_date)
            windows.append(await self._get_schedule(token, batch_start, batch_end))
            batch_start = batch_end + timedelta(days=1)

        logger.info(
            f"📅 Outlook free/busy loaded for {from_date}..{to_date} in {len(windows)} call(s)"
        )
        return FreeBusySchedule(windows, self.tz_name)

    async def _get_schedule(self, token: str, first_day: date, last_day: date) -> FreeBusyWindow:
        start_local = datetime.combine(first_day, time.min)
        end_local = datetime.combine(last_day + timedelta(days=1), time.min)
        payload = {
            "schedules": [self.mailbox],
            "startTime": {"dateTime": start_local.isoformat(), "timeZone": self.tz_name},
            "endTime": {"dateTime": end_local.isoformat(), "timeZone": self.tz_name},
            "availabilityViewInterval": VIEW_INTERVAL_MINUTES,
        }
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{GRAPH_API}/users/{self.mailbox}/calendar/getSchedule",
                    json=payload,
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as e:
            raise CalendarUnavailableError(f"getSchedule request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"❌ Outlook getSchedule failed: {response.status_code} {response.text}")
            raise CalendarUnavailableError(f"getSchedule failed ({response.status_code})")

        schedules = response.json().get("value") or []
        if not schedules or "availabilityView" not in schedules[0]:
            raise CalendarUnavailableError("getSchedule returned no availability view")

        window_start = start_local.replace(tzinfo=self.tz).astimezone(timezone.utc)
        return FreeBusyWindow(window_start, schedules[0]["availabilityView"])

    async def create_event(
        self,
        day: date,
        slot_time: str,
        duration_minutes: int,
        subject: str,
        body_html: str,
        attendee_email: str,
        attendee_name: Optional[str] = None,
    ) -> Optional[str]:
        """
        Create an event in the business calendar.
        Returns the Graph event ID, or None when the calendar is not configured.
        """
        if not self.is_configured():
            logger.info("ℹ️ Outlook calendar not configured, skipping event mirror")
            return None

        token = await self.get_access_token()
        hours, minutes = (int(part) for part in slot_time.split(":"))
        start = datetime.combine(day, time(hours, minutes))
        end = start + timedelta(minutes=duration_minutes)

        event_data = {
            "subject": subject,
            "body": {"contentType": "HTML", "content": body_html},
            "start": {"dateTime": start.isoformat(), "timeZone": self.tz_name},
            "end": {"dateTime": end.isoformat(), "timeZone": self.tz_name},
            "attendees": [
                {
                    "emailAddress": {"address": attendee_email, "name": attendee_name or attendee_email},
                    "type": "required",
                }
            ],
        }

        async with self._client() as client:
            response = await client.post(
                f"{GRAPH_API}/users/{self.mailbox}/calendar/events",
                json=event_data,
                headers={"Authorization": f"Bearer {token}"},
            )

        if response.status_code not in (200, 201):
            logger.error(f"❌ Outlook create event failed: {response.status_code} {response.text}")
            raise CalendarUnavailableError(f"Outlook create event failed ({response.status_code})")

        event_id = response.json().get("id")
        logger.info(f"✅ Outlook calendar event created: {event_id}")
        return event_id
