"""
Zoom Meeting Service
Creates scheduled Zoom meetings for paid bookings
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

import httpx

from ..config import (
    BUSINESS_TIMEZONE,
    ZOOM_ACCESS_TOKEN,
    ZOOM_ACCOUNT_ID,
    ZOOM_CLIENT_ID,
    ZOOM_CLIENT_SECRET,
)
from ..shared.retry import with_fallback

logger = logging.getLogger(__name__)

ZOOM_TOKEN_URL = "https://zoom.us/oauth/token"
ZOOM_API = "https://api.zoom.us/v2"


class ZoomError(Exception):
    """Raised when a Zoom meeting cannot be created"""

    pass


class ZoomAuthError(ZoomError):
    """Token could not be obtained or was rejected (HTTP 401)"""

    pass


@dataclass
class Meeting:
    meeting_id: str
    join_url: str


class ZoomService:
    """Zoom REST client using server-to-server OAuth, or a static token"""

    def __init__(
        self,
        account_id: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        access_token: Optional[str] = None,
        tz_name: str = BUSINESS_TIMEZONE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 15.0,
    ):
        self.account_id = (account_id or ZOOM_ACCOUNT_ID or "").strip()
        self.client_id = (client_id or ZOOM_CLIENT_ID or "").strip()
        self.client_secret = (client_secret or ZOOM_CLIENT_SECRET or "").strip()
        self.static_token = (access_token or ZOOM_ACCESS_TOKEN or "").strip()
        self.tz_name = tz_name
        self.transport = transport
        self.timeout = timeout

    def can_use_oauth(self) -> bool:
        return bool(self.account_id and self.client_id and self.client_secret)

    def is_configured(self) -> bool:
        return self.can_use_oauth() or bool(self.static_token)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout)

    async def get_oauth_token(self) -> str:
        """Server-to-server OAuth token (account_credentials grant)"""
        try:
            async with self._client() as client:
                response = await client.post(
                    ZOOM_TOKEN_URL,
                    data={"grant_type": "account_credentials", "account_id": self.account_id},
                    auth=(self.client_id, self.client_secret),
                )
        except httpx.HTTPError as e:
            raise ZoomAuthError(f"Zoom OAuth request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"❌ Zoom OAuth token failed: {response.status_code} {response.text}")
            raise ZoomAuthError(f"Zoom OAuth token failed ({response.status_code})")

        token = response.json().get("access_token")
        if not token:
            raise ZoomAuthError("No access token in Zoom OAuth response")
        return token

    async def _create_with_token(
        self, token: str, topic: str, day: date, slot_time: str, duration_minutes: int
    ) -> Meeting:
        hours, minutes = slot_time.split(":")
        start_time = f"{day.isoformat()}T{int(hours):02d}:{int(minutes):02d}:00"
        payload = {
            "topic": topic,
            "type": 2,  # scheduled meeting
            "start_time": start_time,
            "timezone": self.tz_name,
            "duration": duration_minutes,
            "settings": {"join_before_host": True},
        }
        async with self._client() as client:
            response = await client.post(
                f"{ZOOM_API}/users/me/meetings",
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
            )

        if response.status_code == 401:
            raise ZoomAuthError("Zoom rejected the access token (401)")
        if response.status_code not in (200, 201):
            logger.error(f"❌ Zoom create meeting failed: {response.status_code} {response.text}")
            raise ZoomError(f"Zoom create meeting failed ({response.status_code})")

        meeting = response.json()
        return Meeting(meeting_id=str(meeting["id"]), join_url=meeting["join_url"])

    async def create_meeting(
        self, topic: str, day: date, slot_time: str, duration_minutes: int
    ) -> Meeting:
        """
        Create a scheduled meeting.

        OAuth is the primary strategy when its credentials are set, the static
        token otherwise; on an auth failure the other strategy is tried once.
        """
        if not self.is_configured():
            raise ZoomError("Zoom is not configured")

        async def via_oauth() -> Meeting:
            token = await self.get_oauth_token()
            logger.info("🔑 Using Zoom OAuth token")
            return await self._create_with_token(token, topic, day, slot_time, duration_minutes)

        async def via_static_token() -> Meeting:
            logger.info("🔑 Using ZOOM_ACCESS_TOKEN")
            return await self._create_with_token(
                self.static_token, topic, day, slot_time, duration_minutes
            )

        if self.can_use_oauth():
            primary, fallback = via_oauth, via_static_token if self.static_token else None
        else:
            primary, fallback = via_static_token, None

        meeting = await with_fallback(primary, fallback, retry_on=(ZoomAuthError,), label="Zoom meeting")
        logger.info(f"✅ Zoom meeting created: {meeting.meeting_id}")
        return meeting
