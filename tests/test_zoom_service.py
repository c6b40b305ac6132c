"""
Tests for Zoom meeting creation: OAuth first, static token as the single fallback.
"""

import asyncio
import json
from datetime import date

import httpx
import pytest

from stancastle.services.zoom_service import ZoomAuthError, ZoomError, ZoomService

DAY = date(2026, 1, 12)


class ZoomStub:
    def __init__(self, oauth_status=200, valid_tokens=("oauth-token", "static-token")):
        self.oauth_status = oauth_status
        self.valid_tokens = set(valid_tokens)
        self.meeting_requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "zoom.us":
            if self.oauth_status != 200:
                return httpx.Response(self.oauth_status, json={"reason": "invalid_client"})
            return httpx.Response(200, json={"access_token": "oauth-token", "expires_in": 3600})

        token = request.headers["Authorization"].removeprefix("Bearer ")
        self.meeting_requests.append((token, json.loads(request.content)))
        if token not in self.valid_tokens:
            return httpx.Response(401, json={"code": 124, "message": "Invalid access token."})
        return httpx.Response(201, json={"id": 85746065432, "join_url": "https://zoom.us/j/85746065432"})


def _service(stub, **credentials):
    return ZoomService(tz_name="Europe/London", transport=httpx.MockTransport(stub), **credentials)


OAUTH = {"account_id": "acct", "client_id": "cid", "client_secret": "csecret"}


def test_oauth_meeting():
    stub = ZoomStub()
    meeting = asyncio.run(
        _service(stub, **OAUTH).create_meeting("Stancastle - Diagnostic Session", DAY, "08:00", 90)
    )

    assert meeting.meeting_id == "85746065432"
    assert meeting.join_url == "https://zoom.us/j/85746065432"
    token, payload = stub.meeting_requests[0]
    assert token == "oauth-token"
    assert payload["topic"] == "Stancastle - Diagnostic Session"
    assert payload["type"] == 2
    assert payload["start_time"] == "2026-01-12T08:00:00"
    assert payload["timezone"] == "Europe/London"
    assert payload["duration"] == 90
    assert payload["settings"]["join_before_host"] is True


def test_static_token_used_once_when_oauth_fails():
    stub = ZoomStub(oauth_status=400)
    meeting = asyncio.run(
        _service(stub, access_token="static-token", **OAUTH).create_meeting("Topic", DAY, "09:30", 90)
    )

    assert meeting.meeting_id == "85746065432"
    assert [token for token, _ in stub.meeting_requests] == ["static-token"]


def test_rejected_oauth_token_falls_back():
    stub = ZoomStub(valid_tokens=("static-token",))
    asyncio.run(_service(stub, access_token="static-token", **OAUTH).create_meeting("Topic", DAY, "09:30", 90))
    assert [token for token, _ in stub.meeting_requests] == ["oauth-token", "static-token"]


def test_both_strategies_failing_raises():
    stub = ZoomStub(oauth_status=400, valid_tokens=())
    with pytest.raises(ZoomAuthError):
        asyncio.run(_service(stub, access_token="static-token", **OAUTH).create_meeting("Topic", DAY, "09:30", 90))
    # One fallback attempt only
    assert len(stub.meeting_requests) == 1


def test_static_token_only():
    stub = ZoomStub()
    service = _service(stub, access_token="static-token")
    assert service.is_configured()
    assert not service.can_use_oauth()
    asyncio.run(service.create_meeting("Topic", DAY, "17:00", 60))
    assert stub.meeting_requests[0][0] == "static-token"


def test_unconfigured_zoom_raises():
    service = _service(ZoomStub())
    assert not service.is_configured()
    with pytest.raises(ZoomError):
        asyncio.run(service.create_meeting("Topic", DAY, "08:00", 90))
