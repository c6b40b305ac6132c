"""
Shared fixtures: a throwaway SQLite database and in-memory stand-ins for the
payment gateway, calendar, Zoom and email.
"""

import base64
import json
import os
import tempfile
import time
from datetime import date

# Settings are read at import time, so the environment is fixed before stancastle loads
_TMP_DIR = tempfile.mkdtemp(prefix="stancastle-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
for _name in (
    "REDIS_URL",
    "RESEND_API_KEY",
    "DODO_PAYMENTS_API_KEY",
    "OUTLOOK_CLIENT_ID",
    "OUTLOOK_REFRESH_TOKEN",
    "ZOOM_ACCOUNT_ID",
    "ZOOM_ACCESS_TOKEN",
):
    os.environ.pop(_name, None)

import pytest  # noqa: E402

from stancastle import models  # noqa: E402,F401
from stancastle.database import Base, SessionLocal, engine  # noqa: E402
from stancastle.domain.bookings.orchestrator import BookingOrchestrator, ContactDetails  # noqa: E402
from stancastle.services.payment_gateway import (  # noqa: E402
    CheckoutSession,
    DodoPaymentsGateway,
    PaymentGatewayError,
)
from stancastle.services.zoom_service import Meeting  # noqa: E402
from stancastle.webhook_security import sign_webhook  # noqa: E402

WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"stancastle-test-signing-key").decode()

# 2026-01-05 and 2026-01-12 are Mondays; 2026-01-06 is a Tuesday (closed)
TODAY = date(2026, 1, 5)
MONDAY = date(2026, 1, 12)
TUESDAY = date(2026, 1, 13)


class FakeGateway(DodoPaymentsGateway):
    """Real webhook verification, scripted checkout sessions"""

    def __init__(self):
        super().__init__(api_key=None, webhook_secret=WEBHOOK_SECRET, client=None)
        self.fail = False
        self.sessions = []

    async def create_checkout_session(self, booking, offering, success_url, cancel_url):
        if self.fail:
            raise PaymentGatewayError("gateway unavailable")
        session = CheckoutSession(
            url=f"https://checkout.test/session/{len(self.sessions) + 1}",
            session_id=f"cs_{len(self.sessions) + 1}",
        )
        self.sessions.append((booking.id, offering.service_type, success_url, cancel_url))
        return session


class RecordingDispatcher:
    def __init__(self):
        self.calls = []

    async def dispatch(self, booking_id):
        self.calls.append(booking_id)


class MemoryRedis:
    """The get/setex/incr subset of redis.Redis the availability cache uses"""

    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value

    def incr(self, key):
        self.store[key] = str(int(self.store.get(key) or 0) + 1)
        return int(self.store[key])

    def snapshot_keys(self):
        return sorted(key for key in self.store if not key.endswith(":generation"))


class FakeFreeBusy:
    def __init__(self, busy):
        self.busy = busy

    def is_free(self, day, slot_time, duration_minutes):
        return (day, slot_time) not in self.busy


class FakeCalendar:
    """Calendar with a fixed set of busy (date, time) slots"""

    def __init__(self, busy=(), fail=False, configured=True):
        self.busy = set(busy)
        self.fail = fail
        self.configured = configured
        self.events = []

    def is_configured(self):
        return self.configured

    async def get_free_busy(self, from_date, to_date):
        if self.fail:
            from stancastle.services.outlook_calendar_service import CalendarUnavailableError

            raise CalendarUnavailableError("Graph is down")
        return FakeFreeBusy(self.busy)

    async def create_event(self, day, slot_time, duration_minutes, subject, body_html, attendee_email, attendee_name=None):
        if self.fail:
            raise RuntimeError("Graph is down")
        self.events.append({"day": day, "time": slot_time, "subject": subject, "body": body_html})
        return f"evt_{len(self.events)}"


class FakeMeetings:
    def __init__(self, fail=False, configured=True):
        self.fail = fail
        self.configured = configured
        self.created = []

    def is_configured(self):
        return self.configured

    async def create_meeting(self, topic, day, slot_time, duration_minutes):
        if self.fail:
            raise RuntimeError("Zoom is down")
        self.created.append((topic, day, slot_time, duration_minutes))
        return Meeting(meeting_id="zm_123", join_url="https://zoom.us/j/123")


class FakeNotifier:
    def __init__(self, fail_confirmation=False, configured=True):
        self.fail_confirmation = fail_confirmation
        self.configured = configured
        self.confirmations = []
        self.meeting_details = []

    def is_configured(self):
        return self.configured

    async def send_payment_confirmation_email(self, booking, offering):
        if self.fail_confirmation:
            raise RuntimeError("Resend rejected the message")
        self.confirmations.append(booking.email)
        return {"id": "em_1"}

    async def send_meeting_details_email(self, booking, offering, join_url):
        self.meeting_details.append((booking.email, join_url))
        return {"id": "em_2"}


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def contact():
    return ContactDetails(
        first_name="Ada",
        last_name="Lovelace",
        email="Ada@Example.com",
        phone="020 8064 2496",
        company="Analytical Engines Ltd",
        company_website="example.com",
    )


@pytest.fixture
def make_orchestrator(db, gateway, dispatcher):
    def _make(**kwargs):
        kwargs.setdefault("today", lambda: TODAY)
        kwargs.setdefault("dispatcher", dispatcher)
        return BookingOrchestrator(db, gateway=gateway, **kwargs)

    return _make


@pytest.fixture
def make_webhook():
    """Build a signed payment webhook delivery: (raw_body, headers)"""

    def _make(event_type, booking_id=None, event_id="evt_1", customer_id=None, **data):
        payload_data = {
            "payment_id": "pay_1",
            "total_amount": 15999,
            "currency": "GBP",
            "metadata": {"booking_id": booking_id} if booking_id else {},
        }
        if customer_id:
            payload_data["customer"] = {"customer_id": customer_id}
        payload_data.update(data)
        body = json.dumps({"type": event_type, "data": payload_data}).encode("utf-8")
        timestamp = str(int(time.time()))
        headers = {
            "webhook-id": event_id,
            "webhook-timestamp": timestamp,
            "webhook-signature": sign_webhook(WEBHOOK_SECRET, event_id, timestamp, body),
        }
        return body, headers

    return _make
