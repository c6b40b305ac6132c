"""
Tests for booking notification emails.
"""

import asyncio
from datetime import date
from types import SimpleNamespace

import pytest

from stancastle import email_service
from stancastle.domain.bookings.catalog import get_offering
from stancastle.email_templates import meeting_details_template, payment_confirmation_template


def _booking(**overrides):
    fields = dict(
        id="b1",
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        date=date(2026, 1, 12),
        time="08:00",
        duration_minutes=90,
        amount_paid=15999,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


@pytest.fixture
def sent(monkeypatch):
    """Capture messages instead of calling Resend"""
    messages = []
    monkeypatch.setattr(email_service, "RESEND_API_KEY", "re_test")
    monkeypatch.setattr(email_service, "compile_mjml_to_html", lambda mjml: mjml)
    monkeypatch.setattr(email_service.resend.Emails, "send", lambda params: messages.append(params) or {"id": "em_1"})
    return messages


def test_uk_date_format():
    assert email_service.format_uk_datetime(date(2026, 1, 12), "08:00") == "Monday 12 January 2026 at 08:00"
    assert email_service.format_uk_datetime(date(2026, 3, 5), "17:00") == "Thursday 5 March 2026 at 17:00"


def test_payment_confirmation_email(sent):
    asyncio.run(email_service.send_payment_confirmation_email(_booking(), get_offering("diagnostic")))

    message = sent[0]
    assert message["to"] == ["ada@example.com"]
    assert message["subject"] == "Booking confirmed – Diagnostic Session on Monday 12 January 2026 at 08:00"
    assert "£159.99" in message["html"]
    assert "Hi Ada" in message["html"]


def test_meeting_details_email_with_link(sent):
    asyncio.run(
        email_service.send_meeting_details_email(
            _booking(), get_offering("diagnostic"), "https://zoom.us/j/123"
        )
    )

    message = sent[0]
    assert message["subject"] == "Meeting details – Diagnostic Session on Monday 12 January 2026 at 08:00"
    assert "https://zoom.us/j/123" in message["html"]
    assert "90 minutes" in message["html"]


def test_meeting_details_email_without_link(sent):
    asyncio.run(email_service.send_meeting_details_email(_booking(), get_offering("diagnostic"), None))
    assert "will be sent separately" in sent[0]["html"]


def test_send_requires_api_key(monkeypatch):
    monkeypatch.setattr(email_service, "RESEND_API_KEY", None)
    assert not email_service.is_configured()
    with pytest.raises(email_service.EmailNotConfiguredError):
        asyncio.run(email_service.send_email("ada@example.com", "Subject", "<mjml></mjml>"))


def test_templates_compile_to_html():
    mjml = payment_confirmation_template(
        first_name="Ada",
        service_name="Partner Programme",
        date_time="Monday 12 January 2026 at 08:00",
        amount="£749.99",
        prep_form_url="https://stancastle.com/prep",
    )
    html = email_service.compile_mjml_to_html(mjml)
    assert "<html" in html
    assert "Partner Programme" in html

    mjml = meeting_details_template(
        first_name="Ada",
        service_name="Partner Programme",
        date_time="Monday 12 January 2026 at 08:00",
        duration_minutes=60,
        join_url=None,
        prep_form_url="https://stancastle.com/prep",
    )
    assert "020 8064 2496" in email_service.compile_mjml_to_html(mjml)


def test_customer_name_is_escaped():
    mjml = payment_confirmation_template(
        first_name="<script>alert(1)</script>",
        service_name="Diagnostic Session",
        date_time="Monday 12 January 2026 at 08:00",
        amount="£159.99",
        prep_form_url="https://stancastle.com/prep",
    )
    assert "<script>" not in mjml
    assert "Hi &lt;script&gt;alert(1)&lt;/script&gt;," in mjml

    html = email_service.compile_mjml_to_html(mjml)
    assert "<script>alert(1)</script>" not in html


def test_escaped_name_in_sent_email(sent):
    asyncio.run(
        email_service.send_meeting_details_email(
            _booking(first_name='Ada "<b>"'), get_offering("diagnostic"), "https://zoom.us/j/123"
        )
    )
    assert "Hi Ada &quot;&lt;b&gt;&quot;," in sent[0]["html"]
