"""
Email Service using Resend
Booking notifications rendered from MJML templates
"""

import logging
from datetime import date
from io import StringIO
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, PREP_FORM_URL, RESEND_API_KEY
from .email_templates import meeting_details_template, payment_confirmation_template

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailNotConfiguredError(Exception):
    pass


def is_configured() -> bool:
    return bool(RESEND_API_KEY)


def format_uk_datetime(day: date, slot_time: str) -> str:
    """e.g. 'Monday 12 January 2026 at 08:00'"""
    return f"{day:%A} {day.day} {day:%B %Y} at {slot_time}"


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(StringIO(mjml_content))
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise ValueError(f"Failed to compile MJML template: {str(e)}") from e

    errors = getattr(result, "errors", None)
    if errors:
        logger.warning(f"MJML compilation warnings: {errors}")
    return result.html


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Send response dict
    """
    if not is_configured():
        raise EmailNotConfiguredError("RESEND_API_KEY is not set")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    logger.info(f"📧 Sending email via Resend to: {recipients}")
    response = resend.Emails.send(
        {
            "from": from_address or EMAIL_FROM_ADDRESS,
            "to": recipients,
            "subject": subject,
            "html": html_content,
        }
    )
    logger.info(f"✅ Email sent successfully via Resend: {response}")
    return response


# ============================================
# Booking notifications
# ============================================


def _first_name(booking) -> str:
    return (booking.first_name or "").strip() or (booking.last_name or "").strip() or "there"


async def send_payment_confirmation_email(booking, offering) -> dict:
    """Email 1 - booking confirmed, payment received"""
    date_time = format_uk_datetime(booking.date, booking.time)
    amount_pence = booking.amount_paid if booking.amount_paid is not None else offering.amount
    mjml_content = payment_confirmation_template(
        first_name=_first_name(booking),
        service_name=offering.name,
        date_time=date_time,
        amount=f"£{amount_pence / 100:,.2f}",
        prep_form_url=PREP_FORM_URL,
    )
    return await send_email(
        to=booking.email,
        subject=f"Booking confirmed – {offering.name} on {date_time}",
        mjml_content=mjml_content,
    )


async def send_meeting_details_email(booking, offering, join_url: Optional[str]) -> dict:
    """Email 2 - meeting details; says the link will follow when there is none yet"""
    date_time = format_uk_datetime(booking.date, booking.time)
    mjml_content = meeting_details_template(
        first_name=_first_name(booking),
        service_name=offering.name,
        date_time=date_time,
        duration_minutes=booking.duration_minutes,
        join_url=join_url,
        prep_form_url=PREP_FORM_URL,
    )
    return await send_email(
        to=booking.email,
        subject=f"Meeting details – {offering.name} on {date_time}",
        mjml_content=mjml_content,
    )
