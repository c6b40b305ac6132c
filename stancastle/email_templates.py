"""
MJML Email Templates
Booking emails using MJML for responsive, cross-client compatibility
"""

from typing import Optional

from .config import CONTACT_PHONE
from .shared.sanitization import sanitize_string

# Stancastle brand colours - navy/gold
THEME = {
    "primary": "#1e3a5f",
    "primary_dark": "#142943",
    "accent": "#c9a227",
    "background": "#f5f7fa",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#15803d",
}

SITE_URL = "https://stancastle.com"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="6px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="{THEME['primary']}" padding="28px 20px">
          <mj-column>
            <mj-text align="center" font-size="22px" font-weight="700" color="#ffffff" letter-spacing="2px">
              STANCASTLE
            </mj-text>
          </mj-column>
        </mj-section>

        <mj-section background-color="{THEME['card_bg']}" padding="40px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              Questions? Reply to this email or call {CONTACT_PHONE}.
            </mj-text>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="12px 0 0 0">
              <a href="{SITE_URL}" style="color: {THEME['text_muted']}; text-decoration: none;">stancastle.com</a>
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def payment_confirmation_template(
    first_name: str,
    service_name: str,
    date_time: str,
    amount: str,
    prep_form_url: str,
) -> str:
    """Booking confirmed / payment received"""
    first_name = sanitize_string(first_name)
    service_name = sanitize_string(service_name)
    date_time = sanitize_string(date_time)
    amount = sanitize_string(amount)
    prep_form_url = sanitize_string(prep_form_url)
    content = f"""
    <mj-text>
      Hi {first_name},
    </mj-text>

    <mj-text>
      Thank you for booking with Stancastle. <strong>Payment confirmed.</strong>
      Your {service_name} is scheduled for:
    </mj-text>

    <mj-text align="center" font-size="18px" font-weight="600" color="{THEME['primary']}" padding="20px 0">
      📅 {date_time} (UK time)
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}" padding="0 0 20px 0">
      Amount paid: {amount}
    </mj-text>

    <mj-text>
      <strong>Next steps</strong>
    </mj-text>

    <mj-text padding="0 0 0 12px">
      • You will receive a separate email shortly with your Zoom meeting link and joining instructions.<br/>
      • To help us prepare for your session, please complete this short form when you're ready:
      <a href="{prep_form_url}" style="color: {THEME['primary']};">Meeting preparation form</a>
    </mj-text>

    <mj-text>
      Best,<br/>The Stancastle Team
    </mj-text>
    """

    return get_base_template(
        title="Booking confirmed",
        preview_text=f"✅ {service_name} on {date_time}",
        content_sections=content,
    )


def meeting_details_template(
    first_name: str,
    service_name: str,
    date_time: str,
    duration_minutes: int,
    join_url: Optional[str],
    prep_form_url: str,
) -> str:
    """Meeting details, with the join link when the meeting already exists"""
    first_name = sanitize_string(first_name)
    service_name = sanitize_string(service_name)
    date_time = sanitize_string(date_time)
    prep_form_url = sanitize_string(prep_form_url)
    join_url = sanitize_string(join_url) or None
    if join_url:
        meeting_section = f"""
    <mj-text>
      <strong>Join your session:</strong><br/>
      <a href="{join_url}" style="color: {THEME['primary']};">{join_url}</a>
    </mj-text>

    <mj-text padding="0 0 0 12px">
      • Click the link above at your scheduled time (or a few minutes early).<br/>
      • You may be asked to install the Zoom app or join via browser.<br/>
      • Please be in a quiet place with a stable connection.
    </mj-text>
    """
    else:
        meeting_section = f"""
    <mj-text>
      Your Zoom meeting link will be sent separately once the meeting has been created.
      If you don't receive it within a few minutes, reply to this email or call {CONTACT_PHONE}.
    </mj-text>
    """

    content = f"""
    <mj-text>
      Hi {first_name},
    </mj-text>

    <mj-text>
      Here are the details for your Stancastle session.
    </mj-text>

    <mj-text font-size="15px" color="{THEME['text_primary']}">
      <strong>Date &amp; time:</strong> {date_time} (UK time)<br/>
      <strong>Service:</strong> {service_name}<br/>
      <strong>Duration:</strong> {duration_minutes} minutes
    </mj-text>

    {meeting_section}

    <mj-text>
      To help us prepare, please complete this form when you can:
      <a href="{prep_form_url}" style="color: {THEME['primary']};">Meeting preparation form</a>
    </mj-text>

    <mj-text>
      Best,<br/>The Stancastle Team
    </mj-text>
    """

    return get_base_template(
        title="Your meeting details",
        preview_text=f"Meeting details - {service_name} on {date_time}",
        content_sections=content,
        cta_url=join_url,
        cta_label="Join on Zoom" if join_url else None,
    )
