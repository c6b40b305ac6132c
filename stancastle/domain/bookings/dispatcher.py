"""Post-confirmation side effects for a newly paid booking

Runs once per booking, after the pending -> paid transition has been committed.
Each step fails on its own: an outage at Zoom, Outlook or Resend is logged with
the booking id and step name for manual follow-up, and never touches the
booking's paid status.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ... import email_service
from ...database import SessionLocal
from ...services.outlook_calendar_service import OutlookCalendarService
from ...services.zoom_service import ZoomService
from ...shared.sanitization import sanitize_string
from .catalog import get_offering
from .repository import BookingRepository

logger = logging.getLogger(__name__)

STEP_OK = "ok"
STEP_SKIPPED = "skipped"
STEP_FAILED = "failed"

STEP_MEETING = "meeting"
STEP_CALENDAR = "calendar_mirror"
STEP_CONFIRMATION_EMAIL = "payment_confirmation_email"
STEP_MEETING_EMAIL = "meeting_details_email"


@dataclass
class DispatchReport:
    booking_id: str
    steps: dict[str, str] = field(default_factory=dict)

    @property
    def failed_steps(self) -> list[str]:
        return [name for name, outcome in self.steps.items() if outcome == STEP_FAILED]


class SideEffectDispatcher:
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        meetings: Optional[ZoomService] = None,
        calendar: Optional[OutlookCalendarService] = None,
        notifier=email_service,
    ):
        self.session_factory = session_factory
        self.meetings = meetings if meetings is not None else ZoomService()
        self.calendar = calendar if calendar is not None else OutlookCalendarService()
        self.notifier = notifier
        self.repo = BookingRepository()

    async def dispatch(self, booking_id: str) -> DispatchReport:
        report = DispatchReport(booking_id=booking_id)
        db = self.session_factory()
        try:
            booking = self.repo.get_booking(db, booking_id)
            if booking is None:
                logger.error(f"❌ Side effects requested for unknown booking {booking_id}")
                return report
            offering = get_offering(booking.service_type)
            if offering is None:
                logger.error(f"❌ Booking {booking_id} has unknown service type {booking.service_type}")
                return report

            logger.info(f"🔄 Running post-payment side effects for booking {booking_id}")

            await self._run_step(
                db, report, STEP_MEETING, lambda: self._create_meeting(db, booking, offering)
            )
            await self._run_step(
                db, report, STEP_CALENDAR, lambda: self._mirror_calendar(db, booking, offering)
            )
            await self._run_step(
                db, report, STEP_CONFIRMATION_EMAIL, lambda: self._send_confirmation(booking, offering)
            )
            await self._run_step(
                db, report, STEP_MEETING_EMAIL, lambda: self._send_meeting_details(booking, offering)
            )

            if (
                report.steps.get(STEP_CONFIRMATION_EMAIL) == STEP_OK
                and report.steps.get(STEP_MEETING_EMAIL) == STEP_OK
            ):
                self.repo.mark_notified(db, booking_id)

            if report.failed_steps:
                logger.warning(
                    f"⚠️ Booking {booking_id} side effects need follow-up: {', '.join(report.failed_steps)}"
                )
            else:
                logger.info(f"✅ Side effects complete for booking {booking_id}: {report.steps}")
            return report
        finally:
            db.close()

    async def _run_step(self, db: Session, report: DispatchReport, name: str, step) -> None:
        try:
            report.steps[name] = await step()
        except Exception as e:
            db.rollback()
            report.steps[name] = STEP_FAILED
            logger.error(f"❌ Side effect '{name}' failed for booking {report.booking_id}: {e}")
        # Writes above used bulk updates; reload so later steps see e.g. the join link
        db.expire_all()

    async def _create_meeting(self, db: Session, booking, offering) -> str:
        if booking.meeting_ref:
            return STEP_OK
        if not self.meetings.is_configured():
            logger.info(f"ℹ️ Zoom not configured, no meeting for booking {booking.id}")
            return STEP_SKIPPED

        meeting = await self.meetings.create_meeting(
            offering.meeting_topic, booking.date, booking.time, offering.duration_minutes
        )
        if not self.repo.attach_meeting(db, booking.id, meeting.meeting_id, meeting.join_url):
            logger.warning(f"⚠️ Booking {booking.id} already had a meeting; {meeting.meeting_id} not attached")
        return STEP_OK

    async def _mirror_calendar(self, db: Session, booking, offering) -> str:
        if booking.calendar_event_ref:
            return STEP_OK
        if not self.calendar.is_configured():
            return STEP_SKIPPED

        if booking.meeting_join_url:
            join_url = sanitize_string(booking.meeting_join_url)
            body_html = f'<p>Zoom: <a href="{join_url}">{join_url}</a></p>'
        else:
            body_html = "<p>Zoom link pending.</p>"
        body_html += (
            f"<p>{sanitize_string(booking.customer_name)} &lt;{sanitize_string(booking.email)}&gt;, "
            f"{sanitize_string(booking.phone)}</p>"
        )
        if booking.company:
            body_html += f"<p>{sanitize_string(booking.company)}</p>"

        event_id = await self.calendar.create_event(
            booking.date,
            booking.time,
            offering.duration_minutes,
            subject=f"{offering.name} – {booking.customer_name}",
            body_html=body_html,
            attendee_email=booking.email,
            attendee_name=booking.customer_name,
        )
        if event_id:
            self.repo.set_calendar_event(db, booking.id, event_id)
        return STEP_OK

    async def _send_confirmation(self, booking, offering) -> str:
        if not self.notifier.is_configured():
            logger.warning(f"⚠️ Email not configured; confirmation for booking {booking.id} not sent")
            return STEP_SKIPPED
        await self.notifier.send_payment_confirmation_email(booking, offering)
        return STEP_OK

    async def _send_meeting_details(self, booking, offering) -> str:
        if not self.notifier.is_configured():
            return STEP_SKIPPED
        await self.notifier.send_meeting_details_email(booking, offering, booking.meeting_join_url)
        return STEP_OK
