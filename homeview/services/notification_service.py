"""
Viewing Notification Service

Transactional emails for property viewings:
  • send_confirmation  : right after a booking
  • send_reminder      : ~24 hours before the viewing (reminder job)
  • send_cancellation  : when a viewing is cancelled

SMTP: reads SMTP_SERVER / SMTP_PORT / SMTP_USER / SMTP_PASSWORD from settings.
      If SMTP is not configured (or SEND_EMAILS is off), the message is logged
      and treated as sent so development setups keep working.

Every public send_* method returns True/False and never raises.
"""
from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass, fields, replace
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

from homeview.core.config import Settings, settings as default_settings
from homeview.core.exceptions import NotificationError

logger = logging.getLogger(__name__)


@dataclass
class ViewingDetails:
    """Everything a viewing email needs to render."""
    visitor_name: str
    visitor_email: str
    property_title: str
    property_address: str
    viewing_date: datetime
    viewing_time: str
    duration: int
    agent_name: str
    agent_phone: str = ""
    agent_email: str = ""
    notes: Optional[str] = None


def _long_date(value: datetime) -> str:
    """e.g. 'Sunday, March 01, 2026'"""
    return value.strftime("%A, %B %d, %Y")


def _short_date(value: datetime) -> str:
    """e.g. 'Sunday, Mar 01'"""
    return value.strftime("%A, %b %d")


def _escaped(d: ViewingDetails) -> ViewingDetails:
    """Copy of *d* with every text field HTML-escaped."""
    return replace(d, **{
        f.name: escape(getattr(d, f.name))
        for f in fields(d)
        if isinstance(getattr(d, f.name), str)
    })


# ── Templates ─────────────────────────────────────────────────────────────────

def _confirmation_html(d: ViewingDetails) -> str:
    d = _escaped(d)
    notes_block = (
        f'<p style="font-weight:600;color:#2563eb">Your notes</p><p>{d.notes}</p>'
        if d.notes else ""
    )
    return f"""
<!DOCTYPE html>
<html>
<body style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto;padding:20px;color:#333">
  <div style="background:#2563eb;padding:20px;border-radius:8px 8px 0 0;text-align:center">
    <h1 style="color:#fff;margin:0;font-size:22px">Viewing Confirmation</h1>
    <p style="color:#dbeafe;margin:6px 0 0">Your property viewing has been scheduled</p>
  </div>
  <div style="background:#fff;border:1px solid #e5e7eb;border-top:none;padding:30px;border-radius:0 0 8px 8px">
    <p>Hi <strong>{d.visitor_name}</strong>,</p>
    <p>Thank you for scheduling a viewing. Here are the details:</p>
    <table style="width:100%;border-collapse:collapse">
      <tr><td style="color:#666;padding:8px 0">Property</td><td>{d.property_title}</td></tr>
      <tr><td style="color:#666;padding:8px 0">Address</td><td>{d.property_address}</td></tr>
      <tr><td style="color:#666;padding:8px 0">Date</td><td>{_long_date(d.viewing_date)}</td></tr>
      <tr><td style="color:#666;padding:8px 0">Time</td><td>{d.viewing_time}</td></tr>
      <tr><td style="color:#666;padding:8px 0">Duration</td><td>{d.duration} minutes</td></tr>
    </table>
    {notes_block}
    <div style="background:#f9fafb;border:1px solid #e5e7eb;border-radius:6px;padding:16px;margin:20px 0">
      <p style="margin:0"><strong>{d.agent_name}</strong></p>
      <p style="margin:4px 0 0">Phone: {d.agent_phone}<br>Email: {d.agent_email}</p>
    </div>
    <p>Please arrive 5-10 minutes early and bring a valid ID.
       To reschedule, contact the agent directly.</p>
    <p>Best regards,<br>The HomeView Team</p>
    <p style="color:#999;font-size:12px;border-top:1px solid #e5e7eb;padding-top:16px">
      This is an automated email. Please do not reply to this message.
    </p>
  </div>
</body>
</html>
"""


def _confirmation_text(d: ViewingDetails) -> str:
    notes_block = f"YOUR NOTES\n{d.notes}\n\n" if d.notes else ""
    return (
        "VIEWING CONFIRMATION\n\n"
        f"Hi {d.visitor_name},\n\n"
        "Thank you for scheduling a viewing. Here are the details:\n\n"
        f"Property: {d.property_title}\n"
        f"Address: {d.property_address}\n"
        f"Date: {_long_date(d.viewing_date)}\n"
        f"Time: {d.viewing_time}\n"
        f"Duration: {d.duration} minutes\n\n"
        f"{notes_block}"
        f"AGENT\n{d.agent_name}\nPhone: {d.agent_phone}\nEmail: {d.agent_email}\n\n"
        "Please arrive 5-10 minutes early and bring a valid ID.\n"
        "To reschedule, contact the agent directly.\n\n"
        "Best regards,\nThe HomeView Team"
    )


def _reminder_html(d: ViewingDetails) -> str:
    d = _escaped(d)
    return f"""
<!DOCTYPE html>
<html>
<body style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto;padding:20px;color:#333">
  <div style="background:#fff3cd;border-left:4px solid #ffc107;padding:20px;border-radius:4px">
    <h2 style="margin:0">Reminder: Property Viewing Tomorrow</h2>
  </div>
  <div style="padding:20px">
    <p>Hi {d.visitor_name},</p>
    <p>This is a friendly reminder about your scheduled property viewing:</p>
    <p><strong>{d.property_title}</strong><br>{d.property_address}</p>
    <p><strong>{_short_date(d.viewing_date)} at {d.viewing_time}</strong> ({d.duration} minutes)</p>
    <p>Agent: {d.agent_name} {f"({d.agent_phone})" if d.agent_phone else ""}</p>
    <p>See you tomorrow!</p>
  </div>
</body>
</html>
"""


def _reminder_text(d: ViewingDetails) -> str:
    return (
        f"Hi {d.visitor_name},\n\n"
        "This is a friendly reminder about your scheduled property viewing:\n\n"
        f"{d.property_title}\n{d.property_address}\n"
        f"{_short_date(d.viewing_date)} at {d.viewing_time} ({d.duration} minutes)\n"
        f"Agent: {d.agent_name} {d.agent_phone}\n\n"
        "See you tomorrow!"
    )


def _cancellation_html(name: str, property_title: str, viewing_date: datetime) -> str:
    name, property_title = escape(name), escape(property_title)
    return f"""
<!DOCTYPE html>
<html>
<body style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto;padding:20px;color:#333">
  <div style="background:#f8d7da;border-left:4px solid #dc3545;padding:20px;border-radius:4px">
    <h2 style="margin:0">Viewing Cancelled</h2>
  </div>
  <p>Hi {name},</p>
  <p>Your viewing for <strong>{property_title}</strong> scheduled for
     <strong>{_long_date(viewing_date)}</strong> has been cancelled.</p>
  <p>If you have any questions, please contact the agent directly.</p>
</body>
</html>
"""


# ── Service ───────────────────────────────────────────────────────────────────

class NotificationService:
    """SMTP-backed notifier for viewing emails."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    # ── Public API ────────────────────────────────────────────────────────────

    def send_confirmation(self, details: ViewingDetails) -> bool:
        subject = f"Viewing confirmed: {details.property_title}"
        return self._send(
            details.visitor_email,
            subject,
            _confirmation_html(details),
            _confirmation_text(details),
            tag="CONFIRMATION",
        )

    def send_reminder(self, details: ViewingDetails) -> bool:
        subject = f"Reminder: your viewing tomorrow at {details.viewing_time}"
        return self._send(
            details.visitor_email,
            subject,
            _reminder_html(details),
            _reminder_text(details),
            tag="REMINDER",
        )

    def send_cancellation(
        self,
        recipient: str,
        name: str,
        property_title: str,
        viewing_date: datetime,
    ) -> bool:
        subject = f"Viewing cancelled: {property_title}"
        text = (
            f"Hi {name},\n\nYour viewing for {property_title} scheduled for "
            f"{_long_date(viewing_date)} has been cancelled.\n\n"
            "If you have any questions, please contact the agent directly."
        )
        return self._send(
            recipient,
            subject,
            _cancellation_html(name, property_title, viewing_date),
            text,
            tag="CANCELLATION",
        )

    # ── Transport ─────────────────────────────────────────────────────────────

    def _send(self, to: str, subject: str, body_html: str, body_text: str, tag: str) -> bool:
        if not self.config.SEND_EMAILS or not self.config.email_configured:
            logger.info(f"[EMAIL][{tag}] SMTP not configured. Would send to '{to}': {subject}")
            return True  # treat as sent in dev mode

        try:
            self._deliver(to, subject, body_html, body_text)
        except NotificationError as exc:
            logger.error(f"[EMAIL][{tag}] Failed sending to '{to}': {exc}")
            return False

        logger.info(f"[EMAIL][{tag}] Sent to '{to}': {subject}")
        return True

    def _deliver(self, to: str, subject: str, body_html: str, body_text: str) -> None:
        cfg = self.config
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = cfg.EMAIL_FROM
        msg["To"] = to
        if body_text:
            msg.attach(MIMEText(body_text, "plain"))
        msg.attach(MIMEText(body_html, "html"))

        try:
            with smtplib.SMTP(cfg.SMTP_SERVER, cfg.SMTP_PORT, timeout=10) as srv:
                srv.ehlo()
                srv.starttls()
                srv.login(cfg.SMTP_USER, cfg.SMTP_PASSWORD)
                srv.sendmail(cfg.EMAIL_FROM, to, msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(str(exc)) from exc


def get_notification_service() -> NotificationService:
    """FastAPI dependency; overridden in tests."""
    return NotificationService()
