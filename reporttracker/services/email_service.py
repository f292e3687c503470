"""
ReportTracker
Email Service — outbound mail for flag notifications.

When SMTP is not configured, emails are logged but not sent (dev/test mode).
Every email, sent or not, is recorded in EmailLog.

Configuration (env vars):
    MAIL_SERVER     SMTP host (default: None → log-only mode)
    MAIL_PORT       SMTP port (default: 587)
    MAIL_USE_TLS    Use TLS (default: true)
    MAIL_USERNAME   SMTP username
    MAIL_PASSWORD   SMTP password
    MAIL_DEFAULT_SENDER  Default from address
"""

from __future__ import annotations

import logging
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from flask import current_app

from reporttracker.models import db
from reporttracker.models.notification import EmailLog

logger = logging.getLogger(__name__)


_SUBJECTS = {
    "flagged_daily": "[ReportTracker] New flag raised",
    "flag_accepted": "[ReportTracker] Your flag was accepted",
    "flag_discarded": "[ReportTracker] Your flag was discarded",
    "flag_revived": "[ReportTracker] Your flag was revived",
}

_NOTIFICATION_HTML = """
<div style="font-family: Arial, sans-serif; max-width: 560px; margin: 0 auto;">
    <h2 style="margin: 0 0 12px; font-size: 18px; color: #14532d;">ReportTracker</h2>
    <p style="color: #334155; line-height: 1.6;">{message}</p>
    <p style="color: #94a3b8; font-size: 12px;">Open the portal to review the daily data record.</p>
</div>
"""


def render_notification_email(event_type: str, message: str) -> tuple[str, str]:
    """Subject and HTML body for a flag notification."""
    subject = _SUBJECTS.get(event_type, "[ReportTracker] Notification")
    return subject, _NOTIFICATION_HTML.format(message=escape(message))


class EmailService:
    """
    Email sending service.

    In development/test mode (no MAIL_SERVER configured), emails are
    logged to the database but not actually sent via SMTP.
    """

    @staticmethod
    def is_configured() -> bool:
        """Check if SMTP is configured."""
        return bool(current_app.config.get("MAIL_SERVER"))

    @classmethod
    def send(
        cls,
        *,
        to_email: str,
        to_name: str | None = None,
        subject: str,
        html_body: str,
        category: str = "system",
        notification_id: int | None = None,
    ) -> EmailLog:
        """
        Send an email and log it. The caller commits.

        SMTP failures are recorded on the log row with status='failed'
        and never raised.
        """
        log = EmailLog(
            recipient_email=to_email,
            recipient_name=to_name,
            subject=subject,
            category=category,
            status="queued",
            notification_id=notification_id,
        )
        db.session.add(log)

        if not cls.is_configured():
            log.status = "sent"
            log.sent_at = datetime.now(timezone.utc)
            logger.info("Email (dev mode): to=%s subject='%s'", to_email, subject)
            return log

        try:
            cls._send_smtp(to_email=to_email, to_name=to_name,
                           subject=subject, html_body=html_body)
            log.status = "sent"
            log.sent_at = datetime.now(timezone.utc)
            logger.info("Email sent: to=%s subject='%s'", to_email, subject)
        except (smtplib.SMTPException, OSError) as exc:
            log.status = "failed"
            log.error_message = str(exc)[:1000]
            logger.error("Email failed: to=%s error=%s", to_email, exc)

        return log

    @staticmethod
    def _send_smtp(*, to_email: str, to_name: str | None,
                   subject: str, html_body: str) -> None:
        """Actually send via SMTP."""
        cfg = current_app.config
        server = cfg.get("MAIL_SERVER")
        port = cfg.get("MAIL_PORT", 587)
        use_tls = cfg.get("MAIL_USE_TLS", True)
        username = cfg.get("MAIL_USERNAME")
        password = cfg.get("MAIL_PASSWORD")
        sender = cfg.get("MAIL_DEFAULT_SENDER", f"noreply@{server}")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = f"{to_name} <{to_email}>" if to_name else to_email
        msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP(server, port, timeout=30) as smtp:
            if use_tls:
                smtp.starttls()
            if username and password:
                smtp.login(username, password)
            smtp.send_message(msg)
