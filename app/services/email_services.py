import asyncio
import logging
import smtplib
from email.mime.text import MIMEText

from app.config import settings
from app.services.gmail_oauth_service import send_via_gmail
from app.utils.errors import UpstreamError

logger = logging.getLogger(__name__)


def _send_via_smtp(to_email: str, subject: str, html: str) -> None:
    if not settings.SMTP_HOST or not settings.SMTP_USER or not settings.SMTP_PASS:
        raise RuntimeError("SMTP is not configured. Set SMTP_HOST, SMTP_USER and SMTP_PASS env.")

    msg = MIMEText(html, "html")
    msg["Subject"] = subject
    msg["From"] = settings.FROM_EMAIL
    msg["To"] = to_email

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=20) as server:
        server.starttls()
        server.login(settings.SMTP_USER, settings.SMTP_PASS)
        server.send_message(msg)


def send_email(to_email: str, subject: str, html: str) -> None:
    """Send one HTML email through the configured transport.

    Any transport failure is raised as ``UpstreamError``.
    """
    transport = settings.MAIL_TRANSPORT
    logger.info("Sending email '%s' to %s via %s", subject, to_email, transport)
    try:
        if transport == "gmail":
            send_via_gmail(to_email, subject, html)
        else:
            _send_via_smtp(to_email, subject, html)
    except Exception as exc:
        logger.error("Email '%s' to %s failed: %s", subject, to_email, exc)
        raise UpstreamError(f"Could not send email to {to_email}") from exc


async def send_email_async(to_email: str, subject: str, html: str) -> None:
    await asyncio.to_thread(send_email, to_email, subject, html)
