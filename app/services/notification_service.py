import asyncio
import logging

from app.config import settings
from app.models.appointment import Appointment
from app.services.email_services import send_email_async
from app.services.email_templates import (
    render_appointment_email,
    render_otp_email,
    render_professional_request_email,
)
from app.services.otp_ledger import Deliver
from app.services.sms_service import send_sms
from app.utils.errors import UpstreamError

logger = logging.getLogger(__name__)

SMS_TEXT = {
    "verify_phone": "Your phone verification code is: {otp}",
    "login": "Your login code is: {otp}",
}


def _ttl_minutes() -> int:
    return max(settings.OTP_TTL_SECONDS // 60, 1)


def otp_email_sender(to_email: str, purpose: str) -> Deliver:
    async def deliver(otp: str) -> None:
        subject, html = render_otp_email(otp, purpose, _ttl_minutes())
        await send_email_async(to_email, subject, html)

    return deliver


def otp_sms_sender(to_phone: str, purpose: str) -> Deliver:
    async def deliver(otp: str) -> None:
        template = SMS_TEXT.get(purpose, "Your verification code is: {otp}")
        await send_sms(to_phone, template.format(otp=otp))

    return deliver


def _appointment_context(appointment: Appointment, **extra) -> dict:
    user_data = appointment.user_data or {}
    doc_data = appointment.doc_data or {}
    context = {
        "user_name": user_data.get("name", ""),
        "user_email": user_data.get("email", ""),
        "doctor_name": doc_data.get("name", ""),
        "doctor_email": doc_data.get("email", ""),
        "slot_date": appointment.slot_date,
        "slot_time": appointment.slot_time,
    }
    context.update(extra)
    return context


async def notify_parties(appointment: Appointment, event: str, **extra) -> None:
    """Email the patient and the doctor about ``event`` concurrently.

    Both sends are awaited. If either fails, UpstreamError names the failed
    recipients; the other message may already have been delivered.
    """
    context = _appointment_context(appointment, **extra)
    recipients = [
        ("user", context["user_email"]),
        ("doctor", context["doctor_email"]),
    ]

    sends = []
    for role, address in recipients:
        subject, html = render_appointment_email(event, role, context)
        sends.append(send_email_async(address, subject, html))

    results = await asyncio.gather(*sends, return_exceptions=True)

    failed = []
    for (role, address), result in zip(recipients, results):
        if isinstance(result, BaseException):
            logger.error("Failed to send %s email to %s %s: %s", event, role, address, result)
            failed.append(role)
        else:
            logger.info("Sent %s email to %s %s", event, role, address)

    if failed:
        raise UpstreamError(f"Error sending emails to {' and '.join(failed)}")


async def notify_admin_of_request(request: dict) -> None:
    if not settings.ADMIN_EMAIL:
        logger.warning("ADMIN_EMAIL not configured; professional request %s not forwarded", request.get("email"))
        return
    subject, html = render_professional_request_email(request)
    await send_email_async(settings.ADMIN_EMAIL, subject, html)
