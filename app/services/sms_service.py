"""
Twilio SMS Service
Sends plain text messages through the Twilio Messages REST API
"""

import logging

import httpx

from app.config import settings
from app.utils.errors import UpstreamError

logger = logging.getLogger(__name__)

TWILIO_API_URL = "https://api.twilio.com/2010-04-01"


async def send_sms(to_phone: str, message_body: str) -> str:
    """
    Send an SMS and return the Twilio message SID.

    Raises UpstreamError when Twilio is not configured, the number is not
    E.164, or the API rejects the message.
    """
    account_sid = settings.TWILIO_ACCOUNT_SID
    auth_token = settings.TWILIO_AUTH_TOKEN
    if not account_sid or not auth_token or not settings.TWILIO_PHONE_NUMBER:
        raise UpstreamError("SMS service is not configured")

    if not to_phone or not to_phone.startswith("+"):
        raise UpstreamError("Phone number must be in E.164 format (e.g., +919876543210)")

    logger.info("📱 Sending SMS to %s", to_phone)
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(
                f"{TWILIO_API_URL}/Accounts/{account_sid}/Messages.json",
                auth=(account_sid, auth_token),
                data={"To": to_phone, "From": settings.TWILIO_PHONE_NUMBER, "Body": message_body},
            )
    except httpx.HTTPError as exc:
        logger.error("Twilio API error: %s", exc)
        raise UpstreamError("Could not send SMS") from exc

    if response.status_code not in (200, 201):
        try:
            error_data = response.json()
        except ValueError:
            error_data = {}
        logger.error(
            "❌ Twilio API error [%s]: %s",
            error_data.get("code"),
            error_data.get("message", response.text),
        )
        raise UpstreamError("Could not send SMS")

    message_sid = response.json().get("sid")
    logger.info("✅ SMS sent to %s (SID: %s)", to_phone, message_sid)
    return message_sid
