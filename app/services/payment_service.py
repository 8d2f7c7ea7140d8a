"""Razorpay payment bridge.

Orders are created against an appointment (receipt = appointment id) and
the appointment is marked paid only after the gateway reports the order as
``paid`` behind a verified signature.
"""
import logging
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.orm import Session

from app.config import settings
from app.models.appointment import Appointment
from app.services.webhook_security import compute_hmac_sha256, constant_time_compare
from app.utils.errors import (
    AppointmentCancelledOrMissing,
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

RAZORPAY_API_URL = "https://api.razorpay.com/v1"
PAID_STATUS = "paid"


def _credentials() -> tuple[str, str]:
    key_id = settings.RAZORPAY_KEY_ID
    key_secret = settings.RAZORPAY_KEY_SECRET
    if not key_id or not key_secret:
        raise UpstreamError("Payment gateway is not configured")
    return key_id, key_secret


async def _gateway_request(method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    auth = _credentials()
    try:
        async with httpx.AsyncClient(timeout=20) as client:
            response = await client.request(method, f"{RAZORPAY_API_URL}{path}", auth=auth, json=payload)
            response.raise_for_status()
            return response.json()
    except httpx.HTTPStatusError as exc:
        logger.error("Razorpay %s %s failed [%s]: %s", method, path, exc.response.status_code, exc.response.text)
        raise UpstreamError("Payment gateway rejected the request") from exc
    except httpx.HTTPError as exc:
        logger.error("Razorpay %s %s failed: %s", method, path, exc)
        raise UpstreamError("Payment gateway unavailable") from exc


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


async def create_order(db: Session, appointment_id: int, user_id: int | None = None) -> Dict[str, Any]:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if not appointment or appointment.cancelled:
        raise AppointmentCancelledOrMissing()
    if user_id is not None and appointment.user_id != user_id:
        raise UnauthorizedError("Unauthorized action")
    if appointment.payment:
        raise ConflictError("Appointment already paid")

    options = {
        "amount": to_minor_units(appointment.amount),
        "currency": settings.CURRENCY,
        "receipt": str(appointment.id),
    }
    order = await _gateway_request("POST", "/orders", options)
    logger.info("Created order %s for appointment %s", order.get("id"), appointment.id)
    return order


async def fetch_order(order_id: str) -> Dict[str, Any]:
    return await _gateway_request("GET", f"/orders/{order_id}")


def mark_paid(db: Session, appointment_id: str | int) -> Appointment:
    try:
        appointment_pk = int(appointment_id)
    except (TypeError, ValueError):
        raise NotFoundError("Appointment not found")

    appointment = db.query(Appointment).filter(Appointment.id == appointment_pk).first()
    if not appointment:
        raise NotFoundError("Appointment not found")
    if appointment.cancelled:
        logger.warning("Payment received for cancelled appointment %s", appointment.id)
    if not appointment.payment:
        appointment.payment = True
        db.commit()
        db.refresh(appointment)
    logger.info("Appointment %s marked paid", appointment.id)
    return appointment


async def verify_order(db: Session, order_id: str) -> bool:
    """Mark the receipt's appointment paid if the gateway reports the order paid."""
    order = await fetch_order(order_id)
    if order.get("status") != PAID_STATUS:
        logger.info("Order %s not paid (status=%s)", order_id, order.get("status"))
        return False
    mark_paid(db, order.get("receipt"))
    return True


def verify_checkout_signature(order_id: str, payment_id: str | None, signature: str | None) -> bool:
    """Check the signature Razorpay Checkout returns to the browser."""
    _, key_secret = _credentials()
    if not payment_id or not signature:
        return False
    expected = compute_hmac_sha256(key_secret, f"{order_id}|{payment_id}".encode("utf-8"))
    return constant_time_compare(expected, signature)


def verify_webhook_signature(raw_body: bytes, signature: str | None) -> bool:
    secret = settings.RAZORPAY_WEBHOOK_SECRET
    if not secret:
        logger.error("RAZORPAY_WEBHOOK_SECRET not configured; rejecting webhook")
        return False
    return constant_time_compare(compute_hmac_sha256(secret, raw_body), signature)


def handle_webhook_event(db: Session, event: Dict[str, Any]) -> bool:
    """Apply a verified webhook event. Returns True when an appointment was marked paid."""
    event_type = event.get("event")
    if event_type != "order.paid":
        logger.info("Ignoring Razorpay webhook event %s", event_type)
        return False

    order = (((event.get("payload") or {}).get("order") or {}).get("entity")) or {}
    if order.get("status") != PAID_STATUS:
        return False
    mark_paid(db, order.get("receipt"))
    return True
