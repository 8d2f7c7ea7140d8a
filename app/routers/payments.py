import json
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.schemas.payment import PaymentCreate, PaymentVerify
from app.services import payment_service
from app.services.auth_middleware import get_current_user
from app.utils.errors import UnauthorizedError, ValidationError
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/api/user", tags=["Payments"])
logger = logging.getLogger(__name__)


@router.post("/payment-razorpay")
async def create_payment_order(
    body: PaymentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        order = await payment_service.create_order(db, body.appointment_id, user_id=current_user.id)
        return create_response(data={"order": order})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/verifyRazorpay")
async def verify_payment(
    body: PaymentVerify,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        if not payment_service.verify_checkout_signature(
            body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature
        ):
            logger.warning("User %s sent an invalid payment signature for %s", current_user.id, body.razorpay_order_id)
            raise UnauthorizedError("Invalid payment signature")

        if await payment_service.verify_order(db, body.razorpay_order_id):
            return create_response(message="Payment Successful")
        return create_response(message="Payment Failed", success=False)
    except Exception as exc:
        return handle_exception(exc)


@router.post("/razorpay-webhook")
async def razorpay_webhook(request: Request, db: Session = Depends(get_db)):
    try:
        raw_body = await request.body()
        signature = request.headers.get("X-Razorpay-Signature")
        if not payment_service.verify_webhook_signature(raw_body, signature):
            logger.warning("Rejected Razorpay webhook with invalid signature")
            raise UnauthorizedError("Invalid webhook signature")

        try:
            event = json.loads(raw_body)
        except json.JSONDecodeError:
            raise ValidationError("Invalid webhook payload")

        applied = payment_service.handle_webhook_event(db, event)
        return create_response(message="Webhook processed", data={"applied": applied})
    except Exception as exc:
        return handle_exception(exc)
