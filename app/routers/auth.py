import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.schemas.user import (
    ForgotPassword,
    LoginRequest,
    RegisterRequest,
    ResendVerification,
    ResetPassword,
    VerifyResetOtp,
    VerifyUser,
)
from app.services.auth_middleware import session_dependency
from app.services.auth_service import hash_password, issue_session_token, revoke_session, verify_password
from app.services.notification_service import otp_email_sender, otp_sms_sender
from app.services.otp_ledger import OtpLedger, VerificationGate, get_otp_ledger, get_reset_gate
from app.utils.errors import ConflictError, NotFoundError, UnauthorizedError, UpstreamError
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/api/user", tags=["Patient Auth"])
logger = logging.getLogger(__name__)

PHONE_PURPOSE = "verify_phone"
EMAIL_PURPOSE = "verify_email"
RESET_PURPOSE = "reset"


def user_subject(user_id: int) -> str:
    return f"user:{user_id}"


async def _send_verification_codes(user: User, ledger: OtpLedger) -> None:
    subject = user_subject(user.id)
    await ledger.issue_and_send(subject, PHONE_PURPOSE, otp_sms_sender(user.phone, PHONE_PURPOSE))
    try:
        await ledger.issue_and_send(subject, EMAIL_PURPOSE, otp_email_sender(user.email, EMAIL_PURPOSE))
    except UpstreamError:
        ledger.discard(subject, PHONE_PURPOSE)
        raise


# Registration creates an unverified user and sends phone + email codes
@router.post("/register")
async def register_user(
    body: RegisterRequest,
    db: Session = Depends(get_db),
    ledger: OtpLedger = Depends(get_otp_ledger),
):
    try:
        email = body.email.lower()
        if db.query(User).filter(User.email == email).first():
            raise ConflictError("Email already exists")

        user = User(
            name=body.name,
            email=email,
            password=hash_password(body.password),
            phone=body.phone,
            is_email_verified=False,
            is_mobile_verified=False,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Registered user %s (%s)", user.id, user.email)

        try:
            await _send_verification_codes(user, ledger)
        except UpstreamError as exc:
            return create_response(exc.message, data={"userId": user.id}, success=False)

        return create_response(
            message="Verification codes sent to your phone and email",
            data={"userId": user.id},
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/resend-verification")
async def resend_verification(
    body: ResendVerification,
    db: Session = Depends(get_db),
    ledger: OtpLedger = Depends(get_otp_ledger),
):
    try:
        user = db.query(User).filter(User.id == body.user_id).first()
        if not user:
            raise NotFoundError("User not found")
        if user.is_verified:
            return create_response(message="User already verified")

        await _send_verification_codes(user, ledger)
        return create_response(
            message="Verification codes sent to your phone and email",
            data={"userId": user.id},
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/verify")
def verify_user(
    body: VerifyUser,
    db: Session = Depends(get_db),
    ledger: OtpLedger = Depends(get_otp_ledger),
):
    try:
        user = db.query(User).filter(User.id == body.user_id).first()
        if not user:
            raise NotFoundError("User not found")

        codes = {PHONE_PURPOSE: body.phone_code, EMAIL_PURPOSE: body.email_code}
        if not ledger.verify_all(user_subject(user.id), codes):
            raise ConflictError("Invalid verification code(s)")

        user.is_mobile_verified = True
        user.is_email_verified = True
        db.commit()

        token = issue_session_token(db, "user", user.id)
        return create_response(message="User verified successfully", data={"token": token})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/login")
def login_user(body: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = db.query(User).filter(User.email == body.email.lower()).first()
        if not user:
            raise NotFoundError("User does not exist")
        if not user.is_verified:
            raise ConflictError("Please verify your phone and email first")
        if not verify_password(body.password, user.password):
            raise UnauthorizedError("Invalid credentials")

        token = issue_session_token(db, "user", user.id)
        return create_response(data={"token": token})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPassword,
    db: Session = Depends(get_db),
    ledger: OtpLedger = Depends(get_otp_ledger),
):
    try:
        user = db.query(User).filter(User.email == body.email.lower()).first()
        if not user:
            raise NotFoundError("User not found")

        await ledger.issue_and_send(
            user_subject(user.id),
            RESET_PURPOSE,
            otp_email_sender(user.email, RESET_PURPOSE),
        )
        return create_response(
            message="Password reset OTP sent to your email",
            data={"userId": user.id},
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/verify-reset-otp")
def verify_reset_otp(
    body: VerifyResetOtp,
    ledger: OtpLedger = Depends(get_otp_ledger),
    gate: VerificationGate = Depends(get_reset_gate),
):
    try:
        subject = user_subject(body.user_id)
        ledger.require(subject, body.otp, RESET_PURPOSE)
        gate.mark(subject)
        return create_response(message="OTP verified successfully")
    except Exception as exc:
        return handle_exception(exc)


@router.post("/reset-password")
def reset_password(
    body: ResetPassword,
    db: Session = Depends(get_db),
    gate: VerificationGate = Depends(get_reset_gate),
):
    try:
        subject = user_subject(body.user_id)
        user = db.query(User).filter(User.id == body.user_id).first()
        if not user:
            raise NotFoundError("User not found")
        if not gate.consume(subject):
            raise ConflictError("OTP not verified")

        try:
            user.password = hash_password(body.new_password)
            db.commit()
        except Exception:
            db.rollback()
            gate.mark(subject)
            raise
        logger.info("Password reset for user %s", user.id)

        return create_response(message="Password reset successfully")
    except Exception as exc:
        return handle_exception(exc)


@router.post("/logout")
def logout_user(auth_context=Depends(session_dependency("user"))):
    try:
        session = auth_context["session"]
        revoke_session(auth_context["db"], session)
        return create_response(message="Logout successful")
    except Exception as exc:
        return handle_exception(exc)
