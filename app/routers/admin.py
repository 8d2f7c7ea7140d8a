import asyncio
import json
import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.doctor import Doctor
from app.models.professional_request import ProfessionalRequest
from app.schemas.admin import AdminLogin, AdminVerifyOtp
from app.schemas.appointment import AppointmentAction, AppointmentResponse, MeetingLinkRequest
from app.schemas.doctor import ChangeAvailability, DoctorCreate, DoctorProfile, ProfessionalRequestResponse
from app.services import appointment_service, dashboard_service
from app.services.auth_middleware import ADMIN_SUBJECT, get_current_admin, session_dependency
from app.services.auth_service import hash_password, issue_session_token, revoke_session
from app.services.notification_service import otp_email_sender
from app.services.otp_ledger import OtpLedger, get_otp_ledger
from app.services.spaces_service import upload_image
from app.services.webhook_security import constant_time_compare
from app.utils.errors import ConflictError, NotFoundError, UnauthorizedError, UpstreamError, ValidationError
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/api/admin", tags=["Admin"])
logger = logging.getLogger(__name__)

LOGIN_PURPOSE = "login"


def _split_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _parse_address(raw: str) -> dict:
    try:
        address = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError("Address must be a JSON object")
    if not isinstance(address, dict):
        raise ValidationError("Address must be a JSON object")
    return address


@router.post("/login")
async def login_admin(body: AdminLogin, ledger: OtpLedger = Depends(get_otp_ledger)):
    try:
        if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
            raise UpstreamError("Admin credentials are not configured")

        email_ok = constant_time_compare(body.email.lower(), settings.ADMIN_EMAIL.lower())
        password_ok = constant_time_compare(body.password, settings.ADMIN_PASSWORD)
        if not (email_ok and password_ok):
            logger.warning("Failed admin login for %s", body.email)
            raise UnauthorizedError("Invalid credentials")

        await ledger.issue_and_send(
            ADMIN_SUBJECT,
            LOGIN_PURPOSE,
            otp_email_sender(settings.ADMIN_EMAIL, LOGIN_PURPOSE),
        )
        return create_response(message="OTP sent to admin email")
    except Exception as exc:
        return handle_exception(exc)


@router.post("/verify-login-otp")
def verify_admin_otp(
    body: AdminVerifyOtp,
    db: Session = Depends(get_db),
    ledger: OtpLedger = Depends(get_otp_ledger),
):
    try:
        ledger.require(ADMIN_SUBJECT, body.otp, LOGIN_PURPOSE)
        token = issue_session_token(db, "admin", ADMIN_SUBJECT)
        return create_response(data={"token": token})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/logout")
def logout_admin(auth_context=Depends(session_dependency("admin"))):
    try:
        revoke_session(auth_context["db"], auth_context["session"])
        return create_response(message="Logout successful")
    except Exception as exc:
        return handle_exception(exc)


@router.get("/appointments")
def appointments_admin(
    _admin: str = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    try:
        appointments = appointment_service.list_all_appointments(db)
        payload = [AppointmentResponse.model_validate(item).model_dump() for item in appointments]
        return create_response(data={"appointments": payload})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/cancel-appointment")
def appointment_cancel(
    body: AppointmentAction,
    _admin: str = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    try:
        appointment_service.cancel_appointment(db, body.appointment_id, appointment_service.ROLE_ADMIN)
        return create_response(message="Appointment Cancelled")
    except Exception as exc:
        return handle_exception(exc)


# Multipart form: list fields are comma separated, address is a JSON object
@router.post("/add-doctor")
async def add_doctor(
    name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    speciality: str = Form(...),
    degree: str = Form(...),
    experience: str = Form(...),
    about: str = Form(...),
    fees: float = Form(...),
    address: str = Form(...),
    speciality_list: str | None = Form(None),
    languages: str | None = Form(None),
    image: UploadFile | None = File(None),
    _admin: str = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    try:
        if image is None or not image.filename:
            raise ValidationError("Missing Details: image")

        payload = DoctorCreate(
            name=name,
            email=email,
            password=password,
            speciality=speciality,
            speciality_list=_split_list(speciality_list),
            degree=degree,
            experience=experience,
            about=about,
            fees=fees,
            address=_parse_address(address),
            languages=_split_list(languages),
        )

        normalized_email = payload.email.lower()
        if db.query(Doctor).filter(Doctor.email == normalized_email).first():
            raise ConflictError("Doctor with this email already exists")

        contents = await image.read()
        image_url = await asyncio.to_thread(
            upload_image, contents, image.filename, "doctors", "doctor", image.content_type
        )

        doctor = Doctor(
            name=payload.name,
            email=normalized_email,
            password=hash_password(payload.password),
            image=image_url,
            speciality=payload.speciality,
            speciality_list=payload.speciality_list or [payload.speciality],
            degree=payload.degree,
            experience=payload.experience,
            about=payload.about,
            fees=payload.fees,
            address=payload.address,
            languages=payload.languages,
            available=True,
            slots_booked={},
            slots_version=0,
            available_slots={},
        )
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        logger.info("Admin added doctor %s (%s)", doctor.id, doctor.email)
        return create_response(message="Doctor Added", data={"doctorId": doctor.id})
    except Exception as exc:
        db.rollback()
        return handle_exception(exc)


@router.get("/all-doctors")
def all_doctors(
    _admin: str = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    try:
        doctors = db.query(Doctor).order_by(Doctor.id.asc()).all()
        payload = [DoctorProfile.model_validate(doctor).model_dump() for doctor in doctors]
        return create_response(data={"doctors": payload})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/change-availability")
def change_availability(
    body: ChangeAvailability,
    _admin: str = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    try:
        if body.doc_id is None:
            raise ValidationError("Missing Details: docId")
        doctor = db.query(Doctor).filter(Doctor.id == body.doc_id).first()
        if not doctor:
            raise NotFoundError("Doctor not found")
        doctor.available = not doctor.available
        db.commit()
        return create_response(message="Availability Changed", data={"available": doctor.available})
    except Exception as exc:
        return handle_exception(exc)


@router.get("/professional-requests")
def professional_requests(
    _admin: str = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    try:
        requests = db.query(ProfessionalRequest).order_by(ProfessionalRequest.id.desc()).all()
        payload = [ProfessionalRequestResponse.model_validate(item).model_dump() for item in requests]
        return create_response(data={"requests": payload})
    except Exception as exc:
        return handle_exception(exc)


@router.get("/dashboard")
def admin_dashboard(
    _admin: str = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    try:
        return create_response(data={"dashData": dashboard_service.get_admin_dashboard(db)})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/accept-appointment")
async def accept_appointment(
    body: AppointmentAction,
    _admin: str = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    try:
        await appointment_service.accept_appointment(db, body.appointment_id, appointment_service.ROLE_ADMIN)
        return create_response(message="Notifications sent to both user and doctor")
    except Exception as exc:
        return handle_exception(exc)


@router.post("/send-meeting-link")
async def send_meeting_link(
    body: MeetingLinkRequest,
    _admin: str = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    try:
        await appointment_service.send_meeting_link(
            db, body.appointment_id, body.meeting_link, appointment_service.ROLE_ADMIN
        )
        return create_response(message="Meeting link sent to both user and doctor")
    except Exception as exc:
        return handle_exception(exc)


@router.post("/complete-appointment")
async def appointment_complete(
    body: AppointmentAction,
    _admin: str = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    try:
        await appointment_service.complete_appointment(db, body.appointment_id, appointment_service.ROLE_ADMIN)
        return create_response(message="Appointment completed and notifications sent to both user and doctor")
    except Exception as exc:
        return handle_exception(exc)
