import asyncio
import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.doctor import Doctor
from app.models.professional_request import ProfessionalRequest
from app.schemas.appointment import AppointmentAction, AppointmentResponse, MeetingLinkRequest
from app.schemas.doctor import (
    DoctorForgotPassword,
    DoctorLogin,
    DoctorProfile,
    DoctorProfileUpdate,
    DoctorPublic,
    DoctorResetPassword,
    DoctorVerifyOtp,
    ProfessionalRequestResponse,
    SlotPayload,
    SlotQuery,
)
from app.services import appointment_service, dashboard_service
from app.services.auth_middleware import get_current_doctor, session_dependency
from app.services.auth_service import hash_password, issue_session_token, revoke_session, verify_password
from app.services.notification_service import notify_admin_of_request, otp_email_sender
from app.services.otp_ledger import OtpLedger, get_otp_ledger
from app.services.spaces_service import upload_image
from app.utils.errors import NotFoundError, UnauthorizedError, UpstreamError, ValidationError
from app.utils.phone import normalize_phone
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/api/doctor", tags=["Doctors"])
logger = logging.getLogger(__name__)

LOGIN_PURPOSE = "login"
RESET_PURPOSE = "reset"


def doctor_subject(doctor_id: int) -> str:
    return f"doctor:{doctor_id}"


def _find_by_email(db: Session, email: str) -> Doctor | None:
    return db.query(Doctor).filter(Doctor.email == email.lower()).first()


@router.post("/login")
async def login_doctor(
    body: DoctorLogin,
    db: Session = Depends(get_db),
    ledger: OtpLedger = Depends(get_otp_ledger),
):
    try:
        doctor = _find_by_email(db, body.email)
        if not doctor or not verify_password(body.password, doctor.password):
            raise UnauthorizedError("Invalid credentials")

        await ledger.issue_and_send(
            doctor_subject(doctor.id),
            LOGIN_PURPOSE,
            otp_email_sender(doctor.email, LOGIN_PURPOSE),
        )
        return create_response(message="OTP sent to your email")
    except Exception as exc:
        return handle_exception(exc)


@router.post("/verify-login-otp")
def verify_login_otp(
    body: DoctorVerifyOtp,
    db: Session = Depends(get_db),
    ledger: OtpLedger = Depends(get_otp_ledger),
):
    try:
        doctor = _find_by_email(db, body.email)
        if not doctor:
            raise NotFoundError("Doctor not found")
        ledger.require(doctor_subject(doctor.id), body.otp, LOGIN_PURPOSE)
        token = issue_session_token(db, "doctor", doctor.id)
        return create_response(data={"token": token})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/forgot-password")
async def forgot_password_doctor(
    body: DoctorForgotPassword,
    db: Session = Depends(get_db),
    ledger: OtpLedger = Depends(get_otp_ledger),
):
    try:
        doctor = _find_by_email(db, body.email)
        if not doctor:
            raise NotFoundError("Doctor not found")
        await ledger.issue_and_send(
            doctor_subject(doctor.id),
            RESET_PURPOSE,
            otp_email_sender(doctor.email, RESET_PURPOSE),
        )
        return create_response(message="Password reset OTP sent to your email")
    except Exception as exc:
        return handle_exception(exc)


@router.post("/reset-password")
def reset_password_doctor(
    body: DoctorResetPassword,
    db: Session = Depends(get_db),
    ledger: OtpLedger = Depends(get_otp_ledger),
):
    try:
        doctor = _find_by_email(db, body.email)
        if not doctor:
            raise NotFoundError("Doctor not found")
        ledger.require(doctor_subject(doctor.id), body.otp, RESET_PURPOSE)

        doctor.password = hash_password(body.new_password)
        db.commit()
        logger.info("Password reset for doctor %s", doctor.id)
        return create_response(message="Password reset successfully")
    except Exception as exc:
        return handle_exception(exc)


@router.post("/logout")
def logout_doctor(auth_context=Depends(session_dependency("doctor"))):
    try:
        revoke_session(auth_context["db"], auth_context["session"])
        return create_response(message="Logout successful")
    except Exception as exc:
        return handle_exception(exc)


@router.get("/list")
def doctor_list(db: Session = Depends(get_db)):
    try:
        doctors = db.query(Doctor).order_by(Doctor.id.asc()).all()
        payload = [DoctorPublic.model_validate(doctor).model_dump() for doctor in doctors]
        return create_response(data={"doctors": payload})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/request-professional")
async def submit_professional_request(
    name: str = Form(...),
    email: str = Form(...),
    phone: str = Form(...),
    speciality: str = Form(...),
    degree: str | None = Form(None),
    experience: str | None = Form(None),
    about: str | None = Form(None),
    image: UploadFile | None = File(None),
    db: Session = Depends(get_db),
):
    try:
        if not name.strip() or not email.strip() or not speciality.strip():
            raise ValidationError("Missing Details")
        try:
            formatted_phone = normalize_phone(phone)
        except ValueError as exc:
            raise ValidationError(str(exc))

        request_row = ProfessionalRequest(
            name=name.strip(),
            email=email.strip().lower(),
            phone=formatted_phone,
            speciality=speciality.strip(),
            degree=degree,
            experience=experience,
            about=about,
        )
        if image is not None and image.filename:
            contents = await image.read()
            request_row.image = await asyncio.to_thread(
                upload_image, contents, image.filename, "requests", "request", image.content_type
            )

        db.add(request_row)
        db.commit()
        db.refresh(request_row)

        payload = ProfessionalRequestResponse.model_validate(request_row).model_dump(mode="json")
        try:
            await notify_admin_of_request(payload)
        except UpstreamError as exc:
            logger.warning("Professional request %s stored but admin was not emailed: %s", request_row.id, exc)

        return create_response(message="Request submitted successfully", data={"requestId": request_row.id})
    except Exception as exc:
        db.rollback()
        return handle_exception(exc)


@router.get("/appointments")
def appointments_doctor(
    current_doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    try:
        appointments = appointment_service.list_doctor_appointments(db, current_doctor.id)
        payload = [AppointmentResponse.model_validate(item).model_dump() for item in appointments]
        return create_response(data={"appointments": payload})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/cancel-appointment")
def appointment_cancel(
    body: AppointmentAction,
    current_doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    try:
        appointment_service.cancel_appointment(
            db, body.appointment_id, appointment_service.ROLE_DOCTOR, current_doctor.id
        )
        return create_response(message="Appointment Cancelled")
    except Exception as exc:
        return handle_exception(exc)


@router.post("/change-availability")
def change_availability(
    current_doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    try:
        current_doctor.available = not current_doctor.available
        db.commit()
        return create_response(message="Availability Changed", data={"available": current_doctor.available})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/create-slot")
def create_slot(
    body: SlotPayload,
    current_doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    try:
        offered = {day: list(times) for day, times in (current_doctor.available_slots or {}).items()}
        existing = offered.setdefault(body.slot_date, [])
        for slot_time in body.slot_times:
            if slot_time not in existing:
                existing.append(slot_time)
        current_doctor.available_slots = offered
        db.commit()
        return create_response(message="Slots created", data={"slots": offered[body.slot_date]})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/update-slot")
def update_slot(
    body: SlotPayload,
    current_doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    try:
        offered = {day: list(times) for day, times in (current_doctor.available_slots or {}).items()}
        if body.slot_date not in offered:
            raise NotFoundError("No slots found for this date")
        offered[body.slot_date] = list(body.slot_times)
        current_doctor.available_slots = offered
        db.commit()
        return create_response(message="Slots updated", data={"slots": offered[body.slot_date]})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/slots")
def get_slots(
    body: SlotQuery,
    current_doctor: Doctor = Depends(get_current_doctor),
):
    try:
        offered = current_doctor.available_slots or {}
        booked = current_doctor.slots_booked or {}
        if body.slot_date:
            offered = {body.slot_date: offered.get(body.slot_date, [])}
            booked = {body.slot_date: booked.get(body.slot_date, [])}
        free = {
            day: [slot_time for slot_time in times if slot_time not in booked.get(day, [])]
            for day, times in offered.items()
        }
        return create_response(data={"availableSlots": offered, "slotsBooked": booked, "freeSlots": free})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/complete-appointment")
async def appointment_complete(
    body: AppointmentAction,
    current_doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    try:
        await appointment_service.complete_appointment(
            db, body.appointment_id, appointment_service.ROLE_DOCTOR, current_doctor.id
        )
        return create_response(message="Appointment completed and notifications sent to both user and doctor")
    except Exception as exc:
        return handle_exception(exc)


@router.post("/accept-appointment")
async def accept_appointment(
    body: AppointmentAction,
    current_doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    try:
        await appointment_service.accept_appointment(
            db, body.appointment_id, appointment_service.ROLE_DOCTOR, current_doctor.id
        )
        return create_response(message="Notifications sent to both user and doctor")
    except Exception as exc:
        return handle_exception(exc)


@router.post("/send-meeting-link")
async def send_meeting_link(
    body: MeetingLinkRequest,
    current_doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    try:
        await appointment_service.send_meeting_link(
            db, body.appointment_id, body.meeting_link, appointment_service.ROLE_DOCTOR, current_doctor.id
        )
        return create_response(message="Meeting link sent to both user and doctor")
    except Exception as exc:
        return handle_exception(exc)


@router.get("/dashboard")
def doctor_dashboard(
    current_doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    try:
        return create_response(data={"dashData": dashboard_service.get_doctor_dashboard(db, current_doctor.id)})
    except Exception as exc:
        return handle_exception(exc)


@router.get("/profile")
def doctor_profile(current_doctor: Doctor = Depends(get_current_doctor)):
    try:
        return create_response(data={"profileData": DoctorProfile.model_validate(current_doctor).model_dump()})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/update-profile")
def update_doctor_profile(
    body: DoctorProfileUpdate,
    current_doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
):
    try:
        update_data = body.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(current_doctor, field, value)
        db.commit()
        return create_response(message="Profile Updated")
    except Exception as exc:
        return handle_exception(exc)
