import asyncio
import json

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.schemas.appointment import AppointmentAction, AppointmentResponse, BookAppointment
from app.schemas.user import ProfileResponse
from app.services import appointment_service
from app.services.auth_middleware import get_current_user
from app.services.spaces_service import upload_image
from app.utils.errors import ValidationError
from app.utils.phone import normalize_phone
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/api/user", tags=["Patients"])


def _parse_address(raw: str | None) -> dict | None:
    if raw is None or raw == "":
        return None
    try:
        address = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError("Address must be a JSON object")
    if not isinstance(address, dict):
        raise ValidationError("Address must be a JSON object")
    return address


@router.get("/get-profile")
def get_profile(current_user: User = Depends(get_current_user)):
    try:
        profile_payload = ProfileResponse.model_validate(current_user).model_dump()
        return create_response(data={"userData": profile_payload})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/update-profile")
async def update_profile(
    name: str = Form(...),
    phone: str = Form(...),
    dob: str = Form(...),
    gender: str = Form(...),
    address: str | None = Form(None),
    image: UploadFile | None = File(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        if not name.strip() or not dob.strip() or not gender.strip():
            raise ValidationError("Data Missing")
        try:
            formatted_phone = normalize_phone(phone)
        except ValueError as exc:
            raise ValidationError(str(exc))

        current_user.name = name.strip()
        current_user.phone = formatted_phone
        current_user.dob = dob.strip()
        current_user.gender = gender.strip()
        parsed_address = _parse_address(address)
        if parsed_address is not None:
            current_user.address = parsed_address

        if image is not None and image.filename:
            contents = await image.read()
            current_user.image = await asyncio.to_thread(
                upload_image,
                contents,
                image.filename,
                "users",
                f"user_{current_user.id}",
                image.content_type,
            )

        db.commit()
        db.refresh(current_user)
        return create_response(message="Profile Updated")
    except Exception as exc:
        db.rollback()
        return handle_exception(exc)


@router.post("/book-appointment")
def book_appointment(
    body: BookAppointment,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        appointment = appointment_service.book_appointment(
            db, current_user.id, body.doc_id, body.slot_date, body.slot_time
        )
        return create_response(message="Appointment Booked", data={"appointmentId": appointment.id})
    except Exception as exc:
        return handle_exception(exc)


@router.get("/appointments")
def list_appointments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        appointments = appointment_service.list_user_appointments(db, current_user.id)
        payload = [AppointmentResponse.model_validate(item).model_dump() for item in appointments]
        return create_response(data={"appointments": payload})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/cancel-appointment")
def cancel_appointment(
    body: AppointmentAction,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        appointment_service.cancel_appointment(
            db, body.appointment_id, appointment_service.ROLE_USER, current_user.id
        )
        return create_response(message="Appointment Cancelled")
    except Exception as exc:
        return handle_exception(exc)
