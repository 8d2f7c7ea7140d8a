"""Appointment workflow: booking, cancellation, acceptance, completion and
meeting links.

An appointment is ``Booked`` until it is either cancelled or completed; both
are terminal. ``payment`` moves independently (see payment_service).
"""
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.models.appointment import Appointment
from app.models.doctor import Doctor
from app.models.user import User
from app.schemas.doctor import DoctorSnapshot
from app.schemas.user import ProfileResponse
from app.services import notification_service, slot_ledger
from app.utils.errors import ConflictError, DoctorUnavailable, NotFoundError, UnauthorizedError, UpstreamError

logger = logging.getLogger(__name__)

ROLE_USER = "user"
ROLE_DOCTOR = "doctor"
ROLE_ADMIN = "admin"


def user_snapshot(user: User) -> dict:
    return ProfileResponse.model_validate(user).model_dump(mode="json")


def doctor_snapshot(doctor: Doctor) -> dict:
    return DoctorSnapshot.model_validate(doctor).model_dump(mode="json")


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if not appointment:
        raise NotFoundError("Appointment not found")
    return appointment


def _authorize(appointment: Appointment, actor_role: str, actor_id: int | None) -> None:
    if actor_role == ROLE_ADMIN:
        return
    if actor_role == ROLE_USER and appointment.user_id == actor_id:
        return
    if actor_role == ROLE_DOCTOR and appointment.doc_id == actor_id:
        return
    logger.warning(
        "%s %s tried to act on appointment %s it does not own",
        actor_role,
        actor_id,
        appointment.id,
    )
    raise UnauthorizedError("Unauthorized action")


def _ensure_open(appointment: Appointment) -> None:
    if appointment.cancelled:
        raise ConflictError("Appointment already cancelled")
    if appointment.is_completed:
        raise ConflictError("Appointment already completed")


def book_appointment(db: Session, user_id: int, doc_id: int, slot_date: str, slot_time: str) -> Appointment:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    doctor = db.query(Doctor).filter(Doctor.id == doc_id).first()
    if not doctor:
        raise NotFoundError("Doctor not found")
    if not doctor.available:
        raise DoctorUnavailable()

    try:
        slot_ledger.reserve(db, doc_id, slot_date, slot_time)
        db.refresh(doctor)
        appointment = Appointment(
            user_id=user.id,
            doc_id=doctor.id,
            slot_date=slot_date,
            slot_time=slot_time,
            user_data=user_snapshot(user),
            doc_data=doctor_snapshot(doctor),
            amount=doctor.fees,
            cancelled=False,
            payment=False,
            is_completed=False,
        )
        db.add(appointment)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(appointment)
    logger.info(
        "User %s booked doctor %s on %s at %s (appointment %s)",
        user_id,
        doc_id,
        slot_date,
        slot_time,
        appointment.id,
    )
    return appointment


def _close(db: Session, appointment: Appointment, **values) -> None:
    """Move an open appointment to a terminal state in one conditional UPDATE.

    Raises ConflictError when another request already cancelled or completed it.
    """
    result = db.execute(
        update(Appointment)
        .where(
            Appointment.id == appointment.id,
            Appointment.cancelled.is_(False),
            Appointment.is_completed.is_(False),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.expire(appointment)
        _ensure_open(appointment)
        raise ConflictError("Appointment is no longer open")
    db.expire(appointment)


def cancel_appointment(db: Session, appointment_id: int, actor_role: str, actor_id: int | None = None) -> Appointment:
    """Mark the appointment cancelled and give its slot back to the doctor."""
    appointment = get_appointment(db, appointment_id)
    _authorize(appointment, actor_role, actor_id)
    _ensure_open(appointment)
    doc_id, slot_date, slot_time = appointment.doc_id, appointment.slot_date, appointment.slot_time

    try:
        _close(db, appointment, cancelled=True)
        slot_ledger.release(db, doc_id, slot_date, slot_time)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(appointment)
    logger.info("Appointment %s cancelled by %s %s", appointment.id, actor_role, actor_id)
    return appointment


async def accept_appointment(db: Session, appointment_id: int, actor_role: str, actor_id: int | None = None) -> Appointment:
    """Notify both parties that the appointment was accepted.

    Acceptance is not persisted on the appointment.
    """
    appointment = get_appointment(db, appointment_id)
    _authorize(appointment, actor_role, actor_id)
    _ensure_open(appointment)
    await notification_service.notify_parties(appointment, "accepted")
    logger.info("Appointment %s accepted by %s %s", appointment.id, actor_role, actor_id)
    return appointment


async def complete_appointment(db: Session, appointment_id: int, actor_role: str, actor_id: int | None = None) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _authorize(appointment, actor_role, actor_id)
    _ensure_open(appointment)

    try:
        _close(db, appointment, is_completed=True)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(appointment)
    logger.info("Appointment %s completed by %s %s", appointment.id, actor_role, actor_id)

    # The completion stands even if the emails fail
    try:
        await notification_service.notify_parties(appointment, "completed")
    except UpstreamError as exc:
        raise UpstreamError(f"Appointment completed, but notifications failed: {exc.message}") from exc
    return appointment


async def send_meeting_link(
    db: Session,
    appointment_id: int,
    meeting_link: str,
    actor_role: str,
    actor_id: int | None = None,
) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _authorize(appointment, actor_role, actor_id)
    _ensure_open(appointment)
    await notification_service.notify_parties(appointment, "meeting_link", meeting_link=meeting_link)
    logger.info("Meeting link for appointment %s sent by %s %s", appointment.id, actor_role, actor_id)
    return appointment


def list_user_appointments(db: Session, user_id: int) -> list[Appointment]:
    return (
        db.query(Appointment)
        .filter(Appointment.user_id == user_id)
        .order_by(Appointment.id.desc())
        .all()
    )


def list_doctor_appointments(db: Session, doc_id: int) -> list[Appointment]:
    return (
        db.query(Appointment)
        .filter(Appointment.doc_id == doc_id)
        .order_by(Appointment.id.desc())
        .all()
    )


def list_all_appointments(db: Session) -> list[Appointment]:
    return db.query(Appointment).order_by(Appointment.id.desc()).all()
