from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.models.appointment import Appointment
from app.models.doctor import Doctor
from app.models.user import User
from app.schemas.appointment import AppointmentResponse

LATEST_LIMIT = 5


def _serialize(appointments: list[Appointment]) -> list[dict]:
    return [
        AppointmentResponse.model_validate(appointment).model_dump(mode="json")
        for appointment in appointments
    ]


def get_admin_dashboard(db: Session) -> dict:
    total_doctors = db.query(func.count(Doctor.id)).scalar() or 0
    total_patients = db.query(func.count(User.id)).scalar() or 0
    total_appointments = db.query(func.count(Appointment.id)).scalar() or 0

    latest = (
        db.query(Appointment)
        .order_by(Appointment.id.desc())
        .limit(LATEST_LIMIT)
        .all()
    )

    return {
        "doctors": total_doctors,
        "appointments": total_appointments,
        "patients": total_patients,
        "latestAppointments": _serialize(latest),
    }


def get_doctor_dashboard(db: Session, doc_id: int) -> dict:
    base_query = db.query(Appointment).filter(Appointment.doc_id == doc_id)

    earnings = (
        base_query
        .filter(Appointment.cancelled == False)
        .filter(or_(Appointment.is_completed == True, Appointment.payment == True))
        .with_entities(func.coalesce(func.sum(Appointment.amount), 0.0))
        .scalar()
    )
    total_appointments = base_query.with_entities(func.count(Appointment.id)).scalar() or 0
    patients = base_query.with_entities(func.count(func.distinct(Appointment.user_id))).scalar() or 0
    latest = base_query.order_by(Appointment.id.desc()).limit(LATEST_LIMIT).all()

    return {
        "earnings": float(earnings or 0.0),
        "appointments": total_appointments,
        "patients": patients,
        "latestAppointments": _serialize(latest),
    }
