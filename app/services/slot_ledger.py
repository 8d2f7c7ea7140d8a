"""Per-doctor booked-slot bookkeeping.

The ledger lives in ``Doctor.slots_booked`` as ``{date: [time, ...]}``.
Every write is a conditional UPDATE keyed on ``slots_version`` so two
requests racing on the same doctor cannot both apply a stale copy.
"""
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.config import settings
from app.models.doctor import Doctor
from app.utils.errors import ConflictError, DoctorUnavailable, NotFoundError, SlotUnavailable

logger = logging.getLogger(__name__)


def _load_doctor(db: Session, doctor_id: int) -> Doctor:
    doctor = (
        db.query(Doctor)
        .populate_existing()
        .filter(Doctor.id == doctor_id)
        .first()
    )
    if not doctor:
        raise NotFoundError("Doctor not found")
    return doctor


def _copy_ledger(ledger: dict | None) -> dict:
    return {slot_date: list(times) for slot_date, times in (ledger or {}).items()}


def _compare_and_swap(db: Session, doctor: Doctor, ledger: dict, require_available: bool) -> bool:
    conditions = [Doctor.id == doctor.id, Doctor.slots_version == doctor.slots_version]
    if require_available:
        conditions.append(Doctor.available.is_(True))
    result = db.execute(
        update(Doctor)
        .where(*conditions)
        .values(slots_booked=ledger, slots_version=Doctor.slots_version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    db.expire(doctor)
    return True


def is_booked(doctor: Doctor, slot_date: str, slot_time: str) -> bool:
    return slot_time in (doctor.slots_booked or {}).get(slot_date, [])


def reserve(db: Session, doctor_id: int, slot_date: str, slot_time: str) -> dict:
    """Add ``slot_time`` to the doctor's ledger for ``slot_date``.

    The update is flushed but not committed; the caller commits it together
    with the appointment row.
    """
    for attempt in range(settings.SLOT_LEDGER_MAX_RETRIES):
        doctor = _load_doctor(db, doctor_id)
        if not doctor.available:
            raise DoctorUnavailable()
        if is_booked(doctor, slot_date, slot_time):
            raise SlotUnavailable()

        ledger = _copy_ledger(doctor.slots_booked)
        ledger.setdefault(slot_date, []).append(slot_time)

        if _compare_and_swap(db, doctor, ledger, require_available=True):
            logger.info("Reserved %s %s for doctor %s", slot_date, slot_time, doctor_id)
            return ledger

        logger.info("Slot ledger for doctor %s changed underneath us (attempt %s)", doctor_id, attempt + 1)

    raise ConflictError("Slot ledger is busy, please try again")


def release(db: Session, doctor_id: int, slot_date: str, slot_time: str) -> dict:
    """Remove ``slot_time`` from the ledger. Releasing a free slot is a no-op."""
    for attempt in range(settings.SLOT_LEDGER_MAX_RETRIES):
        doctor = _load_doctor(db, doctor_id)
        if not is_booked(doctor, slot_date, slot_time):
            return _copy_ledger(doctor.slots_booked)

        ledger = _copy_ledger(doctor.slots_booked)
        remaining = [value for value in ledger[slot_date] if value != slot_time]
        if remaining:
            ledger[slot_date] = remaining
        else:
            del ledger[slot_date]

        if _compare_and_swap(db, doctor, ledger, require_available=False):
            logger.info("Released %s %s for doctor %s", slot_date, slot_time, doctor_id)
            return ledger

        logger.info("Slot ledger for doctor %s changed underneath us (attempt %s)", doctor_id, attempt + 1)

    raise ConflictError("Slot ledger is busy, please try again")
