import logging

from app.config import settings
from app.database import SessionLocal
from app.models.doctor import Doctor
from app.services.auth_service import hash_password

logger = logging.getLogger(__name__)

DEMO_DOCTORS = [
    {
        "name": "Dr. Richard James",
        "email": "richard.james@example.com",
        "speciality": "General physician",
        "degree": "MBBS",
        "experience": "4 Years",
        "about": "Focuses on preventive medicine, early diagnosis and practical treatment plans.",
        "fees": 500,
        "address": {"line1": "17th Cross, Richmond", "line2": "Circle, Ring Road, London"},
        "languages": ["English", "Hindi"],
    },
    {
        "name": "Dr. Emily Larson",
        "email": "emily.larson@example.com",
        "speciality": "Gynecologist",
        "degree": "MBBS",
        "experience": "3 Years",
        "about": "Provides prenatal care and routine women's health consultations.",
        "fees": 600,
        "address": {"line1": "27th Cross, Richmond", "line2": "Circle, Ring Road, London"},
        "languages": ["English"],
    },
    {
        "name": "Dr. Sarah Patel",
        "email": "sarah.patel@example.com",
        "speciality": "Dermatologist",
        "degree": "MBBS",
        "experience": "1 Years",
        "about": "Treats common skin conditions and runs follow-up consultations online.",
        "fees": 300,
        "address": {"line1": "37th Cross, Richmond", "line2": "Circle, Ring Road, London"},
        "languages": ["English", "Gujarati"],
    },
]

DEMO_PASSWORD = "doctor-demo-123"


def seed_demo_doctors(db) -> int:
    if db.query(Doctor).count() > 0:
        logger.info("Doctors already present, skipping demo seed.")
        return 0

    for entry in DEMO_DOCTORS:
        db.add(
            Doctor(
                password=hash_password(DEMO_PASSWORD),
                speciality_list=[entry["speciality"]],
                available=True,
                slots_booked={},
                slots_version=0,
                available_slots={},
                **entry,
            )
        )
    db.commit()
    logger.info("Seeded %s demo doctors", len(DEMO_DOCTORS))
    return len(DEMO_DOCTORS)


def run_seed():
    if not settings.SEED_DEMO_DOCTORS:
        return
    db = SessionLocal()
    try:
        seed_demo_doctors(db)
    except Exception:
        db.rollback()
        logger.exception("Seeding error")
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
