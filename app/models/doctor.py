from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, JSON, String, Text
from app.database import Base


class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    image = Column(String, nullable=True)

    speciality = Column(String, nullable=False)
    speciality_list = Column(JSON, default=list, nullable=False)
    degree = Column(String, nullable=False)
    experience = Column(String, nullable=False)
    about = Column(Text, nullable=False)
    fees = Column(Float, nullable=False)
    address = Column(JSON, default=dict, nullable=False)
    languages = Column(JSON, default=list, nullable=False)
    available = Column(Boolean, default=True, nullable=False)

    # Slot ledger: {"2025-01-10": ["10:00 AM", ...]}. Only written through
    # app.services.slot_ledger, which bumps slots_version on every write.
    slots_booked = Column(JSON, default=dict, nullable=False)
    slots_version = Column(Integer, default=0, nullable=False)

    # Times the doctor offers, same shape as slots_booked
    available_slots = Column(JSON, default=dict, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
