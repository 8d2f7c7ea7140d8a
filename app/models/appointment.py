from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import relationship

from app.database import Base


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    doc_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    slot_date = Column(String, nullable=False)
    slot_time = Column(String, nullable=False)

    # Snapshots taken at booking time; later profile edits do not touch them
    user_data = Column(JSON, nullable=False)
    doc_data = Column(JSON, nullable=False)

    amount = Column(Float, nullable=False)
    cancelled = Column(Boolean, default=False, nullable=False)
    payment = Column(Boolean, default=False, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", backref="appointments")
    doctor = relationship("Doctor", backref="appointments")
