from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from app.database import Base


class ProfessionalRequest(Base):
    __tablename__ = "professional_requests"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=False)
    speciality = Column(String, nullable=False)
    degree = Column(String, nullable=True)
    experience = Column(String, nullable=True)
    about = Column(Text, nullable=True)
    image = Column(String, nullable=True)
    status = Column(String, default="pending", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
