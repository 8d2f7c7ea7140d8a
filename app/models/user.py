from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String
from app.database import Base

DEFAULT_ADDRESS = {"line1": "", "line2": ""}


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # Registration fields
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    phone = Column(String, nullable=False)    # E.164

    # Both flipped together once the registration OTPs match
    is_email_verified = Column(Boolean, default=False, nullable=False)
    is_mobile_verified = Column(Boolean, default=False, nullable=False)

    # Profile update fields
    image = Column(String, nullable=True)     # hosted image URL
    address = Column(JSON, default=lambda: dict(DEFAULT_ADDRESS), nullable=False)
    gender = Column(String, default="Not Selected", nullable=False)
    dob = Column(String, default="Not Selected", nullable=False)   # store YYYY-MM-DD

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    @property
    def is_verified(self) -> bool:
        return bool(self.is_email_verified and self.is_mobile_verified)
