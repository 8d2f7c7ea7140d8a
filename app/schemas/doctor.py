from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.schemas.common import CamelModel, NonEmptyStr, Password, require_text


class DoctorLogin(CamelModel):
    email: EmailStr
    password: str


class DoctorVerifyOtp(CamelModel):
    email: EmailStr
    otp: str


class DoctorForgotPassword(CamelModel):
    email: EmailStr


class DoctorResetPassword(CamelModel):
    email: EmailStr
    otp: str
    new_password: Password


class ChangeAvailability(CamelModel):
    doc_id: int | None = None


class SlotPayload(CamelModel):
    slot_date: NonEmptyStr
    slot_times: list[str] = Field(min_length=1)

    @field_validator("slot_times")
    @classmethod
    def unique_times(cls, value: list[str]) -> list[str]:
        cleaned = []
        for item in value:
            item = require_text(item)
            if item not in cleaned:
                cleaned.append(item)
        return cleaned


class SlotQuery(CamelModel):
    slot_date: str | None = None


class DoctorProfileUpdate(CamelModel):
    fees: float | None = Field(default=None, gt=0)
    address: dict | None = None
    available: bool | None = None
    about: str | None = None
    languages: list[str] | None = None


class DoctorPublic(BaseModel):
    id: int
    name: str
    image: str | None
    speciality: str
    speciality_list: list[str]
    degree: str
    experience: str
    about: str
    fees: float
    address: dict
    languages: list[str]
    available: bool
    slots_booked: dict
    available_slots: dict

    model_config = {"from_attributes": True}


class DoctorProfile(DoctorPublic):
    email: EmailStr
    created_at: datetime | None = None


class DoctorSnapshot(BaseModel):
    """Doctor fields copied into an appointment at booking time."""

    id: int
    name: str
    email: EmailStr
    image: str | None
    speciality: str
    degree: str
    experience: str
    about: str
    fees: float
    address: dict

    model_config = {"from_attributes": True}


class ProfessionalRequestResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    speciality: str
    degree: str | None
    experience: str | None
    about: str | None
    image: str | None
    status: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class DoctorCreate(CamelModel):
    name: NonEmptyStr
    email: EmailStr
    password: Password
    speciality: NonEmptyStr
    speciality_list: list[str] = Field(default_factory=list)
    degree: NonEmptyStr
    experience: NonEmptyStr
    about: NonEmptyStr
    fees: float = Field(gt=0)
    address: dict
    languages: list[str] = Field(default_factory=list)
