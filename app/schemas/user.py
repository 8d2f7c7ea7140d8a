from datetime import datetime

from pydantic import BaseModel, EmailStr, field_validator

from app.schemas.common import CamelModel, NonEmptyStr, Password
from app.utils.phone import normalize_phone


class RegisterRequest(CamelModel):
    name: NonEmptyStr
    email: EmailStr
    password: Password
    phone: str

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        return normalize_phone(value)


class ResendVerification(CamelModel):
    user_id: int


class VerifyUser(CamelModel):
    user_id: int
    phone_code: str
    email_code: str


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class ForgotPassword(CamelModel):
    email: EmailStr


class VerifyResetOtp(CamelModel):
    user_id: int
    otp: str


class ResetPassword(CamelModel):
    user_id: int
    new_password: Password


class ProfileResponse(BaseModel):
    id: int
    name: str
    email: EmailStr
    phone: str
    image: str | None
    address: dict
    gender: str
    dob: str
    is_email_verified: bool
    is_mobile_verified: bool
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
