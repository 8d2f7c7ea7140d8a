from datetime import datetime

from pydantic import BaseModel, field_validator

from app.schemas.common import CamelModel, NonEmptyStr, require_text


class BookAppointment(CamelModel):
    doc_id: int
    slot_date: NonEmptyStr
    slot_time: NonEmptyStr


class AppointmentAction(CamelModel):
    appointment_id: int


class MeetingLinkRequest(CamelModel):
    appointment_id: int
    meeting_link: str

    @field_validator("meeting_link")
    @classmethod
    def validate_link(cls, value: str) -> str:
        value = require_text(value)
        if not value.startswith(("http://", "https://")):
            raise ValueError("Meeting link must be an http(s) URL")
        return value


class AppointmentResponse(BaseModel):
    id: int
    user_id: int
    doc_id: int
    slot_date: str
    slot_time: str
    user_data: dict
    doc_data: dict
    amount: float
    cancelled: bool
    payment: bool
    is_completed: bool
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
