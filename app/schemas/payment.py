from pydantic import BaseModel

from app.schemas.common import CamelModel


class PaymentCreate(CamelModel):
    appointment_id: int


class PaymentVerify(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str | None = None
    razorpay_signature: str | None = None
