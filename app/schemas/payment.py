from pydantic import BaseModel
from typing import Optional, Any
from uuid import UUID

class CreateOrderRequest(BaseModel):
    appointmentId: Optional[UUID] = None

class OrderInfo(BaseModel):
    id: str
    amount: int
    currency: str
    receipt: Optional[str] = None

class OrderUser(BaseModel):
    id: UUID
    name: str
    email: str
    phone: str

    class Config:
        from_attributes = True

class OrderAppointment(BaseModel):
    type: str
    details: dict[str, Any]

class CreateOrderData(BaseModel):
    order: OrderInfo
    user: OrderUser
    appointment: OrderAppointment
    gateway_key_id: str

class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str = ""
    razorpay_payment_id: str = ""
    razorpay_signature: str = ""

class VerifyPaymentData(BaseModel):
    payment_id: str
    order_id: str
    status: str
    amount: Optional[int] = None
    currency: Optional[str] = None

class WebhookAck(BaseModel):
    event: str
    handled: bool
