from pydantic import BaseModel
from typing import Optional, Any
from uuid import UUID
from datetime import datetime

class UserDetail(BaseModel):
    id: UUID
    name: str
    email: str
    phone: str
    passport_number: str
    appointment_details: dict[str, Any]
    payment_status: str
    payment_id: Optional[str] = None
    appointment_slip_path: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class ProfileAppointment(BaseModel):
    type: Optional[str] = None
    type_label: Optional[str] = None
    preferred_date: Optional[str] = None
    medical_center: Optional[str] = None
    details: dict[str, Any]

class ProfilePayment(BaseModel):
    order_id: str
    payment_id: Optional[str] = None
    amount: int
    amount_formatted: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime

class ProfileSlip(BaseModel):
    available: bool
    filename: Optional[str] = None
    size: Optional[int] = None
    size_formatted: Optional[str] = None
    error: Optional[str] = None

class ProfileStatus(BaseModel):
    status: str
    message: str
    next_steps: list[str]

class ProfileData(BaseModel):
    user: UserDetail
    appointment: ProfileAppointment
    payment: Optional[ProfilePayment] = None
    appointment_slip: Optional[ProfileSlip] = None
    status: ProfileStatus
