import re
from pydantic import BaseModel, EmailStr, Field, field_validator
from uuid import UUID
from datetime import date
from typing import Optional, Literal

from app.core.utils import format_phone_number, is_valid_phone_number, utcnow
from app.schemas.user import UserDetail

AppointmentType = Literal[
    "employment_visa", "family_visa", "visit_visa",
    "student_visa", "business_visa", "other",
]

MedicalCenter = Literal[
    "bangalore", "chennai", "delhi", "hyderabad",
    "kochi", "kolkata", "mumbai", "pune",
]

APPOINTMENT_TYPE_LABELS = {
    "employment_visa": "Employment Visa Medical",
    "family_visa": "Family Visa Medical",
    "visit_visa": "Visit Visa Medical",
    "student_visa": "Student Visa Medical",
    "business_visa": "Business Visa Medical",
    "other": "Other",
}

_NAME = re.compile(r"^[a-zA-Z\s]{2,50}$")
_PASSPORT = re.compile(r"^[A-Z]{1,2}[0-9]{6,8}$")

class AppointmentCreate(BaseModel):
    name: str
    email: EmailStr
    phone: str
    passport_number: str
    appointment_type: AppointmentType
    preferred_date: date
    medical_center: MedicalCenter
    gender: Optional[Literal["Male", "Female", "Other"]] = None
    age: Optional[int] = Field(default=None, ge=1, le=120)
    nationality: Optional[str] = Field(default=None, max_length=100)
    destination_country: Optional[str] = Field(default=None, max_length=100)
    additional_notes: str = Field(default="", max_length=500)

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        v = " ".join(v.split())
        if not _NAME.match(v):
            raise ValueError("Name must be 2-50 letters and spaces")
        return v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str) -> str:
        formatted = format_phone_number(v)
        if not is_valid_phone_number(formatted):
            raise ValueError("Phone must be a valid Indian phone number")
        return formatted

    @field_validator("passport_number")
    @classmethod
    def check_passport(cls, v: str) -> str:
        v = v.strip().upper()
        if not _PASSPORT.match(v):
            raise ValueError("Passport Number format is invalid")
        return v

    @field_validator("preferred_date")
    @classmethod
    def not_in_past(cls, v: date) -> date:
        if v < utcnow().date():
            raise ValueError("Preferred date must be in the future")
        return v

    def appointment_details(self) -> dict:
        details = {
            "appointment_type": self.appointment_type,
            "preferred_date": self.preferred_date.isoformat(),
            "medical_center": self.medical_center,
            "additional_notes": self.additional_notes.strip(),
        }
        for key in ("gender", "age", "nationality", "destination_country"):
            value = getattr(self, key)
            if value is not None:
                details[key] = value
        return details

class AppointmentUser(BaseModel):
    id: UUID
    name: str
    email: str
    phone: str
    passport_number: str
    appointment_details: dict
    payment_status: str

    class Config:
        from_attributes = True

class AppointmentCreatedData(BaseModel):
    appointmentId: UUID
    user: AppointmentUser

class AppointmentListData(BaseModel):
    # One applicant books one appointment, so the list holds the caller's own record
    appointments: list[UserDetail]
