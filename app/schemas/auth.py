from pydantic import BaseModel, Field, field_validator
from typing import Optional, Literal
from uuid import UUID
from datetime import datetime

class SendOtpRequest(BaseModel):
    phone: str = Field(default="", validate_default=True)

    @field_validator("phone")
    @classmethod
    def phone_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Phone number is required")
        return v.strip()

class VerifyOtpRequest(BaseModel):
    phone: str = Field(default="", validate_default=True)
    otp: str = Field(default="", validate_default=True)

    @field_validator("phone", "otp")
    @classmethod
    def required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Phone number and OTP are required")
        return v.strip()

class AdminLoginRequest(BaseModel):
    username: str = Field(default="", validate_default=True)
    password: str = Field(default="", validate_default=True)

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Username and password are required")
        if len(v) < 3 or len(v) > 50:
            raise ValueError("Username must be between 3 and 50 characters")
        return v

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Username and password are required")
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters long")
        return v

class SendOtpData(BaseModel):
    phone: str
    messageId: Optional[str] = None
    expiresIn: int
    otp: Optional[str] = None

class UserSummary(BaseModel):
    id: UUID
    phone: str
    name: str
    email: str
    payment_status: str
    has_appointment_details: bool

    class Config:
        from_attributes = True

class VerifyOtpData(BaseModel):
    token: str
    user: UserSummary

class AdminSummary(BaseModel):
    id: UUID
    username: str
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class AdminLoginData(BaseModel):
    token: str
    admin: AdminSummary

class TokenInfo(BaseModel):
    type: Literal["user", "admin"]
    user: Optional[UserSummary] = None
    admin: Optional[AdminSummary] = None
