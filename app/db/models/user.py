from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID, uuid4
from sqlalchemy import Column

from app.core.utils import utcnow
from .columns import JSONDocument, UTCDateTime

class User(SQLModel, table=True):
    __tablename__ = "users"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(default="")
    email: str = Field(default="")
    phone: str = Field(index=True, unique=True)
    passport_number: str = Field(default="")
    appointment_details: dict = Field(default_factory=dict, sa_column=Column(JSONDocument, nullable=False))
    payment_status: str = Field(default="pending", index=True) # pending, processing, completed, failed
    payment_id: Optional[str] = None
    appointment_slip_path: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    @property
    def has_appointment_details(self) -> bool:
        return bool(self.appointment_details)
