from sqlmodel import SQLModel, Field
from datetime import datetime
from uuid import UUID, uuid4

from app.core.utils import utcnow
from .columns import UTCDateTime

class OtpToken(SQLModel, table=True):
    __tablename__ = "otp_tokens"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    # One live code per phone; a new send replaces the row in place
    phone: str = Field(unique=True, index=True)
    otp: str
    expires_at: datetime = Field(index=True, sa_type=UTCDateTime)
    used: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
