from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID, uuid4
from sqlalchemy import Column

from app.core.utils import utcnow
from .columns import JSONDocument, UTCDateTime

class AdminActivityLog(SQLModel, table=True):
    __tablename__ = "admin_activity_log"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    admin_id: Optional[UUID] = Field(default=None, foreign_key="admins.id")
    action: str
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    details: Optional[dict] = Field(default=None, sa_column=Column(JSONDocument))
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
