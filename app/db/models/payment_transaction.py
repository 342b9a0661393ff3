from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID, uuid4

from app.core.utils import utcnow
from .columns import UTCDateTime

class PaymentTransaction(SQLModel, table=True):
    __tablename__ = "payment_transactions"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    razorpay_order_id: str = Field(unique=True, index=True)
    razorpay_payment_id: Optional[str] = None
    amount: int # paise
    currency: str = Field(default="INR")
    status: str = Field(default="created") # created, paid, failed
    razorpay_signature: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
