from pydantic import BaseModel
from typing import Optional, Any
from uuid import UUID
from datetime import datetime

class PaymentInfo(BaseModel):
    order_id: str
    payment_id: Optional[str] = None
    amount: int
    status: str
    created_at: datetime

class AdminUserRow(BaseModel):
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
    payment_info: Optional[PaymentInfo] = None

class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_records: int
    per_page: int
    has_next: bool
    has_prev: bool

class UserFilters(BaseModel):
    search: str
    payment_status: str
    appointment_type: str
    sort_by: str
    sort_order: str

class UserStatistics(BaseModel):
    total_users: int
    paid_users: int
    pending_users: int
    failed_users: int
    users_with_slips: int
    total_revenue: float

class AdminUsersData(BaseModel):
    users: list[AdminUserRow]
    pagination: Pagination
    filters: UserFilters
    statistics: UserStatistics

class SlipUser(BaseModel):
    id: UUID
    name: str
    email: str
    phone: str
    appointment_slip_path: Optional[str] = None
    updated_at: datetime

    class Config:
        from_attributes = True

class SlipFile(BaseModel):
    filename: str
    original_name: str
    size: int
    mimetype: str
    upload_date: datetime
    path: str

class SlipAdmin(BaseModel):
    id: UUID
    username: str

class UploadSlipData(BaseModel):
    user: SlipUser
    file: SlipFile
    admin: SlipAdmin
    notes: str
