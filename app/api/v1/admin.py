from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin
from app.db.models import Admin
from app.db.session import get_session
from app.schemas.admin import AdminUsersData, UploadSlipData
from app.schemas.common import ApiResponse
from app.services.admin_service import AdminService
from app.services.email_service import EmailService, get_email_service
from app.services.file_storage import SlipStorage, get_slip_storage

router = APIRouter()

async def get_admin_service(
    session: AsyncSession = Depends(get_session),
    storage: SlipStorage = Depends(get_slip_storage),
    email: EmailService = Depends(get_email_service),
) -> AdminService:
    return AdminService(session, storage, email)

@router.get("/users", response_model=ApiResponse[AdminUsersData])
async def list_users(
    page: int = 1,
    limit: int = 20,
    search: str = "",
    payment_status: str = "",
    appointment_type: str = "",
    sort_by: str = "created_at",
    sort_order: str = "desc",
    admin: Admin = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service)
):
    data = await service.list_users(
        page=page,
        limit=limit,
        search=search,
        payment_status=payment_status,
        appointment_type=appointment_type,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return ApiResponse(data=data)

@router.post("/upload-slip", response_model=ApiResponse[UploadSlipData])
async def upload_slip(
    userId: Optional[str] = Form(default=None),
    notes: str = Form(default=""),
    appointmentSlip: Optional[UploadFile] = File(default=None),
    admin: Admin = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service)
):
    data = await service.upload_slip(admin, userId, appointmentSlip, notes)
    return ApiResponse(message="Appointment slip uploaded successfully", data=data)
