from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.db.models import User
from app.db.session import get_session
from app.schemas.appointment import AppointmentCreate, AppointmentCreatedData, AppointmentListData
from app.schemas.common import ApiResponse
from app.services.appointment_service import AppointmentService

router = APIRouter()

async def get_appointment_service(session: AsyncSession = Depends(get_session)) -> AppointmentService:
    return AppointmentService(session)

@router.post("/create", response_model=ApiResponse[AppointmentCreatedData])
async def create_appointment(
    request: AppointmentCreate,
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    data = await service.save_details(user, request)
    return ApiResponse(message="Appointment created successfully", data=data)

@router.get("/user", response_model=ApiResponse[AppointmentListData])
async def get_user_appointments(
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    data = await service.list_for_user(user)
    return ApiResponse(data=data)
