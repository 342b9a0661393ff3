from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.db.models import User
from app.db.session import get_session
from app.schemas.common import ApiResponse
from app.schemas.user import ProfileData
from app.services.file_storage import SlipStorage, get_slip_storage
from app.services.user_service import UserService

router = APIRouter()

async def get_user_service(
    session: AsyncSession = Depends(get_session),
    storage: SlipStorage = Depends(get_slip_storage),
) -> UserService:
    return UserService(session, storage)

@router.get("/profile", response_model=ApiResponse[ProfileData])
async def read_profile(
    user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    return ApiResponse(data=await service.get_profile(user))
