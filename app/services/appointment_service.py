from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logger import logger
from app.core.utils import utcnow
from app.db.models import User
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentCreatedData,
    AppointmentListData,
    AppointmentUser,
)
from app.schemas.user import UserDetail

class AppointmentService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def save_details(self, user: User, data: AppointmentCreate) -> AppointmentCreatedData:
        if user.payment_status == "completed":
            raise HTTPException(status_code=400, detail="Payment already completed for this appointment")

        # The verified phone is the account identity; it cannot be swapped here
        if data.phone != user.phone:
            raise HTTPException(status_code=400, detail="Phone number must match the verified phone number")

        user.name = data.name
        user.email = data.email
        user.passport_number = data.passport_number
        user.appointment_details = data.appointment_details()
        user.updated_at = utcnow()
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)

        logger.info(f"Appointment created for user: {user.id}")

        return AppointmentCreatedData(
            appointmentId=user.id,
            user=AppointmentUser.model_validate(user),
        )

    async def list_for_user(self, user: User) -> AppointmentListData:
        return AppointmentListData(appointments=[UserDetail.model_validate(user)])
