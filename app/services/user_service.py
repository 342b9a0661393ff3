from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.utils import format_amount
from app.db.models import PaymentTransaction, User
from app.schemas.appointment import APPOINTMENT_TYPE_LABELS
from app.schemas.user import (
    ProfileAppointment,
    ProfileData,
    ProfilePayment,
    ProfileSlip,
    ProfileStatus,
    UserDetail,
)
from app.services.file_storage import SlipStorage

class UserService:
    def __init__(self, session: AsyncSession, storage: SlipStorage):
        self.session = session
        self.storage = storage

    async def get_latest_transaction(self, user_id) -> Optional[PaymentTransaction]:
        stmt = (
            select(PaymentTransaction)
            .where(PaymentTransaction.user_id == user_id)
            .order_by(PaymentTransaction.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    def describe_slip(self, user: User) -> Optional[ProfileSlip]:
        if not user.appointment_slip_path:
            return None
        info = self.storage.info(user.appointment_slip_path)
        if info is None:
            return ProfileSlip(available=False, error="File not found on server")
        return ProfileSlip(
            available=True,
            filename=info["filename"],
            size=info["size"],
            size_formatted=f"{round(info['size'] / 1024)} KB",
        )

    @staticmethod
    def derive_status(user: User) -> ProfileStatus:
        if user.payment_status == "pending":
            return ProfileStatus(
                status="payment_pending",
                message="Payment is pending. Please complete your payment to proceed.",
                next_steps=["Complete payment", "Wait for appointment confirmation"],
            )
        if user.payment_status == "completed" and not user.appointment_slip_path:
            return ProfileStatus(
                status="processing",
                message="Payment completed. Your appointment is being processed.",
                next_steps=["Wait for appointment slip", "Check back in 24-48 hours"],
            )
        if user.payment_status == "completed":
            return ProfileStatus(
                status="ready",
                message="Your appointment slip is ready for download.",
                next_steps=["Download appointment slip", "Attend appointment on scheduled date"],
            )
        if user.payment_status == "failed":
            return ProfileStatus(
                status="payment_failed",
                message="Payment failed. Please try again.",
                next_steps=["Retry payment", "Contact support if issue persists"],
            )
        return ProfileStatus(
            status="unknown",
            message="Status unknown. Please contact support.",
            next_steps=["Contact support"],
        )

    async def get_profile(self, user: User) -> ProfileData:
        details = user.appointment_details or {}
        appointment_type = details.get("appointment_type")

        transaction = await self.get_latest_transaction(user.id)
        payment = None
        if transaction:
            payment = ProfilePayment(
                order_id=transaction.razorpay_order_id,
                payment_id=transaction.razorpay_payment_id,
                amount=transaction.amount,
                amount_formatted=format_amount(transaction.amount),
                status=transaction.status,
                created_at=transaction.created_at,
                updated_at=transaction.updated_at,
            )

        return ProfileData(
            user=UserDetail.model_validate(user),
            appointment=ProfileAppointment(
                type=appointment_type,
                type_label=APPOINTMENT_TYPE_LABELS.get(appointment_type, appointment_type) if appointment_type else None,
                preferred_date=details.get("preferred_date"),
                medical_center=details.get("medical_center"),
                details=details,
            ),
            payment=payment,
            appointment_slip=self.describe_slip(user),
            status=self.derive_status(user),
        )
