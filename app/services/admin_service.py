from typing import Optional
from uuid import UUID

from fastapi import HTTPException, UploadFile
from sqlalchemy import case, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from starlette.concurrency import run_in_threadpool

from app.core.logger import logger
from app.core.utils import utcnow
from app.db.models import Admin, AdminActivityLog, PaymentTransaction, User
from app.schemas.admin import (
    AdminUserRow,
    AdminUsersData,
    Pagination,
    PaymentInfo,
    SlipAdmin,
    SlipFile,
    SlipUser,
    UploadSlipData,
    UserFilters,
    UserStatistics,
)
from app.services.email_service import EmailService
from app.services.file_storage import SlipStorage

PAYMENT_STATUS_FILTERS = {"pending", "processing", "completed", "failed"}
SORTABLE_FIELDS = {
    "created_at": User.created_at,
    "name": User.name,
    "email": User.email,
    "phone": User.phone,
    "payment_status": User.payment_status,
    "updated_at": User.updated_at,
}
MAX_PAGE_SIZE = 100

def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

class AdminService:
    def __init__(self, session: AsyncSession, storage: SlipStorage, email: EmailService):
        self.session = session
        self.storage = storage
        self.email = email

    @staticmethod
    def _filters(search: str, payment_status: str, appointment_type: str) -> list:
        conditions = []
        term = search.strip()
        if term:
            escaped = _escape_like(term)
            pattern = f"%{escaped.lower()}%"
            conditions.append(
                or_(
                    func.lower(User.name).like(pattern, escape="\\"),
                    func.lower(User.email).like(pattern, escape="\\"),
                    User.phone.like(f"%{escaped}%", escape="\\"),
                    User.passport_number.like(f"%{escaped.upper()}%", escape="\\"),
                )
            )
        if payment_status in PAYMENT_STATUS_FILTERS:
            conditions.append(User.payment_status == payment_status)
        if appointment_type:
            conditions.append(User.appointment_details["appointment_type"].as_string() == appointment_type)
        return conditions

    async def _latest_transactions(self, user_ids: list[UUID]) -> dict[UUID, PaymentTransaction]:
        if not user_ids:
            return {}
        stmt = (
            select(PaymentTransaction)
            .where(PaymentTransaction.user_id.in_(user_ids))
            .order_by(PaymentTransaction.created_at.desc())
        )
        result = await self.session.execute(stmt)
        latest: dict[UUID, PaymentTransaction] = {}
        for transaction in result.scalars().all():
            latest.setdefault(transaction.user_id, transaction)
        return latest

    async def _statistics(self, conditions: list) -> UserStatistics:
        counts = select(
            func.count(User.id),
            func.count(case((User.payment_status == "completed", 1))),
            func.count(case((User.payment_status == "pending", 1))),
            func.count(case((User.payment_status == "failed", 1))),
            func.count(User.appointment_slip_path),
        ).where(*conditions)
        total, paid, pending, failed, with_slips = (await self.session.execute(counts)).one()

        revenue_stmt = (
            select(func.coalesce(func.sum(PaymentTransaction.amount), 0))
            .join(User, User.id == PaymentTransaction.user_id)
            .where(PaymentTransaction.status == "paid", *conditions)
        )
        revenue = (await self.session.execute(revenue_stmt)).scalar_one()

        return UserStatistics(
            total_users=total,
            paid_users=paid,
            pending_users=pending,
            failed_users=failed,
            users_with_slips=with_slips,
            total_revenue=int(revenue) / 100,
        )

    async def list_users(
        self,
        page: int = 1,
        limit: int = 20,
        search: str = "",
        payment_status: str = "",
        appointment_type: str = "",
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> AdminUsersData:
        page = max(1, page)
        limit = min(MAX_PAGE_SIZE, max(1, limit))
        sort_by = sort_by if sort_by in SORTABLE_FIELDS else "created_at"
        sort_order = "asc" if sort_order.lower() == "asc" else "desc"

        conditions = self._filters(search, payment_status, appointment_type)

        count_stmt = select(func.count(User.id)).where(*conditions)
        total_records = (await self.session.execute(count_stmt)).scalar_one()
        total_pages = -(-total_records // limit)

        column = SORTABLE_FIELDS[sort_by]
        stmt = (
            select(User)
            .where(*conditions)
            .order_by(column.asc() if sort_order == "asc" else column.desc(), User.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        users = (await self.session.execute(stmt)).scalars().all()
        latest = await self._latest_transactions([u.id for u in users])

        rows = []
        for user in users:
            transaction = latest.get(user.id)
            payment_info = None
            if transaction:
                payment_info = PaymentInfo(
                    order_id=transaction.razorpay_order_id,
                    payment_id=transaction.razorpay_payment_id,
                    amount=transaction.amount,
                    status=transaction.status,
                    created_at=transaction.created_at,
                )
            rows.append(
                AdminUserRow(
                    id=user.id,
                    name=user.name,
                    email=user.email,
                    phone=user.phone,
                    passport_number=user.passport_number,
                    appointment_details=user.appointment_details or {},
                    payment_status=user.payment_status,
                    payment_id=user.payment_id,
                    appointment_slip_path=user.appointment_slip_path,
                    created_at=user.created_at,
                    updated_at=user.updated_at,
                    payment_info=payment_info,
                )
            )

        return AdminUsersData(
            users=rows,
            pagination=Pagination(
                current_page=page,
                total_pages=total_pages,
                total_records=total_records,
                per_page=limit,
                has_next=page < total_pages,
                has_prev=page > 1,
            ),
            filters=UserFilters(
                search=search,
                payment_status=payment_status,
                appointment_type=appointment_type,
                sort_by=sort_by,
                sort_order=sort_order,
            ),
            statistics=await self._statistics(conditions),
        )

    async def upload_slip(
        self,
        admin: Admin,
        user_id: Optional[str],
        upload: Optional[UploadFile],
        notes: str = "",
    ) -> UploadSlipData:
        if not user_id:
            raise HTTPException(status_code=400, detail="User ID is required")
        if upload is None or not upload.filename:
            raise HTTPException(status_code=400, detail="Appointment slip file is required")

        try:
            user = await self.session.get(User, UUID(user_id))
        except ValueError:
            user = None
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        if user.payment_status != "completed":
            raise HTTPException(status_code=400, detail="Cannot upload appointment slip. Payment not completed.")

        stored = await run_in_threadpool(
            self.storage.save, user.id, upload.file, upload.filename, upload.content_type
        )

        old_slip_path = user.appointment_slip_path
        notes = notes.strip()
        try:
            user.appointment_slip_path = stored.path
            user.updated_at = utcnow()
            self.session.add(user)
            self.session.add(
                AdminActivityLog(
                    admin_id=admin.id,
                    action="upload_appointment_slip",
                    target_type="user",
                    target_id=str(user.id),
                    details={
                        "filename": stored.filename,
                        "original_name": stored.original_name,
                        "file_size": stored.size,
                        "notes": notes,
                        "replaced_existing": bool(old_slip_path),
                    },
                )
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            self.storage.delete(stored.path)
            raise
        await self.session.refresh(user)

        if old_slip_path and old_slip_path != stored.path:
            self.storage.delete(old_slip_path)

        logger.info(f"Appointment slip uploaded for user {user.id} by admin {admin.username}")

        try:
            await self.email.send_slip_ready(user)
        except Exception:
            logger.exception(f"Failed to send slip ready email for user {user.id}")

        return UploadSlipData(
            user=SlipUser.model_validate(user),
            file=SlipFile(
                filename=stored.filename,
                original_name=stored.original_name,
                size=stored.size,
                mimetype=stored.mimetype,
                upload_date=utcnow(),
                path=stored.path,
            ),
            admin=SlipAdmin(id=admin.id, username=admin.username),
            notes=notes,
        )
