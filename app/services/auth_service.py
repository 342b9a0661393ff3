import re
from functools import lru_cache
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.logger import logger
from app.core.rate_limit import RateLimiter
from app.core.security import create_access_token, get_password_hash, verify_password
from app.core.utils import format_phone_number, is_valid_phone_number, utcnow
from app.db.models import Admin, User
from app.schemas.auth import (
    AdminLoginData,
    AdminSummary,
    SendOtpData,
    TokenInfo,
    UserSummary,
    VerifyOtpData,
)
from app.services.otp_service import OtpStore
from app.services.sms_service import TwoFactorSMS

_OTP_FORMAT = re.compile(r"^\d{6}$")

@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    # Compared against when the username is unknown so both paths cost the same
    return get_password_hash("not-a-real-admin-password")

class AuthService:
    def __init__(self, session: AsyncSession, rate_limiter: RateLimiter, sms: TwoFactorSMS):
        self.session = session
        self.rate_limiter = rate_limiter
        self.sms = sms
        self.otp_store = OtpStore(session)

    @staticmethod
    def normalise_phone(phone: str) -> str:
        formatted = format_phone_number(phone)
        if not is_valid_phone_number(formatted):
            raise HTTPException(status_code=400, detail="Invalid phone number format")
        return formatted

    async def get_user_by_phone(self, phone: str) -> User | None:
        stmt = select(User).where(User.phone == phone)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_or_create_user(self, phone: str) -> User:
        user = await self.get_user_by_phone(phone)
        if user:
            return user

        user = User(phone=phone, name="", email="", passport_number="", appointment_details={}, payment_status="pending")
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError:
            # Created by a concurrent verification for the same phone
            await self.session.rollback()
            user = await self.get_user_by_phone(phone)
            if user is None:
                raise
            return user
        await self.session.refresh(user)
        logger.info(f"Created user {user.id} for {phone}")
        return user

    async def send_otp(self, phone: str) -> SendOtpData:
        formatted = self.normalise_phone(phone)

        if not await self.rate_limiter.allow(formatted):
            raise HTTPException(status_code=429, detail="Too many OTP requests. Please try again later.")

        code = await self.otp_store.issue(formatted)

        sms_result = await self.sms.send_otp(formatted, code)
        if not sms_result.success:
            logger.error(f"SMS sending failed for {formatted}: {sms_result.error}")
            if settings.is_production:
                raise HTTPException(status_code=500, detail="Failed to send OTP. Please try again.")
        else:
            logger.info(f"OTP sent to {formatted}. Message ID: {sms_result.message_id}")

        data = SendOtpData(
            phone=formatted,
            messageId=sms_result.message_id,
            expiresIn=self.otp_store.expire_minutes * 60,
        )
        if settings.OTP_TEST_MODE:
            data.otp = code
        return data

    async def verify_otp(self, phone: str, otp: str) -> VerifyOtpData:
        formatted = self.normalise_phone(phone)

        if not _OTP_FORMAT.match(otp):
            raise HTTPException(status_code=400, detail="Invalid OTP format")

        if not await self.otp_store.verify(formatted, otp):
            raise HTTPException(status_code=400, detail="Invalid or expired OTP")

        user = await self.get_or_create_user(formatted)

        token = create_access_token(data={"id": str(user.id), "phone": user.phone, "type": "user"})
        logger.info(f"User authenticated successfully: {formatted}")

        return VerifyOtpData(token=token, user=UserSummary.model_validate(user))

    async def admin_login(self, username: str, password: str) -> AdminLoginData:
        stmt = select(Admin).where(Admin.username == username)
        result = await self.session.execute(stmt)
        admin = result.scalars().first()

        # Case-sensitive exact match even where the collation is not
        if admin is None or admin.username != username:
            await run_in_threadpool(verify_password, password, _dummy_password_hash())
            admin = None
        elif not await run_in_threadpool(verify_password, password, admin.password_hash):
            admin = None
        elif not admin.is_active:
            admin = None

        if admin is None:
            logger.warning(f"Failed admin login attempt for username: {username}")
            raise HTTPException(status_code=401, detail="Invalid username or password")

        admin.last_login = utcnow()
        admin.updated_at = admin.last_login
        self.session.add(admin)
        await self.session.commit()
        await self.session.refresh(admin)

        token = create_access_token(data={"id": str(admin.id), "username": admin.username, "type": "admin"})
        logger.info(f"Admin logged in successfully: {admin.username}")

        return AdminLoginData(token=token, admin=AdminSummary.model_validate(admin))

    async def describe_token(self, claims: dict) -> TokenInfo:
        token_type = claims.get("type")
        try:
            subject_id = UUID(str(claims.get("id")))
        except ValueError:
            raise HTTPException(status_code=401, detail="Invalid or expired token")

        if token_type == "user":
            user = await self.session.get(User, subject_id)
            if not user:
                raise HTTPException(status_code=404, detail="User not found")
            return TokenInfo(type="user", user=UserSummary.model_validate(user))
        if token_type == "admin":
            admin = await self.session.get(Admin, subject_id)
            if not admin or not admin.is_active:
                raise HTTPException(status_code=404, detail="Admin not found")
            return TokenInfo(type="admin", admin=AdminSummary.model_validate(admin))
        raise HTTPException(status_code=400, detail="Invalid token type")
