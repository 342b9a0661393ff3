from datetime import datetime, timedelta
from typing import Callable
from uuid import uuid4

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logger import logger
from app.core.utils import generate_otp_code, utcnow
from app.db.models import OtpToken

class OtpStore:
    """
    One-time codes keyed by normalised phone.

    Issuing is a single upsert and verifying is a single conditional update,
    so concurrent requests for one phone can neither leave two live codes
    nor consume the same code twice.
    """

    def __init__(
        self,
        session: AsyncSession,
        expire_minutes: int = settings.OTP_EXPIRE_MINUTES,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.expire_minutes = expire_minutes
        self.clock = clock

    def _insert(self):
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise RuntimeError(f"OTP upsert is not supported on {dialect}")
        return insert

    async def issue(self, phone: str) -> str:
        code = generate_otp_code()
        now = self.clock()
        values = {
            "otp": code,
            "expires_at": now + timedelta(minutes=self.expire_minutes),
            "used": False,
            "created_at": now,
        }
        insert = self._insert()
        stmt = insert(OtpToken).values(id=uuid4(), phone=phone, **values)
        stmt = stmt.on_conflict_do_update(index_elements=["phone"], set_=values)
        await self.session.execute(stmt)
        await self.session.commit()
        logger.info(f"OTP issued for {phone}")
        return code

    async def verify(self, phone: str, code: str) -> bool:
        stmt = (
            update(OtpToken)
            .where(
                OtpToken.phone == phone,
                OtpToken.otp == code,
                OtpToken.used == False,  # noqa: E712
                OtpToken.expires_at > self.clock(),
            )
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount == 1

    async def cleanup(self) -> int:
        stmt = (
            delete(OtpToken)
            .where(OtpToken.expires_at < self.clock())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        logger.info(f"Cleaned up {result.rowcount} expired OTPs")
        return result.rowcount
