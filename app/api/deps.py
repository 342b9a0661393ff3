from typing import Any, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import decode_access_token
from app.db.models import Admin, User
from app.db.session import get_session

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/admin-login", auto_error=False)

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )

async def get_token_claims(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
) -> dict[str, Any]:
    # Browser clients may carry the token in a cookie instead of the header
    token = token or request.cookies.get("token")
    if not token:
        raise _unauthorized("No token provided")

    claims = decode_access_token(token)
    if claims is None:
        raise _unauthorized("Invalid or expired token")
    return claims

def _subject_id(claims: dict[str, Any]) -> UUID:
    try:
        return UUID(str(claims.get("id")))
    except ValueError:
        raise _unauthorized("Invalid or expired token")

async def get_current_user(
    claims: dict[str, Any] = Depends(get_token_claims),
    session: AsyncSession = Depends(get_session),
) -> User:
    if claims.get("type") != "user":
        raise _unauthorized("User access required")

    user = await session.get(User, _subject_id(claims))
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user

async def get_current_admin(
    claims: dict[str, Any] = Depends(get_token_claims),
    session: AsyncSession = Depends(get_session),
) -> Admin:
    if claims.get("type") != "admin":
        raise _unauthorized("Admin access required")

    admin = await session.get(Admin, _subject_id(claims))
    if admin is None or not admin.is_active:
        raise _unauthorized("Admin not found or inactive")
    return admin
