from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from jwt.exceptions import PyJWTError
from passlib.context import CryptContext

from app.core.config import settings

# argon2 is memory-hard; keep it as the only scheme so hashes never downgrade.
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return pwd_context.verify(plain_password, password_hash)
    except (ValueError, TypeError):
        # Unrecognised or corrupt hash in the admins table
        return False


def create_access_token(
    data: dict[str, Any],
    expires_delta: Optional[timedelta] = None,
    secret: Optional[str] = None,
) -> str:
    """Sign a claim, stamping ``iat`` and ``exp`` (seven days by default)."""
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = dict(data)
    to_encode.update({"iat": now, "exp": now + expires_delta})
    return jwt.encode(to_encode, secret or settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: Optional[str], secret: Optional[str] = None) -> Optional[dict[str, Any]]:
    """Return the claim for a valid token and ``None`` for anything else."""
    if not token:
        return None
    try:
        return jwt.decode(token, secret or settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except PyJWTError:
        return None
