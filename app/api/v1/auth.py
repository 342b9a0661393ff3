from typing import Any

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_token_claims
from app.core.rate_limit import RateLimiter, get_rate_limiter
from app.db.session import get_session
from app.schemas.auth import (
    AdminLoginData,
    AdminLoginRequest,
    SendOtpData,
    SendOtpRequest,
    TokenInfo,
    VerifyOtpData,
    VerifyOtpRequest,
)
from app.schemas.common import ApiResponse
from app.services.auth_service import AuthService
from app.services.sms_service import TwoFactorSMS, get_sms_client

router = APIRouter()

async def get_auth_service(
    session: AsyncSession = Depends(get_session),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    sms: TwoFactorSMS = Depends(get_sms_client),
) -> AuthService:
    return AuthService(session, rate_limiter, sms)

@router.post("/send-otp", response_model=ApiResponse[SendOtpData], response_model_exclude_none=True)
async def send_otp(
    request: SendOtpRequest,
    service: AuthService = Depends(get_auth_service)
):
    data = await service.send_otp(request.phone)
    return ApiResponse(message="OTP sent successfully", data=data)

@router.post("/verify-otp", response_model=ApiResponse[VerifyOtpData])
async def verify_otp(
    request: VerifyOtpRequest,
    service: AuthService = Depends(get_auth_service)
):
    data = await service.verify_otp(request.phone, request.otp)
    return ApiResponse(message="OTP verified successfully", data=data)

@router.post("/admin-login", response_model=ApiResponse[AdminLoginData])
async def admin_login(
    request: AdminLoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    data = await service.admin_login(request.username, request.password)
    return ApiResponse(message="Login successful", data=data)

@router.get("/verify-token", response_model=ApiResponse[TokenInfo], response_model_exclude_none=True)
async def verify_token(
    claims: dict[str, Any] = Depends(get_token_claims),
    service: AuthService = Depends(get_auth_service)
):
    data = await service.describe_token(claims)
    return ApiResponse(message="Token is valid", data=data)

@router.post("/logout")
async def logout(response: Response):
    # Bearer tokens are dropped by the client; only the cookie can be cleared here
    response.delete_cookie("token", path="/")
    return {"success": True, "message": "Logged out successfully"}
