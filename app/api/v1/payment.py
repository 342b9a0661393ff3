from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.db.models import User
from app.db.session import get_session
from app.schemas.common import ApiResponse
from app.schemas.payment import (
    CreateOrderData,
    CreateOrderRequest,
    VerifyPaymentData,
    VerifyPaymentRequest,
    WebhookAck,
)
from app.services.email_service import EmailService, get_email_service
from app.services.payment_gateway import RazorpayGateway, get_payment_gateway
from app.services.payment_service import PaymentService

router = APIRouter()

async def get_payment_service(
    session: AsyncSession = Depends(get_session),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
    email: EmailService = Depends(get_email_service),
) -> PaymentService:
    return PaymentService(session, gateway, email)

@router.post("/create-order", response_model=ApiResponse[CreateOrderData])
async def create_order(
    request: Optional[CreateOrderRequest] = None,
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    appointment_id = request.appointmentId if request else None
    data = await service.create_order(user, appointment_id)
    return ApiResponse(message="Payment order created successfully", data=data)

@router.post("/verify", response_model=ApiResponse[VerifyPaymentData])
async def verify_payment(
    request: VerifyPaymentRequest,
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    data = await service.verify(
        user,
        request.razorpay_order_id,
        request.razorpay_payment_id,
        request.razorpay_signature,
    )
    return ApiResponse(message="Payment verified successfully", data=data)

@router.post("/webhook", response_model=ApiResponse[WebhookAck])
async def payment_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(default=None),
    service: PaymentService = Depends(get_payment_service)
):
    # Signature covers the raw body, so it is read before any parsing
    body = await request.body()
    data = await service.handle_webhook(body, x_razorpay_signature)
    return ApiResponse(message="Webhook processed", data=data)
