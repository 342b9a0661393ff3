import json
from typing import Optional
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import settings
from app.core.logger import logger
from app.core.utils import generate_receipt_id, utcnow
from app.db.models import PaymentTransaction, User
from app.schemas.payment import (
    CreateOrderData,
    OrderAppointment,
    OrderInfo,
    OrderUser,
    VerifyPaymentData,
    WebhookAck,
)
from app.services.email_service import EmailService
from app.services.payment_gateway import (
    SETTLED_PAYMENT_STATES,
    RazorpayGateway,
    get_amount_for_appointment_type,
    get_payment_method_details,
)

class PaymentService:
    """
    Payment lifecycle for a user's appointment.

    ``payment_status`` moves pending -> completed once a signed gateway
    callback is verified; the transaction row moves created -> paid in the
    same database transaction.
    """

    def __init__(self, session: AsyncSession, gateway: RazorpayGateway, email: EmailService):
        self.session = session
        self.gateway = gateway
        self.email = email

    async def create_order(self, user: User, appointment_id: Optional[UUID] = None) -> CreateOrderData:
        if appointment_id is not None and appointment_id != user.id:
            raise HTTPException(status_code=403, detail="Unauthorized access to appointment")

        if user.payment_status == "completed":
            raise HTTPException(status_code=400, detail="Payment already completed for this appointment")

        if not user.appointment_details:
            raise HTTPException(status_code=400, detail="Please complete appointment details first")

        appointment_type = user.appointment_details.get("appointment_type")
        if not appointment_type:
            raise HTTPException(status_code=400, detail="Appointment type not specified")

        amount = get_amount_for_appointment_type(appointment_type)
        currency = settings.PAYMENT_CURRENCY
        receipt = generate_receipt_id(str(user.id), appointment_type)

        result = await self.gateway.create_order(
            amount=amount,
            currency=currency,
            receipt=receipt,
            notes={
                "user_id": str(user.id),
                "appointment_id": str(user.id),
                "appointment_type": appointment_type,
                "user_name": user.name,
                "user_email": user.email,
                "user_phone": user.phone,
            },
        )
        if not result.success:
            logger.error(f"Failed to create Razorpay order for user {user.id}: {result.error}")
            raise HTTPException(status_code=500, detail="Failed to create payment order")

        order = result.data
        transaction = PaymentTransaction(
            user_id=user.id,
            razorpay_order_id=order["id"],
            amount=int(order.get("amount", amount)),
            currency=order.get("currency", currency),
            status="created",
        )
        self.session.add(transaction)

        user.payment_status = "pending"
        user.updated_at = utcnow()
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)

        logger.info(f"Payment order created for user {user.id}: {order['id']}")

        return CreateOrderData(
            order=OrderInfo(
                id=order["id"],
                amount=transaction.amount,
                currency=transaction.currency,
                receipt=order.get("receipt", receipt),
            ),
            user=OrderUser.model_validate(user),
            appointment=OrderAppointment(type=appointment_type, details=user.appointment_details),
            gateway_key_id=self.gateway.key_id,
        )

    async def verify(self, user: User, order_id: str, payment_id: str, signature: str) -> VerifyPaymentData:
        if not (order_id and payment_id and signature):
            raise HTTPException(status_code=400, detail="Missing required payment verification data")

        if not self.gateway.verify_signature(order_id, payment_id, signature):
            logger.warning(f"Payment signature verification failed for user {user.id}, order {order_id}")
            raise HTTPException(status_code=400, detail="Invalid payment signature")

        payment_result = await self.gateway.fetch_payment(payment_id)
        if not payment_result.success:
            raise HTTPException(status_code=500, detail="Failed to verify payment details")

        payment = payment_result.data
        if payment.get("status") not in SETTLED_PAYMENT_STATES:
            raise HTTPException(status_code=400, detail="Payment not completed successfully")

        pending = await self._get_transaction(order_id, user_id=user.id)
        if pending is None:
            raise HTTPException(status_code=404, detail="Payment transaction not found")
        if int(payment.get("amount") or 0) < pending.amount:
            logger.error(f"Captured amount below order amount for {order_id}: {payment.get('amount')}")
            raise HTTPException(status_code=400, detail="Payment amount mismatch")

        transaction, newly_paid = await self._mark_paid(order_id, payment_id, signature, user_id=user.id)

        if newly_paid:
            method = get_payment_method_details(payment)["method"]
            logger.info(f"Payment verified successfully for user {user.id}: {payment_id} ({method})")
            await self._notify(user, transaction)

        return VerifyPaymentData(
            payment_id=payment_id,
            order_id=order_id,
            status="completed",
            amount=transaction.amount,
            currency=transaction.currency,
        )

    async def handle_webhook(self, body: bytes, signature: Optional[str]) -> WebhookAck:
        if not self.gateway.verify_webhook_signature(body, signature):
            raise HTTPException(status_code=400, detail="Invalid webhook signature")

        try:
            event = json.loads(body)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid webhook payload")
        if not isinstance(event, dict):
            raise HTTPException(status_code=400, detail="Invalid webhook payload")

        event_name = event.get("event", "")
        if event_name != "payment.captured":
            return WebhookAck(event=event_name, handled=False)

        try:
            entity = event["payload"]["payment"]["entity"]
            order_id, payment_id = entity.get("order_id"), entity.get("id")
            captured = int(entity.get("amount") or 0)
        except (KeyError, TypeError, AttributeError, ValueError):
            raise HTTPException(status_code=400, detail="Invalid webhook payload")
        if not (order_id and payment_id):
            raise HTTPException(status_code=400, detail="Invalid webhook payload")

        pending = await self._get_transaction(order_id)
        if pending is None:
            raise HTTPException(status_code=404, detail="Payment transaction not found")
        if captured < pending.amount:
            logger.error(f"Webhook captured amount below order amount for {order_id}: {captured}")
            raise HTTPException(status_code=400, detail="Payment amount mismatch")

        transaction, newly_paid = await self._mark_paid(order_id, payment_id, signature=None)
        if newly_paid:
            user = await self.session.get(User, transaction.user_id)
            logger.info(f"Payment captured via webhook for user {transaction.user_id}: {payment_id}")
            if user:
                await self._notify(user, transaction)
        return WebhookAck(event=event_name, handled=True)

    async def _get_transaction(self, order_id: str, user_id: Optional[UUID] = None) -> Optional[PaymentTransaction]:
        stmt = select(PaymentTransaction).where(PaymentTransaction.razorpay_order_id == order_id)
        if user_id is not None:
            stmt = stmt.where(PaymentTransaction.user_id == user_id)
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return result.scalars().first()

    async def _mark_paid(
        self,
        order_id: str,
        payment_id: str,
        signature: Optional[str],
        user_id: Optional[UUID] = None,
    ) -> tuple[PaymentTransaction, bool]:
        """Flip transaction and user to paid together. Returns (transaction, changed)."""
        now = utcnow()
        conditions = [
            PaymentTransaction.razorpay_order_id == order_id,
            PaymentTransaction.status != "paid",
        ]
        if user_id is not None:
            conditions.append(PaymentTransaction.user_id == user_id)

        values = {"razorpay_payment_id": payment_id, "status": "paid", "updated_at": now}
        if signature is not None:
            values["razorpay_signature"] = signature

        try:
            result = await self.session.execute(
                update(PaymentTransaction)
                .where(*conditions)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            changed = result.rowcount == 1

            transaction = await self._get_transaction(order_id, user_id=user_id)
            if transaction is None:
                raise HTTPException(status_code=404, detail="Payment transaction not found")

            if not changed:
                # Nothing was written; ending the transaction this way keeps loaded state
                await self.session.commit()
                if transaction.razorpay_payment_id != payment_id:
                    raise HTTPException(status_code=400, detail="Order already paid with a different payment")
                return transaction, False

            user = await self.session.get(User, transaction.user_id)
            if user is None:
                raise HTTPException(status_code=404, detail="User not found")
            user.payment_status = "completed"
            user.payment_id = payment_id
            user.updated_at = now
            self.session.add(user)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        await self.session.refresh(transaction)
        return transaction, True

    async def _notify(self, user: User, transaction: PaymentTransaction) -> None:
        # Email is best effort; a sent payment must never be rolled back for it
        try:
            await self.email.send_payment_confirmation(user, transaction)
            await self.email.send_admin_notification(user, transaction)
        except Exception:
            logger.exception(f"Failed to send payment notification for user {user.id}")
