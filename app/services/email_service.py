"""SMTP notifications sent after payment and slip upload."""
import smtplib
from email.message import EmailMessage
from typing import Iterable, Optional

from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.logger import logger
from app.core.utils import format_amount
from app.db.models import PaymentTransaction, User
from app.schemas.appointment import APPOINTMENT_TYPE_LABELS


class EmailService:
    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        admin_email: Optional[str] = None,
    ):
        self.host = host if host is not None else settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.username = username if username is not None else settings.SMTP_USER
        self.password = password if password is not None else settings.SMTP_PASS
        self.sender = sender or settings.EMAIL_FROM
        self.admin_email = admin_email or settings.ADMIN_EMAIL

    @property
    def is_configured(self) -> bool:
        return bool(self.host)

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=settings.HTTP_TIMEOUT_SECONDS) as server:
            if settings.SMTP_USE_TLS:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(message)

    async def send_email(self, subject: str, recipients: Iterable[str], body: str) -> bool:
        recipients = [r for r in recipients if r]
        if not recipients:
            logger.warning(f"Email '{subject}' skipped: no recipients")
            return False
        if not self.is_configured:
            logger.info(f"Email suppressed (SMTP_HOST not set): '{subject}' to {recipients}")
            return False

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = ", ".join(recipients)
        message.set_content(body)

        await run_in_threadpool(self._deliver, message)
        logger.info(f"Email dispatched: '{subject}' to {recipients}")
        return True

    async def send_payment_confirmation(self, user: User, transaction: PaymentTransaction) -> bool:
        details = user.appointment_details or {}
        label = APPOINTMENT_TYPE_LABELS.get(details.get("appointment_type"), "Medical Examination")
        body = (
            f"Dear {user.name or 'Applicant'},\n\n"
            f"We have received your payment of {format_amount(transaction.amount)} for {label}.\n\n"
            f"Payment ID: {transaction.razorpay_payment_id}\n"
            f"Order ID: {transaction.razorpay_order_id}\n"
            f"Preferred date: {details.get('preferred_date', 'N/A')}\n"
            f"Medical center: {details.get('medical_center', 'N/A')}\n\n"
            "Your appointment slip will be shared within 24-48 hours.\n\n"
            "GAMCA Medical Services"
        )
        return await self.send_email("Payment Confirmation - GAMCA Medical Appointment", [user.email], body)

    async def send_admin_notification(self, user: User, transaction: PaymentTransaction) -> bool:
        body = (
            f"New payment received.\n\n"
            f"Applicant: {user.name} ({user.phone})\n"
            f"Email: {user.email}\n"
            f"Passport: {user.passport_number}\n"
            f"Amount: {format_amount(transaction.amount)}\n"
            f"Payment ID: {transaction.razorpay_payment_id}\n"
            f"Appointment: {user.appointment_details}\n"
        )
        subject = f"New Payment Received - {user.name} ({transaction.razorpay_payment_id})"
        return await self.send_email(subject, [self.admin_email], body)

    async def send_slip_ready(self, user: User) -> bool:
        body = (
            f"Dear {user.name or 'Applicant'},\n\n"
            "Your appointment slip is ready. Sign in to download it from your dashboard.\n\n"
            "GAMCA Medical Services"
        )
        return await self.send_email("Your Appointment Slip is Ready - GAMCA Medical Services", [user.email], body)


email_service = EmailService()

def get_email_service() -> EmailService:
    return email_service
