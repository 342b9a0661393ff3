from sqlmodel import SQLModel
from .user import User
from .admin import Admin
from .otp_token import OtpToken
from .payment_transaction import PaymentTransaction
from .activity_log import AdminActivityLog

__all__ = [
    "SQLModel",
    "User",
    "Admin",
    "OtpToken",
    "PaymentTransaction",
    "AdminActivityLog",
]
