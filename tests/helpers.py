import hashlib
import hmac
from datetime import date, timedelta

KEY_SECRET = "rzp_test_secret"
WEBHOOK_SECRET = "rzp_webhook_secret"


def sign_payment(order_id: str, payment_id: str, secret: str = KEY_SECRET) -> str:
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def sign_webhook(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def appointment_payload(**overrides) -> dict:
    payload = {
        "name": "Ravi Kumar",
        "email": "Ravi.Kumar@Example.com",
        "phone": "9876543210",
        "passport_number": "k1234567",
        "appointment_type": "employment_visa",
        "preferred_date": (date.today() + timedelta(days=7)).isoformat(),
        "medical_center": "kochi",
        "additional_notes": "First visit",
    }
    payload.update(overrides)
    return payload
