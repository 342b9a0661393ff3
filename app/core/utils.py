import re
import secrets
from datetime import datetime, timezone

COUNTRY_CODE = "91"
_NATIONAL_MOBILE = re.compile(r"^[6-9]\d{9}$")

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def format_phone_number(phone: str) -> str:
    """
    Normalise an Indian mobile number to ``+91XXXXXXXXXX``.

    Accepts spaces, dashes, parentheses and an optional ``+91``/``91``/``0``
    prefix. Input whose digit count matches none of those shapes is returned
    unchanged so that validation rejects it.
    """
    cleaned = re.sub(r"\D", "", phone or "")
    if len(cleaned) == 10:
        return f"+{COUNTRY_CODE}{cleaned}"
    if len(cleaned) == 12 and cleaned.startswith(COUNTRY_CODE):
        return f"+{cleaned}"
    if len(cleaned) == 11 and cleaned.startswith("0"):
        return f"+{COUNTRY_CODE}{cleaned[1:]}"
    return phone

def is_valid_phone_number(phone: str) -> bool:
    cleaned = re.sub(r"\D", "", phone or "")
    if len(cleaned) == 12 and cleaned.startswith(COUNTRY_CODE):
        cleaned = cleaned[len(COUNTRY_CODE):]
    return bool(_NATIONAL_MOBILE.match(cleaned))

def generate_otp_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"

def generate_receipt_id(user_id: str, appointment_type: str) -> str:
    # Razorpay caps receipts at 40 characters, so the type is abbreviated
    type_code = "".join(part[:1] for part in appointment_type.split("_")).upper()[:3] or "X"
    timestamp = int(utcnow().timestamp() * 1000)
    suffix = secrets.randbelow(1000)
    return f"GAMCA_{type_code}_{str(user_id).replace('-', '')[:8]}_{timestamp}_{suffix:03d}"

def format_amount(amount_in_paise: int | None) -> str | None:
    if amount_in_paise is None:
        return None
    rupees = round(amount_in_paise / 100)
    # Indian digit grouping: 1,23,45,678
    digits = str(abs(rupees))
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        digits = ",".join(groups + [tail])
    sign = "-" if rupees < 0 else ""
    return f"{sign}₹{digits}"
