from dataclasses import dataclass
from typing import Optional

import httpx

from app.core.config import settings
from app.core.logger import logger

@dataclass
class SmsResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None

class TwoFactorSMS:
    """Sends OTP codes through the 2factor.in transactional SMS API."""

    base_url = "https://2factor.in/API/V1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        template: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.TWOFACTOR_API_KEY
        self.template = template or settings.TWOFACTOR_TEMPLATE
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.transport = transport

    async def send_otp(self, phone: str, code: str) -> SmsResult:
        if not self.api_key:
            if not settings.is_production:
                logger.info(f"Development mode - SMS to {phone} not dispatched (no 2factor.in API key)")
            return SmsResult(success=False, error="2factor.in API key not configured")

        url = f"{self.base_url}/{self.api_key}/SMS/{phone.lstrip('+')}/{code}/{self.template}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url)
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"2factor.in request failed for {phone}: {exc}")
            return SmsResult(success=False, error=f"2factor.in request failed: {exc}")

        if payload.get("Status") == "Success":
            return SmsResult(success=True, message_id=payload.get("Details"))
        return SmsResult(success=False, error=f"2factor.in API error: {payload.get('Details') or 'Unknown error'}")

sms_client = TwoFactorSMS()

def get_sms_client() -> TwoFactorSMS:
    return sms_client
