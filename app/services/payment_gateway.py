"""Razorpay adapter: order creation, signature checks and payment lookups."""
from dataclasses import dataclass, field
from typing import Any, Optional

from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.logger import logger

# Paise per appointment category
PAYMENT_AMOUNTS = {
    "employment_visa": 350000,
    "family_visa": 300000,
    "visit_visa": 250000,
    "student_visa": 300000,
    "business_visa": 400000,
    "other": 350000,
}

SETTLED_PAYMENT_STATES = {"captured", "authorized"}


def get_amount_for_appointment_type(appointment_type: Optional[str]) -> int:
    return PAYMENT_AMOUNTS.get(appointment_type or "other", PAYMENT_AMOUNTS["other"])


def get_payment_method_details(payment: Optional[dict[str, Any]]) -> dict[str, Any]:
    if not payment or not payment.get("method"):
        return {"method": "unknown", "details": {}}

    method = payment["method"]
    details: dict[str, Any] = {}
    if method == "card":
        card = payment.get("card") or {}
        details = {"card_type": card.get("type"), "card_network": card.get("network"), "card_last4": card.get("last4")}
    elif method == "upi":
        details = {"vpa": payment.get("vpa")}
    elif method == "netbanking":
        details = {"bank": payment.get("bank")}
    elif method == "wallet":
        details = {"wallet": payment.get("wallet")}
    return {"method": method, "details": details}


class GatewayConfigurationError(Exception):
    """Raised when Razorpay credentials are missing."""


@dataclass
class GatewayResult:
    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


class RazorpayGateway:
    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        client=None,
    ):
        self.key_id = key_id if key_id is not None else settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.RAZORPAY_WEBHOOK_SECRET
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def _get_client(self):
        if self._client is None:
            if not self.is_configured():
                raise GatewayConfigurationError("Razorpay credentials are not configured")
            import razorpay  # Imported lazily so the SDK is only needed when talking to Razorpay

            client = razorpay.Client(auth=(self.key_id, self.key_secret))
            client.set_app_details({"title": settings.PROJECT_NAME, "version": "1.0"})
            self._client = client
        return self._client

    async def _call(self, action: str, func_name: str, *args) -> GatewayResult:
        try:
            client = self._get_client()
            resource, method = func_name.split(".")
            result = await run_in_threadpool(getattr(getattr(client, resource), method), *args)
        except Exception as exc:  # SDK surfaces its own errors as well as requests errors
            logger.error(f"Razorpay {action} failed: {exc}")
            return GatewayResult(success=False, error=str(exc) or f"Failed to {action}")
        return GatewayResult(success=True, data=result or {})

    async def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: Optional[dict[str, Any]] = None,
    ) -> GatewayResult:
        payload = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
            "payment_capture": 1,
        }
        result = await self._call("create payment order", "order.create", payload)
        if result.success:
            logger.info(f"Razorpay order created: {result.data.get('id')}")
        return result

    async def fetch_payment(self, payment_id: str) -> GatewayResult:
        return await self._call("fetch payment details", "payment.fetch", payment_id)

    async def fetch_order(self, order_id: str) -> GatewayResult:
        return await self._call("fetch order details", "order.fetch", order_id)

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not (order_id and payment_id and signature and self.key_secret):
            return False
        from razorpay.errors import SignatureVerificationError

        try:
            self._get_client().utility.verify_payment_signature(
                {
                    "razorpay_order_id": order_id,
                    "razorpay_payment_id": payment_id,
                    "razorpay_signature": signature,
                }
            )
        except (SignatureVerificationError, TypeError):
            # TypeError: compare_digest refuses non-ASCII signatures
            return False
        return True

    def verify_webhook_signature(self, body: bytes, signature: Optional[str]) -> bool:
        if not (signature and self.webhook_secret):
            return False
        from razorpay.errors import SignatureVerificationError

        try:
            self._get_client().utility.verify_webhook_signature(
                body.decode("utf-8"), signature, self.webhook_secret
            )
        except (SignatureVerificationError, GatewayConfigurationError, TypeError, UnicodeDecodeError):
            return False
        return True


razorpay_gateway = RazorpayGateway()


def get_payment_gateway() -> RazorpayGateway:
    return razorpay_gateway
