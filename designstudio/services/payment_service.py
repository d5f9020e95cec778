# designstudio/services/payment_service.py
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional
import aiohttp
from ..config import Config
from ..database.store import Store
from ..errors import ConfigurationError, ExternalServiceError, SignatureMismatchError
from ..models.checkout import VerificationRequest
from ..models.order import Order
from ..utils.formatters import to_minor_units
from ..utils.security import verify_payment_signature

LIVE_KEY_PREFIX = "rzp_live_"

@dataclass(frozen=True)
class VerificationResult:
    payment_id: str
    gateway_order_id: Optional[str]
    signature: Optional[str]
    is_demo: bool = False

class RazorpayGateway:
    """Thin client for the gateway's order API"""

    def __init__(self, key_id: Optional[str] = None, key_secret: Optional[str] = None,
                 api_url: Optional[str] = None):
        self.key_id = key_id or Config.RAZORPAY_KEY_ID
        self.key_secret = key_secret or Config.RAZORPAY_KEY_SECRET
        self.api_url = (api_url or Config.RAZORPAY_API_URL).rstrip("/")
        self.logger = logging.getLogger(__name__)

    async def create_order(self, amount: int, currency: str, receipt: str,
                           notes: Dict[str, Any]) -> Dict[str, Any]:
        """Create a payment intent; amount is in minor units"""
        try:
            async with aiohttp.ClientSession(
                auth=aiohttp.BasicAuth(self.key_id, self.key_secret),
                timeout=aiohttp.ClientTimeout(total=30)
            ) as session:
                async with session.post(
                    f"{self.api_url}/v1/orders",
                    json={
                        "amount": amount,
                        "currency": currency,
                        "receipt": receipt,
                        "notes": notes
                    }
                ) as response:
                    data = await response.json(content_type=None)
                    if response.status >= 300:
                        description = (data or {}).get("error", {}).get("description", "unknown error")
                        raise ExternalServiceError(
                            "payment gateway", f"order creation failed ({response.status}): {description}"
                        )
        except aiohttp.ClientError as e:
            raise ExternalServiceError("payment gateway", str(e)) from e

        if not data or not data.get("id"):
            raise ExternalServiceError("payment gateway", "response did not include an order id")
        return data

class PaymentService:
    """Payment sessions and callback verification"""

    def __init__(self, gateway: Optional[RazorpayGateway] = None):
        self.gateway = gateway or RazorpayGateway()
        self.logger = logging.getLogger(__name__)

    async def create_session(self, store: Store, order: Order) -> Dict[str, Any]:
        """Create the gateway order for a persisted order and store its id"""
        if not Config.RAZORPAY_KEY_ID:
            raise ConfigurationError("Payment gateway key is not configured")

        amount = to_minor_units(order.total)
        notes = {
            "order_id": str(order.order_id),
            "order_number": order.order_number,
            "has_discount": str(order.discount_code_id is not None).lower(),
            "has_design_order": str(bool(order.linked_design_orders) or order.is_design_order).lower(),
            "checkout_type": order.checkout_type.value
        }

        gateway_order = await self.gateway.create_order(amount, Config.CURRENCY, order.order_number, notes)
        await store.update_order(order.order_id, gateway_order_id=gateway_order["id"])

        self.logger.info(f"Payment session {gateway_order['id']} created for {order.order_number}")
        return {
            "session_id": gateway_order["id"],
            "amount": amount,
            "currency": Config.CURRENCY,
            "publishable_key": Config.RAZORPAY_KEY_ID
        }

    @staticmethod
    def demo_payments_allowed() -> bool:
        """Demo bypass is never available in production or with live credentials"""
        return (
            not Config.is_production()
            and Config.ALLOW_DEMO_PAYMENTS
            and not (Config.RAZORPAY_KEY_ID or "").startswith(LIVE_KEY_PREFIX)
        )

    def verify(self, payload: VerificationRequest) -> VerificationResult:
        """Check the callback signature; raises SignatureMismatchError on failure"""
        if payload.is_demo_payment:
            if not self.demo_payments_allowed():
                self.logger.warning("Demo payment rejected: demo payments are disabled")
                raise SignatureMismatchError("Demo payments are not allowed")

            self.logger.info(f"Demo payment accepted for gateway order {payload.gateway_order_id}")
            return VerificationResult(
                payment_id=payload.payment_id or f"demo_{secrets.token_hex(8)}",
                gateway_order_id=payload.gateway_order_id,
                signature=None,
                is_demo=True
            )

        if not payload.payment_id or not payload.gateway_order_id or not payload.signature:
            raise SignatureMismatchError("Missing payment verification fields")

        if not verify_payment_signature(
            payload.gateway_order_id, payload.payment_id, payload.signature, Config.RAZORPAY_KEY_SECRET
        ):
            self.logger.warning(f"Signature mismatch for gateway order {payload.gateway_order_id}")
            raise SignatureMismatchError()

        return VerificationResult(
            payment_id=payload.payment_id,
            gateway_order_id=payload.gateway_order_id,
            signature=payload.signature
        )

    async def locate_order(self, store: Store, payload: VerificationRequest) -> Optional[Order]:
        """Find the order a callback refers to"""
        if payload.gateway_order_id:
            order = await store.find_order_by_gateway_order_id(payload.gateway_order_id)
            if order:
                return order

        if payload.payment_id:
            order = await store.find_order_by_payment_id(payload.payment_id)
            if order:
                return order

        if payload.is_express_checkout:
            # Ambiguous under concurrent express checkouts; clients should always echo the gateway order id
            order = await store.find_latest_pending_express_order()
            if order:
                self.logger.warning(
                    f"Order for gateway order {payload.gateway_order_id} located by latest pending "
                    f"express order fallback: {order.order_number}"
                )
                return order

        return None
