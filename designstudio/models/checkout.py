# designstudio/models/checkout.py
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, Field, field_validator
from .address import Address
from .base import RequestModel
from .design_order import PrintingStatus, validate_sizes
from .discount import DiscountType
from .order import RefundMethod, ShippingMethod, OrderStatus, PaymentStatus
from ..utils.formatters import ensure_utc

class GuestInfo(RequestModel):
    """Contact details for an unauthenticated checkout"""
    email: str
    phone: str = ""
    name: Optional[str] = None
    gst_number: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value or value.startswith("@") or value.endswith("@"):
            raise ValueError("a valid email address is required")
        return value

class CartItem(RequestModel):
    product_id: int
    quantity: int
    color: Optional[str] = None
    size: Optional[str] = None

class DesignOrderPayload(RequestModel):
    """Design order attached to a checkout"""
    design_id: int
    sizes: Dict[str, int] = Field(validation_alias=AliasChoices("sizes", "quantities"))
    color: Optional[str] = None
    product_name: Optional[str] = None
    design_info: Dict[str, Any] = {}
    skip_design_order_record: bool = False

    @field_validator("sizes")
    @classmethod
    def check_sizes(cls, value: Dict[str, int]) -> Dict[str, int]:
        return validate_sizes(value)

class CheckoutRequest(RequestModel):
    """Body of POST /checkout and POST /checkout/express"""
    items: List[CartItem] = []
    address: Optional[Address] = None
    user_id: Optional[int] = None
    guest_info: Optional[GuestInfo] = None
    discount_code: Optional[str] = None
    design_order: Optional[DesignOrderPayload] = None
    shipping_method: ShippingMethod = ShippingMethod.STANDARD
    shipping_address: Optional[Address] = None
    billing_address: Optional[Address] = None
    purchase_order_number: Optional[str] = None

class VerificationRequest(RequestModel):
    """Payment gateway callback fields"""
    payment_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("razorpay_payment_id", "paymentId", "payment_id", "gatewayPaymentId"),
    )
    gateway_order_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("razorpay_order_id", "gatewayOrderId", "gateway_order_id"),
    )
    signature: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("razorpay_signature", "signature"),
    )
    billing_address: Optional[Address] = None
    shipping_address: Optional[Address] = None
    customer_info: Optional[Address] = None
    is_express_checkout: bool = False
    is_demo_payment: bool = False

class DiscountPreviewRequest(RequestModel):
    code: str
    subtotal: Decimal = Field(gt=0)

class GuestClaimRequest(RequestModel):
    token: str
    name: Optional[str] = None

class CancelOrderRequest(RequestModel):
    cancellation_reason: Optional[str] = Field(None, max_length=200)

class StatusUpdateRequest(RequestModel):
    status: OrderStatus
    status_note: Optional[str] = Field(None, max_length=200)

class PaymentStatusUpdateRequest(RequestModel):
    payment_status: PaymentStatus
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = Field(None, min_length=5, max_length=100)

class RefundRequest(RequestModel):
    refund_amount: Decimal = Field(gt=0)
    refund_reason: str = Field(min_length=10, max_length=500)
    refund_method: RefundMethod = RefundMethod.ORIGINAL_PAYMENT

class PrintingStatusRequest(RequestModel):
    status: PrintingStatus

class DiscountCreateRequest(RequestModel):
    code: str
    description: Optional[str] = None
    type: DiscountType
    value: Decimal = Field(gt=0)
    max_discount_amount: Optional[Decimal] = Field(None, gt=0)
    min_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, gt=0)
    start_date: Optional[datetime] = None
    expiry_date: datetime

    @field_validator("start_date", "expiry_date")
    @classmethod
    def as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

class UsageCorrectionRequest(RequestModel):
    used_count: int = Field(ge=0)
