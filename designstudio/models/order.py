# designstudio/models/order.py
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field
from .address import Address
from .base import TimeStampedModel

MONEY_TOLERANCE = Decimal("0.01")

class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"

class ShippingMethod(str, Enum):
    STANDARD = "standard"
    RUSH = "rush"

class CheckoutType(str, Enum):
    REGULAR = "regular"
    EXPRESS = "express"

class RefundMethod(str, Enum):
    ORIGINAL_PAYMENT = "original_payment"
    STORE_CREDIT = "store_credit"
    BANK_TRANSFER = "bank_transfer"

class ProductItem(BaseModel):
    """Catalog product line"""
    kind: Literal["product"] = "product"
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    color: str = "Default"
    size: str = "M"

class DesignItem(BaseModel):
    """Line generated from a saved design; sizes live on the design order"""
    kind: Literal["design"] = "design"
    design_id: int
    product_name: str = "Custom Design"
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    color: str = "Custom"
    size: str = "Mixed"
    design_data: Dict[str, Any] = {}

LineItem = Annotated[Union[ProductItem, DesignItem], Field(discriminator="kind")]

class AdditionalCost(BaseModel):
    description: str
    amount: Decimal

class PriceBreakdown(BaseModel):
    """Monetary breakdown of an order"""
    base_price: Decimal
    additional_costs: List[AdditionalCost] = []
    subtotal: Decimal
    discount_amount: Decimal = Decimal(0)
    tax: Decimal = Decimal(0)
    shipping: Decimal = Decimal(0)
    total: Decimal

    def is_reconciled(self) -> bool:
        surcharges = sum((cost.amount for cost in self.additional_costs), Decimal(0))
        expected_total = self.subtotal - self.discount_amount + self.tax + self.shipping
        return (
            abs(self.subtotal - (self.base_price + surcharges)) <= MONEY_TOLERANCE
            and abs(self.total - expected_total) <= MONEY_TOLERANCE
        )

class GuestSessionData(BaseModel):
    """Session issued to guests so they can track and later claim an order"""
    token: str
    expiry: datetime
    allow_account_claim: bool = True

class ExpressCheckoutMetadata(BaseModel):
    is_existing_user_express_checkout: bool = False
    user_account_message: Optional[str] = None
    original_email: Optional[str] = None

class RefundRecord(BaseModel):
    refund_id: str
    amount: Decimal
    reason: str
    method: RefundMethod = RefundMethod.ORIGINAL_PAYMENT
    processed_at: datetime
    processed_by: Optional[int] = None

class StatusChange(BaseModel):
    previous_status: str
    new_status: str
    changed_at: datetime
    changed_by: Optional[int] = None
    reason: Optional[str] = None

class Order(TimeStampedModel):
    """Order aggregate; order status and payment status move independently"""
    order_id: int
    order_number: str
    user_id: int
    items: List[LineItem]
    price_breakdown: PriceBreakdown
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    shipping_method: ShippingMethod = ShippingMethod.STANDARD
    checkout_type: CheckoutType = CheckoutType.REGULAR
    is_guest_order: bool = False
    address: Optional[Address] = None
    shipping_address: Optional[Address] = None
    billing_address: Optional[Address] = None
    purchase_order_number: Optional[str] = None
    discount_code_id: Optional[int] = None
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    gateway_signature: Optional[str] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    express_metadata: Optional[ExpressCheckoutMetadata] = None
    guest_session: Optional[GuestSessionData] = None
    linked_design_orders: List[int] = []
    refund: Optional[RefundRecord] = None
    status_history: List[StatusChange] = []
    cancellation_reason: Optional[str] = None
    challan_url: Optional[str] = None

    @property
    def total(self) -> Decimal:
        return self.price_breakdown.total

    @property
    def is_express(self) -> bool:
        return self.checkout_type == CheckoutType.EXPRESS

    @property
    def is_design_order(self) -> bool:
        return any(isinstance(item, DesignItem) for item in self.items)

    @property
    def is_paid(self) -> bool:
        return self.payment_status in (PaymentStatus.PAID, PaymentStatus.REFUNDED)
