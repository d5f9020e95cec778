# designstudio/models/design_order.py
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, field_validator
from .base import TimeStampedModel
from .order import PaymentStatus, PriceBreakdown

VALID_SIZES = ("XS", "S", "M", "L", "XL", "XXL", "XXXL")

class PrintingStatus(str, Enum):
    """Print-shop lifecycle layered over the generic order transitions"""
    PENDING = "pending"
    PROCESSING = "processing"
    PRINTED = "printed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

PRINTING_TRANSITIONS = {
    PrintingStatus.PENDING: {PrintingStatus.PROCESSING, PrintingStatus.CANCELLED},
    PrintingStatus.PROCESSING: {PrintingStatus.PRINTED, PrintingStatus.CANCELLED},
    PrintingStatus.PRINTED: {PrintingStatus.SHIPPED},
    PrintingStatus.SHIPPED: {PrintingStatus.DELIVERED},
    PrintingStatus.DELIVERED: set(),
    PrintingStatus.CANCELLED: set(),
}

class CustomerSnapshot(BaseModel):
    """Customer contact copied at order time; never follows profile edits"""
    name: str
    email: str
    phone: str = ""
    address: str = ""

def validate_sizes(sizes: Dict[str, int]) -> Dict[str, int]:
    if not sizes:
        raise ValueError("at least one size and quantity is required")
    for size, quantity in sizes.items():
        if size not in VALID_SIZES:
            raise ValueError(f"invalid size: {size}")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValueError(f"quantity for size {size} must be a positive integer")
    return sizes

class DesignOrder(TimeStampedModel):
    """Manufacturing-facing companion record of an order"""
    design_order_id: int
    order_id: int
    order_number: str
    design_id: Optional[int] = None
    customer: CustomerSnapshot
    sizes: Dict[str, int]
    total_quantity: int
    price_breakdown: PriceBreakdown
    status: PrintingStatus = PrintingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    design_data: Dict[str, Any] = {}

    @field_validator("sizes")
    @classmethod
    def check_sizes(cls, value: Dict[str, int]) -> Dict[str, int]:
        return validate_sizes(value)
