# designstudio/models/discount.py
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from .base import TimeStampedModel

class DiscountType(str, Enum):
    """Discount kinds"""
    PERCENTAGE = "percentage"
    FIXED = "fixed"

class DiscountCode(TimeStampedModel):
    """Discount code with a validity window and a usage counter"""
    discount_id: int
    code: str
    description: Optional[str] = None
    type: DiscountType
    value: Decimal  # percent or fixed amount
    max_discount_amount: Optional[Decimal] = None
    min_purchase_amount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    used_count: int = 0
    start_date: datetime
    expiry_date: datetime
    is_active: bool = True

    def is_valid_at(self, now: datetime) -> bool:
        return self.is_active and self.start_date <= now <= self.expiry_date

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.used_count >= self.usage_limit
