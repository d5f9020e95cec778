# designstudio/services/discount_service.py
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from ..database.store import Store
from ..errors import NotFoundError, ValidationError
from ..models.discount import DiscountCode, DiscountType
from ..utils.formatters import ensure_utc
from .pricing_service import PricingEngine

@dataclass(frozen=True)
class DiscountReservation:
    """A discount code whose usage counter has been incremented for one checkout"""
    discount: DiscountCode
    amount: Decimal

class DiscountService:
    """Discount code validation and usage accounting"""

    def __init__(self, pricing: Optional[PricingEngine] = None):
        self.pricing = pricing or PricingEngine()
        self.logger = logging.getLogger(__name__)

    async def _load_valid(self, store: Store, code: str, subtotal: Decimal,
                          now: datetime) -> DiscountCode:
        discount = await store.get_discount_by_code(code.strip().upper())

        if not discount or not discount.is_active:
            raise NotFoundError("Invalid discount code")

        if now < discount.start_date:
            raise NotFoundError("Discount code is not active yet")

        if now > discount.expiry_date:
            raise NotFoundError("Discount code has expired")

        if discount.is_exhausted:
            raise ValidationError("Discount code usage limit has been reached")

        if discount.min_purchase_amount and subtotal < discount.min_purchase_amount:
            raise ValidationError(
                f"Minimum purchase for this code is {discount.min_purchase_amount}"
            )

        return discount

    async def preview(self, store: Store, code: str, subtotal: Decimal,
                      now: datetime) -> Dict[str, Any]:
        """Validate a code for the cart page without consuming it"""
        discount = await self._load_valid(store, code, subtotal, now)
        amount = self.pricing.compute_discount(discount, subtotal)
        return {
            "valid": True,
            "discount_id": discount.discount_id,
            "code": discount.code,
            "amount": amount,
            "final_amount": subtotal - amount
        }

    async def validate_and_reserve(self, store: Store, code: str, subtotal: Decimal,
                                   now: datetime) -> DiscountReservation:
        """Validate a code and take one use of it.

        Must run inside the checkout transaction: the increment is a single
        guarded UPDATE, so it commits or rolls back with the order and a
        concurrent checkout cannot push the counter past its limit.
        """
        discount = await self._load_valid(store, code, subtotal, now)
        amount = self.pricing.compute_discount(discount, subtotal)

        if not await store.increment_discount_usage(discount.discount_id):
            raise ValidationError("Discount code usage limit has been reached")

        self.logger.info(f"Discount {discount.code} reserved: {amount} off {subtotal}")
        return DiscountReservation(discount=discount, amount=amount)

    async def record_usage(self, store: Store, reservation: DiscountReservation, order_id: int):
        """Tie a reservation to its order; an order can hold only one use of a code"""
        await store.record_discount_usage(reservation.discount.discount_id, order_id)

    async def revalidate(self, store: Store, discount_id: int, now: datetime) -> bool:
        """Re-check a code at payment time; expired codes are dropped, not fatal"""
        discount = await store.get_discount(discount_id)
        if not discount or not discount.is_valid_at(now):
            self.logger.warning(f"Discount {discount_id} no longer valid at payment time")
            return False
        return True

    async def create_discount(self, store: Store, discount_data: Dict[str, Any],
                              now: datetime) -> DiscountCode:
        """Create a new discount code"""
        discount_type = DiscountType(discount_data['type'])
        value = Decimal(discount_data['value'])
        if discount_type == DiscountType.PERCENTAGE and value > 100:
            raise ValidationError("Percentage discount cannot exceed 100")

        start_date = ensure_utc(discount_data.get('start_date') or now)
        expiry_date = ensure_utc(discount_data['expiry_date'])
        if expiry_date <= start_date:
            raise ValidationError("Expiry date must be after start date")

        return await store.insert_discount({
            'code': discount_data['code'].strip().upper(),
            'description': discount_data.get('description'),
            'type': discount_type,
            'value': value,
            'max_discount_amount': discount_data.get('max_discount_amount'),
            'min_purchase_amount': discount_data.get('min_purchase_amount'),
            'usage_limit': discount_data.get('usage_limit'),
            'start_date': start_date,
            'expiry_date': expiry_date,
            'is_active': discount_data.get('is_active', True),
            'created_at': now
        })

    async def get_active_discounts(self, store: Store, now: datetime) -> List[DiscountCode]:
        """Active, in-window, not exhausted codes"""
        return await store.list_active_discounts(now)

    async def deactivate_discount(self, store: Store, discount_id: int) -> DiscountCode:
        """Deactivate a discount code"""
        discount = await store.update_discount(discount_id, is_active=False)
        if not discount:
            raise NotFoundError("Discount code not found")
        return discount

    async def correct_usage(self, store: Store, discount_id: int, used_count: int,
                            admin_id: Optional[int] = None) -> DiscountCode:
        """Admin correction; the only path allowed to lower the counter"""
        discount = await store.get_discount(discount_id)
        if not discount:
            raise NotFoundError("Discount code not found")

        updated = await store.update_discount(discount_id, used_count=used_count)
        self.logger.warning(
            f"Discount {discount.code} usage corrected {discount.used_count} -> {used_count} by {admin_id}"
        )
        return updated
