# designstudio/services/pricing_service.py
"""Price calculation for catalog carts and custom design orders.

Everything here is pure: callers fetch products, designs and discount codes
and pass them in. Amounts are Decimal and rounded half-up to two places.
"""
import math
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple
from ..config import Config
from ..errors import ConfigurationError, ValidationError
from ..models.design import Design
from ..models.design_order import VALID_SIZES
from ..models.discount import DiscountCode, DiscountType
from ..models.order import AdditionalCost, PriceBreakdown, ShippingMethod
from ..models.product import Product

CENT = Decimal("0.01")

def round_money(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)

@dataclass(frozen=True)
class PricingConfig:
    base_price: Optional[Decimal]
    text_cost: Optional[Decimal]
    image_cost: Optional[Decimal]
    back_print_cost: Optional[Decimal]
    standard_shipping: Optional[Decimal]
    rush_shipping: Optional[Decimal]
    tax_rate: Optional[Decimal]
    bulk_threshold: int = 10
    bulk_step: int = 10
    bulk_increment: Optional[Decimal] = Decimal(25)
    size_premiums: Dict[str, Decimal] = field(default_factory=dict)

    @classmethod
    def from_config(cls) -> "PricingConfig":
        return cls(
            base_price=Config.BASE_TSHIRT_PRICE,
            text_cost=Config.TEXT_PRINTING_COST,
            image_cost=Config.IMAGE_PRINTING_COST,
            back_print_cost=Config.BACK_DESIGN_COST,
            standard_shipping=Config.STANDARD_SHIPPING_COST,
            rush_shipping=Config.RUSH_SHIPPING_COST,
            tax_rate=Config.TAX_RATE,
            bulk_threshold=Config.BULK_SHIPPING_THRESHOLD,
            bulk_step=Config.BULK_SHIPPING_STEP,
            bulk_increment=Config.BULK_SHIPPING_INCREMENT,
            size_premiums=dict(Config.SIZE_PREMIUMS),
        )

    def require(self, *names: str) -> Tuple[Decimal, ...]:
        """Fetch settings that must be present; absence is fatal"""
        missing = [name for name in names if getattr(self, name) is None]
        if missing:
            raise ConfigurationError(f"Pricing configuration is missing: {', '.join(missing)}")
        return tuple(getattr(self, name) for name in names)

@dataclass(frozen=True)
class Quote:
    """Pre-discount figures: subtotal == base_price + sum(additional_costs)"""
    base_price: Decimal
    additional_costs: List[AdditionalCost]
    subtotal: Decimal
    total_quantity: int

class PricingEngine:
    """Computes price breakdowns; performs no I/O"""

    def __init__(self, config: Optional[PricingConfig] = None):
        self.config = config or PricingConfig.from_config()

    def quote_catalog(self, lines: List[Tuple[Product, int]]) -> Quote:
        """Sum of unit price x quantity over catalog lines"""
        if not lines:
            raise ValidationError("At least one item is required")

        subtotal = Decimal(0)
        total_quantity = 0
        for product, quantity in lines:
            self._check_quantity(quantity, product.name)
            subtotal += Decimal(product.price) * quantity
            total_quantity += quantity

        subtotal = round_money(subtotal)
        if subtotal <= 0:
            raise ValidationError("Order subtotal must be greater than zero")

        return Quote(
            base_price=subtotal,
            additional_costs=[],
            subtotal=subtotal,
            total_quantity=total_quantity,
        )

    def quote_design(self, design: Design, sizes: Dict[str, int]) -> Quote:
        """Base price plus element surcharges per unit, plus per-size premiums"""
        base, text_cost, image_cost = self.config.require("base_price", "text_cost", "image_cost")

        if not sizes:
            raise ValidationError("At least one size and quantity is required")
        for size, quantity in sizes.items():
            if size not in VALID_SIZES:
                raise ValidationError(f"Invalid size: {size}", [{"field": "sizes", "message": size}])
            self._check_quantity(quantity, size)

        total_quantity = sum(sizes.values())
        additional_costs = []

        if design.text_count:
            count = design.text_count
            additional_costs.append(AdditionalCost(
                description=f"Text printing ({count} element{'s' if count > 1 else ''})",
                amount=round_money(text_cost * count * total_quantity),
            ))

        if design.image_count:
            count = design.image_count
            additional_costs.append(AdditionalCost(
                description=f"Image printing ({count} element{'s' if count > 1 else ''})",
                amount=round_money(image_cost * count * total_quantity),
            ))

        if design.has_back_print:
            (back_cost,) = self.config.require("back_print_cost")
            additional_costs.append(AdditionalCost(
                description="Back design printing",
                amount=round_money(back_cost * total_quantity),
            ))

        size_premium = sum(
            (self.config.size_premiums.get(size, Decimal(0)) * quantity for size, quantity in sizes.items()),
            Decimal(0),
        )
        if size_premium > 0:
            additional_costs.append(AdditionalCost(
                description="Size premium (XL/XXL/XXXL)",
                amount=round_money(size_premium),
            ))

        base_price = round_money(base * total_quantity)
        subtotal = base_price + sum((cost.amount for cost in additional_costs), Decimal(0))
        if subtotal <= 0:
            raise ValidationError("Order subtotal must be greater than zero")

        return Quote(
            base_price=base_price,
            additional_costs=additional_costs,
            subtotal=subtotal,
            total_quantity=total_quantity,
        )

    @staticmethod
    def compute_discount(discount: DiscountCode, subtotal: Decimal) -> Decimal:
        """Raw discount clamped to the code's cap and to the subtotal"""
        if discount.type == DiscountType.PERCENTAGE:
            amount = subtotal * Decimal(discount.value) / Decimal(100)
        else:
            amount = Decimal(discount.value)

        if discount.max_discount_amount is not None and amount > discount.max_discount_amount:
            amount = Decimal(discount.max_discount_amount)

        if amount > subtotal:
            amount = subtotal

        return round_money(max(amount, Decimal(0)))

    def shipping_cost(self, method: ShippingMethod, total_quantity: int) -> Decimal:
        if method == ShippingMethod.RUSH:
            (base,) = self.config.require("rush_shipping")
        elif method == ShippingMethod.STANDARD:
            (base,) = self.config.require("standard_shipping")
        else:
            raise ValidationError(f"Invalid shipping method: {method}")

        extra = Decimal(0)
        if total_quantity > self.config.bulk_threshold:
            (increment,) = self.config.require("bulk_increment")
            extra = increment * math.ceil(total_quantity / self.config.bulk_step)

        return round_money(base + extra)

    def finalize(self, quote: Quote, shipping_method: ShippingMethod,
                 discount_amount: Decimal = Decimal(0)) -> PriceBreakdown:
        """Apply discount, tax (post-discount, shipping untaxed) and shipping"""
        (tax_rate,) = self.config.require("tax_rate")

        discount_amount = round_money(min(max(discount_amount, Decimal(0)), quote.subtotal))
        shipping = self.shipping_cost(shipping_method, quote.total_quantity)
        tax = round_money((quote.subtotal - discount_amount) * tax_rate)
        total = round_money(quote.subtotal - discount_amount + tax + shipping)

        return PriceBreakdown(
            base_price=quote.base_price,
            additional_costs=quote.additional_costs,
            subtotal=quote.subtotal,
            discount_amount=discount_amount,
            tax=tax,
            shipping=shipping,
            total=total,
        )

    def reprice(self, breakdown: PriceBreakdown, discount_amount: Decimal) -> PriceBreakdown:
        """Recompute tax and total after the discount changes"""
        (tax_rate,) = self.config.require("tax_rate")
        discount_amount = round_money(min(max(discount_amount, Decimal(0)), breakdown.subtotal))
        tax = round_money((breakdown.subtotal - discount_amount) * tax_rate)
        total = round_money(breakdown.subtotal - discount_amount + tax + breakdown.shipping)
        return breakdown.model_copy(update={
            "discount_amount": discount_amount,
            "tax": tax,
            "total": total,
        })

    @staticmethod
    def _check_quantity(quantity: int, label: str):
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(
                f"Quantity for {label} must be a positive integer",
                [{"field": "quantity", "message": f"invalid quantity for {label}"}],
            )
