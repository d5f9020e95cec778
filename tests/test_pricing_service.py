"""Tests for price calculation."""

from datetime import timedelta
from decimal import Decimal

import pytest

from designstudio.errors import ConfigurationError, ValidationError
from designstudio.models.design import Design
from designstudio.models.discount import DiscountCode, DiscountType
from designstudio.models.order import ShippingMethod
from designstudio.models.product import Product
from designstudio.services.pricing_service import PricingConfig, PricingEngine, round_money
from designstudio.utils.formatters import now_utc


def make_config(**overrides):
    values = dict(
        base_price=Decimal("500"),
        text_cost=Decimal("50"),
        image_cost=Decimal("100"),
        back_print_cost=Decimal("75"),
        standard_shipping=Decimal("50"),
        rush_shipping=Decimal("100"),
        tax_rate=Decimal("0.1"),
        size_premiums={"XL": Decimal("10"), "XXL": Decimal("20"), "XXXL": Decimal("30")},
    )
    values.update(overrides)
    return PricingConfig(**values)


def make_product(price, name="Tee"):
    return Product(product_id=1, name=name, price=Decimal(price), created_at=now_utc())


def make_discount(type=DiscountType.PERCENTAGE, value="10", max_discount_amount=None):
    now = now_utc()
    return DiscountCode(
        discount_id=1, code="CODE", type=type, value=Decimal(value),
        max_discount_amount=Decimal(max_discount_amount) if max_discount_amount else None,
        start_date=now - timedelta(days=1), expiry_date=now + timedelta(days=1),
        created_at=now,
    )


def make_design(elements):
    return Design.model_validate({
        "design_id": 1, "name": "Design", "elements": elements, "created_at": now_utc()
    })


@pytest.fixture
def engine():
    return PricingEngine(make_config())


class TestCatalogPricing:
    def test_percentage_discount_taxed_after_discount(self, engine):
        quote = engine.quote_catalog([(make_product("500"), 2)])
        discount = engine.compute_discount(make_discount(value="10"), quote.subtotal)
        breakdown = engine.finalize(quote, ShippingMethod.STANDARD, discount)

        assert breakdown.subtotal == Decimal("1000.00")
        assert breakdown.discount_amount == Decimal("100.00")
        assert breakdown.tax == Decimal("90.00")
        assert breakdown.shipping == Decimal("50.00")
        assert breakdown.total == Decimal("1040.00")
        assert breakdown.is_reconciled()

    def test_subtotal_sums_lines(self, engine):
        quote = engine.quote_catalog([(make_product("199.99"), 3), (make_product("50"), 1)])
        assert quote.subtotal == Decimal("649.97")
        assert quote.base_price == quote.subtotal
        assert quote.additional_costs == []
        assert quote.total_quantity == 4

    def test_empty_cart_rejected(self, engine):
        with pytest.raises(ValidationError):
            engine.quote_catalog([])

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity_rejected(self, engine, quantity):
        with pytest.raises(ValidationError):
            engine.quote_catalog([(make_product("100"), quantity)])

    def test_zero_subtotal_rejected(self, engine):
        with pytest.raises(ValidationError):
            engine.quote_catalog([(make_product("0"), 2)])


class TestDiscountClamping:
    def test_percentage_capped_by_max_discount(self):
        discount = make_discount(value="50", max_discount_amount="100")
        assert PricingEngine.compute_discount(discount, Decimal("1000")) == Decimal("100.00")

    def test_fixed_discount_capped_by_subtotal(self, engine):
        discount = make_discount(type=DiscountType.FIXED, value="2000")
        amount = engine.compute_discount(discount, Decimal("1000"))
        assert amount == Decimal("1000.00")

        quote = engine.quote_catalog([(make_product("500"), 2)])
        breakdown = engine.finalize(quote, ShippingMethod.STANDARD, amount)
        assert breakdown.tax == Decimal("0.00")
        assert breakdown.total == breakdown.shipping
        assert breakdown.is_reconciled()

    def test_fixed_discount_below_subtotal(self):
        discount = make_discount(type=DiscountType.FIXED, value="150")
        assert PricingEngine.compute_discount(discount, Decimal("1000")) == Decimal("150.00")


class TestDesignPricing:
    def test_surcharges_and_size_premium(self, engine):
        design = make_design([
            {"type": "text", "view": "front"},
            {"type": "text", "view": "front"},
            {"type": "image", "view": "back"},
        ])
        quote = engine.quote_design(design, {"M": 2, "XL": 1})

        costs = {cost.description: cost.amount for cost in quote.additional_costs}
        assert quote.base_price == Decimal("1500.00")
        assert costs["Text printing (2 elements)"] == Decimal("300.00")
        assert costs["Image printing (1 element)"] == Decimal("300.00")
        assert costs["Back design printing"] == Decimal("225.00")
        assert costs["Size premium (XL/XXL/XXXL)"] == Decimal("10.00")
        assert quote.subtotal == Decimal("2335.00")
        assert quote.total_quantity == 3

        breakdown = engine.finalize(quote, ShippingMethod.STANDARD)
        assert breakdown.is_reconciled()

    def test_clipart_counts_as_image(self, engine):
        design = make_design([{"type": "clipart"}])
        quote = engine.quote_design(design, {"S": 1})
        assert quote.subtotal == Decimal("600.00")

    def test_plain_design_has_no_additional_costs(self, engine):
        quote = engine.quote_design(make_design([]), {"L": 2})
        assert quote.additional_costs == []
        assert quote.subtotal == Decimal("1000.00")

    def test_unknown_size_rejected(self, engine):
        with pytest.raises(ValidationError):
            engine.quote_design(make_design([]), {"XXS": 1})

    def test_empty_sizes_rejected(self, engine):
        with pytest.raises(ValidationError):
            engine.quote_design(make_design([]), {})

    def test_missing_base_price_is_fatal(self):
        engine = PricingEngine(make_config(base_price=None))
        with pytest.raises(ConfigurationError, match="base_price"):
            engine.quote_design(make_design([]), {"M": 1})


class TestShippingAndTax:
    def test_bulk_shipping_brackets(self, engine):
        assert engine.shipping_cost(ShippingMethod.STANDARD, 10) == Decimal("50.00")
        assert engine.shipping_cost(ShippingMethod.STANDARD, 11) == Decimal("100.00")
        assert engine.shipping_cost(ShippingMethod.STANDARD, 25) == Decimal("125.00")

    def test_rush_shipping(self, engine):
        assert engine.shipping_cost(ShippingMethod.RUSH, 1) == Decimal("100.00")

    def test_missing_tax_rate_is_fatal(self):
        engine = PricingEngine(make_config(tax_rate=None))
        quote = engine.quote_catalog([(make_product("100"), 1)])
        with pytest.raises(ConfigurationError):
            engine.finalize(quote, ShippingMethod.STANDARD)

    def test_tax_rounds_half_up(self, engine):
        quote = engine.quote_catalog([(make_product("10.05"), 1)])
        breakdown = engine.finalize(quote, ShippingMethod.STANDARD)
        assert breakdown.tax == Decimal("1.01")
        assert breakdown.total == Decimal("61.06")

    def test_reprice_drops_discount(self, engine):
        quote = engine.quote_catalog([(make_product("500"), 2)])
        breakdown = engine.finalize(quote, ShippingMethod.STANDARD, Decimal("100"))
        repriced = engine.reprice(breakdown, Decimal(0))
        assert repriced.discount_amount == Decimal("0.00")
        assert repriced.tax == Decimal("100.00")
        assert repriced.total == Decimal("1150.00")
        assert repriced.is_reconciled()


def test_round_money_half_up():
    assert round_money(Decimal("0.125")) == Decimal("0.13")
    assert round_money(Decimal("2.675")) == Decimal("2.68")
