from decimal import Decimal

import pytest

from storefront.services.pricing_service import (
    PriceLine,
    PricingSettings,
    price_order,
    to_money,
    amount_needed_for_free_shipping,
    free_shipping_progress,
)


STORE = PricingSettings(
    tax_rate_percent=Decimal("18"),
    shipping_cost=Decimal("20"),
    free_shipping_threshold=Decimal("350"),
)


def test_discount_applied_before_shipping_and_tax():
    breakdown = price_order([PriceLine(Decimal("1000.00"), 1)], STORE, discount=Decimal("100.00"))

    assert breakdown.subtotal == Decimal("1000.00")
    assert breakdown.discount == Decimal("100.00")
    assert breakdown.subtotal_after_discount == Decimal("900.00")
    assert breakdown.shipping_cost == Decimal("0.00")
    assert breakdown.tax == Decimal("162.00")
    assert breakdown.total == Decimal("1062.00")


def test_tax_is_charged_on_discounted_subtotal_not_shipping():
    # 400 - 100 = 300 is under the free shipping threshold
    breakdown = price_order([PriceLine(Decimal("200.00"), 2)], STORE, discount=Decimal("100.00"))

    assert breakdown.subtotal_after_discount == Decimal("300.00")
    assert breakdown.shipping_cost == Decimal("20.00")
    assert breakdown.tax == Decimal("54.00")
    assert breakdown.total == Decimal("374.00")


def test_discount_can_push_cart_below_free_shipping():
    # Pre-discount 360 would ship free; post-discount 324 does not
    breakdown = price_order([PriceLine(Decimal("120.00"), 3)], STORE, discount=Decimal("36.00"))

    assert breakdown.shipping_cost == Decimal("20.00")


def test_free_shipping_at_exact_threshold():
    breakdown = price_order([PriceLine(Decimal("350.00"), 1)], STORE)
    assert breakdown.shipping_cost == Decimal("0.00")


def test_no_coupon():
    breakdown = price_order([PriceLine(Decimal("45.50"), 2)], STORE)

    assert breakdown.subtotal == Decimal("91.00")
    assert breakdown.discount == Decimal("0.00")
    assert breakdown.shipping_cost == Decimal("20.00")
    assert breakdown.tax == Decimal("16.38")
    assert breakdown.total == Decimal("127.38")


def test_discount_is_clamped_to_subtotal():
    breakdown = price_order([PriceLine(Decimal("30.00"), 1)], STORE, discount=Decimal("50.00"))

    assert breakdown.discount == Decimal("30.00")
    assert breakdown.subtotal_after_discount == Decimal("0.00")
    assert breakdown.tax == Decimal("0.00")
    assert breakdown.total == Decimal("20.00")


def test_negative_discount_rejected():
    with pytest.raises(ValueError):
        price_order([PriceLine(Decimal("30.00"), 1)], STORE, discount=Decimal("-1"))


def test_money_rounds_half_up():
    assert to_money(Decimal("2.675")) == Decimal("2.68")
    assert to_money(Decimal("2.665")) == Decimal("2.67")
    # 33.33 * 18% = 5.9994
    breakdown = price_order([PriceLine(Decimal("33.33"), 1)], STORE)
    assert breakdown.tax == Decimal("6.00")


def test_pricing_is_deterministic():
    lines = [PriceLine(Decimal("19.99"), 3), PriceLine(Decimal("5.25"), 7)]
    assert price_order(lines, STORE, Decimal("7.50")) == price_order(lines, STORE, Decimal("7.50"))


def test_free_shipping_helpers():
    assert amount_needed_for_free_shipping(Decimal("300"), STORE) == Decimal("50.00")
    assert amount_needed_for_free_shipping(Decimal("400"), STORE) == Decimal("0.00")
    assert free_shipping_progress(Decimal("175"), STORE) == 50
    assert free_shipping_progress(Decimal("500"), STORE) == 100
