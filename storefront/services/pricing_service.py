"""
Pricing Pipeline

Pure order pricing. The order of operations is fixed:

    subtotal -> discount -> shipping (on discounted subtotal) -> tax

Tax is charged on the discounted subtotal; shipping is never taxed.
All figures are Decimal, rounded half-up to two places.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union


CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_money(value: Union[Decimal, int, float, str]) -> Decimal:
    """Quantize to cents, half-up."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingSettings:
    """Store-wide pricing inputs."""
    tax_rate_percent: Decimal
    shipping_cost: Decimal
    free_shipping_threshold: Decimal
    currency_symbol: str = "₪"


@dataclass(frozen=True)
class PriceLine:
    unit_price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    discount: Decimal
    subtotal_after_discount: Decimal
    shipping_cost: Decimal
    tax: Decimal
    total: Decimal
    tax_rate_percent: Decimal

    def as_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "subtotal_after_discount": self.subtotal_after_discount,
            "shipping_cost": self.shipping_cost,
            "tax": self.tax,
            "total": self.total,
            "tax_rate_percent": self.tax_rate_percent,
        }


def calculate_subtotal(lines: Iterable[PriceLine]) -> Decimal:
    return to_money(sum((line.line_total for line in lines), Decimal("0")))


def calculate_shipping(amount: Decimal, pricing: PricingSettings) -> Decimal:
    """Flat shipping, free at or above the threshold."""
    if amount >= pricing.free_shipping_threshold:
        return to_money(0)
    return to_money(pricing.shipping_cost)


def calculate_tax(taxable_amount: Decimal, pricing: PricingSettings) -> Decimal:
    return to_money(taxable_amount * pricing.tax_rate_percent / HUNDRED)


def price_order(
    lines: Iterable[PriceLine],
    pricing: PricingSettings,
    discount: Decimal = Decimal("0"),
) -> PriceBreakdown:
    """
    Price a cart.

    `discount` comes from the coupon validator and is clamped to the
    subtotal so the discounted subtotal is never negative.
    """
    subtotal = calculate_subtotal(lines)
    discount = min(to_money(discount), subtotal)
    if discount < 0:
        raise ValueError("discount cannot be negative")

    after_discount = subtotal - discount
    shipping = calculate_shipping(after_discount, pricing)
    tax = calculate_tax(after_discount, pricing)
    total = to_money(after_discount + shipping + tax)

    return PriceBreakdown(
        subtotal=subtotal,
        discount=discount,
        subtotal_after_discount=after_discount,
        shipping_cost=shipping,
        tax=tax,
        total=total,
        tax_rate_percent=to_money(pricing.tax_rate_percent),
    )


def amount_needed_for_free_shipping(amount: Decimal, pricing: PricingSettings) -> Decimal:
    """How much more the customer must add to qualify for free shipping."""
    remaining = to_money(pricing.free_shipping_threshold) - to_money(amount)
    return remaining if remaining > 0 else to_money(0)


def free_shipping_progress(amount: Decimal, pricing: PricingSettings) -> int:
    """Progress towards free shipping, 0-100."""
    if pricing.free_shipping_threshold <= 0:
        return 100
    progress = Decimal(amount) / pricing.free_shipping_threshold * HUNDRED
    return int(min(progress, HUNDRED))
