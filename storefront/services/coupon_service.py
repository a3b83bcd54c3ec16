"""
Coupon Validator

Rules are evaluated in a fixed order, first failure wins:

1. code exists
2. coupon is active
3. inside the validity window (not yet valid before expired)
4. cart meets the minimum purchase
5. global usage limit not reached
6. customer's own usage limit not reached (skipped for guests)

Usage counts come from committed redemptions only, so a validation at
checkout and the redemption written in the same transaction agree.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import CouponRejectedError
from storefront.db_types import as_utc, utcnow
from storefront.models.coupon import Coupon, CouponRedemption, DiscountType
from storefront.services.pricing_service import to_money, HUNDRED


logger = logging.getLogger(__name__)


class CouponRejection(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    INACTIVE = "INACTIVE"
    NOT_YET_VALID = "NOT_YET_VALID"
    EXPIRED = "EXPIRED"
    BELOW_MIN_PURCHASE = "BELOW_MIN_PURCHASE"
    GLOBAL_LIMIT_REACHED = "GLOBAL_LIMIT_REACHED"
    PER_USER_LIMIT_REACHED = "PER_USER_LIMIT_REACHED"


REJECTION_MESSAGES = {
    CouponRejection.NOT_FOUND: "Invalid coupon code",
    CouponRejection.INACTIVE: "This coupon is no longer active",
    CouponRejection.NOT_YET_VALID: "This coupon is not yet active",
    CouponRejection.EXPIRED: "This coupon has expired",
    CouponRejection.BELOW_MIN_PURCHASE: "Cart total is below the coupon minimum",
    CouponRejection.GLOBAL_LIMIT_REACHED: "This coupon has reached its usage limit",
    CouponRejection.PER_USER_LIMIT_REACHED: "You have already used this coupon",
}


@dataclass
class CouponDecision:
    """Outcome of validating a coupon against a cart."""
    valid: bool
    code: str
    discount_amount: Decimal = Decimal("0.00")
    reason: Optional[CouponRejection] = None
    coupon: Optional[Coupon] = None

    @property
    def message(self) -> str:
        if self.valid:
            return "Coupon applied"
        return REJECTION_MESSAGES[self.reason]


def normalize_code(code: str) -> str:
    return code.strip().upper()


def calculate_discount(coupon: Coupon, subtotal: Decimal) -> Decimal:
    """Discount for a subtotal; never more than the subtotal."""
    value = Decimal(coupon.discount_value)
    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        discount = subtotal * min(value, HUNDRED) / HUNDRED
        if coupon.max_discount is not None:
            discount = min(discount, Decimal(coupon.max_discount))
    else:
        discount = value
    return to_money(max(Decimal("0"), min(discount, subtotal)))


def evaluate_coupon(
    coupon: Optional[Coupon],
    code: str,
    subtotal: Decimal,
    prior_redemptions: int,
    now: datetime,
    check_per_user: bool = True,
) -> CouponDecision:
    """Pure rule evaluation, no database access."""
    if coupon is None:
        return CouponDecision(valid=False, code=code, reason=CouponRejection.NOT_FOUND)

    def reject(reason: CouponRejection) -> CouponDecision:
        return CouponDecision(valid=False, code=coupon.code, reason=reason, coupon=coupon)

    if not coupon.active:
        return reject(CouponRejection.INACTIVE)

    if now < as_utc(coupon.valid_from):
        return reject(CouponRejection.NOT_YET_VALID)
    if coupon.valid_to is not None and now > as_utc(coupon.valid_to):
        return reject(CouponRejection.EXPIRED)

    if coupon.min_purchase is not None and subtotal < Decimal(coupon.min_purchase):
        return reject(CouponRejection.BELOW_MIN_PURCHASE)

    if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
        return reject(CouponRejection.GLOBAL_LIMIT_REACHED)

    if check_per_user and coupon.usage_per_user is not None and prior_redemptions >= coupon.usage_per_user:
        return reject(CouponRejection.PER_USER_LIMIT_REACHED)

    return CouponDecision(
        valid=True,
        code=coupon.code,
        discount_amount=calculate_discount(coupon, subtotal),
        coupon=coupon,
    )


class CouponService:
    """Loads coupons and redemption counts, and records redemptions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_code(self, code: str) -> Optional[Coupon]:
        result = await self.db.execute(
            select(Coupon)
            .where(Coupon.code == normalize_code(code))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def count_redemptions(self, coupon_id, customer_id: str) -> int:
        result = await self.db.execute(
            select(func.count(CouponRedemption.id)).where(
                CouponRedemption.coupon_id == coupon_id,
                CouponRedemption.customer_id == customer_id,
            )
        )
        return result.scalar() or 0

    async def validate(
        self,
        code: str,
        subtotal: Decimal,
        customer_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CouponDecision:
        """validateCoupon(code, subtotal, customerId)."""
        code = normalize_code(code)
        coupon = await self.get_by_code(code)

        prior = 0
        if coupon is not None and customer_id:
            prior = await self.count_redemptions(coupon.id, customer_id)

        decision = evaluate_coupon(
            coupon,
            code,
            to_money(subtotal),
            prior,
            now or utcnow(),
            check_per_user=bool(customer_id),
        )
        if not decision.valid:
            logger.info(f"Coupon {code} rejected: {decision.reason.value}")
        return decision

    async def redeem(self, decision: CouponDecision, order_id, customer_id: Optional[str]) -> CouponRedemption:
        """
        Record a redemption inside the caller's transaction.

        The usage_count bump is conditional on the limit, so two concurrent
        checkouts cannot both take the last use. A second redemption by the
        same customer collides on the (coupon, customer, sequence) key and
        surfaces as IntegrityError on flush.
        """
        coupon = decision.coupon
        result = await self.db.execute(
            update(Coupon)
            .where(
                Coupon.id == coupon.id,
                or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit),
            )
            .values(usage_count=Coupon.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise CouponRejectedError(coupon.code, CouponRejection.GLOBAL_LIMIT_REACHED.value)

        sequence = 1
        if customer_id:
            sequence = await self.count_redemptions(coupon.id, customer_id) + 1
            if coupon.usage_per_user is not None and sequence > coupon.usage_per_user:
                raise CouponRejectedError(coupon.code, CouponRejection.PER_USER_LIMIT_REACHED.value)

        redemption = CouponRedemption(
            coupon_id=coupon.id,
            customer_id=customer_id,
            order_id=order_id,
            sequence=sequence,
            discount_amount=decision.discount_amount,
        )
        self.db.add(redemption)
        await self.db.flush()
        return redemption
