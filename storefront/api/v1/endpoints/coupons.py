"""
Coupon API Endpoints

Validates coupon codes against a cart subtotal.
"""

import logging

from fastapi import APIRouter

from storefront.api.deps import DB, CustomerId
from storefront.schemas.coupon import ValidateCouponRequest, CouponValidationResponse
from storefront.services.coupon_service import CouponService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/coupons", tags=["Coupons"])


@router.post("/validate", response_model=CouponValidationResponse)
async def validate_coupon(
    request: ValidateCouponRequest,
    db: DB,
    customer_id: CustomerId,
):
    """
    Validate a coupon code.
    Returns the discount if valid, the rejection reason if not.
    """
    decision = await CouponService(db).validate(request.code, request.subtotal, customer_id)

    if not decision.valid:
        return CouponValidationResponse(
            valid=False,
            code=decision.code,
            reason=decision.reason.value,
            message=decision.message,
        )

    return CouponValidationResponse(
        valid=True,
        code=decision.code,
        discount_amount=float(decision.discount_amount),
        discount_type=decision.coupon.discount_type,
        message=decision.message,
    )
