"""Coupon validation schemas."""
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from storefront.schemas.base import BaseCreateSchema


class ValidateCouponRequest(BaseCreateSchema):
    """Request to validate a coupon."""
    code: str = Field(..., min_length=1, max_length=50)
    subtotal: Decimal = Field(..., ge=0)


class CouponValidationResponse(BaseModel):
    """Coupon validation response."""
    valid: bool
    code: str
    discount_amount: Optional[float] = None
    discount_type: Optional[str] = None
    reason: Optional[str] = None
    message: str
