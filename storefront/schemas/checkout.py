"""Checkout request/response schemas."""
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from storefront.schemas.base import BaseCreateSchema


class CartItemIn(BaseCreateSchema):
    product_id: UUID
    quantity: int = Field(..., gt=0, le=1000)
    variant_id: Optional[str] = Field(None, max_length=100)
    price: Optional[Decimal] = Field(None, ge=0, description="Unit price shown to the customer")


class CustomerInfoIn(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: str = Field(..., min_length=5, max_length=30)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = None


class PlaceOrderRequest(BaseCreateSchema):
    items: List[CartItemIn] = Field(..., min_length=1)
    customer: CustomerInfoIn
    coupon_code: Optional[str] = Field(None, max_length=50)


class PlaceOrderResponse(BaseModel):
    order_id: UUID
    order_number: str
    total: float
    payment_url: Optional[str] = None


class QuoteRequest(BaseCreateSchema):
    items: List[CartItemIn] = Field(..., min_length=1)
    coupon_code: Optional[str] = Field(None, max_length=50)


class QuoteLineResponse(BaseModel):
    product_id: UUID
    name: str
    unit_price: float
    quantity: int
    line_total: float
    available: int


class QuoteCouponResponse(BaseModel):
    code: str
    valid: bool
    discount_amount: float
    reason: Optional[str] = None
    message: str


class QuoteResponse(BaseModel):
    lines: List[QuoteLineResponse]
    subtotal: float
    discount: float
    subtotal_after_discount: float
    shipping_cost: float
    tax: float
    total: float
    tax_rate_percent: float
    coupon: Optional[QuoteCouponResponse] = None
    amount_needed_for_free_shipping: float
    free_shipping_progress: int
    currency_symbol: str
