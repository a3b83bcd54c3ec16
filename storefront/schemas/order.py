"""Order schemas."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from storefront.schemas.base import BaseResponseSchema, BaseUpdateSchema


class OrderItemResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    variant_id: Optional[str] = None
    product_name: str
    product_sku: Optional[str] = None
    quantity: int
    unit_price: float
    line_total: float


class OrderResponse(BaseResponseSchema):
    id: UUID
    order_number: str
    status: str
    customer_id: Optional[str] = None
    customer_name: str
    customer_email: str
    customer_phone: str
    shipping_address: str
    shipping_city: str
    shipping_postal_code: Optional[str] = None
    subtotal: float
    discount_amount: float
    shipping_cost: float
    tax_amount: float
    tax_rate: float
    total: float
    coupon_code: Optional[str] = None
    payment_url: Optional[str] = None
    cancel_reason: Optional[str] = None
    created_at: datetime
    paid_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []


class OrderListResponse(BaseModel):
    items: List[OrderResponse]
    total: int
    page: int
    limit: int


class CancelOrderRequest(BaseUpdateSchema):
    reason: Optional[str] = None
