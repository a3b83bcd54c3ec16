"""Store settings schemas."""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from storefront.schemas.base import BaseResponseSchema, BaseUpdateSchema


class StoreSettingsResponse(BaseResponseSchema):
    tax_rate_percent: float
    shipping_cost: float
    free_shipping_threshold: float
    currency: str
    currency_symbol: str
    admin_notification_email: Optional[str] = None
    updated_at: datetime


class StoreSettingsUpdate(BaseUpdateSchema):
    tax_rate_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    shipping_cost: Optional[Decimal] = Field(None, ge=0)
    free_shipping_threshold: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    currency_symbol: Optional[str] = Field(None, min_length=1, max_length=5)
    admin_notification_email: Optional[str] = Field(None, max_length=255)
