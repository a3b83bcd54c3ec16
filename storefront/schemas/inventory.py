"""Inventory, alert and adjustment schemas."""
from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from storefront.schemas.base import BaseResponseSchema, BaseCreateSchema


class InventoryAlertResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    kind: str
    message: str
    threshold: int
    available_quantity: int
    created_at: datetime
    resolved_at: Optional[datetime] = None
    acknowledged: bool
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None


class ProductStockResponse(BaseResponseSchema):
    id: UUID
    name: str
    sku: Optional[str] = None
    price: float
    inventory: int
    reserved_quantity: int
    available_quantity: int
    low_stock_threshold: int
    reorder_point: int
    reorder_quantity: int
    alerts: List[InventoryAlertResponse] = []


class InventoryStats(BaseModel):
    total_products: int
    low_stock_products: int
    out_of_stock_products: int
    active_alerts: int


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class InventorySnapshotResponse(BaseModel):
    products: List[ProductStockResponse]
    stats: InventoryStats
    pagination: Pagination


class StockLevelResponse(BaseModel):
    product_id: UUID
    name: str
    sku: Optional[str] = None
    inventory: int
    reserved_quantity: int
    available_quantity: int
    low_stock_threshold: int
    in_stock: bool
    is_low_stock: bool


class AdjustInventoryRequest(BaseCreateSchema):
    product_id: UUID
    quantity: int
    type: Literal["RESTOCK", "ADJUSTMENT"]
    reason: Optional[str] = Field(None, max_length=500)


class AdjustInventoryResponse(BaseModel):
    product_id: UUID
    previous_qty: int
    new_qty: int
    reserved_quantity: int
    available_quantity: int
    alerts_created: int
    alerts_resolved: int


class BulkUpdateIn(BaseCreateSchema):
    product_id: Optional[UUID] = None
    sku: Optional[str] = None
    quantity: int
    type: Literal["RESTOCK", "ADJUSTMENT", "SET"] = "ADJUSTMENT"
    reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def require_reference(self):
        if self.product_id is None and not self.sku:
            raise ValueError("product_id or sku is required")
        return self


class BulkInventoryRequest(BaseCreateSchema):
    updates: List[BulkUpdateIn] = Field(..., min_length=1, max_length=500)


class BulkUpdateResult(BaseModel):
    index: int
    ref: str
    product_id: UUID
    previous_qty: int
    new_qty: int
    available_quantity: int


class BulkUpdateError(BaseModel):
    index: int
    ref: str
    error: str


class BulkInventoryResponse(BaseModel):
    updated: List[BulkUpdateResult]
    errors: List[BulkUpdateError]


class InventoryLogResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    product_name: Optional[str] = None
    type: str
    quantity: int
    previous_qty: int
    new_qty: int
    previous_reserved: int
    new_reserved: int
    reason: Optional[str] = None
    reference: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime


class InventoryLogListResponse(BaseModel):
    items: List[InventoryLogResponse]
    total: int
    page: int
    limit: int


class InventoryAlertListResponse(BaseModel):
    items: List[InventoryAlertResponse]
    total: int
    page: int
    limit: int


class AcknowledgeAlertsRequest(BaseCreateSchema):
    alert_ids: List[UUID] = Field(..., min_length=1)
