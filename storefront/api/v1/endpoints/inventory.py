"""
Inventory API Endpoints

Stock snapshot, adjustments, adjustment log and alerts.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Query

from storefront.api.deps import DB, AdminUser
from storefront.models.inventory import InventoryChangeType
from storefront.schemas.inventory import (
    InventorySnapshotResponse,
    ProductStockResponse,
    InventoryAlertResponse,
    InventoryAlertListResponse,
    StockLevelResponse,
    AdjustInventoryRequest,
    AdjustInventoryResponse,
    BulkInventoryRequest,
    BulkInventoryResponse,
    InventoryLogResponse,
    InventoryLogListResponse,
    AcknowledgeAlertsRequest,
)
from storefront.services.inventory_alert_service import InventoryAlertService
from storefront.services.inventory_service import (
    InventoryService,
    InventoryFilter,
    AdjustmentType,
    BulkUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/inventory", tags=["Inventory"])


@router.get("", response_model=InventorySnapshotResponse)
async def get_inventory_snapshot(
    db: DB,
    admin: AdminUser,
    stock_filter: InventoryFilter = Query(InventoryFilter.ALL, alias="filter"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Products with on-hand, reserved and available quantities plus stock stats."""
    snapshot = await InventoryService(db).get_inventory_snapshot(stock_filter, page, limit)

    products = []
    for entry in snapshot["products"]:
        row = ProductStockResponse.model_validate(entry["product"])
        row.alerts = [InventoryAlertResponse.model_validate(a) for a in entry["alerts"]]
        products.append(row)

    return InventorySnapshotResponse(
        products=products,
        stats=snapshot["stats"],
        pagination=snapshot["pagination"],
    )


@router.get("/products/{product_id}", response_model=StockLevelResponse)
async def get_product_stock(product_id: uuid.UUID, db: DB):
    """Availability of a single product."""
    return await InventoryService(db).get_product_stock(product_id)


@router.post("/adjust", response_model=AdjustInventoryResponse)
async def adjust_inventory(request: AdjustInventoryRequest, db: DB, admin: AdminUser):
    """Restock or correct a product's on-hand quantity."""
    result = await InventoryService(db, actor=admin).adjust_inventory(
        request.product_id,
        request.quantity,
        AdjustmentType(request.type),
        reason=request.reason,
    )
    return AdjustInventoryResponse(
        product_id=result["product_id"],
        previous_qty=result["previous_qty"],
        new_qty=result["new_qty"],
        reserved_quantity=result["reserved_quantity"],
        available_quantity=result["available_quantity"],
        alerts_created=result["alerts"]["created"],
        alerts_resolved=result["alerts"]["resolved"],
    )


@router.post("/bulk", response_model=BulkInventoryResponse)
async def bulk_update_inventory(request: BulkInventoryRequest, db: DB, admin: AdminUser):
    """Apply many stock updates, addressing products by id or SKU."""
    outcome = await InventoryService(db, actor=admin).bulk_adjust([
        BulkUpdate(
            product_id=update.product_id,
            sku=update.sku,
            quantity=update.quantity,
            type=AdjustmentType(update.type),
            reason=update.reason,
        )
        for update in request.updates
    ])
    return BulkInventoryResponse(updated=outcome.updated, errors=outcome.errors)


@router.get("/logs", response_model=InventoryLogListResponse)
async def list_inventory_logs(
    db: DB,
    admin: AdminUser,
    product_id: Optional[uuid.UUID] = None,
    change_type: Optional[InventoryChangeType] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
):
    rows, total = await InventoryService(db).list_logs(product_id, change_type, page, limit)

    items = []
    for log, product_name in rows:
        item = InventoryLogResponse.model_validate(log)
        item.product_name = product_name
        items.append(item)
    return InventoryLogListResponse(items=items, total=total, page=page, limit=limit)


# ==================== Alerts ====================

@router.get("/alerts", response_model=InventoryAlertListResponse)
async def list_alerts(
    db: DB,
    active_only: bool = True,
    acknowledged: Optional[bool] = None,
    product_id: Optional[uuid.UUID] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
):
    result = await InventoryAlertService(db).list_alerts(
        active_only=active_only,
        acknowledged=acknowledged,
        product_id=product_id,
        page=page,
        limit=limit,
    )
    return InventoryAlertListResponse(
        items=[InventoryAlertResponse.model_validate(a) for a in result["items"]],
        total=result["total"],
        page=result["page"],
        limit=result["limit"],
    )


@router.patch("/alerts")
async def acknowledge_alerts(request: AcknowledgeAlertsRequest, db: DB, admin: AdminUser):
    count = await InventoryAlertService(db).acknowledge(request.alert_ids, acknowledged_by=admin)
    await db.commit()
    logger.info(f"{admin} acknowledged {count} inventory alert(s)")
    return {"acknowledged": count}
