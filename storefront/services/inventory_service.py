"""
Inventory Service

Admin-facing stock operations: the inventory snapshot with stats,
restocks and corrections (single and bulk), the adjustment log and the
single-product stock read used by the storefront and support agent.
"""
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import InventoryAdjustmentError, ProductNotFoundError, StorefrontError
from storefront.models.inventory import InventoryAlert, InventoryLog, InventoryChangeType
from storefront.models.product import Product
from storefront.services.inventory_alert_service import InventoryAlertService
from storefront.services.stock_ledger import StockLedger


logger = logging.getLogger(__name__)


class InventoryFilter(str, Enum):
    ALL = "all"
    LOW = "low"
    OUT = "out"
    IN_STOCK = "in-stock"


class AdjustmentType(str, Enum):
    RESTOCK = "RESTOCK"  # quantity added
    ADJUSTMENT = "ADJUSTMENT"  # signed correction
    SET = "SET"  # absolute on-hand count (bulk only)


@dataclass
class BulkUpdate:
    quantity: int
    type: AdjustmentType = AdjustmentType.ADJUSTMENT
    product_id: Optional[uuid.UUID] = None
    sku: Optional[str] = None
    reason: Optional[str] = None


@dataclass
class BulkResult:
    updated: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)


def _available_expr():
    return Product.inventory - Product.reserved_quantity


class InventoryService:
    def __init__(self, db: AsyncSession, actor: Optional[str] = None):
        self.db = db
        self.actor = actor
        self.ledger = StockLedger(db, actor=actor)
        self.alerts = InventoryAlertService(db)

    # ==================== Reads ====================

    async def get_inventory_snapshot(
        self,
        stock_filter: InventoryFilter = InventoryFilter.ALL,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        """getInventorySnapshot(filter): products with stock figures, stats and pagination."""
        available = _available_expr()
        query = select(Product).where(Product.is_active == True)

        if stock_filter == InventoryFilter.LOW:
            query = query.where(and_(available > 0, available <= Product.low_stock_threshold))
        elif stock_filter == InventoryFilter.OUT:
            query = query.where(available <= 0)
        elif stock_filter == InventoryFilter.IN_STOCK:
            query = query.where(available > 0)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = (
            query.order_by(available, Product.name)
            .offset((page - 1) * limit)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        products = list((await self.db.execute(query)).scalars().all())

        alerts_by_product: Dict[uuid.UUID, List[InventoryAlert]] = {}
        if products:
            alert_result = await self.db.execute(
                select(InventoryAlert).where(
                    InventoryAlert.product_id.in_([p.id for p in products]),
                    InventoryAlert.resolved_at.is_(None),
                )
            )
            for alert in alert_result.scalars().all():
                alerts_by_product.setdefault(alert.product_id, []).append(alert)

        return {
            "products": [
                {"product": product, "alerts": alerts_by_product.get(product.id, [])}
                for product in products
            ],
            "stats": await self.get_inventory_stats(),
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit if limit else 0,
            },
        }

    async def get_inventory_stats(self) -> Dict[str, int]:
        available = _available_expr()
        active = Product.is_active == True

        total_products = await self.db.scalar(select(func.count(Product.id)).where(active))
        low_stock = await self.db.scalar(
            select(func.count(Product.id)).where(
                active,
                available > 0,
                available <= Product.low_stock_threshold,
            )
        )
        out_of_stock = await self.db.scalar(
            select(func.count(Product.id)).where(active, available <= 0)
        )
        active_alerts = await self.db.scalar(
            select(func.count(InventoryAlert.id)).where(InventoryAlert.resolved_at.is_(None))
        )
        return {
            "total_products": total_products or 0,
            "low_stock_products": low_stock or 0,
            "out_of_stock_products": out_of_stock or 0,
            "active_alerts": active_alerts or 0,
        }

    async def get_product_stock(self, product_id: uuid.UUID) -> Dict[str, Any]:
        product = await self.db.get(Product, product_id, populate_existing=True)
        if product is None or not product.is_active:
            raise ProductNotFoundError(product_id)
        return {
            "product_id": product.id,
            "name": product.name,
            "sku": product.sku,
            "inventory": product.inventory,
            "reserved_quantity": product.reserved_quantity,
            "available_quantity": product.available_quantity,
            "low_stock_threshold": product.low_stock_threshold,
            "in_stock": product.available_quantity > 0,
            "is_low_stock": product.is_low_stock,
        }

    async def list_logs(
        self,
        product_id: Optional[uuid.UUID] = None,
        change_type: Optional[InventoryChangeType] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Tuple[List[Tuple[InventoryLog, str]], int]:
        query = select(InventoryLog, Product.name).join(Product, Product.id == InventoryLog.product_id)
        if product_id:
            query = query.where(InventoryLog.product_id == product_id)
        if change_type:
            query = query.where(InventoryLog.type == change_type.value)

        count_query = select(func.count()).select_from(query.subquery())
        total = await self.db.scalar(count_query)

        query = query.order_by(InventoryLog.created_at.desc()).offset((page - 1) * limit).limit(limit)
        result = await self.db.execute(query)
        return [(row[0], row[1]) for row in result.all()], total or 0

    # ==================== Writes ====================

    async def _apply(
        self,
        product_id: uuid.UUID,
        quantity: int,
        adjustment_type: AdjustmentType,
        reason: Optional[str],
    ) -> Dict[str, Any]:
        if adjustment_type == AdjustmentType.RESTOCK:
            if quantity <= 0:
                raise InventoryAdjustmentError("Restock quantity must be positive")
            delta = quantity
            change_type = InventoryChangeType.RESTOCK
        elif adjustment_type == AdjustmentType.SET:
            if quantity < 0:
                raise InventoryAdjustmentError("Inventory cannot be set below zero")
            current = await self.ledger.get_level(product_id)
            delta = quantity - current.inventory
            change_type = InventoryChangeType.ADJUSTMENT
        else:
            if quantity == 0:
                raise InventoryAdjustmentError("Adjustment quantity cannot be zero")
            delta = quantity
            change_type = InventoryChangeType.ADJUSTMENT

        reason = reason or f"{adjustment_type.value.title()} by admin"
        before, after = await self.ledger.adjust(
            product_id,
            delta,
            change_type,
            reason=reason,
            created_by=self.actor,
        )
        return {
            "product_id": product_id,
            "previous_qty": before.inventory,
            "new_qty": after.inventory,
            "reserved_quantity": after.reserved,
            "available_quantity": after.available,
        }

    async def adjust_inventory(
        self,
        product_id: uuid.UUID,
        quantity: int,
        adjustment_type: AdjustmentType,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """adjustInventory(productId, quantity, type, reason); alerts are rechecked in the same commit."""
        if adjustment_type == AdjustmentType.SET:
            raise InventoryAdjustmentError("SET is only supported for bulk updates")

        result = await self._apply(product_id, quantity, adjustment_type, reason)
        await self.db.flush()
        result["alerts"] = await self.alerts.recheck([product_id])
        await self.db.commit()
        return result

    async def _resolve_product_id(self, update: BulkUpdate) -> uuid.UUID:
        if update.product_id:
            query = select(Product.id).where(Product.id == update.product_id)
        elif update.sku:
            query = select(Product.id).where(Product.sku == update.sku)
        else:
            raise InventoryAdjustmentError("Each update needs a productId or sku")
        product_id = await self.db.scalar(query)
        if product_id is None:
            raise ProductNotFoundError(update.product_id or update.sku)
        return product_id

    async def bulk_adjust(self, updates: List[BulkUpdate]) -> BulkResult:
        """
        Apply many stock updates. A rejected update writes nothing, so it is
        reported and the rest still apply.
        """
        outcome = BulkResult()
        touched: List[uuid.UUID] = []

        for index, update in enumerate(updates):
            ref = str(update.product_id or update.sku)
            try:
                product_id = await self._resolve_product_id(update)
                applied = await self._apply(product_id, update.quantity, update.type, update.reason)
            except StorefrontError as e:
                outcome.errors.append({"index": index, "ref": ref, "error": e.message})
                continue
            touched.append(product_id)
            outcome.updated.append({"index": index, "ref": ref, **applied})

        if touched:
            await self.alerts.recheck(touched)
        await self.db.commit()
        logger.info(f"Bulk inventory update: {len(outcome.updated)} updated, {len(outcome.errors)} failed")
        return outcome
