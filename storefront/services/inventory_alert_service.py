"""
Inventory Alert Generator

Keeps at most one active alert per product that reflects its current
available quantity:

- available == 0                      -> OUT_OF_STOCK
- 0 < available <= low_stock_threshold -> LOW_STOCK
- otherwise                           -> no active alert

Rechecking an unchanged product writes nothing.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.inventory import InventoryAlert, AlertKind
from storefront.models.product import Product
from storefront.services.stock_ledger import StockLedger, StockLevel


logger = logging.getLogger(__name__)


def desired_alert_kind(level: StockLevel) -> Optional[AlertKind]:
    if level.available == 0:
        return AlertKind.OUT_OF_STOCK
    if level.available <= level.low_stock_threshold:
        return AlertKind.LOW_STOCK
    return None


def alert_message(kind: AlertKind, product_name: str, level: StockLevel) -> str:
    if kind == AlertKind.OUT_OF_STOCK:
        return f"{product_name} is out of stock"
    return f"{product_name} is running low: {level.available} left (threshold {level.low_stock_threshold})"


class InventoryAlertService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = StockLedger(db)

    async def _active_alerts(self, product_ids: List[uuid.UUID]) -> Dict[uuid.UUID, List[InventoryAlert]]:
        result = await self.db.execute(
            select(InventoryAlert).where(
                InventoryAlert.product_id.in_(product_ids),
                InventoryAlert.resolved_at.is_(None),
            )
        )
        active: Dict[uuid.UUID, List[InventoryAlert]] = {}
        for alert in result.scalars().all():
            active.setdefault(alert.product_id, []).append(alert)
        return active

    async def recheck(self, product_ids: Iterable[uuid.UUID]) -> Dict[str, int]:
        """
        Raise or resolve alerts for the given products.

        Runs in the caller's transaction. Returns counts of created and
        resolved alerts.
        """
        ids = sorted(set(product_ids), key=str)
        created = resolved = 0
        if not ids:
            return {"created": 0, "resolved": 0}

        levels = await self.ledger.get_levels(ids)
        names_result = await self.db.execute(select(Product.id, Product.name).where(Product.id.in_(ids)))
        names = {row.id: row.name for row in names_result.all()}
        active = await self._active_alerts(ids)
        now = datetime.now(timezone.utc)

        for product_id in ids:
            level = levels.get(product_id)
            if level is None:
                continue
            wanted = desired_alert_kind(level)
            has_wanted = False

            for alert in active.get(product_id, []):
                if wanted is not None and alert.kind == wanted.value:
                    has_wanted = True
                    continue
                alert.resolved_at = now
                resolved += 1
                logger.info(f"Resolved {alert.kind} alert for product {product_id} (available {level.available})")

            if wanted is not None and not has_wanted:
                self.db.add(InventoryAlert(
                    product_id=product_id,
                    kind=wanted.value,
                    message=alert_message(wanted, names.get(product_id, str(product_id)), level),
                    threshold=level.low_stock_threshold,
                    available_quantity=level.available,
                    created_at=now,
                ))
                created += 1
                logger.info(f"Raised {wanted.value} alert for product {product_id} (available {level.available})")

        await self.db.flush()
        return {"created": created, "resolved": resolved}

    async def sweep(self) -> Dict[str, int]:
        """Recheck every active product."""
        result = await self.db.execute(select(Product.id).where(Product.is_active == True))
        product_ids = list(result.scalars().all())
        counts = await self.recheck(product_ids)
        counts["checked"] = len(product_ids)
        return counts

    async def list_alerts(
        self,
        active_only: bool = True,
        acknowledged: Optional[bool] = None,
        product_id: Optional[uuid.UUID] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Dict:
        query = select(InventoryAlert)
        if active_only:
            query = query.where(InventoryAlert.resolved_at.is_(None))
        if acknowledged is not None:
            query = query.where(InventoryAlert.acknowledged == acknowledged)
        if product_id:
            query = query.where(InventoryAlert.product_id == product_id)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(InventoryAlert.created_at.desc()).offset((page - 1) * limit).limit(limit)
        result = await self.db.execute(query)
        return {
            "items": list(result.scalars().all()),
            "total": total,
            "page": page,
            "limit": limit,
        }

    async def acknowledge(self, alert_ids: List[uuid.UUID], acknowledged_by: Optional[str] = None) -> int:
        result = await self.db.execute(
            update(InventoryAlert)
            .where(
                InventoryAlert.id.in_(alert_ids),
                InventoryAlert.acknowledged == False,
            )
            .values(
                acknowledged=True,
                acknowledged_by=acknowledged_by,
                acknowledged_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

