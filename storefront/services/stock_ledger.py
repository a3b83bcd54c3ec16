"""
Stock Ledger

Owns the per-product stock counters. Every mutation is a single conditional
UPDATE, so availability is checked and changed atomically without a
read-then-write window:

    reserve:  reserved += q   WHERE inventory - reserved >= q
    commit:   inventory -= q, reserved -= q   WHERE reserved >= q
    release:  reserved -= min(q, reserved)
    adjust:   inventory += delta   WHERE inventory + delta >= reserved

All methods run inside the caller's transaction and write an InventoryLog
entry. Multi-product reservations are taken in ascending product id order.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, update, case
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import ProductNotFoundError, InventoryAdjustmentError
from storefront.models.product import Product
from storefront.models.inventory import InventoryLog, InventoryChangeType


logger = logging.getLogger(__name__)


@dataclass
class StockLevel:
    product_id: uuid.UUID
    inventory: int
    reserved: int
    low_stock_threshold: int = 0

    @property
    def available(self) -> int:
        return max(0, self.inventory - self.reserved)


@dataclass
class ReserveOutcome:
    """Result of a reservation attempt."""
    ok: bool
    product_id: uuid.UUID
    requested: int
    available: Optional[int] = None


@dataclass
class ReserveManyOutcome:
    ok: bool
    reserved: List[Tuple[uuid.UUID, int]] = field(default_factory=list)
    failure: Optional[ReserveOutcome] = None


def merge_quantities(items: Iterable[Tuple[uuid.UUID, int]]) -> List[Tuple[uuid.UUID, int]]:
    """Sum duplicate product lines and sort by product id (lock order)."""
    merged: Dict[uuid.UUID, int] = {}
    for product_id, quantity in items:
        merged[product_id] = merged.get(product_id, 0) + quantity
    return sorted(merged.items(), key=lambda pair: str(pair[0]))


class StockLedger:
    def __init__(self, db: AsyncSession, actor: Optional[str] = None):
        self.db = db
        self.actor = actor

    async def get_level(self, product_id: uuid.UUID) -> StockLevel:
        """Current counters, read straight from the table."""
        levels = await self.get_levels([product_id])
        if product_id not in levels:
            raise ProductNotFoundError(product_id)
        return levels[product_id]

    async def get_levels(self, product_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, StockLevel]:
        ids = list(set(product_ids))
        if not ids:
            return {}
        result = await self.db.execute(
            select(
                Product.id,
                Product.inventory,
                Product.reserved_quantity,
                Product.low_stock_threshold,
            ).where(Product.id.in_(ids))
        )
        return {
            row.id: StockLevel(
                product_id=row.id,
                inventory=row.inventory,
                reserved=row.reserved_quantity,
                low_stock_threshold=row.low_stock_threshold,
            )
            for row in result.all()
        }

    def _log(
        self,
        product_id: uuid.UUID,
        change_type: InventoryChangeType,
        quantity: int,
        before: StockLevel,
        after: StockLevel,
        reason: Optional[str] = None,
        reference: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> None:
        self.db.add(InventoryLog(
            product_id=product_id,
            type=change_type.value,
            quantity=quantity,
            previous_qty=before.inventory,
            new_qty=after.inventory,
            previous_reserved=before.reserved,
            new_reserved=after.reserved,
            reason=reason,
            reference=reference,
            created_by=created_by or self.actor,
        ))

    # ==================== Reservations ====================

    async def reserve(
        self,
        product_id: uuid.UUID,
        quantity: int,
        reference: Optional[str] = None,
    ) -> ReserveOutcome:
        """Hold `quantity` units if that many are available, atomically."""
        if quantity <= 0:
            raise ValueError("quantity must be positive")

        result = await self.db.execute(
            update(Product)
            .where(
                Product.id == product_id,
                Product.inventory - Product.reserved_quantity >= quantity,
            )
            .values(
                reserved_quantity=Product.reserved_quantity + quantity,
                version=Product.version + 1,
            )
            .execution_options(synchronize_session=False)
        )

        after = await self.get_level(product_id)
        if result.rowcount == 0:
            logger.info(
                f"Reservation refused for product {product_id}: "
                f"requested {quantity}, available {after.available}"
            )
            return ReserveOutcome(
                ok=False,
                product_id=product_id,
                requested=quantity,
                available=after.available,
            )

        before = StockLevel(product_id, after.inventory, after.reserved - quantity)
        self._log(product_id, InventoryChangeType.RESERVATION, quantity, before, after, reference=reference)
        return ReserveOutcome(ok=True, product_id=product_id, requested=quantity, available=after.available)

    async def reserve_many(
        self,
        items: Iterable[Tuple[uuid.UUID, int]],
        reference: Optional[str] = None,
    ) -> ReserveManyOutcome:
        """
        Reserve several products in ascending id order.

        Stops at the first product that cannot be covered. Holds taken before
        it stay in the transaction; the caller rolls back to release them.
        """
        outcome = ReserveManyOutcome(ok=True)
        for product_id, quantity in merge_quantities(items):
            attempt = await self.reserve(product_id, quantity, reference=reference)
            if not attempt.ok:
                outcome.ok = False
                outcome.failure = attempt
                return outcome
            outcome.reserved.append((product_id, quantity))
        return outcome

    async def commit(self, product_id: uuid.UUID, quantity: int, reference: Optional[str] = None) -> StockLevel:
        """Turn a hold into a shipment: on-hand and reserved both drop."""
        result = await self.db.execute(
            update(Product)
            .where(
                Product.id == product_id,
                Product.reserved_quantity >= quantity,
                Product.inventory >= quantity,
            )
            .values(
                inventory=Product.inventory - quantity,
                reserved_quantity=Product.reserved_quantity - quantity,
                version=Product.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        after = await self.get_level(product_id)
        if result.rowcount == 0:
            raise InventoryAdjustmentError(
                f"Cannot fulfil {quantity} of product {product_id}: only {after.reserved} reserved",
                details={"product_id": str(product_id), "reserved": after.reserved, "requested": quantity},
            )

        before = StockLevel(product_id, after.inventory + quantity, after.reserved + quantity)
        self._log(product_id, InventoryChangeType.FULFILLMENT, -quantity, before, after, reference=reference)
        return after

    async def release(
        self,
        product_id: uuid.UUID,
        quantity: int,
        reference: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> StockLevel:
        """Return a hold to available stock. Never drives reserved below zero."""
        before = await self.get_level(product_id)
        await self.db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(
                reserved_quantity=case(
                    (Product.reserved_quantity >= quantity, Product.reserved_quantity - quantity),
                    else_=0,
                ),
                version=Product.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        after = await self.get_level(product_id)
        if before.reserved < quantity:
            logger.warning(
                f"Release of {quantity} for product {product_id} exceeded reserved {before.reserved}"
            )
        self._log(
            product_id,
            InventoryChangeType.RELEASE,
            -(before.reserved - after.reserved),
            before,
            after,
            reason=reason,
            reference=reference,
        )
        return after

    # ==================== Administrative ====================

    async def adjust(
        self,
        product_id: uuid.UUID,
        delta: int,
        change_type: InventoryChangeType,
        reason: str,
        created_by: Optional[str] = None,
    ) -> Tuple[StockLevel, StockLevel]:
        """
        Restock or correct on-hand stock.

        No availability check, but on-hand may not drop below what is
        already reserved for open orders.
        """
        if not reason or not reason.strip():
            raise InventoryAdjustmentError("A reason is required for inventory adjustments")

        await self.get_level(product_id)  # raises ProductNotFoundError
        result = await self.db.execute(
            update(Product)
            .where(
                Product.id == product_id,
                Product.inventory + delta >= Product.reserved_quantity,
                Product.inventory + delta >= 0,
            )
            .values(
                inventory=Product.inventory + delta,
                version=Product.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        after = await self.get_level(product_id)
        if result.rowcount == 0:
            raise InventoryAdjustmentError(
                f"Adjustment of {delta} would leave product {product_id} with "
                f"{after.inventory + delta} on hand and {after.reserved} reserved",
                details={
                    "product_id": str(product_id),
                    "inventory": after.inventory,
                    "reserved": after.reserved,
                    "delta": delta,
                },
            )

        before = StockLevel(product_id, after.inventory - delta, after.reserved)
        self._log(product_id, change_type, delta, before, after, reason=reason, created_by=created_by)
        logger.info(
            f"Inventory {change_type.value} for product {product_id}: "
            f"{before.inventory} -> {after.inventory} ({reason})"
        )
        return before, after
