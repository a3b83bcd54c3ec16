"""
Order Lifecycle Service

Status transitions and the stock movements they drive:

    CREATED -> PROCESSING        payment confirmed, reservations stop expiring
    PROCESSING -> SHIPPED        reservations committed (on-hand drops)
    SHIPPED -> DELIVERED
    CREATED|PROCESSING -> CANCELLED   reservations released

Coupon usage is not refunded on cancellation.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.exceptions import OrderNotFoundError, InvalidOrderTransitionError
from storefront.models.order import Order, OrderStatus, StockReservation, ReservationStatus
from storefront.services.inventory_alert_service import InventoryAlertService
from storefront.services.stock_ledger import StockLedger


logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS = {
    OrderStatus.CREATED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


class OrderService:
    def __init__(self, db: AsyncSession, actor: Optional[str] = None):
        self.db = db
        self.actor = actor
        self.ledger = StockLedger(db, actor=actor)

    async def get_order(self, order_id: uuid.UUID) -> Order:
        """Order with items and reservations, as persisted."""
        result = await self.db.execute(
            select(Order)
            .options(selectinload(Order.items), selectinload(Order.reservations))
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def list_orders(
        self,
        customer_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict:
        query = select(Order).options(selectinload(Order.items))
        count_query = select(func.count(Order.id))
        if customer_id:
            query = query.where(Order.customer_id == customer_id)
            count_query = count_query.where(Order.customer_id == customer_id)
        if status:
            query = query.where(Order.status == status.value)
            count_query = count_query.where(Order.status == status.value)

        total = (await self.db.execute(count_query)).scalar() or 0
        query = query.order_by(Order.created_at.desc()).offset((page - 1) * limit).limit(limit)
        result = await self.db.execute(query)
        return {
            "items": list(result.scalars().all()),
            "total": total,
            "page": page,
            "limit": limit,
        }

    async def _ensure_transition(self, order: Order, target: OrderStatus) -> None:
        """Validate and claim the transition; a concurrent change of status loses."""
        current = OrderStatus(order.status)
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidOrderTransitionError(order.order_number, current.value, target.value)

        result = await self.db.execute(
            update(Order)
            .where(Order.id == order.id, Order.status == current.value)
            .values(status=target.value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidOrderTransitionError(order.order_number, current.value, target.value)

    def _active_reservations(self, order: Order) -> List[StockReservation]:
        return [r for r in order.reservations if r.status == ReservationStatus.ACTIVE.value]

    async def _finish(self, order: Order, product_ids: List[uuid.UUID]) -> Order:
        await self.db.flush()
        if product_ids:
            await InventoryAlertService(self.db).recheck(product_ids)
        await self.db.commit()
        return await self.get_order(order.id)

    # ==================== Transitions ====================

    async def mark_paid(self, order_id: uuid.UUID) -> Order:
        order = await self.get_order(order_id)
        await self._ensure_transition(order, OrderStatus.PROCESSING)

        order.status = OrderStatus.PROCESSING.value
        order.paid_at = datetime.now(timezone.utc)
        for reservation in self._active_reservations(order):
            reservation.expires_at = None

        logger.info(f"Order {order.order_number} paid")
        return await self._finish(order, [])

    async def ship(self, order_id: uuid.UUID) -> Order:
        order = await self.get_order(order_id)
        await self._ensure_transition(order, OrderStatus.SHIPPED)

        now = datetime.now(timezone.utc)
        touched = []
        for reservation in sorted(self._active_reservations(order), key=lambda r: str(r.product_id)):
            await self.ledger.commit(reservation.product_id, reservation.quantity, reference=str(order.id))
            reservation.status = ReservationStatus.COMMITTED.value
            reservation.resolved_at = now
            touched.append(reservation.product_id)

        order.status = OrderStatus.SHIPPED.value
        order.shipped_at = now
        logger.info(f"Order {order.order_number} shipped")
        return await self._finish(order, touched)

    async def deliver(self, order_id: uuid.UUID) -> Order:
        order = await self.get_order(order_id)
        await self._ensure_transition(order, OrderStatus.DELIVERED)

        order.status = OrderStatus.DELIVERED.value
        order.delivered_at = datetime.now(timezone.utc)
        logger.info(f"Order {order.order_number} delivered")
        return await self._finish(order, [])

    async def cancel(self, order_id: uuid.UUID, reason: Optional[str] = None) -> Order:
        order = await self.get_order(order_id)
        await self._ensure_transition(order, OrderStatus.CANCELLED)
        touched = await self._release_reservations(order, reason or "Order cancelled")

        order.status = OrderStatus.CANCELLED.value
        order.cancelled_at = datetime.now(timezone.utc)
        order.cancel_reason = reason
        logger.info(f"Order {order.order_number} cancelled ({reason or 'no reason'})")
        return await self._finish(order, touched)

    async def _release_reservations(self, order: Order, reason: str) -> List[uuid.UUID]:
        now = datetime.now(timezone.utc)
        touched = []
        for reservation in sorted(self._active_reservations(order), key=lambda r: str(r.product_id)):
            await self.ledger.release(
                reservation.product_id,
                reservation.quantity,
                reference=str(order.id),
                reason=reason,
            )
            reservation.status = ReservationStatus.RELEASED.value
            reservation.resolved_at = now
            touched.append(reservation.product_id)
        return touched

    # ==================== Expiry ====================

    async def release_expired_reservations(self, now: Optional[datetime] = None) -> int:
        """
        Cancel unpaid orders whose reservations have expired and return
        their stock. Returns the number of orders cancelled.
        """
        now = now or datetime.now(timezone.utc)
        result = await self.db.execute(
            select(StockReservation.order_id)
            .join(Order, Order.id == StockReservation.order_id)
            .where(
                Order.status == OrderStatus.CREATED.value,
                StockReservation.status == ReservationStatus.ACTIVE.value,
                StockReservation.expires_at.is_not(None),
                StockReservation.expires_at < now,
            )
            .distinct()
        )
        order_ids = list(result.scalars().all())

        cancelled = 0
        for order_id in order_ids:
            try:
                order = await self.get_order(order_id)
                if order.status != OrderStatus.CREATED.value:
                    continue
                await self.cancel(order.id, reason="Payment not received before reservation expired")
            except InvalidOrderTransitionError:
                # Paid or cancelled in the meantime
                await self.db.rollback()
                continue
            except Exception as e:
                await self.db.rollback()
                logger.error(f"Error releasing expired reservations of order {order_id}: {e}")
                continue
            cancelled += 1

        if cancelled:
            logger.info(f"Released reservations of {cancelled} expired order(s)")
        return cancelled
