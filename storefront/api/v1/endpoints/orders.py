"""
Order API Endpoints

Order lookup and admin status transitions.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from storefront.api.deps import DB, CustomerId, AdminUser
from storefront.models.order import OrderStatus
from storefront.schemas.order import OrderResponse, OrderListResponse, CancelOrderRequest
from storefront.services.order_service import OrderService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["Orders"])


@router.get("", response_model=OrderListResponse)
async def list_orders(
    db: DB,
    admin: AdminUser,
    customer_id: Optional[str] = None,
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """List orders (admin)."""
    result = await OrderService(db).list_orders(
        customer_id=customer_id,
        status=order_status,
        page=page,
        limit=limit,
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in result["items"]],
        total=result["total"],
        page=result["page"],
        limit=result["limit"],
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: uuid.UUID, db: DB, customer_id: CustomerId):
    """
    Get an order as it was placed.

    Customer-owned orders are only visible to that customer.
    """
    order = await OrderService(db).get_order(order_id)
    if order.customer_id and order.customer_id != customer_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return OrderResponse.model_validate(order)


# ==================== Admin Transitions ====================

@router.post("/{order_id}/pay", response_model=OrderResponse)
async def mark_order_paid(order_id: uuid.UUID, db: DB, admin: AdminUser):
    order = await OrderService(db, actor=admin).mark_paid(order_id)
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/ship", response_model=OrderResponse)
async def ship_order(order_id: uuid.UUID, db: DB, admin: AdminUser):
    order = await OrderService(db, actor=admin).ship(order_id)
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/deliver", response_model=OrderResponse)
async def deliver_order(order_id: uuid.UUID, db: DB, admin: AdminUser):
    order = await OrderService(db, actor=admin).deliver(order_id)
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: uuid.UUID,
    db: DB,
    admin: AdminUser,
    request: Optional[CancelOrderRequest] = None,
):
    reason = request.reason if request else None
    order = await OrderService(db, actor=admin).cancel(order_id, reason=reason)
    return OrderResponse.model_validate(order)
