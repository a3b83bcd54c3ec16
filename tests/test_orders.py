import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from storefront.core.exceptions import InvalidOrderTransitionError, OrderNotFoundError
from storefront.database import async_session_factory
from storefront.models.inventory import InventoryLog
from storefront.models.order import OrderStatus
from storefront.models.product import Product
from storefront.services.checkout_service import CheckoutService
from storefront.services.order_service import OrderService

from helpers import cart, customer_info


async def _place(session, product, quantity=2):
    return await CheckoutService(session).place_order(cart((product, quantity)), customer_info())


async def _stock(product_id):
    async with async_session_factory() as db:
        product = await db.get(Product, product_id)
        return product.inventory, product.reserved_quantity


async def test_full_lifecycle_moves_stock(session, make_product):
    product = await make_product(inventory=10)
    placed = await _place(session, product, 3)
    orders = OrderService(session, actor="ops")

    paid = await orders.mark_paid(placed.order_id)
    assert paid.status == "PROCESSING"
    assert paid.paid_at is not None
    assert paid.reservations[0].expires_at is None
    assert await _stock(product.id) == (10, 3)

    shipped = await orders.ship(placed.order_id)
    assert shipped.status == "SHIPPED"
    assert shipped.reservations[0].status == "COMMITTED"
    assert await _stock(product.id) == (7, 0)

    delivered = await orders.deliver(placed.order_id)
    assert delivered.status == "DELIVERED"
    assert delivered.delivered_at is not None


async def test_cancel_returns_reserved_stock(session, make_product):
    product = await make_product(inventory=10)
    placed = await _place(session, product, 4)

    cancelled = await OrderService(session, actor="ops").cancel(placed.order_id, reason="Customer request")

    assert cancelled.status == "CANCELLED"
    assert cancelled.cancel_reason == "Customer request"
    assert cancelled.reservations[0].status == "RELEASED"
    assert await _stock(product.id) == (10, 0)

    logs = (await session.execute(
        select(InventoryLog.type).where(InventoryLog.product_id == product.id)
    )).scalars().all()
    assert sorted(logs) == ["RELEASE", "RESERVATION"]


async def test_cannot_ship_unpaid_order(session, make_product):
    product = await make_product()
    placed = await _place(session, product)

    with pytest.raises(InvalidOrderTransitionError) as exc_info:
        await OrderService(session).ship(placed.order_id)

    assert exc_info.value.details["current_status"] == "CREATED"
    assert await _stock(product.id) == (10, 2)


async def test_cannot_cancel_shipped_order(session, make_product):
    product = await make_product()
    placed = await _place(session, product)
    orders = OrderService(session)
    await orders.mark_paid(placed.order_id)
    await orders.ship(placed.order_id)

    with pytest.raises(InvalidOrderTransitionError):
        await orders.cancel(placed.order_id)


async def test_lost_transition_leaves_rollback_to_caller(session, make_product):
    product = await make_product()
    placed = await _place(session, product)
    orders = OrderService(session)
    stale = await orders.get_order(placed.order_id)

    async with async_session_factory() as other:
        await OrderService(other).mark_paid(placed.order_id)

    with pytest.raises(InvalidOrderTransitionError):
        await orders._ensure_transition(stale, OrderStatus.PROCESSING)

    assert session.in_transaction()
    await session.rollback()
    assert (await orders.get_order(placed.order_id)).status == "PROCESSING"


async def test_unknown_order(session):
    with pytest.raises(OrderNotFoundError):
        await OrderService(session).get_order(uuid.uuid4())


async def test_expired_reservations_cancel_unpaid_orders(session, make_product):
    product = await make_product(inventory=10)
    unpaid = await _place(session, product, 2)
    paid = await _place(session, product, 3)
    orders = OrderService(session, actor="system")
    await orders.mark_paid(paid.order_id)

    cancelled = await orders.release_expired_reservations(
        now=datetime.now(timezone.utc) + timedelta(hours=2)
    )

    assert cancelled == 1
    assert (await orders.get_order(unpaid.order_id)).status == "CANCELLED"
    assert (await orders.get_order(paid.order_id)).status == "PROCESSING"
    assert await _stock(product.id) == (10, 3)


async def test_nothing_expires_before_ttl(session, make_product):
    product = await make_product()
    await _place(session, product)

    assert await OrderService(session).release_expired_reservations() == 0


async def test_list_orders_by_customer(session, make_product):
    product = await make_product()
    service = CheckoutService(session)
    await service.place_order(cart((product, 1)), customer_info("cust-1"))
    await service.place_order(cart((product, 1)), customer_info("cust-2"))

    result = await OrderService(session).list_orders(customer_id="cust-1")

    assert result["total"] == 1
    assert result["items"][0].customer_id == "cust-1"


async def test_expiry_sweep_continues_past_a_failing_order(session, make_product, monkeypatch):
    product = await make_product(inventory=10)
    await _place(session, product, 2)
    await _place(session, product, 2)
    original = OrderService.cancel
    calls = []

    async def flaky_cancel(self, order_id, reason=None):
        calls.append(order_id)
        if len(calls) == 1:
            raise RuntimeError("database went away")
        return await original(self, order_id, reason)

    monkeypatch.setattr(OrderService, "cancel", flaky_cancel)
    orders = OrderService(session, actor="system")

    cancelled = await orders.release_expired_reservations(
        now=datetime.now(timezone.utc) + timedelta(hours=2)
    )

    assert cancelled == 1
    assert len(calls) == 2
    statuses = sorted([(await orders.get_order(order_id)).status for order_id in calls])
    assert statuses == ["CANCELLED", "CREATED"]
    assert await _stock(product.id) == (10, 2)
