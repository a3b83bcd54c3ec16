from datetime import datetime, timezone

from sqlalchemy import select, update

from storefront.database import async_session_factory
from storefront.models.inventory import InventoryAlert
from storefront.models.outbox import OutboxMessage
from storefront.services.checkout_service import CheckoutService
from storefront.services.outbox_service import OutboxDispatcher, enqueue

from helpers import cart, customer_info


async def _message(message_id) -> OutboxMessage:
    async with async_session_factory() as db:
        return await db.get(OutboxMessage, message_id)


async def _make_due(message_id) -> None:
    async with async_session_factory() as db:
        await db.execute(
            update(OutboxMessage)
            .where(OutboxMessage.id == message_id)
            .values(next_attempt_at=datetime.now(timezone.utc))
        )
        await db.commit()


async def test_delivery_raises_alert_for_sold_out_product(session, make_product):
    product = await make_product(inventory=2)
    placed = await CheckoutService(session).place_order(cart((product, 2)), customer_info())

    stats = await OutboxDispatcher().dispatch_pending(message_ids=placed.outbox_message_ids)

    assert stats == {"delivered": 2, "failed": 0, "skipped": 0}
    for message_id in placed.outbox_message_ids:
        message = await _message(message_id)
        assert message.status == "DELIVERED"
        assert message.attempts == 1
        assert message.delivered_at is not None

    async with async_session_factory() as db:
        alert = (await db.execute(
            select(InventoryAlert).where(InventoryAlert.product_id == product.id)
        )).scalar_one()
    assert alert.kind == "OUT_OF_STOCK"


async def test_delivered_messages_are_not_redelivered(session, make_product):
    product = await make_product(inventory=5)
    placed = await CheckoutService(session).place_order(cart((product, 1)), customer_info())
    dispatcher = OutboxDispatcher()

    await dispatcher.dispatch_pending()
    stats = await dispatcher.dispatch_pending()

    assert stats == {"delivered": 0, "failed": 0, "skipped": 0}
    assert len(placed.outbox_message_ids) == 2


async def test_failed_handler_is_rescheduled_then_given_up(session):
    calls = []

    async def broken(db, payload):
        calls.append(payload)
        raise RuntimeError("smtp down")

    message = enqueue(session, "order.placed", {"order_number": "ORD-1"})
    await session.commit()
    dispatcher = OutboxDispatcher(handlers={"order.placed": broken}, max_attempts=2)

    first = await dispatcher.dispatch_pending()
    retried = await _message(message.id)
    assert first == {"delivered": 0, "failed": 1, "skipped": 0}
    assert retried.status == "PENDING"
    assert retried.attempts == 1
    assert "smtp down" in retried.last_error

    # Backoff keeps it out of the next run
    assert await dispatcher.dispatch_pending() == {"delivered": 0, "failed": 0, "skipped": 0}

    await _make_due(message.id)
    await dispatcher.dispatch_pending()
    failed = await _message(message.id)
    assert failed.status == "FAILED"
    assert failed.attempts == 2
    assert len(calls) == 2


async def test_unknown_topic_counts_as_failure(session):
    message = enqueue(session, "mystery.topic", {})
    await session.commit()

    stats = await OutboxDispatcher(max_attempts=1).dispatch_pending()

    assert stats["failed"] == 1
    assert (await _message(message.id)).status == "FAILED"
