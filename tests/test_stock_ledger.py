import asyncio
import uuid

import pytest
from sqlalchemy import select

from storefront.core.exceptions import InventoryAdjustmentError, ProductNotFoundError
from storefront.database import async_session_factory
from storefront.models.inventory import InventoryChangeType, InventoryLog
from storefront.services.stock_ledger import StockLedger, merge_quantities


async def test_reserve_within_availability(session, make_product):
    product = await make_product(inventory=5)
    ledger = StockLedger(session)

    outcome = await ledger.reserve(product.id, 3)
    await session.commit()

    assert outcome.ok
    assert outcome.available == 2
    level = await ledger.get_level(product.id)
    assert (level.inventory, level.reserved, level.available) == (5, 3, 2)


async def test_reserve_refused_when_short(session, make_product):
    product = await make_product(inventory=5, reserved_quantity=3)
    ledger = StockLedger(session)

    outcome = await ledger.reserve(product.id, 3)

    assert not outcome.ok
    assert outcome.available == 2
    assert outcome.requested == 3
    level = await ledger.get_level(product.id)
    assert level.reserved == 3


async def test_reserve_rejects_non_positive_quantity(session, make_product):
    product = await make_product()
    with pytest.raises(ValueError):
        await StockLedger(session).reserve(product.id, 0)


async def test_concurrent_reservations_never_oversell(make_product):
    product = await make_product(inventory=10)

    async def buy():
        async with async_session_factory() as db:
            outcome = await StockLedger(db).reserve(product.id, 3)
            await db.commit()
            return outcome.ok

    results = await asyncio.gather(*[buy() for _ in range(6)])

    assert results.count(True) == 3
    async with async_session_factory() as db:
        level = await StockLedger(db).get_level(product.id)
    assert level.reserved == 9
    assert level.available == 1


async def test_commit_moves_reserved_out_of_on_hand(session, make_product):
    product = await make_product(inventory=5, reserved_quantity=3)
    ledger = StockLedger(session)

    level = await ledger.commit(product.id, 3)
    await session.commit()

    assert (level.inventory, level.reserved) == (2, 0)


async def test_commit_more_than_reserved_rejected(session, make_product):
    product = await make_product(inventory=5, reserved_quantity=1)

    with pytest.raises(InventoryAdjustmentError):
        await StockLedger(session).commit(product.id, 2)


async def test_release_never_goes_negative(session, make_product):
    product = await make_product(inventory=5, reserved_quantity=2)
    ledger = StockLedger(session)

    level = await ledger.release(product.id, 5)
    await session.commit()

    assert level.reserved == 0
    assert level.inventory == 5


async def test_adjust_logs_before_and_after(session, make_product):
    product = await make_product(inventory=4, reserved_quantity=1)
    ledger = StockLedger(session)

    before, after = await ledger.adjust(product.id, 6, InventoryChangeType.RESTOCK, "Supplier delivery", "ops")
    await session.commit()

    assert before.inventory == 4
    assert after.inventory == 10
    log = (await session.execute(
        select(InventoryLog).where(InventoryLog.product_id == product.id)
    )).scalar_one()
    assert log.type == "RESTOCK"
    assert (log.previous_qty, log.new_qty, log.quantity) == (4, 10, 6)
    assert log.reason == "Supplier delivery"
    assert log.created_by == "ops"


async def test_adjust_below_reserved_rejected(session, make_product):
    product = await make_product(inventory=5, reserved_quantity=4)

    with pytest.raises(InventoryAdjustmentError):
        await StockLedger(session).adjust(product.id, -2, InventoryChangeType.ADJUSTMENT, "Damaged")


async def test_adjust_requires_reason(session, make_product):
    product = await make_product()
    with pytest.raises(InventoryAdjustmentError):
        await StockLedger(session).adjust(product.id, 1, InventoryChangeType.RESTOCK, "  ")


async def test_unknown_product(session):
    with pytest.raises(ProductNotFoundError):
        await StockLedger(session).get_level(uuid.uuid4())


async def test_reserve_many_stops_at_first_shortage(session, make_product):
    plenty = await make_product(name="Plenty", inventory=10)
    scarce = await make_product(name="Scarce", inventory=1)

    outcome = await StockLedger(session).reserve_many([(plenty.id, 2), (scarce.id, 2)])

    assert not outcome.ok
    assert outcome.failure.product_id == scarce.id
    assert outcome.failure.available == 1
    await session.rollback()

    level = await StockLedger(session).get_level(plenty.id)
    assert level.reserved == 0


def test_merge_quantities_sums_and_sorts():
    a = uuid.UUID("00000000-0000-0000-0000-00000000000a")
    b = uuid.UUID("00000000-0000-0000-0000-00000000000b")

    assert merge_quantities([(b, 1), (a, 2), (b, 3)]) == [(a, 2), (b, 4)]
