import pytest
from sqlalchemy import select

from storefront.core.exceptions import InventoryAdjustmentError
from storefront.models.inventory import InventoryAlert
from storefront.services.inventory_alert_service import InventoryAlertService
from storefront.services.inventory_service import (
    AdjustmentType,
    BulkUpdate,
    InventoryFilter,
    InventoryService,
)
from storefront.services.stock_ledger import StockLedger


async def _alerts(session, product_id):
    result = await session.execute(
        select(InventoryAlert)
        .where(InventoryAlert.product_id == product_id)
        .order_by(InventoryAlert.created_at)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def test_out_of_stock_alert_raised_once(session, make_product):
    product = await make_product(inventory=3, reserved_quantity=3)
    alerts = InventoryAlertService(session)

    first = await alerts.recheck([product.id])
    second = await alerts.recheck([product.id])
    await session.commit()

    assert first == {"created": 1, "resolved": 0}
    assert second == {"created": 0, "resolved": 0}
    [alert] = await _alerts(session, product.id)
    assert alert.kind == "OUT_OF_STOCK"
    assert alert.available_quantity == 0
    assert alert.is_active


async def test_low_stock_boundaries(session, make_product):
    at_threshold = await make_product(name="At", inventory=2, low_stock_threshold=2)
    above = await make_product(name="Above", inventory=3, low_stock_threshold=2)

    counts = await InventoryAlertService(session).recheck([at_threshold.id, above.id])

    assert counts["created"] == 1
    [alert] = await _alerts(session, at_threshold.id)
    assert alert.kind == "LOW_STOCK"
    assert await _alerts(session, above.id) == []


async def test_low_stock_turns_into_out_of_stock(session, make_product):
    product = await make_product(inventory=2, low_stock_threshold=2)
    alerts = InventoryAlertService(session)
    await alerts.recheck([product.id])

    await StockLedger(session).reserve(product.id, 2)
    counts = await alerts.recheck([product.id])
    await session.commit()

    assert counts == {"created": 1, "resolved": 1}
    low, out = await _alerts(session, product.id)
    assert low.kind == "LOW_STOCK" and low.resolved_at is not None
    assert out.kind == "OUT_OF_STOCK" and out.resolved_at is None


async def test_restock_resolves_alert(session, make_product):
    product = await make_product(inventory=0, low_stock_threshold=5)
    await InventoryAlertService(session).recheck([product.id])
    await session.commit()

    result = await InventoryService(session, actor="ops").adjust_inventory(
        product.id, 50, AdjustmentType.RESTOCK, reason="Supplier delivery"
    )

    assert result["previous_qty"] == 0
    assert result["new_qty"] == 50
    assert result["alerts"] == {"created": 0, "resolved": 1}
    [alert] = await _alerts(session, product.id)
    assert alert.resolved_at is not None

    again = await InventoryAlertService(session).recheck([product.id])
    assert again == {"created": 0, "resolved": 0}


async def test_adjustment_cannot_drop_below_reserved(session, make_product):
    product = await make_product(inventory=5, reserved_quantity=4)

    with pytest.raises(InventoryAdjustmentError):
        await InventoryService(session).adjust_inventory(product.id, -3, AdjustmentType.ADJUSTMENT)


async def test_restock_requires_positive_quantity(session, make_product):
    product = await make_product()

    with pytest.raises(InventoryAdjustmentError):
        await InventoryService(session).adjust_inventory(product.id, -1, AdjustmentType.RESTOCK)


async def test_sweep_checks_every_active_product(session, make_product):
    await make_product(name="Empty", inventory=0)
    await make_product(name="Full", inventory=100)

    counts = await InventoryAlertService(session).sweep()

    assert counts["checked"] == 2
    assert counts["created"] == 1


async def test_snapshot_filters_and_stats(session, make_product):
    await make_product(name="Empty", inventory=0)
    await make_product(name="Low", inventory=1, low_stock_threshold=2)
    await make_product(name="Plenty", inventory=40)
    service = InventoryService(session)

    everything = await service.get_inventory_snapshot()
    low = await service.get_inventory_snapshot(InventoryFilter.LOW)
    out = await service.get_inventory_snapshot(InventoryFilter.OUT)
    in_stock = await service.get_inventory_snapshot(InventoryFilter.IN_STOCK)

    assert everything["stats"]["total_products"] == 3
    assert everything["stats"]["low_stock_products"] == 1
    assert everything["stats"]["out_of_stock_products"] == 1
    assert [e["product"].name for e in everything["products"]] == ["Empty", "Low", "Plenty"]
    assert [e["product"].name for e in low["products"]] == ["Low"]
    assert [e["product"].name for e in out["products"]] == ["Empty"]
    assert {e["product"].name for e in in_stock["products"]} == {"Low", "Plenty"}
    assert in_stock["pagination"] == {"page": 1, "limit": 20, "total": 2, "pages": 1}


async def test_bulk_update_reports_failures_and_applies_the_rest(session, make_product):
    by_id = await make_product(name="By id", inventory=5)
    by_sku = await make_product(name="By sku", inventory=5, sku="SKU-42")
    reserved = await make_product(name="Reserved", inventory=5, reserved_quantity=5)

    outcome = await InventoryService(session, actor="ops").bulk_adjust([
        BulkUpdate(product_id=by_id.id, quantity=3, type=AdjustmentType.RESTOCK),
        BulkUpdate(sku="SKU-42", quantity=0, type=AdjustmentType.SET),
        BulkUpdate(product_id=reserved.id, quantity=-1),
        BulkUpdate(sku="NO-SUCH-SKU", quantity=1),
    ])

    assert [u["index"] for u in outcome.updated] == [0, 1]
    assert outcome.updated[0]["new_qty"] == 8
    assert outcome.updated[1]["new_qty"] == 0
    assert [e["index"] for e in outcome.errors] == [2, 3]

    [alert] = await _alerts(session, by_sku.id)
    assert alert.kind == "OUT_OF_STOCK"
    level = await StockLedger(session).get_level(reserved.id)
    assert level.inventory == 5


async def test_acknowledge_keeps_alert_active(session, make_product):
    product = await make_product(inventory=0)
    service = InventoryAlertService(session)
    await service.recheck([product.id])
    [alert] = await _alerts(session, product.id)

    assert await service.acknowledge([alert.id], acknowledged_by="ops") == 1
    assert await service.acknowledge([alert.id], acknowledged_by="ops") == 0
    await session.commit()

    listing = await service.list_alerts(active_only=True, acknowledged=True)
    assert listing["total"] == 1
    [stored] = await _alerts(session, product.id)
    assert stored.acknowledged_by == "ops"
    assert stored.resolved_at is None
