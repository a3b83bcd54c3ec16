"""
Inventory & Checkout Jobs

Background jobs for checkout side effects and stock hygiene:
- Outbox delivery (notifications, alert recheck)
- Releasing stock held by unpaid orders past their reservation TTL
- Periodic inventory alert sweep
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from storefront.database import get_db_session

logger = logging.getLogger(__name__)


async def drain_outbox() -> Dict[str, Any]:
    """Deliver pending outbox messages."""
    from storefront.services.outbox_service import OutboxDispatcher

    start_time = datetime.now(timezone.utc)
    try:
        stats = await OutboxDispatcher().dispatch_pending()
    except Exception as e:
        logger.error(f"Outbox drain failed: {e}")
        return {"error": str(e)}

    if stats["delivered"] or stats["failed"]:
        elapsed = (datetime.now(timezone.utc) - start_time).total_seconds()
        logger.info(
            f"Outbox drain: {stats['delivered']} delivered, {stats['failed']} failed "
            f"in {elapsed:.2f}s"
        )
    return stats


async def release_expired_reservations() -> Dict[str, Any]:
    """
    Cancel CREATED orders whose reservations expired without payment and
    return their stock to availability.
    """
    from storefront.services.order_service import OrderService

    logger.info("Starting expired reservation release...")
    start_time = datetime.now(timezone.utc)

    try:
        async with get_db_session() as session:
            cancelled = await OrderService(session, actor="system").release_expired_reservations()
    except Exception as e:
        logger.error(f"Expired reservation release failed: {e}")
        return {"error": str(e)}

    elapsed = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.info(f"Expired reservation release completed: {cancelled} order(s) cancelled in {elapsed:.2f}s")
    return {"cancelled_orders": cancelled}


async def sweep_inventory_alerts() -> Dict[str, Any]:
    """Recheck alerts for every active product."""
    from storefront.services.inventory_alert_service import InventoryAlertService

    logger.info("Starting inventory alert sweep...")
    try:
        async with get_db_session() as session:
            counts = await InventoryAlertService(session).sweep()
    except Exception as e:
        logger.error(f"Inventory alert sweep failed: {e}")
        return {"error": str(e)}

    logger.info(
        f"Inventory alert sweep completed: {counts['checked']} products, "
        f"{counts['created']} raised, {counts['resolved']} resolved"
    )
    return counts
