"""
Transactional Outbox

Side effects of checkout (customer and admin notifications, inventory alert
recheck) are written as outbox rows in the order transaction and delivered
afterwards, so a failing side effect can never undo or block an order.

Delivery is at-least-once: a message is leased before its handler runs,
marked DELIVERED on success and rescheduled with exponential backoff on
failure, until OUTBOX_MAX_ATTEMPTS is reached.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.config import settings
from storefront.database import async_session_factory
from storefront.models.outbox import OutboxMessage, OutboxStatus


logger = logging.getLogger(__name__)


TOPIC_ORDER_PLACED = "order.placed"
TOPIC_INVENTORY_RECHECK = "inventory.recheck"

# A claimed message is invisible to other dispatchers for this long
LEASE_SECONDS = 300

Handler = Callable[[AsyncSession, Dict[str, Any]], Awaitable[None]]


def enqueue(db: AsyncSession, topic: str, payload: Dict[str, Any]) -> OutboxMessage:
    """Queue a message in the caller's transaction."""
    message = OutboxMessage(
        id=uuid.uuid4(),
        topic=topic,
        payload=payload,
        status=OutboxStatus.PENDING.value,
        attempts=0,
        next_attempt_at=datetime.now(timezone.utc),
    )
    db.add(message)
    return message


def retry_delay(attempts: int) -> timedelta:
    return timedelta(seconds=settings.OUTBOX_BACKOFF_BASE_SECONDS * (2 ** max(0, attempts - 1)))


# ==================== Handlers ====================

async def handle_order_placed(db: AsyncSession, payload: Dict[str, Any]) -> None:
    from storefront.services.notification_service import NotificationService
    from storefront.services.settings_service import SettingsService

    store = await SettingsService(db).get_store_settings()
    payload = {"currency_symbol": store.currency_symbol, **payload}
    notifier = NotificationService(admin_email=store.admin_notification_email)
    await notifier.send_order_confirmation(payload)
    await notifier.send_admin_order_notification(payload)


async def handle_inventory_recheck(db: AsyncSession, payload: Dict[str, Any]) -> None:
    from storefront.services.inventory_alert_service import InventoryAlertService

    product_ids = [uuid.UUID(pid) for pid in payload.get("product_ids", [])]
    await InventoryAlertService(db).recheck(product_ids)


DEFAULT_HANDLERS: Dict[str, Handler] = {
    TOPIC_ORDER_PLACED: handle_order_placed,
    TOPIC_INVENTORY_RECHECK: handle_inventory_recheck,
}


class OutboxDispatcher:
    """Delivers pending outbox messages, each in its own transaction."""

    def __init__(
        self,
        session_factory: async_sessionmaker = None,
        handlers: Optional[Dict[str, Handler]] = None,
        max_attempts: Optional[int] = None,
    ):
        self.session_factory = session_factory or async_session_factory
        self.handlers = handlers if handlers is not None else dict(DEFAULT_HANDLERS)
        self.max_attempts = max_attempts or settings.OUTBOX_MAX_ATTEMPTS

    async def _due_ids(self, limit: int, message_ids: Optional[List[uuid.UUID]]) -> List[uuid.UUID]:
        now = datetime.now(timezone.utc)
        query = select(OutboxMessage.id).where(
            OutboxMessage.status == OutboxStatus.PENDING.value,
            OutboxMessage.next_attempt_at <= now,
        )
        if message_ids is not None:
            query = query.where(OutboxMessage.id.in_(message_ids))
        query = query.order_by(OutboxMessage.created_at).limit(limit)
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def _claim(self, message_id: uuid.UUID) -> bool:
        now = datetime.now(timezone.utc)
        async with self.session_factory() as session:
            result = await session.execute(
                update(OutboxMessage)
                .where(
                    OutboxMessage.id == message_id,
                    OutboxMessage.status == OutboxStatus.PENDING.value,
                    OutboxMessage.next_attempt_at <= now,
                )
                .values(next_attempt_at=now + timedelta(seconds=LEASE_SECONDS))
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def _deliver(self, message_id: uuid.UUID) -> bool:
        async with self.session_factory() as session:
            message = await session.get(OutboxMessage, message_id)
            handler = self.handlers.get(message.topic)
            if handler is None:
                raise LookupError(f"No handler for outbox topic '{message.topic}'")

            await handler(session, dict(message.payload))
            message.status = OutboxStatus.DELIVERED.value
            message.attempts += 1
            message.delivered_at = datetime.now(timezone.utc)
            message.last_error = None
            await session.commit()
            return True

    async def _record_failure(self, message_id: uuid.UUID, error: Exception) -> None:
        async with self.session_factory() as session:
            message = await session.get(OutboxMessage, message_id)
            message.attempts += 1
            message.last_error = f"{type(error).__name__}: {error}"[:2000]
            if message.attempts >= self.max_attempts:
                message.status = OutboxStatus.FAILED.value
                logger.error(
                    f"Outbox message {message_id} ({message.topic}) failed permanently "
                    f"after {message.attempts} attempts: {error}"
                )
            else:
                message.next_attempt_at = datetime.now(timezone.utc) + retry_delay(message.attempts)
                logger.warning(
                    f"Outbox message {message_id} ({message.topic}) attempt {message.attempts} failed, "
                    f"retrying at {message.next_attempt_at.isoformat()}: {error}"
                )
            await session.commit()

    async def dispatch_pending(
        self,
        limit: Optional[int] = None,
        message_ids: Optional[List[uuid.UUID]] = None,
    ) -> Dict[str, int]:
        """
        Deliver due messages. Handler failures are recorded on the message
        and never raised to the caller.
        """
        stats = {"delivered": 0, "failed": 0, "skipped": 0}
        for message_id in await self._due_ids(limit or settings.OUTBOX_BATCH_SIZE, message_ids):
            if not await self._claim(message_id):
                stats["skipped"] += 1
                continue
            try:
                await self._deliver(message_id)
                stats["delivered"] += 1
            except Exception as e:
                logger.exception(f"Outbox delivery failed for message {message_id}")
                await self._record_failure(message_id, e)
                stats["failed"] += 1
        return stats
