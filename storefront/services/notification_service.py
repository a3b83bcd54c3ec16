"""
Order Notification Service

Customer confirmations and admin new-order notices. Email delivery is
handled elsewhere; this implementation renders the message and logs it.
"""
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional


logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    """Types of notifications."""
    ORDER_CONFIRMED = "order_confirmed"
    ADMIN_NEW_ORDER = "admin_new_order"


EMAIL_TEMPLATES = {
    NotificationType.ORDER_CONFIRMED: (
        "Dear {customer_name}, your order #{order_number} has been received. "
        "Total: {currency_symbol}{total}. Thank you for shopping with us!"
    ),
    NotificationType.ADMIN_NEW_ORDER: (
        "New order #{order_number} from {customer_name} <{customer_email}>: "
        "{item_count} item(s), total {currency_symbol}{total}"
    ),
}


class NotificationService:
    def __init__(self, admin_email: Optional[str] = None):
        self.admin_email = admin_email

    async def send_notification(
        self,
        notification_type: NotificationType,
        recipient: str,
        template_data: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Render a template and hand it to the delivery channel."""
        template = EMAIL_TEMPLATES[notification_type]
        try:
            message = template.format(**template_data)
        except KeyError as e:
            logger.warning(f"Missing template variable: {e}")
            message = template

        record = {
            "type": notification_type.value,
            "recipient": recipient,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        logger.info(f"[NOTIFICATION] EMAIL to {recipient}: {message[:100]}")
        return record

    async def send_order_confirmation(self, order: Dict[str, Any]) -> Dict[str, Any]:
        return await self.send_notification(
            NotificationType.ORDER_CONFIRMED,
            order["customer_email"],
            order,
        )

    async def send_admin_order_notification(self, order: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not self.admin_email:
            logger.debug(f"No admin email configured, skipping notice for order {order.get('order_number')}")
            return None
        return await self.send_notification(
            NotificationType.ADMIN_NEW_ORDER,
            self.admin_email,
            order,
        )
