# Services module
from storefront.services.stock_ledger import StockLedger
from storefront.services.coupon_service import CouponService
from storefront.services.checkout_service import CheckoutService
from storefront.services.inventory_alert_service import InventoryAlertService
from storefront.services.inventory_service import InventoryService
from storefront.services.order_service import OrderService
from storefront.services.outbox_service import OutboxDispatcher
from storefront.services.settings_service import SettingsService
from storefront.services.payment_service import PaymentService
from storefront.services.notification_service import NotificationService

__all__ = [
    "StockLedger",
    "CouponService",
    "CheckoutService",
    "InventoryAlertService",
    "InventoryService",
    "OrderService",
    "OutboxDispatcher",
    "SettingsService",
    "PaymentService",
    "NotificationService",
]
