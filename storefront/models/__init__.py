from storefront.models.product import Product
from storefront.models.coupon import Coupon, CouponRedemption, DiscountType
from storefront.models.order import Order, OrderItem, OrderStatus, StockReservation, ReservationStatus
from storefront.models.inventory import InventoryAlert, InventoryLog, AlertKind, InventoryChangeType
from storefront.models.outbox import OutboxMessage, OutboxStatus
from storefront.models.store_settings import StoreSettings

__all__ = [
    "Product",
    "Coupon",
    "CouponRedemption",
    "DiscountType",
    "Order",
    "OrderItem",
    "OrderStatus",
    "StockReservation",
    "ReservationStatus",
    "InventoryAlert",
    "InventoryLog",
    "AlertKind",
    "InventoryChangeType",
    "OutboxMessage",
    "OutboxStatus",
    "StoreSettings",
]
