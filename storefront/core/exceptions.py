"""
Domain errors raised by the storefront services.

Each error carries a machine-readable `error_code`, the HTTP status the API
answers with, and `details` naming the offending product, coupon or order.
"""
from decimal import Decimal
from typing import Dict, Optional


class StorefrontError(Exception):
    """Base class for errors reported back to the caller."""
    status_code = 400
    error_code = "STOREFRONT_ERROR"
    retryable = False

    def __init__(self, message: str, error_code: str = None, details: Dict = None):
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict:
        body = {"error": self.error_code, "message": self.message, **self.details}
        if self.retryable:
            body["retryable"] = True
        return body


class CheckoutValidationError(StorefrontError):
    status_code = 400
    error_code = "VALIDATION_ERROR"


class ProductNotFoundError(StorefrontError):
    status_code = 404
    error_code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id):
        self.product_id = str(product_id)
        super().__init__(
            f"Product {self.product_id} not found",
            details={"product_id": self.product_id},
        )


class PriceChangedError(StorefrontError):
    """Client priced the cart against an outdated catalog price."""
    status_code = 409
    error_code = "PRICE_CHANGED"

    def __init__(self, product_id, product_name: str, expected: Decimal, received: Decimal):
        self.product_id = str(product_id)
        self.expected = expected
        self.received = received
        super().__init__(
            f"Price of '{product_name}' changed from {received} to {expected}",
            details={
                "product_id": self.product_id,
                "expected": str(expected),
                "received": str(received),
            },
        )


class InsufficientInventoryError(StorefrontError):
    status_code = 409
    error_code = "INSUFFICIENT_INVENTORY"

    def __init__(self, product_id, available: int, requested: int, product_name: Optional[str] = None):
        self.product_id = str(product_id)
        self.available = available
        self.requested = requested
        label = f"'{product_name}'" if product_name else self.product_id
        super().__init__(
            f"Only {available} of {label} available, {requested} requested",
            details={
                "product_id": self.product_id,
                "available": available,
                "requested": requested,
            },
        )


class CouponRejectedError(StorefrontError):
    status_code = 400
    error_code = "COUPON_REJECTED"

    def __init__(self, code: str, reason: str):
        self.code = code
        self.reason = reason
        super().__init__(
            f"Coupon {code} rejected: {reason}",
            details={"code": code, "reason": reason},
        )


class TransientConflictError(StorefrontError):
    """Concurrent updates kept conflicting; the client may retry."""
    status_code = 503
    error_code = "TRANSIENT_CONFLICT"
    retryable = True


class OrderNotFoundError(StorefrontError):
    status_code = 404
    error_code = "ORDER_NOT_FOUND"

    def __init__(self, order_id):
        self.order_id = str(order_id)
        super().__init__(f"Order {self.order_id} not found", details={"order_id": self.order_id})


class InvalidOrderTransitionError(StorefrontError):
    status_code = 409
    error_code = "INVALID_ORDER_TRANSITION"

    def __init__(self, order_number: str, current: str, target: str):
        super().__init__(
            f"Order {order_number} cannot move from {current} to {target}",
            details={"order_number": order_number, "current_status": current, "target_status": target},
        )


class InventoryAdjustmentError(StorefrontError):
    status_code = 400
    error_code = "INVALID_ADJUSTMENT"
