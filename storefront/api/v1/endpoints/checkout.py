"""
Checkout API Endpoints

Order placement and cart price preview.
"""

import logging
import uuid
from typing import List

from fastapi import APIRouter, BackgroundTasks, status

from storefront.api.deps import DB, CustomerId
from storefront.schemas.checkout import (
    PlaceOrderRequest,
    PlaceOrderResponse,
    QuoteRequest,
    QuoteResponse,
    QuoteLineResponse,
    QuoteCouponResponse,
)
from storefront.services.checkout_service import CheckoutService, CartLine, CustomerInfo
from storefront.services.outbox_service import OutboxDispatcher

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/checkout", tags=["Checkout"])


async def dispatch_order_side_effects(message_ids: List[uuid.UUID]) -> None:
    """Deliver this order's outbox messages right away; the scheduler picks up anything left."""
    await OutboxDispatcher().dispatch_pending(message_ids=message_ids)


def _cart_lines(items) -> List[CartLine]:
    return [
        CartLine(
            product_id=item.product_id,
            quantity=item.quantity,
            variant_id=item.variant_id,
            price=item.price,
        )
        for item in items
    ]


@router.post("/orders", response_model=PlaceOrderResponse, status_code=status.HTTP_201_CREATED)
async def place_order(
    request: PlaceOrderRequest,
    db: DB,
    customer_id: CustomerId,
    background_tasks: BackgroundTasks,
):
    """
    Place an order from a cart.

    Stock is reserved and the coupon redeemed atomically with the order.
    """
    customer = CustomerInfo(
        name=request.customer.name,
        email=str(request.customer.email),
        phone=request.customer.phone,
        address=request.customer.address,
        city=request.customer.city,
        postal_code=request.customer.postal_code,
        notes=request.customer.notes,
        customer_id=customer_id,
    )

    placed = await CheckoutService(db).place_order(
        _cart_lines(request.items),
        customer,
        coupon_code=request.coupon_code,
    )
    background_tasks.add_task(dispatch_order_side_effects, placed.outbox_message_ids)

    return PlaceOrderResponse(
        order_id=placed.order_id,
        order_number=placed.order_number,
        total=float(placed.total),
        payment_url=placed.payment_url,
    )


@router.post("/quote", response_model=QuoteResponse)
async def quote(
    request: QuoteRequest,
    db: DB,
    customer_id: CustomerId,
):
    """Preview totals for a cart without reserving stock."""
    result = await CheckoutService(db).quote(
        _cart_lines(request.items),
        coupon_code=request.coupon_code,
        customer_id=customer_id,
    )
    breakdown = result.breakdown

    coupon = None
    if result.coupon is not None:
        coupon = QuoteCouponResponse(
            code=result.coupon.code,
            valid=result.coupon.valid,
            discount_amount=float(result.coupon.discount_amount),
            reason=result.coupon.reason.value if result.coupon.reason else None,
            message=result.coupon.message,
        )

    return QuoteResponse(
        lines=[
            QuoteLineResponse(
                product_id=line.product_id,
                name=line.name,
                unit_price=float(line.unit_price),
                quantity=line.quantity,
                line_total=float(line.line_total),
                available=line.available,
            )
            for line in result.lines
        ],
        subtotal=float(breakdown.subtotal),
        discount=float(breakdown.discount),
        subtotal_after_discount=float(breakdown.subtotal_after_discount),
        shipping_cost=float(breakdown.shipping_cost),
        tax=float(breakdown.tax),
        total=float(breakdown.total),
        tax_rate_percent=float(breakdown.tax_rate_percent),
        coupon=coupon,
        amount_needed_for_free_shipping=float(result.amount_needed_for_free_shipping),
        free_shipping_progress=result.free_shipping_progress,
        currency_symbol=result.currency_symbol,
    )
