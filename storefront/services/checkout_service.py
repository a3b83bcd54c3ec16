"""
Checkout Orchestrator

Turns a cart into a priced, stock-safe order. One attempt walks

    STARTED -> ITEMS_VALIDATED -> STOCK_RESERVED -> PRICED -> ORDER_PERSISTED

inside a single database transaction and ends in SUCCESS or ROLLED_BACK.
Rolling back the transaction is what releases reservations taken by a
failed attempt.

Transient database conflicts (lock timeouts, deadlocks, serialization
failures, redemption key races) are retried a bounded number of times.
Inventory and coupon rejections are returned to the customer as-is.

After commit the payment redirect URL is requested; notifications and the
alert recheck are delivered from the outbox. None of that can undo the order.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.core.exceptions import (
    StorefrontError,
    CheckoutValidationError,
    ProductNotFoundError,
    PriceChangedError,
    InsufficientInventoryError,
    CouponRejectedError,
    TransientConflictError,
)
from storefront.models.order import Order, OrderItem, OrderStatus, StockReservation, ReservationStatus
from storefront.models.product import Product
from storefront.services.coupon_service import CouponService, CouponDecision
from storefront.services.outbox_service import enqueue, TOPIC_ORDER_PLACED, TOPIC_INVENTORY_RECHECK
from storefront.services.payment_service import PaymentService, PaymentGatewayError
from storefront.services.pricing_service import (
    PriceBreakdown,
    PriceLine,
    PricingSettings,
    calculate_subtotal,
    price_order,
    to_money,
    amount_needed_for_free_shipping,
    free_shipping_progress,
)
from storefront.services.settings_service import SettingsService
from storefront.services.stock_ledger import StockLedger


logger = logging.getLogger(__name__)


class CheckoutState(str, Enum):
    STARTED = "STARTED"
    ITEMS_VALIDATED = "ITEMS_VALIDATED"
    STOCK_RESERVED = "STOCK_RESERVED"
    PRICED = "PRICED"
    ORDER_PERSISTED = "ORDER_PERSISTED"
    SUCCESS = "SUCCESS"
    ROLLED_BACK = "ROLLED_BACK"


@dataclass
class CartLine:
    product_id: uuid.UUID
    quantity: int
    variant_id: Optional[str] = None
    price: Optional[Decimal] = None  # Unit price the client displayed, if any


@dataclass
class CustomerInfo:
    name: str
    email: str
    phone: str
    address: str
    city: str
    postal_code: Optional[str] = None
    notes: Optional[str] = None
    customer_id: Optional[str] = None  # None for guests


@dataclass
class PlacedOrder:
    order_id: uuid.UUID
    order_number: str
    total: Decimal
    payment_url: Optional[str] = None
    outbox_message_ids: List[uuid.UUID] = field(default_factory=list)


@dataclass
class QuoteLine:
    product_id: uuid.UUID
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    available: int


@dataclass
class CheckoutQuote:
    lines: List[QuoteLine]
    breakdown: PriceBreakdown
    coupon: Optional[CouponDecision]
    amount_needed_for_free_shipping: Decimal
    free_shipping_progress: int
    currency_symbol: str


def validate_cart(cart: List[CartLine], customer: Optional[CustomerInfo] = None) -> None:
    """Reject malformed input before anything is touched."""
    if not cart:
        raise CheckoutValidationError("Cart is empty")
    for line in cart:
        if line.quantity is None or line.quantity <= 0:
            raise CheckoutValidationError(
                f"Quantity for product {line.product_id} must be positive",
                details={"product_id": str(line.product_id)},
            )
    if customer is not None:
        missing = [
            name for name in ("name", "email", "phone", "address", "city")
            if not (getattr(customer, name) or "").strip()
        ]
        if missing:
            raise CheckoutValidationError(
                f"Missing customer fields: {', '.join(missing)}",
                details={"fields": missing},
            )


class CheckoutService:
    def __init__(
        self,
        db: AsyncSession,
        payment_service: Optional[PaymentService] = None,
        pricing: Optional[PricingSettings] = None,
    ):
        self.db = db
        self.payment_service = payment_service or PaymentService()
        self._pricing = pricing
        self.max_attempts = max(1, settings.CHECKOUT_MAX_ATTEMPTS)
        self.retry_backoff = settings.CHECKOUT_RETRY_BACKOFF_SECONDS

    async def _pricing_settings(self) -> PricingSettings:
        if self._pricing is None:
            self._pricing = await SettingsService(self.db).get_pricing_settings()
        return self._pricing

    def _transition(self, order_id: uuid.UUID, state: CheckoutState) -> None:
        logger.debug(f"Checkout {order_id}: {state.value}")

    async def _load_products(self, cart: List[CartLine]) -> Dict[uuid.UUID, Product]:
        ids = {line.product_id for line in cart}
        result = await self.db.execute(
            select(Product)
            .where(Product.id.in_(ids))
            .execution_options(populate_existing=True)
        )
        products = {product.id: product for product in result.scalars().all()}
        for line in cart:
            product = products.get(line.product_id)
            if product is None or not product.is_active:
                raise ProductNotFoundError(line.product_id)
        return products

    def _check_prices(self, cart: List[CartLine], products: Dict[uuid.UUID, Product]) -> None:
        for line in cart:
            if line.price is None:
                continue
            product = products[line.product_id]
            expected = to_money(product.price)
            received = to_money(line.price)
            if expected != received:
                raise PriceChangedError(product.id, product.name, expected, received)

    @staticmethod
    def _generate_order_number(order_id: uuid.UUID) -> str:
        """Generate order number: ORD-YYYYMMDD-XXXXXXXX, suffix taken from the order id."""
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        return f"ORD-{today}-{order_id.hex[:8].upper()}"

    # ==================== Place Order ====================

    async def place_order(
        self,
        cart: List[CartLine],
        customer: CustomerInfo,
        coupon_code: Optional[str] = None,
    ) -> PlacedOrder:
        """
        placeOrder(cart, customerInfo, couponCode?).

        Raises a StorefrontError subclass on rejection; nothing is persisted
        in that case.
        """
        validate_cart(cart, customer)
        if coupon_code is not None and not coupon_code.strip():
            coupon_code = None

        placed = None
        for attempt in range(1, self.max_attempts + 1):
            order_id = uuid.uuid4()
            self._transition(order_id, CheckoutState.STARTED)
            try:
                placed = await self._attempt(order_id, cart, customer, coupon_code)
                await self.db.commit()
                self._transition(order_id, CheckoutState.SUCCESS)
                break
            except StorefrontError as e:
                await self.db.rollback()
                self._transition(order_id, CheckoutState.ROLLED_BACK)
                logger.info(f"Checkout rejected: {e.error_code} {e.message}")
                raise
            except (OperationalError, IntegrityError) as e:
                await self.db.rollback()
                self._transition(order_id, CheckoutState.ROLLED_BACK)
                if attempt >= self.max_attempts:
                    logger.error(f"Checkout gave up after {attempt} attempts: {e.orig}")
                    raise TransientConflictError(
                        "The store is busy, please try again",
                        details={"attempts": attempt},
                    ) from e
                logger.warning(f"Checkout attempt {attempt} hit a conflict, retrying: {e.orig}")
                await asyncio.sleep(self.retry_backoff * attempt)

        logger.info(
            f"Order {placed.order_number} placed: total {placed.total}, "
            f"{len(cart)} line(s), coupon {coupon_code or '-'}"
        )
        await self._attach_payment_url(placed, customer)
        return placed

    async def _attempt(
        self,
        order_id: uuid.UUID,
        cart: List[CartLine],
        customer: CustomerInfo,
        coupon_code: Optional[str],
    ) -> PlacedOrder:
        # 1. Items
        products = await self._load_products(cart)
        self._check_prices(cart, products)
        self._transition(order_id, CheckoutState.ITEMS_VALIDATED)

        # 2. Stock, ascending product id
        ledger = StockLedger(self.db, actor=customer.customer_id)
        reservation = await ledger.reserve_many(
            [(line.product_id, line.quantity) for line in cart],
            reference=str(order_id),
        )
        if not reservation.ok:
            failure = reservation.failure
            raise InsufficientInventoryError(
                failure.product_id,
                available=failure.available,
                requested=failure.requested,
                product_name=products[failure.product_id].name,
            )
        self._transition(order_id, CheckoutState.STOCK_RESERVED)

        # 3. Coupon
        lines = [PriceLine(unit_price=to_money(products[line.product_id].price), quantity=line.quantity) for line in cart]
        subtotal = calculate_subtotal(lines)
        coupons = CouponService(self.db)
        decision = None
        discount = Decimal("0")
        if coupon_code:
            decision = await coupons.validate(coupon_code, subtotal, customer.customer_id)
            if not decision.valid:
                raise CouponRejectedError(decision.code, decision.reason.value)
            discount = decision.discount_amount

        # 4. Price
        pricing = await self._pricing_settings()
        breakdown = price_order(lines, pricing, discount)
        self._transition(order_id, CheckoutState.PRICED)

        # 5. Persist
        order = Order(
            id=order_id,
            order_number=self._generate_order_number(order_id),
            status=OrderStatus.CREATED.value,
            customer_id=customer.customer_id,
            customer_name=customer.name,
            customer_email=customer.email,
            customer_phone=customer.phone,
            shipping_address=customer.address,
            shipping_city=customer.city,
            shipping_postal_code=customer.postal_code,
            notes=customer.notes,
            subtotal=breakdown.subtotal,
            discount_amount=breakdown.discount,
            shipping_cost=breakdown.shipping_cost,
            tax_amount=breakdown.tax,
            total=breakdown.total,
            tax_rate=breakdown.tax_rate_percent,
            coupon_id=decision.coupon.id if decision else None,
            coupon_code=decision.code if decision else None,
        )
        self.db.add(order)

        for position, (line, priced) in enumerate(zip(cart, lines)):
            product = products[line.product_id]
            self.db.add(OrderItem(
                order_id=order_id,
                product_id=product.id,
                variant_id=line.variant_id,
                position=position,
                product_name=product.name,
                product_sku=product.sku,
                quantity=line.quantity,
                unit_price=priced.unit_price,
                line_total=priced.line_total,
            ))

        expires_at = datetime.now(timezone.utc) + timedelta(seconds=settings.RESERVATION_TTL_SECONDS)
        for product_id, quantity in reservation.reserved:
            self.db.add(StockReservation(
                order_id=order_id,
                product_id=product_id,
                quantity=quantity,
                status=ReservationStatus.ACTIVE.value,
                expires_at=expires_at,
            ))
        await self.db.flush()

        if decision is not None:
            await coupons.redeem(decision, order_id, customer.customer_id)

        product_ids = [str(product_id) for product_id, _ in reservation.reserved]
        messages = [
            enqueue(self.db, TOPIC_ORDER_PLACED, {
                "order_id": str(order_id),
                "order_number": order.order_number,
                "customer_name": customer.name,
                "customer_email": customer.email,
                "total": str(breakdown.total),
                "item_count": sum(line.quantity for line in cart),
            }),
            enqueue(self.db, TOPIC_INVENTORY_RECHECK, {"product_ids": product_ids}),
        ]
        await self.db.flush()
        self._transition(order_id, CheckoutState.ORDER_PERSISTED)

        return PlacedOrder(
            order_id=order_id,
            order_number=order.order_number,
            total=breakdown.total,
            outbox_message_ids=[message.id for message in messages],
        )

    async def _attach_payment_url(self, placed: PlacedOrder, customer: CustomerInfo) -> None:
        """Post-commit, best effort: the order stands even if this fails."""
        try:
            placed.payment_url = await self.payment_service.create_payment_redirect(
                order_id=str(placed.order_id),
                amount=placed.total,
                customer_name=customer.name,
                customer_email=customer.email,
                customer_phone=customer.phone,
            )
            order = await self.db.get(Order, placed.order_id)
            order.payment_url = placed.payment_url
            await self.db.commit()
        except (PaymentGatewayError, SQLAlchemyError) as e:
            await self.db.rollback()
            logger.warning(f"Payment redirect for order {placed.order_number} failed: {e}")
        except Exception:
            await self.db.rollback()
            logger.exception(f"Unexpected error creating payment redirect for order {placed.order_number}")

    # ==================== Quote ====================

    async def quote(
        self,
        cart: List[CartLine],
        coupon_code: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> CheckoutQuote:
        """Price a cart the way place_order would, without reserving anything."""
        validate_cart(cart)
        products = await self._load_products(cart)
        self._check_prices(cart, products)

        lines = [PriceLine(unit_price=to_money(products[line.product_id].price), quantity=line.quantity) for line in cart]
        subtotal = calculate_subtotal(lines)

        decision = None
        discount = Decimal("0")
        if coupon_code and coupon_code.strip():
            decision = await CouponService(self.db).validate(coupon_code, subtotal, customer_id)
            if decision.valid:
                discount = decision.discount_amount

        pricing = await self._pricing_settings()
        breakdown = price_order(lines, pricing, discount)

        return CheckoutQuote(
            lines=[
                QuoteLine(
                    product_id=line.product_id,
                    name=products[line.product_id].name,
                    unit_price=priced.unit_price,
                    quantity=line.quantity,
                    line_total=priced.line_total,
                    available=products[line.product_id].available_quantity,
                )
                for line, priced in zip(cart, lines)
            ],
            breakdown=breakdown,
            coupon=decision,
            amount_needed_for_free_shipping=amount_needed_for_free_shipping(
                breakdown.subtotal_after_discount, pricing
            ),
            free_shipping_progress=free_shipping_progress(breakdown.subtotal_after_discount, pricing),
            currency_symbol=pricing.currency_symbol,
        )
