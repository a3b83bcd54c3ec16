"""
Product Model

Catalog entry plus the stock counters owned by the stock ledger.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Integer, Text, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from storefront.database import Base
from storefront.db_types import UUIDType, MoneyType


class Product(Base):
    """
    Sellable product.

    `inventory` is the on-hand count, `reserved_quantity` the part of it
    promised to orders that have not shipped yet. Both are mutated only
    through StockLedger.
    """
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("inventory >= 0", name="ck_products_inventory_non_negative"),
        CheckConstraint("reserved_quantity >= 0", name="ck_products_reserved_non_negative"),
        CheckConstraint("reserved_quantity <= inventory", name="ck_products_reserved_within_inventory"),
        CheckConstraint(
            "compare_price IS NULL OR compare_price > price",
            name="ck_products_compare_price_above_price",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(
        String(100),
        unique=True,
        nullable=True,
        index=True
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Pricing
    price: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    compare_price: Mapped[Optional[Decimal]] = mapped_column(
        MoneyType,
        nullable=True,
        comment="Strike-through price, must exceed price"
    )

    # Stock
    inventory: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="On-hand quantity"
    )
    reserved_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Quantity held by unshipped orders"
    )
    low_stock_threshold: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=5,
        comment="Available quantity at or below which a LOW_STOCK alert is raised"
    )
    reorder_point: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reorder_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Incremented by every stock mutation"
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    @property
    def available_quantity(self) -> int:
        """On-hand quantity not promised to any order."""
        return max(0, (self.inventory or 0) - (self.reserved_quantity or 0))

    @property
    def is_out_of_stock(self) -> bool:
        return self.available_quantity == 0

    @property
    def is_low_stock(self) -> bool:
        return 0 < self.available_quantity <= self.low_stock_threshold

    def __repr__(self) -> str:
        return f"<Product(name='{self.name}', inventory={self.inventory}, reserved={self.reserved_quantity})>"
