"""
Inventory Models

Stock alerts raised against thresholds and the audit log of every stock
mutation.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Integer, Text, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column

from storefront.database import Base
from storefront.db_types import UUIDType


class AlertKind(str, Enum):
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"


class InventoryChangeType(str, Enum):
    """Reason a stock counter moved."""
    RESERVATION = "RESERVATION"  # Checkout took a hold
    RELEASE = "RELEASE"  # Hold returned (cancel / expiry)
    FULFILLMENT = "FULFILLMENT"  # Hold shipped, on-hand reduced
    RESTOCK = "RESTOCK"  # Goods received
    ADJUSTMENT = "ADJUSTMENT"  # Manual correction


class InventoryAlert(Base):
    """
    Active or historical stock alert.

    At most one unresolved alert per (product, kind).
    """
    __tablename__ = "inventory_alerts"
    __table_args__ = (
        Index(
            "uq_inventory_alerts_active",
            "product_id",
            "kind",
            unique=True,
            postgresql_where=text("resolved_at IS NULL"),
            sqlite_where=text("resolved_at IS NULL"),
        ),
        Index("ix_inventory_alerts_created", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    threshold: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Low stock threshold at the time the alert was raised"
    )
    available_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Available quantity at the time the alert was raised"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    acknowledged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    acknowledged_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.resolved_at is None

    def __repr__(self) -> str:
        return f"<InventoryAlert(product_id={self.product_id}, kind='{self.kind}', active={self.is_active})>"


class InventoryLog(Base):
    """Audit trail of stock counter changes."""
    __tablename__ = "inventory_logs"
    __table_args__ = (
        Index("ix_inventory_logs_product_created", "product_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Signed change of the counter this entry is about"
    )
    previous_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    new_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_reserved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    new_reserved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Order or reservation id"
    )
    created_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<InventoryLog(product_id={self.product_id}, type='{self.type}', {self.previous_qty}->{self.new_qty})>"
