"""Single-row store configuration read by pricing."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from storefront.database import Base
from storefront.db_types import MoneyType


STORE_SETTINGS_ID = 1


class StoreSettings(Base):
    __tablename__ = "store_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=STORE_SETTINGS_ID)
    tax_rate_percent: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    shipping_cost: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    free_shipping_threshold: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    currency_symbol: Mapped[str] = mapped_column(String(5), nullable=False)
    admin_notification_email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<StoreSettings(tax={self.tax_rate_percent}%, shipping={self.shipping_cost})>"
