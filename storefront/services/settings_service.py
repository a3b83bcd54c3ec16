"""Store settings: tax rate, shipping and currency used by pricing."""
import logging
from decimal import Decimal
from typing import Dict, Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.models.store_settings import StoreSettings, STORE_SETTINGS_ID
from storefront.services.pricing_service import PricingSettings, to_money


logger = logging.getLogger(__name__)


class SettingsService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_store_settings(self) -> StoreSettings:
        """Single settings row, seeded from configuration on first use."""
        result = await self.db.execute(
            select(StoreSettings).where(StoreSettings.id == STORE_SETTINGS_ID)
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = StoreSettings(
                id=STORE_SETTINGS_ID,
                tax_rate_percent=to_money(settings.STORE_TAX_RATE_PERCENT),
                shipping_cost=to_money(settings.STORE_SHIPPING_COST),
                free_shipping_threshold=to_money(settings.STORE_FREE_SHIPPING_THRESHOLD),
                currency=settings.STORE_CURRENCY,
                currency_symbol=settings.STORE_CURRENCY_SYMBOL,
                admin_notification_email=settings.ADMIN_NOTIFICATION_EMAIL,
            )
            self.db.add(row)
            await self.db.flush()
            logger.info("Seeded store settings from configuration defaults")
        return row

    async def get_pricing_settings(self) -> PricingSettings:
        row = await self.get_store_settings()
        return PricingSettings(
            tax_rate_percent=Decimal(row.tax_rate_percent),
            shipping_cost=Decimal(row.shipping_cost),
            free_shipping_threshold=Decimal(row.free_shipping_threshold),
            currency_symbol=row.currency_symbol,
        )

    async def update_settings(self, data: Dict[str, Any]) -> StoreSettings:
        row = await self.get_store_settings()
        for field, value in data.items():
            if value is None:
                continue
            if field in ("tax_rate_percent", "shipping_cost", "free_shipping_threshold"):
                value = to_money(value)
            setattr(row, field, value)
        await self.db.commit()
        await self.db.refresh(row)
        logger.info(f"Store settings updated: {', '.join(sorted(data))}")
        return row
