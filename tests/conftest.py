import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir}/test.db"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["PAYMENT_GATEWAY_URL"] = ""
os.environ["PUBLIC_URL"] = "https://shop.test"
os.environ["ADMIN_NOTIFICATION_EMAIL"] = "owner@shop.test"

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx
import pytest

from storefront import models  # noqa: F401
from storefront.database import Base, engine, async_session_factory
from storefront.models.coupon import Coupon
from storefront.models.product import Product


@pytest.fixture(autouse=True)
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
async def session():
    async with async_session_factory() as db:
        yield db


@pytest.fixture
async def client():
    from storefront.main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_product():
    async def _make(
        name="Olive Oil 1L",
        price="100.00",
        inventory=10,
        low_stock_threshold=2,
        sku=None,
        reserved_quantity=0,
    ) -> Product:
        async with async_session_factory() as db:
            product = Product(
                name=name,
                sku=sku,
                price=Decimal(price),
                inventory=inventory,
                reserved_quantity=reserved_quantity,
                low_stock_threshold=low_stock_threshold,
            )
            db.add(product)
            await db.commit()
            return product
    return _make


@pytest.fixture
def make_coupon():
    async def _make(
        code="SAVE10",
        discount_type="PERCENTAGE",
        discount_value="10",
        min_purchase=None,
        max_discount=None,
        usage_limit=None,
        usage_per_user=None,
        valid_from=None,
        valid_to=None,
        active=True,
    ) -> Coupon:
        now = datetime.now(timezone.utc)
        async with async_session_factory() as db:
            coupon = Coupon(
                code=code,
                discount_type=discount_type,
                discount_value=Decimal(discount_value),
                min_purchase=Decimal(min_purchase) if min_purchase is not None else None,
                max_discount=Decimal(max_discount) if max_discount is not None else None,
                usage_limit=usage_limit,
                usage_per_user=usage_per_user,
                valid_from=valid_from or now - timedelta(days=1),
                valid_to=valid_to,
                active=active,
                usage_count=0,
            )
            db.add(coupon)
            await db.commit()
            return coupon
    return _make

