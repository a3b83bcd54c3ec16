from fastapi import APIRouter

from storefront.api.v1.endpoints import (
    # Checkout
    checkout,
    coupons,
    orders,
    # Stock
    inventory,
    # Store configuration
    store_settings,
)

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(checkout.router)
api_router.include_router(coupons.router)
api_router.include_router(orders.router)
api_router.include_router(inventory.router)
api_router.include_router(store_settings.router)
