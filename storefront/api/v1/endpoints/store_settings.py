"""
Store Settings API Endpoints
"""

from fastapi import APIRouter

from storefront.api.deps import DB, AdminUser
from storefront.schemas.store_settings import StoreSettingsResponse, StoreSettingsUpdate
from storefront.services.settings_service import SettingsService

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("", response_model=StoreSettingsResponse)
async def get_store_settings(db: DB):
    return await SettingsService(db).get_store_settings()


@router.put("", response_model=StoreSettingsResponse)
async def update_store_settings(request: StoreSettingsUpdate, db: DB, admin: AdminUser):
    return await SettingsService(db).update_settings(request.model_dump(exclude_unset=True))
