from typing import Annotated, Optional
import hmac
import logging

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.database import get_db


logger = logging.getLogger(__name__)


async def get_customer_id(
    x_customer_id: Annotated[Optional[str], Header()] = None,
) -> Optional[str]:
    """
    Customer identity as asserted by the auth collaborator in front of this
    service. Absent header means a guest checkout.
    """
    if x_customer_id is None:
        return None
    x_customer_id = x_customer_id.strip()
    return x_customer_id or None


async def require_admin(
    x_admin_key: Annotated[Optional[str], Header()] = None,
    x_admin_user: Annotated[Optional[str], Header()] = None,
) -> str:
    """
    Dependency for admin-only endpoints.

    Returns the acting admin's name for audit fields.
    """
    if not settings.ADMIN_API_KEY:
        logger.warning("ADMIN_API_KEY is not configured; admin endpoints are closed")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access is not configured",
        )
    if not x_admin_key or not hmac.compare_digest(x_admin_key, settings.ADMIN_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin key",
        )
    return x_admin_user or "admin"


# Type aliases for cleaner endpoint signatures
DB = Annotated[AsyncSession, Depends(get_db)]
CustomerId = Annotated[Optional[str], Depends(get_customer_id)]
AdminUser = Annotated[str, Depends(require_admin)]
