"""Database-agnostic column types shared by the storefront models.

Production runs on PostgreSQL, local development and the test suite on SQLite.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Numeric
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

# JSON works with both SQLite and PostgreSQL (JSONB is PostgreSQL-only)
JSONType = JSON

# Renders as native uuid on PostgreSQL and CHAR(32) elsewhere
UUIDType = PG_UUID(as_uuid=True)

# All money columns
MoneyType = Numeric(12, 2)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
