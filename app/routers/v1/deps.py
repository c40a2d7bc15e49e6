"""Shared FastAPI dependencies for v1 routers."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.base import get_db
from app.services.context import IngestContext, validate_tenant_id
from app.services.storage import ObjectStorage, get_storage


def get_tenant_id(
    x_tenant_id: Optional[str] = Header(default=None, alias="X-Tenant-ID"),
) -> str:
    """Tenant for the request; falls back to the configured default client."""
    return validate_tenant_id((x_tenant_id or "").strip() or settings.default_client_id)


def get_ingest_context(
    tenant_id: str = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
) -> IngestContext:
    return IngestContext(tenant_id=tenant_id, session=session, storage=storage)
