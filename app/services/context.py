"""Explicit per-request ingestion context (tenant, session, storage)."""

from __future__ import annotations

import re
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidTenantError
from app.services.storage import ObjectStorage

# Tenant ids become storage path segments
TENANT_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,64}")


def validate_tenant_id(tenant_id: str) -> str:
    if not TENANT_ID_PATTERN.fullmatch(tenant_id):
        raise InvalidTenantError(tenant_id)
    return tenant_id


@dataclass(frozen=True)
class IngestContext:
    """Everything a pipeline stage may touch; passed in, never looked up globally."""

    tenant_id: str
    session: AsyncSession
    storage: ObjectStorage

    def __post_init__(self) -> None:
        validate_tenant_id(self.tenant_id)
