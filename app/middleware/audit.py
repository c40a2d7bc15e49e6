"""Audit logging middleware: records every state-changing request to audit_trail."""


import asyncio
import logging
import time
from collections.abc import Callable

from fastapi import Request, Response
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.db.base import async_session_factory
from app.domain.audit import AuditTrail
from app.services.context import TENANT_ID_PATTERN

logger = logging.getLogger(__name__)

# Methods that mutate state
_WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


def entity_type_for(path: str) -> str:
    """``/api/v1/uploads/policies`` -> ``uploads``; first segment after the version."""
    parts = [p for p in path.strip("/").split("/") if p]
    if len(parts) >= 3 and parts[0] == "api":
        return parts[2]
    return parts[-1] if parts else "unknown"


class AuditMiddleware(BaseHTTPMiddleware):
    """Logs all write operations.

    Each audit row is written in a background task after the response is
    produced. A failed audit write is logged and never reaches the caller.
    """

    def __init__(self, app):
        super().__init__(app)
        self._tasks: set[asyncio.Task] = set()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000)

        if request.method in _WRITE_METHODS:
            task = asyncio.create_task(self._record(request, response.status_code, duration_ms))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        return response

    async def _record(self, request: Request, status_code: int, duration_ms: int) -> None:
        client_id = (request.headers.get("x-tenant-id") or "").strip()
        if not TENANT_ID_PATTERN.fullmatch(client_id):
            client_id = settings.default_client_id
        path = request.url.path
        try:
            async with async_session_factory() as session:
                session.add(
                    AuditTrail(
                        client_id=client_id,
                        ip_address=request.client.host if request.client else None,
                        user_agent=request.headers.get("user-agent"),
                        method=request.method,
                        path=path,
                        status_code=status_code,
                        duration_ms=duration_ms,
                        entity_type=entity_type_for(path),
                        description=f"{request.method} {path} -> {status_code} ({duration_ms}ms)",
                    )
                )
                await session.commit()
        except SQLAlchemyError:
            logger.exception("Audit write failed for %s %s", request.method, path)
