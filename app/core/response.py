"""Response envelopes and the CSV download helper shared by the routers."""


import math
from typing import Generic, TypeVar

from fastapi.responses import Response
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from app.core.pagination import PageMeta

T = TypeVar("T")

_ENVELOPE_CONFIG = {"populate_by_name": True, "alias_generator": to_camel}


class DataResponse(BaseModel, Generic[T]):
    """Single-item response envelope: `{ data: {...} }`"""

    data: T

    model_config = _ENVELOPE_CONFIG


class ListResponse(BaseModel, Generic[T]):
    """Paginated list response envelope: `{ data: [...], meta: {...} }`"""

    data: list[T]
    meta: PageMeta

    model_config = _ENVELOPE_CONFIG


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    """Body of every request-level failure: `{ error: {code, message} }`"""

    error: ErrorDetail


# OpenAPI docs for the failures an upload request can end with
UPLOAD_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "No data rows in the file, or an invalid X-Tenant-ID"},
    413: {"model": ErrorResponse, "description": "File exceeds the upload size limit"},
    415: {"model": ErrorResponse, "description": "Not a CSV file"},
    422: {"model": ErrorResponse, "description": "File is not valid UTF-8"},
}


def paginated(items: list, total: int, page: int, limit: int) -> dict:
    """Build a paginated response dict for use with ListResponse."""
    return {
        "data": items,
        "meta": {
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if total else 0,
        },
    }


def csv_download(content: str | bytes, filename: str) -> Response:
    """Return *content* as a ``text/csv`` attachment named *filename*."""
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
