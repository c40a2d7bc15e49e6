"""Bulk upload endpoints: submit CSV files and browse batch history.

The router only handles HTTP concerns (file type and size checks, decoding,
response envelopes). Ingestion itself lives in
:mod:`app.services.ingestion`.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from app.core.config import settings
from app.core.exceptions import EmptyUploadError, PayloadTooLargeError, UnsupportedMediaTypeError
from app.core.pagination import PaginationParams
from app.core.response import UPLOAD_ERROR_RESPONSES, DataResponse, ListResponse, csv_download, paginated
from app.routers.v1.deps import get_ingest_context
from app.schemas.upload import UploadBatchDetailOut, UploadBatchOut, UploadKind, UploadSummary
from app.services.context import IngestContext
from app.services.csv_parser import decode_upload
from app.services.ingestion import IngestionService


router = APIRouter(prefix="/uploads", tags=["Uploads"])

_ALLOWED_CONTENT_TYPES = {
    "text/csv",
    "text/plain",
    "application/csv",
    "application/vnd.ms-excel",
    "application/octet-stream",
}


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _svc(ctx: IngestContext) -> IngestionService:
    return IngestionService(ctx)


async def _read_csv(file: UploadFile) -> str:
    """Validate the uploaded file and return its text."""
    filename = (file.filename or "").lower()
    if not filename.endswith(".csv") and (file.content_type or "") not in _ALLOWED_CONTENT_TYPES:
        raise UnsupportedMediaTypeError(
            f"Unsupported file type '{file.content_type}'. Upload a .csv file."
        )

    contents = await file.read()
    if len(contents) > settings.max_upload_size_bytes:
        raise PayloadTooLargeError(settings.max_upload_size_mb)
    if not contents.strip():
        raise EmptyUploadError("Uploaded file is empty.")
    return decode_upload(contents)


async def _ingest(kind: UploadKind, file: UploadFile, ctx: IngestContext) -> dict:
    text = await _read_csv(file)
    summary = await _svc(ctx).run_batch(
        kind,
        text,
        file.filename or "upload.csv",
        timeout_seconds=settings.batch_timeout_seconds,
    )
    return {"data": summary}


# ------------------------------------------------------------------
# Submit
# ------------------------------------------------------------------

@router.post(
    "/policies",
    response_model=DataResponse[UploadSummary],
    status_code=status.HTTP_201_CREATED,
    responses=UPLOAD_ERROR_RESPONSES,
)
async def upload_policies(
    file: UploadFile = File(..., description="Policy CSV (any line of business)"),
    ctx: IngestContext = Depends(get_ingest_context),
):
    """Ingest a policy CSV. Each row's lineOfBusiness selects its detail columns."""
    return await _ingest(UploadKind.POLICY, file, ctx)


@router.post(
    "/products",
    response_model=DataResponse[UploadSummary],
    status_code=status.HTTP_201_CREATED,
    responses=UPLOAD_ERROR_RESPONSES,
)
async def upload_products(
    file: UploadFile = File(..., description="Product CSV"),
    ctx: IngestContext = Depends(get_ingest_context),
):
    return await _ingest(UploadKind.PRODUCT, file, ctx)


@router.post(
    "/product-updates",
    response_model=DataResponse[UploadSummary],
    status_code=status.HTTP_201_CREATED,
    responses=UPLOAD_ERROR_RESPONSES,
)
async def upload_product_updates(
    file: UploadFile = File(..., description="Product update CSV keyed by productCode"),
    ctx: IngestContext = Depends(get_ingest_context),
):
    """Update existing products in bulk. Empty cells leave the field unchanged."""
    return await _ingest(UploadKind.PRODUCT_UPDATE, file, ctx)


# ------------------------------------------------------------------
# History
# ------------------------------------------------------------------

@router.get("", response_model=ListResponse[UploadBatchOut])
async def list_batches(
    kind: Optional[UploadKind] = Query(default=None, description="Filter by upload kind"),
    pagination: PaginationParams = Depends(),
    ctx: IngestContext = Depends(get_ingest_context),
):
    """List upload batches for the tenant (paginated, newest first)."""
    items, total = await _svc(ctx).list_batches(pagination, kind)
    return paginated(
        [UploadBatchOut.model_validate(b) for b in items],
        total, pagination.page, pagination.limit,
    )


@router.get("/{batch_id}", response_model=DataResponse[UploadBatchDetailOut])
async def get_batch(
    batch_id: str,
    ctx: IngestContext = Depends(get_ingest_context),
):
    batch = await _svc(ctx).get_batch(batch_id)
    return {"data": UploadBatchDetailOut.model_validate(batch)}


@router.get("/{batch_id}/errors.csv", responses={200: {"content": {"text/csv": {}}}})
async def download_error_report(
    batch_id: str,
    ctx: IngestContext = Depends(get_ingest_context),
):
    """Failed rows of a batch with their error text, ready to fix and re-upload."""
    content = await _svc(ctx).read_error_report(batch_id)
    return csv_download(content, f"upload-errors-{batch_id}.csv")
