"""Value objects passed between pipeline stages, plus upload API response models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from app.schemas.common import CamelModel


class UploadKind(str, Enum):
    POLICY = "policy"
    PRODUCT = "product"
    PRODUCT_UPDATE = "product_update"


class ErrorStage(str, Enum):
    VALIDATION = "validation"  # malformed input, caught before any write
    RESOLUTION = "resolution"  # a mandatory reference does not exist
    WRITE = "write"  # storage rejected the record graph
    SKIPPED = "skipped"  # batch cancelled or timed out before the row ran


class BatchStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Pipeline values
# ---------------------------------------------------------------------------

class RawRow(CamelModel):
    """One data row as parsed. ``row_index`` is 1-based, header excluded."""

    row_index: int
    columns: dict[str, str]

    model_config = {"frozen": True}


class ParsedUpload(CamelModel):
    headers: list[str]
    rows: list[RawRow] = Field(default_factory=list)


class RowIssue(CamelModel):
    field: str | None = None
    message: str


class ValidationResult(CamelModel):
    row_index: int
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    issues: list[RowIssue] = Field(default_factory=list)


class ResolvedReferences(CamelModel):
    """Entity ids resolved from a row's text fields.

    ``insurer_id`` and ``product_id`` are always set (placeholders are
    created when needed); the optional references are None when unmatched.
    """

    insurer_id: str
    product_id: str
    line_of_business_id: str
    agent_id: str | None = None
    employee_id: str | None = None
    branch_id: str | None = None
    vehicle_type_id: str | None = None


class RowOutcome(CamelModel):
    row_index: int
    success: bool
    created_id: str | None = None
    error_message: str | None = None
    stage: ErrorStage | None = None
    issues: list[RowIssue] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# API responses
# ---------------------------------------------------------------------------

class UploadErrorEntry(CamelModel):
    row_index: int
    field: str | None = None
    message: str
    stage: ErrorStage


class UploadSummary(CamelModel):
    batch_id: str
    status: BatchStatus
    total_rows: int
    success_count: int
    error_count: int
    validation_error_count: int = 0
    processing_error_count: int = 0
    skipped_count: int = 0
    errors: list[UploadErrorEntry] = Field(default_factory=list)
    error_file_url: str | None = None


class UploadRowOutcomeOut(CamelModel):
    row_index: int
    success: bool
    created_id: str | None = None
    stage: str | None = None
    error_message: str | None = None
    issues: list[dict[str, Any]] | None = None


class UploadBatchOut(CamelModel):
    id: str
    client_id: str
    kind: str
    source_file_name: str
    status: str
    submitted_at: datetime
    completed_at: datetime | None = None
    total_rows: int
    success_count: int
    error_count: int
    error_file_path: str | None = None


class UploadBatchDetailOut(UploadBatchOut):
    rows: list[UploadRowOutcomeOut] = Field(default_factory=list)


class TemplateOut(CamelModel):
    kind: UploadKind
    line_of_business: str | None = None
    columns: list[str]
    sample_rows: list[dict[str, str]]
