"""SQLAlchemy ORM models for bulk upload batches and their per-row outcomes."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.domain.mixins import IdMixin, TenantMixin, TimestampMixin


class UploadBatch(Base, IdMixin, TenantMixin, TimestampMixin):
    """One submitted file. Never re-run once processing has finished."""

    __tablename__ = "upload_batches"

    # "policy" | "product" | "product_update"
    kind: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    source_file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # processing | completed | cancelled | timed_out
    status: Mapped[str] = mapped_column(String(20), default="processing", nullable=False, index=True)
    total_rows: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    success_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_file_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    rows: Mapped[List["UploadRowOutcome"]] = relationship(
        back_populates="batch",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="UploadRowOutcome.row_index",
    )


class UploadRowOutcome(Base, IdMixin, TenantMixin, TimestampMixin):
    """Exactly one row per raw data row of a batch."""

    __tablename__ = "upload_row_outcomes"

    batch_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("upload_batches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    row_index: Mapped[int] = mapped_column(Integer, nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    # validation | resolution | write | skipped (null on success)
    stage: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    issues: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON, nullable=True)
    row_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    batch: Mapped["UploadBatch"] = relationship(back_populates="rows")
