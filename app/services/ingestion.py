"""Batch orchestrator for bulk uploads.

Runs parse -> validate -> resolve -> write for every row, in input order,
one row at a time. A failed row never stops the batch and is never retried.
Each row's work is committed before the next row starts, so a cancelled or
timed-out batch keeps the rows it finished and reports the rest as skipped.

This is the only place that turns row outcomes into the summary returned to
API callers and persisted as the batch history.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from app.core.config import settings
from app.core.exceptions import AppException, EmptyUploadError, IngestionError, NotFoundError
from app.core.pagination import PaginationParams
from app.domain.upload import UploadBatch
from app.repositories.upload import UploadBatchRepository, UploadRowOutcomeRepository
from app.schemas.rows import UploadRow
from app.schemas.upload import (
    BatchStatus,
    ErrorStage,
    ParsedUpload,
    RawRow,
    RowIssue,
    RowOutcome,
    UploadErrorEntry,
    UploadKind,
    UploadSummary,
)
from app.services.context import IngestContext
from app.services.csv_parser import build_error_report, parse_delimited_text
from app.services.resolver import EntityResolver
from app.services.templates import known_columns
from app.services.validation import validate_and_coerce
from app.services.writer import PolicyWriter, ProductWriter

logger = logging.getLogger(__name__)

_SKIP_REASONS = {
    BatchStatus.CANCELLED: "Not processed: the upload was cancelled",
    BatchStatus.TIMED_OUT: "Not processed: the upload timed out",
}


def error_report_path(tenant_id: str, batch_id: str) -> str:
    return f"{tenant_id}/upload-errors/{batch_id}.csv"


class IngestionService:
    def __init__(
        self,
        context: IngestContext,
        *,
        defer_placeholder_creation: bool | None = None,
        progress_log_every: int | None = None,
    ):
        self._ctx = context
        self._session = context.session
        self._batches = UploadBatchRepository(context.session, context.tenant_id)
        self._outcomes = UploadRowOutcomeRepository(context.session, context.tenant_id)
        self._defer = (
            settings.defer_placeholder_creation
            if defer_placeholder_creation is None
            else defer_placeholder_creation
        )
        self._progress_every = progress_log_every or settings.progress_log_every

    # ------------------------------------------------------------------
    # Running a batch
    # ------------------------------------------------------------------

    async def run_batch(
        self,
        kind: UploadKind,
        text: str,
        source_file_name: str,
        *,
        cancel_event: asyncio.Event | None = None,
        timeout_seconds: float | None = None,
    ) -> UploadSummary:
        """Ingest every data row of *text*; returns the batch summary.

        ``cancel_event`` is checked between rows. ``timeout_seconds`` bounds
        the whole batch, including the row in flight when it expires.
        """
        parsed = parse_delimited_text(text, known_columns(kind))
        if not parsed.rows:
            raise EmptyUploadError()
        return await self._run(kind, parsed, source_file_name, cancel_event, timeout_seconds)

    async def _run(
        self,
        kind: UploadKind,
        parsed: ParsedUpload,
        source_file_name: str,
        cancel_event: asyncio.Event | None,
        timeout_seconds: float | None,
    ) -> UploadSummary:
        total = len(parsed.rows)
        batch = await self._batches.create(
            kind=kind.value,
            source_file_name=source_file_name,
            submitted_at=datetime.now(timezone.utc),
            status=BatchStatus.PROCESSING.value,
            total_rows=total,
        )
        batch_id = batch.id
        await self._session.commit()
        logger.info(
            "Batch %s: %s upload %r with %d rows for tenant %s",
            batch_id, kind.value, source_file_name, total, self._ctx.tenant_id,
        )

        resolver = EntityResolver(self._ctx, batch_id)
        self._policy_writer = PolicyWriter(self._ctx, batch_id)
        self._product_writer = ProductWriter(self._ctx, batch_id)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_seconds if timeout_seconds is not None else None

        outcomes: list[RowOutcome] = []
        status = BatchStatus.COMPLETED
        summary: UploadSummary | None = None
        try:
            status = await self._process_rows(
                kind, parsed, batch_id, resolver, deadline, cancel_event, outcomes
            )

            for raw in parsed.rows[len(outcomes):]:
                outcome = RowOutcome(
                    row_index=raw.row_index,
                    success=False,
                    error_message=_SKIP_REASONS[status],
                    stage=ErrorStage.SKIPPED,
                )
                outcomes.append(outcome)
                await self._record(batch_id, raw, outcome)

            summary = self.summarize(batch_id, status, outcomes)
            summary.error_file_url = await self._publish_error_report(batch_id, parsed, outcomes)
        finally:
            # A batch never stays in "processing"
            await self._finish_batch(batch_id, status if summary else BatchStatus.FAILED, summary)

        logger.info(
            "Batch %s %s: %d rows, %d succeeded, %d failed (%d validation, %d processing, %d skipped)",
            batch_id, status.value, summary.total_rows, summary.success_count, summary.error_count,
            summary.validation_error_count, summary.processing_error_count, summary.skipped_count,
        )
        return summary

    async def _process_rows(
        self,
        kind: UploadKind,
        parsed: ParsedUpload,
        batch_id: str,
        resolver: EntityResolver,
        deadline: float | None,
        cancel_event: asyncio.Event | None,
        outcomes: list[RowOutcome],
    ) -> BatchStatus:
        """Process rows in order, appending to *outcomes*; returns how the loop ended."""
        loop = asyncio.get_running_loop()
        total = len(parsed.rows)
        for raw in parsed.rows:
            if cancel_event is not None and cancel_event.is_set():
                return BatchStatus.CANCELLED
            remaining = deadline - loop.time() if deadline is not None else None
            if remaining is not None and remaining <= 0:
                return BatchStatus.TIMED_OUT

            try:
                outcome = await asyncio.wait_for(
                    self._process_row(kind, raw, resolver), timeout=remaining
                )
            except asyncio.TimeoutError:
                logger.warning("Batch %s: timed out while processing row %d", batch_id, raw.row_index)
                resolver.rollback_row()
                await self._session.rollback()
                return BatchStatus.TIMED_OUT

            outcomes.append(outcome)
            await self._record(batch_id, raw, outcome)
            await self._session.commit()

            if len(outcomes) % self._progress_every == 0:
                logger.info(
                    "Batch %s: %d/%d rows processed (%d ok)",
                    batch_id, len(outcomes), total, sum(o.success for o in outcomes),
                )
        return BatchStatus.COMPLETED

    async def _finish_batch(
        self, batch_id: str, status: BatchStatus, summary: UploadSummary | None
    ) -> None:
        if summary is None:
            # Rows committed before the failure are kept; only the pending work is dropped
            await self._session.rollback()
            logger.error("Batch %s failed before completion", batch_id)
            await self._batches.update(
                batch_id, status=status.value, completed_at=datetime.now(timezone.utc)
            )
            await self._session.commit()
            return

        await self._batches.update(
            batch_id,
            status=status.value,
            completed_at=datetime.now(timezone.utc),
            success_count=summary.success_count,
            error_count=summary.error_count,
            error_file_path=(
                error_report_path(self._ctx.tenant_id, batch_id) if summary.error_file_url else None
            ),
        )
        await self._session.commit()

    async def _process_row(
        self, kind: UploadKind, raw: RawRow, resolver: EntityResolver
    ) -> RowOutcome:
        result, typed = validate_and_coerce(kind, raw)
        if not result.is_valid:
            return RowOutcome(
                row_index=raw.row_index,
                success=False,
                error_message="; ".join(result.errors),
                stage=ErrorStage.VALIDATION,
                issues=result.issues,
            )

        resolver.begin_row()
        try:
            if self._defer:
                async with self._session.begin_nested():
                    created_id = await self._apply(kind, typed, resolver)
            else:
                created_id = await self._apply(kind, typed, resolver)
        except IngestionError as exc:
            self._end_failed_row(resolver)
            logger.info("Row %d failed at %s: %s", raw.row_index, exc.stage, exc.message)
            return RowOutcome(
                row_index=raw.row_index,
                success=False,
                error_message=exc.message,
                stage=ErrorStage(exc.stage),
                issues=[RowIssue(field=exc.field, message=exc.message)],
            )
        except Exception as exc:
            self._end_failed_row(resolver)
            logger.exception("Row %d: unexpected error while writing", raw.row_index)
            message = f"Unexpected error: {exc}"
            return RowOutcome(
                row_index=raw.row_index,
                success=False,
                error_message=message,
                stage=ErrorStage.WRITE,
                issues=[RowIssue(message=message)],
            )

        resolver.commit_row()
        return RowOutcome(row_index=raw.row_index, success=True, created_id=created_id)

    def _end_failed_row(self, resolver: EntityResolver) -> None:
        # Eagerly created placeholders outlive the failed row
        if self._defer:
            resolver.rollback_row()
        else:
            resolver.commit_row()

    async def _apply(self, kind: UploadKind, row: UploadRow, resolver: EntityResolver) -> str:
        if kind is UploadKind.POLICY:
            refs = await resolver.resolve_policy_references(row)
            return await self._policy_writer.write(row, refs)
        if kind is UploadKind.PRODUCT:
            insurer_id, lob_id = await resolver.resolve_product_references(row)
            return await self._product_writer.create(row, insurer_id, lob_id)

        product = await resolver.resolve_product_by_code(row.product_code)
        return await self._product_writer.update(product, row)

    async def _record(self, batch_id: str, raw: RawRow, outcome: RowOutcome) -> None:
        await self._outcomes.create(
            batch_id=batch_id,
            row_index=outcome.row_index,
            success=outcome.success,
            created_id=outcome.created_id,
            stage=outcome.stage.value if outcome.stage else None,
            error_message=outcome.error_message,
            issues=[issue.model_dump() for issue in outcome.issues] or None,
            row_data=None if outcome.success else dict(raw.columns),
        )

    # ------------------------------------------------------------------
    # Summary and error report
    # ------------------------------------------------------------------

    @staticmethod
    def summarize(batch_id: str, status: BatchStatus, outcomes: list[RowOutcome]) -> UploadSummary:
        failed = [o for o in outcomes if not o.success]
        errors: list[UploadErrorEntry] = []
        for outcome in failed:
            issues = outcome.issues or [RowIssue(message=outcome.error_message or "Unknown error")]
            errors.extend(
                UploadErrorEntry(
                    row_index=outcome.row_index,
                    field=issue.field,
                    message=issue.message,
                    stage=outcome.stage or ErrorStage.WRITE,
                )
                for issue in issues
            )

        by_stage = [o.stage for o in failed]
        return UploadSummary(
            batch_id=batch_id,
            status=status,
            total_rows=len(outcomes),
            success_count=len(outcomes) - len(failed),
            error_count=len(failed),
            validation_error_count=by_stage.count(ErrorStage.VALIDATION),
            processing_error_count=by_stage.count(ErrorStage.RESOLUTION) + by_stage.count(ErrorStage.WRITE),
            skipped_count=by_stage.count(ErrorStage.SKIPPED),
            errors=errors,
        )

    async def _publish_error_report(
        self, batch_id: str, parsed: ParsedUpload, outcomes: list[RowOutcome]
    ) -> str | None:
        columns_by_index = {raw.row_index: raw.columns for raw in parsed.rows}
        failures = [
            (
                o.row_index,
                [issue.message for issue in o.issues] or [o.error_message or ""],
                columns_by_index[o.row_index],
            )
            for o in outcomes
            if not o.success
        ]
        if not failures:
            return None

        path = error_report_path(self._ctx.tenant_id, batch_id)
        report = build_error_report(failures, parsed.headers)
        try:
            await self._ctx.storage.upload(path, report.encode("utf-8"), "text/csv")
        except (OSError, AppException):
            logger.exception("Batch %s: could not store error report at %s", batch_id, path)
            return None
        return self._ctx.storage.public_url(path)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def list_batches(self, pagination: PaginationParams, kind: UploadKind | None = None):
        filters = {"kind": kind.value} if kind else None
        return await self._batches.list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
            filters=filters,
        )

    async def get_batch(self, batch_id: str) -> UploadBatch:
        batch = await self._batches.get_by_id(batch_id)
        if not batch:
            raise NotFoundError("Upload batch", batch_id)
        return batch

    async def read_error_report(self, batch_id: str) -> bytes:
        batch = await self.get_batch(batch_id)
        if not batch.error_file_path:
            raise NotFoundError("Error report for upload batch", batch_id)
        return await self._ctx.storage.download(batch.error_file_path)
