"""End-to-end tests for the batch orchestrator against a real SQLite database."""

import asyncio
import csv
import io

import pytest

from app.core.exceptions import EmptyUploadError, InvalidTenantError, NotFoundError
from app.domain.product import InsuranceProduct
from app.repositories.policy import PolicyRepository
from app.repositories.product import ProductRepository
from app.repositories.reference import ProviderRepository
from app.repositories.upload import UploadBatchRepository, UploadRowOutcomeRepository
from app.schemas.upload import BatchStatus, ErrorStage, UploadKind
from app.services.context import IngestContext
from app.services.ingestion import IngestionService, error_report_path
from app.services.resolver import PLACEHOLDER_PRODUCT_NAME
from tests.conftest import TENANT
from tests.helpers import policy_csv, policy_line


async def test_one_bad_date_among_three_rows(ctx, session, storage):
    text = policy_csv(
        policy_line(number="POL-1"),
        policy_line(number="POL-2", start="2024-02-30"),
        policy_line(number="POL-3"),
    )

    summary = await IngestionService(ctx).run_batch(UploadKind.POLICY, text, "policies.csv")

    assert summary.status == BatchStatus.COMPLETED
    assert (summary.total_rows, summary.success_count, summary.error_count) == (3, 2, 1)
    assert summary.validation_error_count == 1
    assert summary.processing_error_count == 0
    assert len(summary.errors) == 1
    error = summary.errors[0]
    assert (error.row_index, error.field, error.stage) == (2, "policyStartDate", ErrorStage.VALIDATION)

    policies = PolicyRepository(session, TENANT)
    assert await policies.count() == 2
    assert await policies.find_one(policy_number="POL-2") is None


async def test_error_report_uses_same_row_numbers(ctx, storage):
    text = policy_csv(policy_line(number="POL-1"), policy_line(number="POL-2", premium="abc"))

    summary = await IngestionService(ctx).run_batch(UploadKind.POLICY, text, "policies.csv")

    assert summary.error_file_url == f"http://files.test/{TENANT}/upload-errors/{summary.batch_id}.csv"
    report = await storage.download(error_report_path(TENANT, summary.batch_id))
    rows = list(csv.DictReader(io.StringIO(report.decode("utf-8"))))
    assert len(rows) == 1
    assert rows[0]["Row Number"] == "2"
    assert rows[0]["Error Details"] == "Premium amount must be a valid number"
    assert rows[0]["policyNumber"] == "POL-2"


async def test_clean_batch_has_no_error_report(ctx):
    summary = await IngestionService(ctx).run_batch(
        UploadKind.POLICY, policy_csv(policy_line()), "policies.csv"
    )
    assert summary.error_count == 0
    assert summary.error_file_url is None


async def test_missing_product_name_uses_placeholder_and_succeeds(ctx, session):
    text = policy_csv(policy_line(number="POL-NP", product=""))

    summary = await IngestionService(ctx).run_batch(UploadKind.POLICY, text, "policies.csv")

    assert summary.success_count == 1
    policy = await PolicyRepository(session, TENANT).find_one(policy_number="POL-NP")
    product = await session.get(InsuranceProduct, policy.product_id)
    assert product.product_name == PLACEHOLDER_PRODUCT_NAME


async def test_same_insurer_across_rows_shares_one_id(ctx, session):
    text = policy_csv(policy_line(number="POL-A"), policy_line(number="POL-B"))
    await IngestionService(ctx).run_batch(UploadKind.POLICY, text, "policies.csv")

    policies = await PolicyRepository(session, TENANT).find_all()
    assert len({p.insurer_id for p in policies}) == 1
    assert len(await ProviderRepository(session, TENANT).find_all(provider_name="Acme General")) == 1


async def test_write_failure_is_reported_separately_from_validation(ctx):
    text = policy_csv(policy_line(number="POL-1"), policy_line(number="POL-1"))

    summary = await IngestionService(ctx).run_batch(UploadKind.POLICY, text, "policies.csv")

    assert summary.success_count == 1
    assert summary.processing_error_count == 1
    assert summary.validation_error_count == 0
    assert summary.errors[0].stage == ErrorStage.WRITE
    assert summary.errors[0].message.startswith("Failed to create policy:")


@pytest.mark.parametrize("defer, placeholder_kept", [(True, False), (False, True)])
async def test_unconfigured_line_fails_resolution(ctx, session, defer, placeholder_kept):
    text = policy_csv(policy_line(number="POL-PET", lob="Pet", insurer="Paws Mutual"))

    summary = await IngestionService(ctx, defer_placeholder_creation=defer).run_batch(
        UploadKind.POLICY, text, "policies.csv"
    )

    assert summary.error_count == 1
    error = summary.errors[0]
    assert (error.stage, error.field) == (ErrorStage.RESOLUTION, "lineOfBusiness")
    insurer = await ProviderRepository(session, TENANT).find_by_name("Paws Mutual")
    assert (insurer is not None) is placeholder_kept


async def test_batch_and_row_outcomes_are_persisted(ctx, session):
    text = policy_csv(policy_line(number="POL-1"), policy_line(number="POL-2", start="bad"))
    summary = await IngestionService(ctx).run_batch(UploadKind.POLICY, text, "policies.csv")

    batch = await UploadBatchRepository(session, TENANT).get_by_id(summary.batch_id)
    assert batch.status == "completed"
    assert batch.completed_at is not None
    assert (batch.total_rows, batch.success_count, batch.error_count) == (2, 1, 1)
    assert batch.error_file_path == error_report_path(TENANT, summary.batch_id)

    outcomes = await UploadRowOutcomeRepository(session, TENANT).find_all(batch_id=summary.batch_id)
    by_index = {o.row_index: o for o in outcomes}
    assert set(by_index) == {1, 2}
    assert by_index[1].success and by_index[1].created_id
    assert by_index[2].stage == "validation"
    assert by_index[2].row_data["policyNumber"] == "POL-2"


async def test_empty_upload_is_rejected_before_a_batch_exists(ctx, session):
    with pytest.raises(EmptyUploadError):
        await IngestionService(ctx).run_batch(UploadKind.POLICY, "policyNumber,insurerName\n", "empty.csv")
    assert await UploadBatchRepository(session, TENANT).count() == 0


class _RejectingStorage:
    """Storage whose writes are refused, like a path outside the storage root."""

    async def upload(self, path, data, content_type="application/octet-stream"):
        raise NotFoundError("Object", path)

    async def download(self, path):
        raise NotFoundError("Object", path)

    def public_url(self, path):
        return f"http://files.test/{path}"


async def test_error_report_storage_failure_still_completes_batch(session):
    ctx = IngestContext(tenant_id=TENANT, session=session, storage=_RejectingStorage())
    text = policy_csv(policy_line(number="POL-1"), policy_line(number="POL-2", start="bad"))

    summary = await IngestionService(ctx).run_batch(UploadKind.POLICY, text, "policies.csv")

    assert summary.status == BatchStatus.COMPLETED
    assert summary.error_file_url is None
    batch = await UploadBatchRepository(session, TENANT).get_by_id(summary.batch_id)
    assert batch.status == "completed"
    assert batch.error_file_path is None
    assert await PolicyRepository(session, TENANT).count() == 1


async def test_unexpected_failure_marks_batch_failed(ctx, session, monkeypatch):
    async def crash(self, *args, **kwargs):
        raise RuntimeError("connection lost")

    monkeypatch.setattr(IngestionService, "_process_rows", crash)

    with pytest.raises(RuntimeError):
        await IngestionService(ctx).run_batch(UploadKind.POLICY, policy_csv(policy_line()), "policies.csv")

    [batch] = await UploadBatchRepository(session, TENANT).find_all()
    assert batch.status == BatchStatus.FAILED.value
    assert batch.completed_at is not None


async def test_tenant_ids_that_escape_storage_are_rejected(session, storage):
    with pytest.raises(InvalidTenantError):
        IngestContext(tenant_id="../outside", session=session, storage=storage)


# ---------------------------------------------------------------------------
# Cancellation and timeout
# ---------------------------------------------------------------------------

THREE_ROWS = policy_csv(
    policy_line(number="POL-1"), policy_line(number="POL-2"), policy_line(number="POL-3")
)


async def test_cancellation_keeps_finished_rows(ctx, session, monkeypatch):
    cancel = asyncio.Event()
    original = IngestionService._process_row

    async def process_then_cancel(self, kind, raw, resolver):
        outcome = await original(self, kind, raw, resolver)
        cancel.set()
        return outcome

    monkeypatch.setattr(IngestionService, "_process_row", process_then_cancel)

    summary = await IngestionService(ctx).run_batch(
        UploadKind.POLICY, THREE_ROWS, "policies.csv", cancel_event=cancel
    )

    assert summary.status == BatchStatus.CANCELLED
    assert (summary.total_rows, summary.success_count, summary.skipped_count) == (3, 1, 2)
    assert [e.row_index for e in summary.errors] == [2, 3]
    assert all(e.stage == ErrorStage.SKIPPED for e in summary.errors)
    assert await PolicyRepository(session, TENANT).count() == 1
    batch = await UploadBatchRepository(session, TENANT).get_by_id(summary.batch_id)
    assert batch.status == "cancelled"


async def test_expired_deadline_skips_every_row(ctx, session):
    summary = await IngestionService(ctx).run_batch(
        UploadKind.POLICY, THREE_ROWS, "policies.csv", timeout_seconds=0
    )

    assert summary.status == BatchStatus.TIMED_OUT
    assert summary.skipped_count == 3
    assert summary.success_count == 0
    assert await PolicyRepository(session, TENANT).count() == 0


async def test_timeout_aborts_the_row_in_flight(ctx, session, monkeypatch):
    original = IngestionService._process_row

    async def slow_second_row(self, kind, raw, resolver):
        if raw.row_index == 2:
            await asyncio.sleep(30)
        return await original(self, kind, raw, resolver)

    monkeypatch.setattr(IngestionService, "_process_row", slow_second_row)

    summary = await IngestionService(ctx).run_batch(
        UploadKind.POLICY, THREE_ROWS, "policies.csv", timeout_seconds=2
    )

    assert summary.status == BatchStatus.TIMED_OUT
    assert summary.success_count == 1
    assert [(e.row_index, e.stage) for e in summary.errors] == [
        (2, ErrorStage.SKIPPED), (3, ErrorStage.SKIPPED),
    ]
    assert await PolicyRepository(session, TENANT).count() == 1


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

PRODUCT_CSV = (
    "Product Name,Insurer Name,Line Of Business,Product Code,Premium Min,Premium Max,Supported Policy Types\n"
    'Secure Shield,Acme General,Health,ACME-1,1000,5000,"New,Renewal"\n'
    "Road Guard,Acme General,Motor,ACME-2,5000,1000,New\n"
    "Pet Care,Acme General,Pet,ACME-3,,,\n"
)


async def test_product_upload(ctx, session):
    summary = await IngestionService(ctx).run_batch(UploadKind.PRODUCT, PRODUCT_CSV, "products.csv")

    assert (summary.success_count, summary.validation_error_count, summary.processing_error_count) == (1, 1, 1)
    stages = {e.row_index: e.stage for e in summary.errors}
    assert stages == {2: ErrorStage.VALIDATION, 3: ErrorStage.RESOLUTION}

    product = await ProductRepository(session, TENANT).find_by_code("ACME-1")
    assert product.supported_policy_types == ["New", "Renewal"]


async def test_product_update_upload(ctx, session):
    await IngestionService(ctx).run_batch(UploadKind.PRODUCT, PRODUCT_CSV, "products.csv")
    text = (
        "productCode,description,status,maxSumInsured\n"
        "ACME-1,Refreshed wording,Inactive,900000\n"
        "NOPE-9,Nothing,Active,\n"
    )

    summary = await IngestionService(ctx).run_batch(UploadKind.PRODUCT_UPDATE, text, "updates.csv")

    assert summary.success_count == 1
    assert summary.errors[0].row_index == 2
    assert summary.errors[0].stage == ErrorStage.RESOLUTION
    product = await ProductRepository(session, TENANT).find_by_code("ACME-1")
    assert product.description == "Refreshed wording"
    assert product.status == "Inactive"
