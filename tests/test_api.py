"""HTTP tests for the upload, history and template endpoints."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.db.base import get_db
from app.main import app
from app.middleware.audit import AuditMiddleware, entity_type_for
from app.services.storage import LocalObjectStorage, get_storage
from tests.helpers import policy_csv, policy_line

audit_calls: list[tuple[str, str, int]] = []


async def _record_audit(self, request, status_code, duration_ms):
    audit_calls.append((request.method, request.url.path, status_code))


@pytest.fixture
def client(make_engine, tmp_path, monkeypatch):
    """TestClient bound to the per-test database and storage directory."""
    engine = make_engine()
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    storage = LocalObjectStorage(tmp_path / "storage", "http://files.test")

    async def override_get_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    monkeypatch.setattr(AuditMiddleware, "_record", _record_audit)
    audit_calls.clear()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides = {}


def _upload(client, path, text, filename="upload.csv", content_type="text/csv", headers=None):
    return client.post(
        f"/api/v1/uploads/{path}",
        files={"file": (filename, text.encode("utf-8"), content_type)},
        headers=headers or {},
    )


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_policy_upload_returns_summary(client):
    text = policy_csv(
        policy_line(number="POL-1"),
        policy_line(number="POL-2", start="2024-13-01"),
        policy_line(number="POL-3", product=""),
    )

    response = _upload(client, "policies", text, "policies.csv")

    assert response.status_code == 201
    data = response.json()["data"]
    assert (data["totalRows"], data["successCount"], data["errorCount"]) == (3, 2, 1)
    assert data["status"] == "completed"
    assert data["errors"] == [
        {
            "rowIndex": 2,
            "field": "policyStartDate",
            "message": "Invalid policy start date format (use YYYY-MM-DD)",
            "stage": "validation",
        }
    ]
    assert data["errorFileUrl"].endswith(f"/upload-errors/{data['batchId']}.csv")


def test_batch_history_detail_and_error_report(client):
    text = policy_csv(policy_line(number="POL-1"), policy_line(number="POL-2", premium="abc"))
    batch_id = _upload(client, "policies", text).json()["data"]["batchId"]

    listing = client.get("/api/v1/uploads").json()
    assert listing["meta"]["total"] == 1
    assert listing["data"][0]["id"] == batch_id
    assert listing["data"][0]["kind"] == "policy"
    assert client.get("/api/v1/uploads", params={"kind": "product"}).json()["meta"]["total"] == 0

    detail = client.get(f"/api/v1/uploads/{batch_id}").json()["data"]
    assert [r["rowIndex"] for r in detail["rows"]] == [1, 2]
    assert detail["rows"][1]["stage"] == "validation"

    report = client.get(f"/api/v1/uploads/{batch_id}/errors.csv")
    assert report.status_code == 200
    assert report.headers["content-type"].startswith("text/csv")
    assert report.text.splitlines()[0].startswith('"Row Number","Error Details"')
    assert '"2","Premium amount must be a valid number"' in report.text


def test_batches_are_tenant_scoped(client):
    text = policy_csv(policy_line(number="POL-1"))
    response = _upload(client, "policies", text, headers={"X-Tenant-ID": "tenant-b"})

    # tenant-b has no lines of business configured
    data = response.json()["data"]
    assert data["errors"][0]["stage"] == "resolution"
    assert client.get("/api/v1/uploads").json()["meta"]["total"] == 0
    assert client.get("/api/v1/uploads", headers={"X-Tenant-ID": "tenant-b"}).json()["meta"]["total"] == 1


def test_invalid_tenant_header_is_rejected(client):
    text = policy_csv(policy_line(number="POL-1"))
    response = _upload(client, "policies", text, headers={"X-Tenant-ID": "../outside"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_TENANT"
    assert client.get("/api/v1/uploads").json()["meta"]["total"] == 0


def test_unknown_batch_is_404(client):
    response = client.get("/api/v1/uploads/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_clean_batch_has_no_error_report(client):
    batch_id = _upload(client, "policies", policy_csv(policy_line())).json()["data"]["batchId"]
    assert client.get(f"/api/v1/uploads/{batch_id}/errors.csv").status_code == 404


def test_non_csv_upload_is_rejected(client):
    response = _upload(client, "policies", "%PDF-1.4", "policies.pdf", "application/pdf")
    assert response.status_code == 415
    assert response.json()["error"]["code"] == "UNSUPPORTED_MEDIA_TYPE"


@pytest.mark.parametrize("text", ["", "policyNumber,insurerName\n"])
def test_empty_upload_is_rejected(client, text):
    response = _upload(client, "policies", text)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "EMPTY_UPLOAD"


def test_oversized_upload_is_rejected(client, monkeypatch):
    monkeypatch.setattr(settings, "max_upload_size_mb", 0)
    response = _upload(client, "policies", policy_csv(policy_line()))
    assert response.status_code == 413


def test_product_and_update_uploads(client):
    products = (
        "productName,insurerName,lineOfBusiness,productCode\n"
        "Secure Shield,Acme General,Health,ACME-1\n"
    )
    assert _upload(client, "products", products).json()["data"]["successCount"] == 1

    updates = "productCode,status\nACME-1,Inactive\n"
    response = _upload(client, "product-updates", updates)
    assert response.status_code == 201
    assert response.json()["data"]["successCount"] == 1


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("lob", ["Motor", "Life", "Health", "Commercial", "Travel"])
def test_policy_template_sample_uploads_cleanly(client, lob):
    template = client.get("/api/v1/templates/policy", params={"lineOfBusiness": lob}).json()["data"]
    assert template["lineOfBusiness"] == lob
    assert ("vehicleType" in template["columns"]) is (lob == "Motor")

    csv_text = client.get(
        "/api/v1/templates/policy", params={"lineOfBusiness": lob, "format": "csv"}
    ).text
    summary = _upload(client, "policies", csv_text).json()["data"]
    assert summary["errors"] == []
    assert summary["successCount"] == 1


def test_product_template_sample_uploads_cleanly(client):
    csv_text = client.get("/api/v1/templates/product", params={"format": "csv"}).text
    assert _upload(client, "products", csv_text).json()["data"]["successCount"] == 1


def test_product_update_template_columns(client):
    template = client.get("/api/v1/templates/product_update").json()["data"]
    assert template["columns"][0] == "productCode"
    assert template["lineOfBusiness"] is None


def test_unknown_template_line_of_business(client):
    response = client.get("/api/v1/templates/policy", params={"lineOfBusiness": "Marine"})
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.parametrize(
    "path, expected",
    [("/api/v1/uploads/policies", "uploads"), ("/health", "health"), ("/", "unknown")],
)
def test_audit_entity_type(path, expected):
    assert entity_type_for(path) == expected


def test_only_write_requests_are_audited(client):
    client.get("/health")
    _upload(client, "policies", policy_csv(policy_line()))

    assert audit_calls == [("POST", "/api/v1/uploads/policies", 201)]
