"""Pytest configuration and shared fixtures.

Every test gets its own SQLite file. The schema and master data are created
with a synchronous engine so the same database can be used from the
pytest-asyncio loop and from the TestClient's loop.
"""

import os
import tempfile

# Set environment BEFORE importing the app so settings pick it up
_TMP = tempfile.mkdtemp(prefix="ingest-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP}/app.db")
os.environ.setdefault("STORAGE_ROOT", f"{_TMP}/storage")
os.environ.setdefault("DEFAULT_CLIENT_ID", "tenant-a")
os.environ.setdefault("APP_ENV", "test")

import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

import app.domain  # noqa: F401  (register every model on Base.metadata)
from app.db.base import Base, enable_sqlite_savepoints
from app.domain.reference import Agent, Branch, Employee, LineOfBusiness, VehicleType
from app.services.context import IngestContext
from app.services.storage import LocalObjectStorage

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"

# Pet is deliberately not configured so resolution of that LOB fails
CONFIGURED_LINES = ("Health", "Motor", "Life", "Travel", "Loan", "Commercial")


def _seed(session: Session, tenant: str) -> None:
    for code, name in enumerate(CONFIGURED_LINES, start=1):
        session.add(LineOfBusiness(client_id=tenant, lob_name=name, lob_code=f"L{code:02d}"))
    session.add(Agent(client_id=tenant, agent_code="AG001", full_name="Arun Agent"))
    session.add(Employee(client_id=tenant, employee_code="EMP001", full_name="Esha Employee"))
    session.add(Branch(client_id=tenant, name="Head Office", city="Mumbai"))
    session.add(VehicleType(client_id=tenant, name="Private Car"))


@pytest.fixture
def db_path(tmp_path):
    """SQLite file with the full schema and master data for TENANT."""
    path = tmp_path / "ingest.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    with Session(sync_engine) as session:
        _seed(session, TENANT)
        session.commit()
    sync_engine.dispose()
    return path


@pytest.fixture
def make_engine(db_path):
    """Build an async engine for the test database in the caller's event loop."""

    def _make():
        engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
        enable_sqlite_savepoints(engine)
        return engine

    return _make


@pytest_asyncio.fixture
async def engine(make_engine):
    engine = make_engine()
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage(tmp_path):
    return LocalObjectStorage(tmp_path / "storage", "http://files.test")


@pytest.fixture
def ctx(session, storage):
    return IngestContext(tenant_id=TENANT, session=session, storage=storage)

