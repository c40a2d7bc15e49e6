"""SQLAlchemy ORM models for master / reference data.

Rows here are looked up by human-readable name or code while ingesting
uploads. Only insurers can be created by the ingestion pipeline (as
placeholders); the rest must already be configured for the tenant.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.domain.mixins import IdMixin, TenantMixin, TimestampMixin


class InsuranceProvider(Base, IdMixin, TenantMixin, TimestampMixin):
    __tablename__ = "insurance_providers"
    __table_args__ = (
        UniqueConstraint("client_id", "provider_name", name="uq_provider_tenant_name"),
    )

    provider_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    provider_code: Mapped[str] = mapped_column(String(64), nullable=False)
    # "General" | "Life" | "Health" | "Standalone Health"
    provider_type: Mapped[str] = mapped_column(String(50), default="General", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="Active", nullable=False)
    is_placeholder: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class LineOfBusiness(Base, IdMixin, TenantMixin, TimestampMixin):
    __tablename__ = "lines_of_business"
    __table_args__ = (
        UniqueConstraint("client_id", "lob_name", name="uq_lob_tenant_name"),
    )

    lob_name: Mapped[str] = mapped_column(String(100), nullable=False)
    lob_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Agent(Base, IdMixin, TenantMixin, TimestampMixin):
    __tablename__ = "agents"

    agent_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="Active", nullable=False)


class Employee(Base, IdMixin, TenantMixin, TimestampMixin):
    __tablename__ = "employees"

    employee_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="Active", nullable=False)


class Branch(Base, IdMixin, TenantMixin, TimestampMixin):
    __tablename__ = "branches"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)


class VehicleType(Base, IdMixin, TenantMixin, TimestampMixin):
    __tablename__ = "vehicle_types"

    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
