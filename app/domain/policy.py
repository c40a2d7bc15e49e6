"""SQLAlchemy ORM models for policies and their line-of-business detail rows.

A ``Policy`` is the canonical record for one uploaded row. Motor, life,
health and commercial policies additionally own exactly one detail row
keyed by ``policy_id``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import Date, ForeignKey, Integer, JSON, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.domain.mixins import IdMixin, TenantMixin, TimestampMixin


class Policy(Base, IdMixin, TenantMixin, TimestampMixin):
    __tablename__ = "policies"
    __table_args__ = (
        UniqueConstraint("client_id", "policy_number", name="uq_policy_tenant_number"),
    )

    policy_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    insurer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("insurance_providers.id"), nullable=False, index=True
    )
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("insurance_products.id"), nullable=False, index=True
    )
    lob_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("lines_of_business.id"), nullable=False, index=True
    )
    line_of_business: Mapped[str] = mapped_column(String(50), nullable=False)

    policy_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    policy_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    premium_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    sum_assured: Mapped[Optional[Decimal]] = mapped_column(Numeric(16, 2), nullable=True)

    # "New" | "Renewal" | "Roll-over" | "Ported"
    policy_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    policy_source: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    payment_mode: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    # "Agent" | "Employee"
    created_by_type: Mapped[str] = mapped_column(String(20), nullable=False)
    agent_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("agents.id"), nullable=True, index=True
    )
    employee_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("employees.id"), nullable=True, index=True
    )
    branch_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("branches.id"), nullable=True, index=True
    )

    customer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    status: Mapped[str] = mapped_column(String(30), default="Active", nullable=False)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    upload_batch_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)


class _PolicyDetail(IdMixin, TenantMixin, TimestampMixin):
    policy_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("policies.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )


class MotorPolicy(Base, _PolicyDetail):
    __tablename__ = "motor_policies"

    vehicle_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    vehicle_type_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("vehicle_types.id"), nullable=True
    )
    registration_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    manufacturer: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    variant: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    fuel_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    idv: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    own_damage_premium: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    third_party_premium: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    ncb_percent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class LifePolicy(Base, _PolicyDetail):
    __tablename__ = "life_policies"

    proposer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    life_assured_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    relationship: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    plan_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    policy_term: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    premium_paying_term: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    payment_frequency: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    nominee_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    nominee_relation: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


class HealthPolicy(Base, _PolicyDetail):
    __tablename__ = "health_policies"

    proposer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    floater_or_individual: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    sum_insured: Mapped[Optional[Decimal]] = mapped_column(Numeric(16, 2), nullable=True)
    deductible: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    policy_term: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    payment_mode: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    room_rent_limit: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


class CommercialPolicy(Base, _PolicyDetail):
    __tablename__ = "commercial_policies"

    policy_category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    business_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    risk_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    number_of_employees: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    proposer_details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
