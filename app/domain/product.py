"""SQLAlchemy ORM model for insurance products."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, JSON, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.domain.mixins import IdMixin, TenantMixin, TimestampMixin


class InsuranceProduct(Base, IdMixin, TenantMixin, TimestampMixin):
    __tablename__ = "insurance_products"
    __table_args__ = (
        UniqueConstraint("client_id", "product_code", name="uq_product_tenant_code"),
    )

    product_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    product_code: Mapped[str] = mapped_column(String(64), nullable=False)
    provider_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("insurance_providers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    lob_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("lines_of_business.id"), nullable=True, index=True
    )
    # LOB name as uploaded; product lookups are scoped by it
    category: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    plan_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    variant: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    uin_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    coverage_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    premium_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    min_sum_insured: Mapped[Optional[Decimal]] = mapped_column(Numeric(16, 2), nullable=True)
    max_sum_insured: Mapped[Optional[Decimal]] = mapped_column(Numeric(16, 2), nullable=True)
    premium_min: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    premium_max: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    policy_term: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    premium_payment_term: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    supported_policy_types: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    vehicle_types: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    features: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    eligibility_criteria: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    effective_from: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    effective_to: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_standard_product: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # "Active" | "Inactive"
    status: Mapped[str] = mapped_column(String(20), default="Active", nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_placeholder: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    upload_batch_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)

    def supports_policy_type(self, policy_type: Any) -> bool:
        return policy_type in (self.supported_policy_types or [])


# At most one placeholder product per tenant, insurer and line of business
Index(
    "uq_product_placeholder_scope",
    InsuranceProduct.client_id,
    InsuranceProduct.provider_id,
    InsuranceProduct.category,
    unique=True,
    sqlite_where=InsuranceProduct.is_placeholder.is_(True),
    postgresql_where=InsuranceProduct.is_placeholder.is_(True),
)
