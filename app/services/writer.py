"""Row writers: persist one validated, resolved row as a record graph.

A policy row becomes a ``Policy`` plus at most one line-of-business detail
row. Both are written by :func:`write_record_graph` inside a single
savepoint, so a failed detail insert also removes the policy and a failed
row never leaves anything behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import RowConflictError, WriteError
from app.domain.product import InsuranceProduct
from app.repositories.base import BaseRepository
from app.repositories.policy import (
    CommercialPolicyRepository,
    HealthPolicyRepository,
    LifePolicyRepository,
    MotorPolicyRepository,
    PolicyRepository,
)
from app.repositories.product import ProductRepository
from app.schemas.rows import (
    CommercialPolicyRow,
    HealthPolicyRow,
    LifePolicyRow,
    MotorPolicyRow,
    PolicyRow,
    ProductRow,
    ProductUpdateRow,
)
from app.schemas.upload import ResolvedReferences
from app.services.context import IngestContext
from app.services.normalization import (
    detail_category,
    determine_attribution,
    normalize_policy_type,
    redact_customer,
)

logger = logging.getLogger(__name__)


@dataclass
class RecordSpec:
    """One record to insert: where, what, and how to name it in errors."""

    repository: BaseRepository
    fields: dict[str, Any]
    label: str
    parent_key: str = "policy_id"


def _reason(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


async def write_record_graph(
    session: AsyncSession, parent: RecordSpec, child: RecordSpec | None = None
) -> str:
    """Insert *parent* and optionally *child* atomically; return the parent id.

    The child receives the parent's id under ``child.parent_key``. Any
    storage error rolls back both inserts and is raised as ``WriteError``.
    """
    async with session.begin_nested():
        try:
            record = await parent.repository.create(**parent.fields)
        except SQLAlchemyError as exc:
            raise WriteError(f"Failed to create {parent.label}: {_reason(exc)}") from exc

        if child is not None:
            try:
                await child.repository.create(**{child.parent_key: record.id}, **child.fields)
            except SQLAlchemyError as exc:
                raise WriteError(f"Failed to create {child.label}: {_reason(exc)}") from exc

    return record.id

# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------

def _motor_fields(row: MotorPolicyRow, refs: ResolvedReferences) -> dict[str, Any]:
    return {
        "vehicle_type": row.vehicle_type,
        "vehicle_type_id": refs.vehicle_type_id,
        "registration_number": row.registration_number,
        "manufacturer": row.manufacturer,
        "model": row.model,
        "variant": row.variant,
        "fuel_type": row.fuel_type,
        "idv": row.idv,
        "own_damage_premium": row.own_damage_premium,
        "third_party_premium": row.third_party_premium,
        "ncb_percent": row.ncb_percent,
    }


def _life_fields(row: LifePolicyRow, refs: ResolvedReferences) -> dict[str, Any]:
    return {
        "proposer_name": row.proposer_name,
        "life_assured_name": row.life_assured_name,
        "relationship": row.relationship,
        "plan_type": row.plan_type,
        "policy_term": row.policy_term,
        "premium_paying_term": row.premium_paying_term,
        "payment_frequency": row.payment_frequency,
        "nominee_name": row.nominee_name,
        "nominee_relation": row.nominee_relation,
    }


def _health_fields(row: HealthPolicyRow, refs: ResolvedReferences) -> dict[str, Any]:
    return {
        "proposer_name": row.proposer_name,
        "floater_or_individual": row.coverage_type,
        "sum_insured": row.sum_insured,
        "deductible": row.deductible,
        "policy_term": row.policy_term,
        "payment_mode": row.payment_mode,
        "room_rent_limit": row.room_rent_limit,
    }


def _commercial_fields(row: CommercialPolicyRow, refs: ResolvedReferences) -> dict[str, Any]:
    proposer = {
        "companyName": row.company_name,
        "pan": row.pan,
        "gstin": row.gstin,
    }
    return {
        "policy_category": row.policy_category,
        "business_type": row.business_type,
        "risk_address": row.risk_address,
        "number_of_employees": row.number_of_employees,
        "proposer_details": {k: v for k, v in proposer.items() if v is not None} or None,
    }


class PolicyWriter:
    """Writes policy rows with their line-of-business detail."""

    def __init__(self, context: IngestContext, batch_id: str | None = None):
        session, tenant = context.session, context.tenant_id
        self._session = session
        self._batch_id = batch_id
        self._policies = PolicyRepository(session, tenant)
        self._details = {
            "motor": (MotorPolicyRepository(session, tenant), MotorPolicyRow, _motor_fields),
            "life": (LifePolicyRepository(session, tenant), LifePolicyRow, _life_fields),
            "health": (HealthPolicyRepository(session, tenant), HealthPolicyRow, _health_fields),
            "commercial": (
                CommercialPolicyRepository(session, tenant), CommercialPolicyRow, _commercial_fields,
            ),
        }

    def build_policy_fields(self, row: PolicyRow, refs: ResolvedReferences) -> dict[str, Any]:
        attribution = determine_attribution(refs.agent_id, refs.employee_id, row.created_by_type)
        customer = redact_customer(
            row.customer_name, row.customer_phone, row.customer_email, row.remarks
        )
        return {
            "policy_number": row.policy_number,
            "insurer_id": refs.insurer_id,
            "product_id": refs.product_id,
            "lob_id": refs.line_of_business_id,
            "line_of_business": row.line_of_business,
            "policy_start_date": row.policy_start_date,
            "policy_end_date": row.policy_end_date,
            "premium_amount": row.premium_amount,
            "sum_assured": row.sum_assured,
            "policy_type": normalize_policy_type(row.policy_type),
            "policy_source": row.policy_source,
            "payment_mode": row.payment_mode,
            "created_by_type": attribution.created_by_type,
            "agent_id": attribution.agent_id,
            "employee_id": attribution.employee_id,
            "branch_id": refs.branch_id,
            "customer_name": customer.name,
            "customer_phone": customer.phone,
            "customer_email": customer.email,
            "remarks": customer.remarks,
            "status": row.status or "Active",
            "upload_batch_id": self._batch_id,
        }

    def build_detail(self, row: PolicyRow, refs: ResolvedReferences) -> RecordSpec | None:
        category = detail_category(row.line_of_business)
        if category is None:
            return None
        repository, row_type, build = self._details[category]
        if not isinstance(row, row_type):
            # Detail columns were not parsed for this row; write an empty detail
            row = row_type.model_validate(row.model_dump())
        return RecordSpec(
            repository=repository,
            fields=build(row, refs),
            label=f"{category} policy details",
        )

    async def write(self, row: PolicyRow, refs: ResolvedReferences) -> str:
        parent = RecordSpec(self._policies, self.build_policy_fields(row, refs), "policy")
        policy_id = await write_record_graph(self._session, parent, self.build_detail(row, refs))
        logger.debug("Wrote policy %s (%s) as %s", row.policy_number, row.line_of_business, policy_id)
        return policy_id

# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

# (low field, high field, column the error is reported on, message)
_UPDATE_RANGES = (
    ("min_sum_insured", "max_sum_insured", "maxSumInsured",
     "Minimum sum insured must be less than maximum sum insured"),
    ("effective_from", "effective_to", "effectiveTo",
     "Effective from date must be before effective to date"),
)


def _check_merged_ranges(product: InsuranceProduct, changes: dict[str, Any]) -> None:
    """Reject updates whose bounds, merged with the stored ones, are inverted."""
    for low_name, high_name, field, message in _UPDATE_RANGES:
        if low_name not in changes and high_name not in changes:
            continue
        low = changes.get(low_name, getattr(product, low_name))
        high = changes.get(high_name, getattr(product, high_name))
        if low is not None and high is not None and low > high:
            raise RowConflictError(f"{message} (would be {low} to {high})", field=field)


class ProductWriter:
    """Creates products from product rows and applies product-update rows."""

    def __init__(self, context: IngestContext, batch_id: str | None = None):
        self._session = context.session
        self._batch_id = batch_id
        self._products = ProductRepository(context.session, context.tenant_id)

    async def create(self, row: ProductRow, insurer_id: str, lob_id: str) -> str:
        fields = {
            "product_name": row.product_name,
            "product_code": row.product_code,
            "provider_id": insurer_id,
            "lob_id": lob_id,
            "category": row.line_of_business,
            "plan_type": row.plan_type,
            "variant": row.variant,
            "uin_code": row.uin,
            "min_sum_insured": row.sum_insured_min,
            "max_sum_insured": row.sum_insured_max,
            "premium_min": row.premium_min,
            "premium_max": row.premium_max,
            "policy_term": row.policy_term,
            "premium_payment_term": row.premium_payment_term,
            "supported_policy_types": row.supported_policy_types,
            "vehicle_types": row.vehicle_types,
            "effective_from": row.effective_from,
            "effective_to": row.effective_to,
            "is_standard_product": bool(row.is_standard_product),
            "status": "Inactive" if row.is_active is False else "Active",
            "description": row.description,
            "upload_batch_id": self._batch_id,
        }
        return await write_record_graph(
            self._session, RecordSpec(self._products, fields, "product")
        )

    async def update(self, product: InsuranceProduct, row: ProductUpdateRow) -> str:
        """Apply the non-empty fields of *row* to *product*."""
        changes = row.model_dump(exclude_none=True, exclude={"product_code"})
        if not changes:
            logger.info("Product %s: update row carries no changes", product.product_code)
            return product.id
        _check_merged_ranges(product, changes)
        try:
            async with self._session.begin_nested():
                await self._products.update(product.id, **changes)
        except SQLAlchemyError as exc:
            raise WriteError(f"Failed to update product: {_reason(exc)}") from exc
        return product.id
