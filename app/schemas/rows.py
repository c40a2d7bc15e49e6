"""Typed row schemas for every uploadable entity.

Each model's field aliases are the CSV template headers for that kind of
upload. Rows are only coerced into these models after the rule checks in
:mod:`app.services.validation` have passed, so the models focus on typing
(dates, decimals, integers, booleans, comma-separated lists) rather than
on business rules.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, ClassVar

from pydantic import model_validator
from pydantic.alias_generators import to_camel

from app.schemas.common import CamelModel


class UploadRow(CamelModel):
    """Base for all row schemas: trims cells, blank cells become None."""

    kind: ClassVar[str] = ""
    list_fields: ClassVar[tuple[str, ...]] = ()

    model_config = {"extra": "ignore", "frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _clean_cells(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        list_aliases = {to_camel(name) for name in cls.list_fields} | set(cls.list_fields)
        cleaned: dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(value, str):
                value = value.strip() or None
            if value is not None and key in list_aliases and isinstance(value, str):
                value = split_list(value)
            cleaned[key] = value
        return cleaned

    @classmethod
    def template_columns(cls) -> list[str]:
        """CSV header row, in declaration order."""
        return [to_camel(name) for name in cls.model_fields]


def split_list(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------

class PolicyRow(UploadRow):
    kind: ClassVar[str] = "policy"

    policy_number: str
    insurer_name: str
    product_name: str | None = None
    line_of_business: str
    policy_start_date: date
    policy_end_date: date
    premium_amount: Decimal
    sum_assured: Decimal | None = None
    policy_type: str | None = None
    policy_source: str | None = None
    payment_mode: str | None = None
    created_by_type: str | None = None
    agent_code: str | None = None
    employee_code: str | None = None
    branch_name: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    customer_email: str | None = None
    status: str | None = None
    remarks: str | None = None


class MotorPolicyRow(PolicyRow):
    vehicle_type: str | None = None
    registration_number: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    variant: str | None = None
    fuel_type: str | None = None
    idv: Decimal | None = None
    own_damage_premium: Decimal | None = None
    third_party_premium: Decimal | None = None
    ncb_percent: int | None = None


class LifePolicyRow(PolicyRow):
    proposer_name: str | None = None
    life_assured_name: str | None = None
    relationship: str | None = None
    plan_type: str | None = None
    policy_term: int | None = None
    premium_paying_term: int | None = None
    payment_frequency: str | None = None
    nominee_name: str | None = None
    nominee_relation: str | None = None


class HealthPolicyRow(PolicyRow):
    proposer_name: str | None = None
    coverage_type: str | None = None
    sum_insured: Decimal | None = None
    deductible: Decimal | None = None
    policy_term: int | None = None
    room_rent_limit: str | None = None


class CommercialPolicyRow(PolicyRow):
    policy_category: str | None = None
    business_type: str | None = None
    risk_address: str | None = None
    number_of_employees: int | None = None
    company_name: str | None = None
    pan: str | None = None
    gstin: str | None = None


_POLICY_ROW_BY_LOB: dict[str, type[PolicyRow]] = {
    "motor": MotorPolicyRow,
    "life": LifePolicyRow,
    "health": HealthPolicyRow,
    "commercial": CommercialPolicyRow,
}


def policy_row_model_for(line_of_business: str | None) -> type[PolicyRow]:
    """Row schema for a line of business; LOBs without a detail table use the base."""
    return _POLICY_ROW_BY_LOB.get((line_of_business or "").strip().lower(), PolicyRow)


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

class ProductRow(UploadRow):
    kind: ClassVar[str] = "product"
    list_fields: ClassVar[tuple[str, ...]] = ("supported_policy_types", "vehicle_types")

    product_name: str
    insurer_name: str
    line_of_business: str
    product_code: str
    uin: str | None = None
    plan_type: str | None = None
    variant: str | None = None
    sum_insured_min: Decimal | None = None
    sum_insured_max: Decimal | None = None
    premium_min: Decimal | None = None
    premium_max: Decimal | None = None
    policy_term: int | None = None
    premium_payment_term: int | None = None
    supported_policy_types: list[str] | None = None
    vehicle_types: list[str] | None = None
    effective_from: date | None = None
    effective_to: date | None = None
    is_standard_product: bool | None = None
    is_active: bool | None = None
    description: str | None = None


class ProductUpdateRow(UploadRow):
    kind: ClassVar[str] = "product_update"
    list_fields: ClassVar[tuple[str, ...]] = ("features",)

    product_code: str
    description: str | None = None
    status: str | None = None
    effective_from: date | None = None
    effective_to: date | None = None
    min_sum_insured: Decimal | None = None
    max_sum_insured: Decimal | None = None
    features: list[str] | None = None
    eligibility_criteria: str | None = None
    is_standard_product: bool | None = None
