"""Row validation for bulk uploads.

Every rule appends one issue per violation; nothing here raises on bad
input and nothing mutates the row. Rows that pass all rules are then
coerced into their typed schema from :mod:`app.schemas.rows`.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Mapping
from datetime import date

from pydantic import ValidationError as SchemaValidationError

from app.schemas.rows import (
    ProductRow,
    ProductUpdateRow,
    UploadRow,
    policy_row_model_for,
    split_list,
)
from app.schemas.upload import RawRow, RowIssue, UploadKind, ValidationResult

# ---------------------------------------------------------------------------
# Domain values
# ---------------------------------------------------------------------------

LINES_OF_BUSINESS: tuple[str, ...] = ("Health", "Motor", "Life", "Travel", "Loan", "Pet", "Commercial")
POLICY_TYPES: tuple[str, ...] = ("New", "Renewal", "Portability", "Top-Up", "Rollover", "Converted")
VEHICLE_TYPES: tuple[str, ...] = ("Two-Wheeler", "Private Car", "Commercial Vehicle", "Miscellaneous")
PAYMENT_MODES: tuple[str, ...] = ("Cash", "UPI", "Cheque", "Online", "Bank Transfer")
CREATOR_TYPES: tuple[str, ...] = ("Agent", "Employee")
PRODUCT_STATUSES: tuple[str, ...] = ("Active", "Inactive")

UNVERIFIED_CUSTOMER_NAME = "Unverified Customer"

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_INT_RE = re.compile(r"^[+-]?\d+$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_BOOLEAN_VALUES = ("true", "false")

# ---------------------------------------------------------------------------
# Primitive checks
# ---------------------------------------------------------------------------

def parse_iso_date(value: str) -> date | None:
    """Return the date for a strict ``YYYY-MM-DD`` string, else None.

    Both the shape and the calendar are checked: ``2024-02-30`` has the
    right shape but is not a date.
    """
    if not _DATE_RE.match(value):
        return None
    year, month, day = (int(part) for part in value.split("-"))
    try:
        return date(year, month, day)
    except ValueError:
        return None


def is_valid_date(value: str) -> bool:
    return parse_iso_date(value) is not None


def parse_number(value: str) -> float | None:
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def is_unverified_customer(name: str | None) -> bool:
    return (name or "").strip().lower() == UNVERIFIED_CUSTOMER_NAME.lower()


class _Issues:
    """Collects issues for one row against its column mapping."""

    def __init__(self, columns: Mapping[str, str]):
        self._columns = columns
        self.items: list[RowIssue] = []

    def value(self, field: str) -> str:
        return (self._columns.get(field) or "").strip()

    def add(self, field: str | None, message: str) -> None:
        self.items.append(RowIssue(field=field, message=message))

    def require(self, field: str, label: str, message: str | None = None) -> None:
        if not self.value(field):
            self.add(field, message or f"{label} is required")

    def date(self, field: str, label: str) -> date | None:
        raw = self.value(field)
        if not raw:
            return None
        parsed = parse_iso_date(raw)
        if parsed is None:
            self.add(field, f"Invalid {label} format (use YYYY-MM-DD)")
        return parsed

    def number(self, field: str, label: str, *, non_negative: bool = False) -> float | None:
        raw = self.value(field)
        if not raw:
            return None
        number = parse_number(raw)
        if number is None or (non_negative and number < 0):
            qualifier = "valid non-negative number" if non_negative else "valid number"
            self.add(field, f"{label} must be a {qualifier}")
            return None
        return number

    def whole_number(self, field: str, label: str) -> None:
        raw = self.value(field)
        if raw and not _INT_RE.match(raw):
            self.add(field, f"{label} must be a whole number")

    def one_of(self, field: str, label: str, allowed: tuple[str, ...]) -> None:
        raw = self.value(field)
        if raw and raw not in allowed:
            self.add(field, f"{label} must be one of: {', '.join(allowed)}")

    def boolean(self, field: str) -> None:
        raw = self.value(field)
        if raw and raw.lower() not in _BOOLEAN_VALUES:
            self.add(field, f"{field} must be true or false")

    def subset(self, field: str, label: str, allowed: tuple[str, ...]) -> None:
        invalid = [item for item in split_list(self.value(field)) if item not in allowed]
        if invalid:
            self.add(
                field,
                f"Invalid {label}: {', '.join(invalid)}. Valid types are: {', '.join(allowed)}",
            )

    def ordered(
        self, low: float | date | None, high: float | date | None, field: str, message: str
    ) -> None:
        if low is not None and high is not None and low > high:
            self.add(field, message)

# ---------------------------------------------------------------------------
# Rule sets
# ---------------------------------------------------------------------------

def _policy_issues(columns: Mapping[str, str]) -> list[RowIssue]:
    v = _Issues(columns)

    v.require("policyNumber", "Policy number")
    v.require("insurerName", "Insurer name")
    v.require("lineOfBusiness", "Line of business")
    v.require("policyStartDate", "Policy start date")
    v.require("policyEndDate", "Policy end date")
    v.require("premiumAmount", "Premium amount")

    start = v.date("policyStartDate", "policy start date")
    end = v.date("policyEndDate", "policy end date")
    v.ordered(start, end, "policyEndDate", "Policy end date must not be before policy start date")

    v.number("premiumAmount", "Premium amount")
    v.number("sumAssured", "Sum assured")
    v.number("sumInsured", "Sum insured")
    v.number("idv", "IDV")
    v.number("ownDamagePremium", "Own damage premium")
    v.number("thirdPartyPremium", "Third party premium")
    v.number("deductible", "Deductible")
    v.whole_number("ncbPercent", "NCB percent")
    v.whole_number("policyTerm", "Policy term")
    v.whole_number("premiumPayingTerm", "Premium paying term")
    v.whole_number("numberOfEmployees", "Number of employees")

    v.one_of("lineOfBusiness", "Line of business", LINES_OF_BUSINESS)
    v.one_of("policyType", "Policy type", POLICY_TYPES)
    if v.value("lineOfBusiness") == "Motor":
        v.one_of("vehicleType", "Vehicle type", VEHICLE_TYPES)
    v.one_of("paymentMode", "Payment mode", PAYMENT_MODES)

    creator_type = v.value("createdByType")
    if creator_type and creator_type not in CREATOR_TYPES:
        v.add("createdByType", "Created By Type must be either Agent or Employee")
    if creator_type == "Agent":
        if not v.value("agentCode"):
            v.add("agentCode", "Agent Code is required when Created By Type is Agent")
        if v.value("employeeCode"):
            v.add("employeeCode", "Employee Code must be empty when Created By Type is Agent")
    elif creator_type == "Employee":
        if not v.value("employeeCode"):
            v.add("employeeCode", "Employee Code is required when Created By Type is Employee")
        if v.value("agentCode"):
            v.add("agentCode", "Agent Code must be empty when Created By Type is Employee")

    email = v.value("customerEmail")
    if email and not is_unverified_customer(v.value("customerName")) and not _EMAIL_RE.match(email):
        v.add("customerEmail", "Customer email is not a valid email address")

    return v.items


def _product_issues(columns: Mapping[str, str]) -> list[RowIssue]:
    v = _Issues(columns)

    v.require("productName", "Product name")
    v.require("insurerName", "Insurer name")
    v.require("productCode", "Product code")
    v.require("lineOfBusiness", "Line of business")
    v.one_of("lineOfBusiness", "Line of business", LINES_OF_BUSINESS)

    si_min = v.number("sumInsuredMin", "Minimum sum insured", non_negative=True)
    si_max = v.number("sumInsuredMax", "Maximum sum insured", non_negative=True)
    v.ordered(si_min, si_max, "sumInsuredMax",
              "Maximum sum insured must be greater than or equal to minimum sum insured")
    premium_min = v.number("premiumMin", "Premium min", non_negative=True)
    premium_max = v.number("premiumMax", "Premium max", non_negative=True)
    v.ordered(premium_min, premium_max, "premiumMax",
              "Premium max must be greater than or equal to premium min")
    v.whole_number("policyTerm", "Policy term")
    v.whole_number("premiumPaymentTerm", "Premium payment term")

    v.boolean("isStandardProduct")
    v.boolean("isActive")
    v.subset("supportedPolicyTypes", "policy types", POLICY_TYPES)
    if v.value("vehicleTypes"):
        if v.value("lineOfBusiness") != "Motor":
            v.add("vehicleTypes", "Vehicle types can only be specified for Motor line of business")
        else:
            v.subset("vehicleTypes", "vehicle types", VEHICLE_TYPES)

    effective_from = v.date("effectiveFrom", "effective from date")
    effective_to = v.date("effectiveTo", "effective to date")
    v.ordered(effective_from, effective_to, "effectiveTo",
              "Effective from date must be before effective to date")

    return v.items


def _product_update_issues(columns: Mapping[str, str]) -> list[RowIssue]:
    v = _Issues(columns)

    v.require("productCode", "Product code", "Product code is required for identification")
    v.one_of("status", "Status", PRODUCT_STATUSES)
    v.boolean("isStandardProduct")

    si_min = v.number("minSumInsured", "minSumInsured", non_negative=True)
    si_max = v.number("maxSumInsured", "maxSumInsured", non_negative=True)
    v.ordered(si_min, si_max, "maxSumInsured",
              "Minimum sum insured must be less than maximum sum insured")

    effective_from = v.date("effectiveFrom", "effective from date")
    effective_to = v.date("effectiveTo", "effective to date")
    v.ordered(effective_from, effective_to, "effectiveTo",
              "Effective from date must be before effective to date")

    return v.items


_RULES: dict[UploadKind, Callable[[Mapping[str, str]], list[RowIssue]]] = {
    UploadKind.POLICY: _policy_issues,
    UploadKind.PRODUCT: _product_issues,
    UploadKind.PRODUCT_UPDATE: _product_update_issues,
}

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_policy_row(columns: Mapping[str, str]) -> list[str]:
    return [issue.message for issue in _policy_issues(columns)]


def validate_product_row(columns: Mapping[str, str]) -> list[str]:
    return [issue.message for issue in _product_issues(columns)]


def validate_product_update_row(columns: Mapping[str, str]) -> list[str]:
    return [issue.message for issue in _product_update_issues(columns)]


def validate_row(kind: UploadKind, row: RawRow) -> ValidationResult:
    """Run the rule set for *kind*; an empty error list means the row is valid."""
    issues = _RULES[kind](row.columns)
    return ValidationResult(
        row_index=row.row_index,
        is_valid=not issues,
        errors=[issue.message for issue in issues],
        issues=issues,
    )


def row_model_for(kind: UploadKind, columns: Mapping[str, str]) -> type[UploadRow]:
    if kind is UploadKind.POLICY:
        return policy_row_model_for(columns.get("lineOfBusiness"))
    if kind is UploadKind.PRODUCT:
        return ProductRow
    return ProductUpdateRow


def validate_and_coerce(kind: UploadKind, row: RawRow) -> tuple[ValidationResult, UploadRow | None]:
    """Validate *row* and, when it passes, return its typed schema instance.

    A schema coercion failure after the rules passed is reported as issues on
    the returned result rather than raised.
    """
    result = validate_row(kind, row)
    if not result.is_valid:
        return result, None

    model = row_model_for(kind, row.columns)
    try:
        return result, model.model_validate(dict(row.columns))
    except SchemaValidationError as exc:
        issues = [
            RowIssue(
                field=".".join(str(part) for part in err["loc"]) or None,
                message=f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}",
            )
            for err in exc.errors()
        ]
        return (
            ValidationResult(
                row_index=row.row_index,
                is_valid=False,
                errors=[issue.message for issue in issues],
                issues=issues,
            ),
            None,
        )
