"""Pure normalisation rules applied while turning a row into a record.

None of these touch the database, so they are unit-tested on their own.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from app.services.validation import UNVERIFIED_CUSTOMER_NAME, is_unverified_customer

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Policy type
# ---------------------------------------------------------------------------

# Ordered: the first keyword found in the upper-cased text wins. The table is
# a best-effort mapping of free text, not a complete vocabulary.
POLICY_TYPE_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("RENEW", "Renewal"),
    ("ROLL", "Roll-over"),
    ("PORT", "Ported"),
    ("FLOATER", "New"),
    ("FAMILY", "New"),
    ("INDIVIDUAL", "New"),
    ("NEW", "New"),
    ("FRESH", "New"),
)
DEFAULT_POLICY_TYPE = "New"


def normalize_policy_type(value: str | None) -> str | None:
    """Canonicalise free-text policy type; unrecognised text becomes ``New``."""
    text = (value or "").strip().upper()
    if not text:
        return None
    for keyword, canonical in POLICY_TYPE_KEYWORDS:
        if keyword in text:
            return canonical
    return DEFAULT_POLICY_TYPE

# ---------------------------------------------------------------------------
# Attribution
# ---------------------------------------------------------------------------

class Attribution(NamedTuple):
    created_by_type: str
    agent_id: str | None
    employee_id: str | None


def determine_attribution(
    agent_id: str | None, employee_id: str | None, creator_type: str | None = None
) -> Attribution:
    """Decide who a policy is attributed to.

    Exactly one resolved id wins. With both resolved the employee wins unless
    the row explicitly says Agent. With neither, the policy is attributed to
    an unknown employee.
    """
    if agent_id and not employee_id:
        return Attribution("Agent", agent_id, None)
    if employee_id and not agent_id:
        return Attribution("Employee", None, employee_id)
    if agent_id and employee_id:
        if (creator_type or "").strip() == "Agent":
            return Attribution("Agent", agent_id, None)
        return Attribution("Employee", None, employee_id)

    logger.warning(
        "No agent or employee resolved (creator type %r); attributing to employee=None",
        creator_type,
    )
    return Attribution("Employee", None, None)

# ---------------------------------------------------------------------------
# Customer redaction
# ---------------------------------------------------------------------------

UNVERIFIED_CUSTOMER_MARKER = "[UNVERIFIED CUSTOMER]"
_UNVERIFIED_NOTE = (
    f"{UNVERIFIED_CUSTOMER_MARKER} Customer identity not verified; "
    "contact details were not stored."
)


class CustomerFields(NamedTuple):
    name: str | None
    phone: str | None
    email: str | None
    remarks: str | None


def redact_customer(
    name: str | None, phone: str | None, email: str | None, remarks: str | None
) -> CustomerFields:
    """Strip contact details from rows naming an unverified customer."""
    if not is_unverified_customer(name):
        return CustomerFields(name, phone, email, remarks)
    note = f"{remarks} {_UNVERIFIED_NOTE}" if remarks else _UNVERIFIED_NOTE
    return CustomerFields(UNVERIFIED_CUSTOMER_NAME, None, None, note)

# ---------------------------------------------------------------------------
# Line of business
# ---------------------------------------------------------------------------

DETAIL_LINES_OF_BUSINESS: tuple[str, ...] = ("motor", "life", "health", "commercial")


def detail_category(line_of_business: str | None) -> str | None:
    """Lower-case LOB key when the LOB has a detail table, else None."""
    key = (line_of_business or "").strip().lower()
    return key if key in DETAIL_LINES_OF_BUSINESS else None
