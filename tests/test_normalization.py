"""Tests for the pure normalisation rules used by the writers."""

import logging

import pytest

from app.services.normalization import (
    UNVERIFIED_CUSTOMER_MARKER,
    detail_category,
    determine_attribution,
    normalize_policy_type,
    redact_customer,
)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Renewal", "Renewal"),
        ("auto renew", "Renewal"),
        ("Rollover", "Roll-over"),
        ("Portability", "Ported"),
        ("Family Floater", "New"),
        ("individual", "New"),
        ("Fresh", "New"),
        ("Top-Up", "New"),
        ("something else", "New"),
    ],
)
def test_policy_type_keywords(text, expected):
    assert normalize_policy_type(text) == expected


@pytest.mark.parametrize("text", [None, "", "   "])
def test_empty_policy_type_stays_empty(text):
    assert normalize_policy_type(text) is None


def test_attribution_single_reference_wins():
    assert determine_attribution("a1", None) == ("Agent", "a1", None)
    assert determine_attribution(None, "e1") == ("Employee", None, "e1")


def test_attribution_prefers_employee_unless_row_says_agent():
    assert determine_attribution("a1", "e1") == ("Employee", None, "e1")
    assert determine_attribution("a1", "e1", "Employee") == ("Employee", None, "e1")
    assert determine_attribution("a1", "e1", "Agent") == ("Agent", "a1", None)


def test_attribution_without_references_is_logged(caplog):
    with caplog.at_level(logging.WARNING, logger="app.services.normalization"):
        result = determine_attribution(None, None, "Agent")

    assert result == ("Employee", None, None)
    assert "No agent or employee resolved" in caplog.text


@pytest.mark.parametrize("name", ["Unverified Customer", "UNVERIFIED CUSTOMER", "  unverified customer "])
def test_unverified_customer_is_redacted(name):
    fields = redact_customer(name, "9876543210", "someone@example.com", "Walk-in")

    assert fields.name == "Unverified Customer"
    assert fields.phone is None
    assert fields.email is None
    assert fields.remarks.startswith("Walk-in ")
    assert UNVERIFIED_CUSTOMER_MARKER in fields.remarks


def test_verified_customer_is_untouched():
    fields = redact_customer("Asha Rao", "98", "a@example.com", None)
    assert fields == ("Asha Rao", "98", "a@example.com", None)


def test_redaction_without_remarks_adds_marker():
    assert UNVERIFIED_CUSTOMER_MARKER in redact_customer("unverified customer", None, None, None).remarks


@pytest.mark.parametrize(
    "lob, expected",
    [("Motor", "motor"), ("LIFE", "life"), ("health", "health"), ("Commercial", "commercial"),
     ("Travel", None), (None, None)],
)
def test_detail_category(lob, expected):
    assert detail_category(lob) == expected
