"""Tests for resolving row references to ids."""

import pytest

from app.core.exceptions import ResolutionError
from app.domain.product import InsuranceProduct
from app.domain.reference import InsuranceProvider
from app.repositories.product import ProductRepository
from app.repositories.reference import ProviderRepository
from app.schemas.rows import MotorPolicyRow, PolicyRow
from app.services.context import IngestContext
from app.services.resolver import PLACEHOLDER_PRODUCT_NAME, EntityResolver
from tests.conftest import OTHER_TENANT, TENANT
from tests.helpers import policy_columns


class _RowFailed(Exception):
    pass


async def _add_product(session, provider_id, name, category="Health", **kwargs):
    return await ProductRepository(session, TENANT).create(
        product_name=name,
        product_code=kwargs.pop("product_code", name.upper().replace(" ", "-")),
        provider_id=provider_id,
        category=category,
        **kwargs,
    )


async def test_same_insurer_name_resolves_to_same_id(ctx, session):
    resolver = EntityResolver(ctx)

    first = await resolver.resolve_insurer("Acme General")
    second = await resolver.resolve_insurer("Acme General")
    # a fresh resolver hits the database instead of the cache
    third = await EntityResolver(ctx).resolve_insurer("Acme General")

    assert first == second == third
    providers = await ProviderRepository(session, TENANT).find_all(provider_name="Acme General")
    assert len(providers) == 1
    assert providers[0].is_placeholder
    assert providers[0].provider_code.startswith("AUTO_")
    assert providers[0].provider_type == "General"


async def test_insurer_lookup_is_exact_case(ctx):
    resolver = EntityResolver(ctx)
    assert await resolver.resolve_insurer("Acme") != await resolver.resolve_insurer("ACME")


async def test_existing_insurer_is_reused(ctx, session):
    existing = await ProviderRepository(session, TENANT).create(provider_name="Star Health", provider_code="STAR")
    assert await EntityResolver(ctx).resolve_insurer("Star Health") == existing.id


async def test_insurers_are_tenant_scoped(ctx, session, storage):
    ours = await EntityResolver(ctx).resolve_insurer("Acme General")
    other_ctx = IngestContext(tenant_id=OTHER_TENANT, session=session, storage=storage)
    theirs = await EntityResolver(other_ctx).resolve_insurer("Acme General")
    assert ours != theirs


async def test_product_exact_then_case_insensitive_match(ctx, session):
    resolver = EntityResolver(ctx)
    insurer_id = await resolver.resolve_insurer("Acme General")
    product = await _add_product(session, insurer_id, "Secure Shield")

    assert await resolver.resolve_product("Secure Shield", insurer_id, "Health") == product.id
    assert await resolver.resolve_product("secure SHIELD", insurer_id, "Health") == product.id


async def test_product_substring_match_needs_policy_type_hint(ctx, session):
    resolver = EntityResolver(ctx)
    insurer_id = await resolver.resolve_insurer("Acme General")
    await _add_product(session, insurer_id, "Shield Basic", supported_policy_types=["Renewal"])
    wanted = await _add_product(session, insurer_id, "Shield Plus", supported_policy_types=["New"])

    assert await resolver.resolve_product("shield", insurer_id, "Health", "New") == wanted.id

    without_hint = await resolver.resolve_product("shield", insurer_id, "Health")
    placeholder = await session.get(InsuranceProduct, without_hint)
    assert placeholder.product_name == PLACEHOLDER_PRODUCT_NAME


async def test_substring_match_treats_wildcards_literally(ctx, session):
    resolver = EntityResolver(ctx)
    insurer_id = await resolver.resolve_insurer("Acme General")
    await _add_product(session, insurer_id, "GoldXPlan Family", supported_policy_types=["New"])
    literal = await _add_product(session, insurer_id, "Gold_Plan Family", supported_policy_types=["New"])

    assert await resolver.resolve_product("gold_plan", insurer_id, "Health", "New") == literal.id
    percent_id = await resolver.resolve_product("Gold%Family", insurer_id, "Health", "New")
    assert (await session.get(InsuranceProduct, percent_id)).is_placeholder


async def test_product_lookup_scoped_to_line_of_business(ctx, session):
    resolver = EntityResolver(ctx)
    insurer_id = await resolver.resolve_insurer("Acme General")
    await _add_product(session, insurer_id, "Secure Shield", category="Life")

    product_id = await resolver.resolve_product("Secure Shield", insurer_id, "Health")
    product = await session.get(InsuranceProduct, product_id)
    assert product.is_placeholder


async def test_missing_product_name_creates_placeholder(ctx, session):
    resolver = EntityResolver(ctx)
    insurer_id = await resolver.resolve_insurer("Acme General")

    product_id = await resolver.resolve_product(None, insurer_id, "Health")
    product = await session.get(InsuranceProduct, product_id)

    assert product.product_name == PLACEHOLDER_PRODUCT_NAME
    assert product.is_placeholder
    assert product.product_code.startswith("AUTO_")
    assert product.coverage_type == "Comprehensive"
    assert product.premium_type == "Fixed"
    assert product.min_sum_insured < product.max_sum_insured


async def test_placeholder_product_is_shared_per_insurer_and_line(ctx, session):
    resolver = EntityResolver(ctx)
    insurer_id = await resolver.resolve_insurer("Acme General")

    first = await resolver.resolve_product("Unknown Plan A", insurer_id, "Health")
    second = await resolver.resolve_product("Unknown Plan B", insurer_id, "Health")
    other_line = await resolver.resolve_product("Unknown Plan A", insurer_id, "Life")

    assert first == second
    assert other_line != first
    product = await session.get(InsuranceProduct, first)
    assert "Unknown Plan A" in product.description


async def test_placeholder_created_by_another_batch_is_reused(ctx, session, monkeypatch):
    insurer_id = await EntityResolver(ctx).resolve_insurer("Acme General")
    theirs = await EntityResolver(ctx).resolve_product(None, insurer_id, "Health")

    # The other batch's insert lands between our lookup and our insert
    original_find_one = ProductRepository.find_one
    misses = []

    async def find_one_after_race(self, **filters):
        if filters.get("is_placeholder") and not misses:
            misses.append(filters)
            return None
        return await original_find_one(self, **filters)

    monkeypatch.setattr(ProductRepository, "find_one", find_one_after_race)
    ours = await EntityResolver(ctx).resolve_product(None, insurer_id, "Health")

    assert misses
    assert ours == theirs
    placeholders = await ProductRepository(session, TENANT).find_all(
        provider_id=insurer_id, category="Health", is_placeholder=True
    )
    assert len(placeholders) == 1


async def test_missing_line_of_business_raises(ctx):
    with pytest.raises(ResolutionError) as exc_info:
        await EntityResolver(ctx).resolve_line_of_business("Pet")

    assert exc_info.value.field == "lineOfBusiness"
    assert exc_info.value.stage == "resolution"


async def test_optional_references_resolve_to_none_when_absent(ctx):
    resolver = EntityResolver(ctx)

    assert await resolver.resolve_agent("AG001") is not None
    assert await resolver.resolve_agent("NOPE") is None
    assert await resolver.resolve_employee("EMP001") is not None
    assert await resolver.resolve_employee(None) is None
    assert await resolver.resolve_branch("Head Office") is not None
    assert await resolver.resolve_branch("Nowhere") is None
    assert await resolver.resolve_vehicle_type("Private Car") is not None
    assert await resolver.resolve_vehicle_type("Hovercraft") is None


async def test_policy_references_skip_vehicle_type_outside_motor(ctx):
    resolver = EntityResolver(ctx)
    motor = MotorPolicyRow.model_validate({**policy_columns(lob="Motor"), "vehicleType": "Private Car"})
    health = PolicyRow.model_validate(policy_columns(lob="Health"))

    motor_refs = await resolver.resolve_policy_references(motor)
    health_refs = await resolver.resolve_policy_references(health)

    assert motor_refs.vehicle_type_id is not None
    assert health_refs.vehicle_type_id is None
    assert motor_refs.insurer_id == health_refs.insurer_id
    assert motor_refs.agent_id is not None


async def test_policy_references_fail_on_unconfigured_line(ctx):
    row = PolicyRow.model_validate(policy_columns(lob="Pet"))
    with pytest.raises(ResolutionError):
        await EntityResolver(ctx).resolve_policy_references(row)


async def test_rolled_back_row_forgets_cached_ids(ctx, session):
    resolver = EntityResolver(ctx)
    resolver.begin_row()
    with pytest.raises(_RowFailed):
        async with session.begin_nested():
            rolled_back_id = await resolver.resolve_insurer("Ghost Insurer")
            raise _RowFailed
    resolver.rollback_row()

    assert await session.get(InsuranceProvider, rolled_back_id) is None
    assert await resolver.resolve_insurer("Ghost Insurer") != rolled_back_id


async def test_product_by_code(ctx, session):
    resolver = EntityResolver(ctx)
    insurer_id = await resolver.resolve_insurer("Acme General")
    product = await _add_product(session, insurer_id, "Secure Shield", product_code="ACME-1")

    assert (await resolver.resolve_product_by_code("ACME-1")).id == product.id
    with pytest.raises(ResolutionError) as exc_info:
        await resolver.resolve_product_by_code("MISSING")
    assert exc_info.value.field == "productCode"
