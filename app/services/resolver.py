"""Entity resolver: turns the text references on a row into database ids.

Lookup order for a policy row is insurer -> product -> line of business ->
agent / employee / branch -> vehicle type. Only insurers and products are
ever created here, as placeholders, so that ingestion is never blocked by
missing master data. A missing line of business is the one hard failure.

Resolved ids are cached for the lifetime of the resolver (one batch), so the
same name always yields the same id within a batch. Ids cached while a row
is being processed are provisional until :meth:`EntityResolver.commit_row`;
:meth:`EntityResolver.rollback_row` forgets them when the row's savepoint
was rolled back.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ResolutionError
from app.domain.product import InsuranceProduct
from app.domain.reference import InsuranceProvider
from app.repositories.product import ProductRepository
from app.repositories.reference import (
    AgentRepository,
    BranchRepository,
    EmployeeRepository,
    LineOfBusinessRepository,
    ProviderRepository,
    VehicleTypeRepository,
)
from app.schemas.rows import MotorPolicyRow, PolicyRow, ProductRow
from app.schemas.upload import ResolvedReferences
from app.services.context import IngestContext

logger = logging.getLogger(__name__)

PLACEHOLDER_PRODUCT_NAME = "Product name not found in system"
PLACEHOLDER_INSURER_TYPE = "General"
PLACEHOLDER_COVERAGE_TYPE = "Comprehensive"
PLACEHOLDER_PREMIUM_TYPE = "Fixed"
PLACEHOLDER_MIN_SUM_INSURED = Decimal("100000")
PLACEHOLDER_MAX_SUM_INSURED = Decimal("10000000")


def generate_code(prefix: str = "AUTO") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12].upper()}"


class EntityResolver:
    """Per-batch resolver bound to one tenant and session."""

    def __init__(self, context: IngestContext, batch_id: str | None = None):
        session, tenant = context.session, context.tenant_id
        self._session = session
        self._batch_id = batch_id
        self._providers = ProviderRepository(session, tenant)
        self._products = ProductRepository(session, tenant)
        self._lobs = LineOfBusinessRepository(session, tenant)
        self._agents = AgentRepository(session, tenant)
        self._employees = EmployeeRepository(session, tenant)
        self._branches = BranchRepository(session, tenant)
        self._vehicle_types = VehicleTypeRepository(session, tenant)

        self._cache: dict[tuple[Any, ...], str | None] = {}
        self._pending: list[tuple[Any, ...]] = []

    # ------------------------------------------------------------------
    # Row bookkeeping
    # ------------------------------------------------------------------

    def begin_row(self) -> None:
        self._pending = []

    def commit_row(self) -> None:
        self._pending = []

    def rollback_row(self) -> None:
        """Forget ids first cached by the current row."""
        for key in self._pending:
            self._cache.pop(key, None)
        self._pending = []

    async def _cached(
        self, key: tuple[Any, ...], load: Callable[[], Awaitable[str | None]]
    ) -> str | None:
        if key in self._cache:
            return self._cache[key]
        value = await load()
        self._cache[key] = value
        self._pending.append(key)
        return value

    # ------------------------------------------------------------------
    # Insurers
    # ------------------------------------------------------------------

    async def resolve_insurer(self, name: str) -> str:
        """Id of the insurer named exactly *name*; a placeholder is created if absent."""
        name = name.strip()

        async def load() -> str:
            provider = await self._providers.find_by_name(name)
            if provider is None:
                provider = await self._create_placeholder_insurer(name)
            return provider.id

        return await self._cached(("insurer", name), load)

    async def _create_placeholder_insurer(self, name: str) -> InsuranceProvider:
        try:
            async with self._session.begin_nested():
                provider = await self._providers.create(
                    provider_name=name,
                    provider_code=generate_code(),
                    provider_type=PLACEHOLDER_INSURER_TYPE,
                    is_placeholder=True,
                )
        except IntegrityError:
            # Another batch inserted the same name first
            provider = await self._providers.find_by_name(name)
            if provider is None:
                raise
            logger.info("Insurer %r created concurrently; reusing %s", name, provider.id)
            return provider

        logger.info("Created placeholder insurer %r (%s)", name, provider.id)
        return provider

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def resolve_product(
        self,
        name: str | None,
        insurer_id: str,
        line_of_business: str,
        policy_type_hint: str | None = None,
    ) -> str:
        """Id of the best matching product for one insurer and LOB.

        Tries exact name, case-insensitive name, then (with a policy type
        hint) a name substring among products supporting that type. Falls
        back to the shared placeholder product.
        """
        requested = (name or "").strip()
        key = ("product", insurer_id, line_of_business, requested.lower(), policy_type_hint)

        async def load() -> str:
            product = None
            if requested:
                product = await self._match_product(requested, insurer_id, line_of_business, policy_type_hint)
            if product is None:
                product = await self._placeholder_product(insurer_id, line_of_business, requested)
            return product.id

        return await self._cached(key, load)

    async def _match_product(
        self, name: str, insurer_id: str, line_of_business: str, policy_type_hint: str | None
    ) -> InsuranceProduct | None:
        scope = {"provider_id": insurer_id, "category": line_of_business}

        product = await self._products.find_one(product_name=name, **scope)
        if product is None:
            product = await self._products.find_one_ci("product_name", name, **scope)
        if product is None and policy_type_hint:
            candidates = await self._products.find_name_containing(name, **scope)
            product = next(
                (c for c in candidates if c.supports_policy_type(policy_type_hint)), None
            )
        return product

    async def _placeholder_product(
        self, insurer_id: str, line_of_business: str, requested: str
    ) -> InsuranceProduct:
        scope = {
            "product_name": PLACEHOLDER_PRODUCT_NAME,
            "provider_id": insurer_id,
            "category": line_of_business,
            "is_placeholder": True,
        }
        existing = await self._products.find_one(**scope)
        if existing is not None:
            return existing

        if requested:
            description = f"Auto-created during bulk upload. Requested product: {requested}"
        else:
            description = "Auto-created during bulk upload. No product name was supplied."

        try:
            async with self._session.begin_nested():
                product = await self._products.create(
                    product_code=generate_code(),
                    coverage_type=PLACEHOLDER_COVERAGE_TYPE,
                    premium_type=PLACEHOLDER_PREMIUM_TYPE,
                    min_sum_insured=PLACEHOLDER_MIN_SUM_INSURED,
                    max_sum_insured=PLACEHOLDER_MAX_SUM_INSURED,
                    description=description,
                    upload_batch_id=self._batch_id,
                    **scope,
                )
        except IntegrityError:
            # Another batch created the placeholder for this insurer / LOB first
            product = await self._products.find_one(**scope)
            if product is None:
                raise
            logger.info(
                "Placeholder product for insurer %s / %s created concurrently; reusing %s",
                insurer_id, line_of_business, product.id,
            )
            return product

        logger.info(
            "Created placeholder product %s for insurer %s / %s (requested %r)",
            product.id, insurer_id, line_of_business, requested or None,
        )
        return product

    async def resolve_product_by_code(self, code: str) -> InsuranceProduct:
        product = await self._products.find_by_code(code.strip())
        if product is None:
            raise ResolutionError(f"Product with code '{code}' not found", field="productCode")
        return product

    # ------------------------------------------------------------------
    # Mandatory / optional references
    # ------------------------------------------------------------------

    async def resolve_line_of_business(self, name: str) -> str:
        name = name.strip()

        async def load() -> str | None:
            lob = await self._lobs.find_active(name)
            return lob.id if lob else None

        lob_id = await self._cached(("lob", name), load)
        if lob_id is None:
            raise ResolutionError(
                f"Line of business '{name}' is not configured", field="lineOfBusiness"
            )
        return lob_id

    async def resolve_agent(self, code: str | None) -> str | None:
        if not code:
            return None

        async def load() -> str | None:
            agent = await self._agents.find_by_code(code)
            return agent.id if agent else None

        return await self._cached(("agent", code), load)

    async def resolve_employee(self, code: str | None) -> str | None:
        if not code:
            return None

        async def load() -> str | None:
            employee = await self._employees.find_by_code(code)
            return employee.id if employee else None

        return await self._cached(("employee", code), load)

    async def resolve_branch(self, name: str | None) -> str | None:
        if not name:
            return None

        async def load() -> str | None:
            branch = await self._branches.find_one(name=name)
            return branch.id if branch else None

        return await self._cached(("branch", name), load)

    async def resolve_vehicle_type(self, name: str | None) -> str | None:
        if not name:
            return None

        async def load() -> str | None:
            vehicle_type = await self._vehicle_types.find_one(name=name)
            return vehicle_type.id if vehicle_type else None

        return await self._cached(("vehicle_type", name), load)

    # ------------------------------------------------------------------
    # Whole rows
    # ------------------------------------------------------------------

    async def resolve_policy_references(self, row: PolicyRow) -> ResolvedReferences:
        insurer_id = await self.resolve_insurer(row.insurer_name)
        product_id = await self.resolve_product(
            row.product_name, insurer_id, row.line_of_business, row.policy_type
        )
        lob_id = await self.resolve_line_of_business(row.line_of_business)
        agent_id = await self.resolve_agent(row.agent_code)
        employee_id = await self.resolve_employee(row.employee_code)
        branch_id = await self.resolve_branch(row.branch_name)

        vehicle_type_id = None
        if isinstance(row, MotorPolicyRow) and row.line_of_business.lower() == "motor":
            vehicle_type_id = await self.resolve_vehicle_type(row.vehicle_type)

        return ResolvedReferences(
            insurer_id=insurer_id,
            product_id=product_id,
            line_of_business_id=lob_id,
            agent_id=agent_id,
            employee_id=employee_id,
            branch_id=branch_id,
            vehicle_type_id=vehicle_type_id,
        )

    async def resolve_product_references(self, row: ProductRow) -> tuple[str, str]:
        """(insurer id, line of business id) for a product upload row."""
        insurer_id = await self.resolve_insurer(row.insurer_name)
        lob_id = await self.resolve_line_of_business(row.line_of_business)
        return insurer_id, lob_id
