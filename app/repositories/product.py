"""Product repository: tenant-scoped product lookups used by the resolver."""


from sqlalchemy import func

from app.domain.product import InsuranceProduct
from app.repositories.base import BaseRepository


class ProductRepository(BaseRepository[InsuranceProduct]):
    model = InsuranceProduct

    async def find_by_code(self, code: str) -> InsuranceProduct | None:
        return await self.find_one(product_code=code)

    async def find_name_containing(
        self, fragment: str, *, provider_id: str, category: str
    ) -> list[InsuranceProduct]:
        """Products of one insurer / LOB whose name contains *fragment* (any case)."""
        q = (
            self._base_query()
            .where(InsuranceProduct.provider_id == provider_id)
            .where(InsuranceProduct.category == category)
            .where(func.lower(InsuranceProduct.product_name).contains(fragment.lower(), autoescape=True))
            .order_by(InsuranceProduct.created_at.asc())
        )
        result = await self._session.execute(q)
        return list(result.scalars().all())
