"""Repositories for master / reference data looked up during ingestion."""


from app.domain.reference import (
    Agent,
    Branch,
    Employee,
    InsuranceProvider,
    LineOfBusiness,
    VehicleType,
)
from app.repositories.base import BaseRepository


class ProviderRepository(BaseRepository[InsuranceProvider]):
    model = InsuranceProvider

    async def find_by_name(self, name: str) -> InsuranceProvider | None:
        return await self.find_one(provider_name=name)


class LineOfBusinessRepository(BaseRepository[LineOfBusiness]):
    model = LineOfBusiness

    async def find_active(self, name: str) -> LineOfBusiness | None:
        return await self.find_one(lob_name=name, is_active=True)


class AgentRepository(BaseRepository[Agent]):
    model = Agent

    async def find_by_code(self, code: str) -> Agent | None:
        return await self.find_one(agent_code=code)


class EmployeeRepository(BaseRepository[Employee]):
    model = Employee

    async def find_by_code(self, code: str) -> Employee | None:
        return await self.find_one(employee_code=code)


class BranchRepository(BaseRepository[Branch]):
    model = Branch


class VehicleTypeRepository(BaseRepository[VehicleType]):
    model = VehicleType
