"""Policy and line-of-business detail repositories."""


from app.domain.policy import CommercialPolicy, HealthPolicy, LifePolicy, MotorPolicy, Policy
from app.repositories.base import BaseRepository


class PolicyRepository(BaseRepository[Policy]):
    model = Policy


class MotorPolicyRepository(BaseRepository[MotorPolicy]):
    model = MotorPolicy


class LifePolicyRepository(BaseRepository[LifePolicy]):
    model = LifePolicy


class HealthPolicyRepository(BaseRepository[HealthPolicy]):
    model = HealthPolicy


class CommercialPolicyRepository(BaseRepository[CommercialPolicy]):
    model = CommercialPolicy
