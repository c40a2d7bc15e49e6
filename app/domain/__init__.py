"""Domain package: all ORM models are imported here so Alembic autogenerate detects them.

Folder intent:
  reference.py  - insurers, lines of business, agents, employees, branches, vehicle types
  product.py    - insurance products (uploaded or placeholder-created)
  policy.py     - canonical policies plus one detail table per line of business
  upload.py     - upload batches and their per-row outcomes
  audit.py      - immutable request audit trail
  mixins.py     - shared IdMixin, TimestampMixin, TenantMixin
"""

from app.domain.audit import AuditTrail
from app.domain.policy import CommercialPolicy, HealthPolicy, LifePolicy, MotorPolicy, Policy
from app.domain.product import InsuranceProduct
from app.domain.reference import (
    Agent,
    Branch,
    Employee,
    InsuranceProvider,
    LineOfBusiness,
    VehicleType,
)
from app.domain.upload import UploadBatch, UploadRowOutcome

__all__ = [
    "Agent",
    "AuditTrail",
    "Branch",
    "CommercialPolicy",
    "Employee",
    "HealthPolicy",
    "InsuranceProduct",
    "InsuranceProvider",
    "LifePolicy",
    "LineOfBusiness",
    "MotorPolicy",
    "Policy",
    "UploadBatch",
    "UploadRowOutcome",
    "VehicleType",
]
