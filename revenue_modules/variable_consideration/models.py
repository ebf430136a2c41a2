"""
Module: revenue_modules.variable_consideration.models
Responsibility:
    Frozen DTOs for the variable consideration policy and estimates.

Invariants:
    - constrained_amount is either raw_estimate or 0.
    - At most one estimate per (company, contract, pob, year, month).
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from revenue_engines.constraint import DEFAULT_CONSTRAINT_THRESHOLD, Scenario, VcMethod

__all__ = [
    "Scenario",
    "VcEstimate",
    "VcEstimateStatus",
    "VcMethod",
    "VcPolicy",
]


class VcEstimateStatus(Enum):
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"


@dataclass(frozen=True)
class VcPolicy:
    company_id: UUID
    default_method: VcMethod
    constraint_probability_threshold: Decimal = DEFAULT_CONSTRAINT_THRESHOLD
    volatility_lookback_months: int = 12
    id: UUID | None = None


@dataclass(frozen=True)
class VcEstimate:
    """
    A constrained variable consideration estimate for one POB period.

    Guarantees:
        - ``constrained_amount`` equals ``raw_estimate`` when ``confidence``
          met the threshold in force when it was written, else 0.
    """
    id: UUID
    company_id: UUID
    contract_id: UUID
    pob_id: UUID
    year: int
    month: int
    method: VcMethod
    raw_estimate: Decimal
    constrained_amount: Decimal
    confidence: Decimal
    status: VcEstimateStatus = VcEstimateStatus.OPEN
    created_by_id: UUID | None = None
    created_at: datetime | None = None
