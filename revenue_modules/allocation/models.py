"""
Module: revenue_modules.allocation.models
Responsibility:
    Frozen DTOs for performance obligations, allocation audit rows and
    the outcomes returned by allocation and prospective reallocation.

Architecture:
    revenue_modules layer -- pure data definitions with ZERO I/O.

Invariants:
    - A POB's ssp is None only for residual allocations.
    - CLOSED POBs are never repriced.
    - AllocationOutcome.total_allocated + rounding_adjustment equals the
      invoice's net amount.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from revenue_engines.allocation import AllocationStrategy, StrategyReason
from revenue_engines.schedule import RecognitionMethod


class PobStatus(Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class PerformanceObligation:
    """
    A distinct promise in a contract carrying its share of the price.

    Guarantees:
        - ``allocated_amount`` is Decimal.
        - ``status`` CLOSED means immutable.
    """
    id: UUID
    company_id: UUID
    product_id: str
    name: str
    method: RecognitionMethod
    start_date: date
    allocated_amount: Decimal
    currency: str
    qty: Decimal = Decimal("1")
    uom: str | None = None
    end_date: date | None = None
    ssp: Decimal | None = None
    contract_id: UUID | None = None
    subscription_id: UUID | None = None
    invoice_line_id: UUID | None = None
    status: PobStatus = PobStatus.OPEN
    created_by_id: UUID | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class AllocationAudit:
    """One allocation run, successful or failed (inputs carry the error)."""
    id: UUID
    company_id: UUID
    invoice_id: UUID
    run_id: UUID
    method: str
    strategy: str
    inputs: dict[str, Any] = field(default_factory=dict)
    results: dict[str, Any] = field(default_factory=dict)
    corridor_flag: bool = False
    total_invoice_amount: Decimal = Decimal("0")
    total_allocated_amount: Decimal = Decimal("0")
    rounding_adjustment: Decimal = Decimal("0")
    processing_time_ms: int = 0
    created_by_id: UUID | None = None
    created_at: datetime | None = None

    @property
    def failed(self) -> bool:
        return "error" in self.inputs


@dataclass(frozen=True)
class AllocationOutcome:
    invoice_id: UUID
    run_id: UUID
    strategy: AllocationStrategy
    strategy_reason: StrategyReason
    pobs_created: int
    total_discount: Decimal
    total_allocated: Decimal
    rounding_adjustment: Decimal
    corridor_flags: tuple[str, ...]
    processing_time_ms: int
    pobs: tuple[PerformanceObligation, ...]


@dataclass(frozen=True)
class ReallocationDetail:
    pob_id: UUID
    product_id: str
    old_ssp: Decimal
    new_ssp: Decimal
    reallocation_delta: Decimal
    schedule_revision_id: UUID | None = None


@dataclass(frozen=True)
class ReallocationOutcome:
    ssp_change_id: UUID
    open_pobs_affected: int
    total_reallocation_delta: Decimal
    schedule_revisions_created: int
    dry_run: bool
    details: tuple[ReallocationDetail, ...] = ()
