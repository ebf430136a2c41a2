"""
Module: revenue_modules.modifications.models
Responsibility:
    Frozen DTOs and enums for change orders and their outcomes.

Invariants:
    - A DRAFT change order has type DRAFT_TYPE; an APPLIED one carries
      the treatment it was applied with.
    - APPLIED is terminal.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from revenue_modules.schedule.models import RevisionCause, ScheduleRevision

__all__ = [
    "DRAFT_TYPE",
    "ApplyResult",
    "ChangeLine",
    "ChangeLineInput",
    "ChangeOrder",
    "ChangeOrderStatus",
    "RecognitionRunResult",
    "RevisionCause",
    "ScheduleRevision",
    "Treatment",
]

# Placeholder type of a change order that has not been applied yet
DRAFT_TYPE = "DRAFT"


class ChangeOrderStatus(Enum):
    DRAFT = "DRAFT"
    APPLIED = "APPLIED"
    VOID = "VOID"


class Treatment(Enum):
    """ASC 606-10-25-12/13 modification treatments."""
    SEPARATE = "SEPARATE"
    TERMINATION_NEW = "TERMINATION_NEW"
    PROSPECTIVE = "PROSPECTIVE"
    RETROSPECTIVE = "RETROSPECTIVE"


@dataclass(frozen=True)
class ChangeLineInput:
    """A requested change to one POB or product."""
    pob_id: UUID | None = None
    product_id: str | None = None
    qty_delta: Decimal | None = None
    price_delta: Decimal | None = None
    term_delta_days: int | None = None
    new_method: str | None = None
    new_ssp: Decimal | None = None


@dataclass(frozen=True)
class ChangeLine:
    id: UUID
    change_order_id: UUID
    pob_id: UUID | None = None
    product_id: str | None = None
    qty_delta: Decimal | None = None
    price_delta: Decimal | None = None
    term_delta_days: int | None = None
    new_method: str | None = None
    new_ssp: Decimal | None = None


@dataclass(frozen=True)
class ChangeOrder:
    id: UUID
    company_id: UUID
    contract_id: UUID
    effective_date: date
    type: str
    status: ChangeOrderStatus
    reason: str | None = None
    lines: tuple[ChangeLine, ...] = ()
    created_by_id: UUID | None = None
    created_at: datetime | None = None

    @property
    def treatment(self) -> Treatment | None:
        if self.type == DRAFT_TYPE:
            return None
        return Treatment(self.type)


@dataclass(frozen=True)
class ApplyResult:
    success: bool
    message: str


@dataclass(frozen=True)
class RecognitionRunResult:
    success: bool
    message: str
    run_id: str | None = None
