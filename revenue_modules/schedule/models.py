"""
Module: revenue_modules.schedule.models
Responsibility:
    Frozen DTOs for recognition schedule rows and schedule revisions.

Architecture:
    revenue_modules layer -- pure data definitions with ZERO I/O.

Invariants:
    - One schedule row per (pob, year, month).
    - delta_planned == planned_after - planned_before on every revision.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from revenue_engines.schedule import RecognitionMethod
from revenue_modules.collaborators import ScheduleBuildResult


class ScheduleStatus(Enum):
    PLANNED = "PLANNED"
    PARTIAL = "PARTIAL"
    DONE = "DONE"


class RevisionCause(Enum):
    """What forced a schedule to be re-planned."""
    CO = "CO"
    VC = "VC"
    SSP = "SSP"


@dataclass(frozen=True)
class RecognitionScheduleEntry:
    id: UUID
    company_id: UUID
    pob_id: UUID
    year: int
    month: int
    planned: Decimal
    recognized: Decimal = Decimal("0")
    status: ScheduleStatus = ScheduleStatus.PLANNED

    @property
    def period(self) -> tuple[int, int]:
        return (self.year, self.month)


@dataclass(frozen=True)
class ScheduleRevision:
    """
    Before/after planned totals of a POB whose schedule changed, from the
    first affected period onward.
    """
    id: UUID
    company_id: UUID
    pob_id: UUID
    from_period_year: int
    from_period_month: int
    planned_before: Decimal
    planned_after: Decimal
    delta_planned: Decimal
    cause: RevisionCause
    change_order_id: UUID | None = None
    ssp_change_id: UUID | None = None
    vc_estimate_id: UUID | None = None
    created_by_id: UUID | None = None
    created_at: datetime | None = None


__all__ = [
    "RecognitionMethod",
    "RecognitionScheduleEntry",
    "RevisionCause",
    "ScheduleBuildResult",
    "ScheduleRevision",
    "ScheduleStatus",
]
