"""
Module: revenue_modules.allocation
Responsibility:
    Invoice allocation into performance obligations (POBs), the
    allocation audit trail and prospective reallocation of open POBs when
    an approved SSP change reprices them.

Architecture:
    revenue_modules layer.

    Dependency direction (strict):
        revenue_modules/allocation  -->  revenue_modules/{ssp,discounts,bundles,schedule}
        revenue_modules/allocation  -->  revenue_engines (allocation, reallocation)
        revenue_modules/allocation  -X-> revenue_modules/modifications (FORBIDDEN)
"""

from revenue_modules.allocation.models import (
    AllocationAudit,
    AllocationOutcome,
    PerformanceObligation,
    PobStatus,
    ReallocationDetail,
    ReallocationOutcome,
)

__all__ = [
    "AllocationAudit",
    "AllocationOutcome",
    "PerformanceObligation",
    "PobStatus",
    "ReallocationDetail",
    "ReallocationOutcome",
]
