"""
Module: revenue_modules.ssp
Responsibility:
    Standalone selling price catalog: effective-dated SSP entries, their
    evidence, the company allocation policy, corridor compliance and SSP
    change requests.

Architecture:
    revenue_modules layer.

    Dependency direction (strict):
        revenue_modules/ssp  -->  revenue_engines (corridor, rounding)
        revenue_modules/ssp  -->  revenue_kernel  (db, exceptions, logging)
        revenue_modules/ssp  -X-> revenue_modules/allocation (FORBIDDEN)
"""

from revenue_modules.ssp.models import (
    CorridorCheck,
    SspCatalogEntry,
    SspChangeDiff,
    SspChangeRequest,
    SspChangeStatus,
    SspEvidence,
    SspMethod,
    SspPolicy,
    SspStatus,
)
__all__ = [
    "CorridorCheck",
    "SspCatalogEntry",
    "SspChangeDiff",
    "SspChangeRequest",
    "SspChangeStatus",
    "SspEvidence",
    "SspMethod",
    "SspPolicy",
    "SspStatus",
]
