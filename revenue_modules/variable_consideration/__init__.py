"""
Module: revenue_modules.variable_consideration
Responsibility:
    Company variable consideration policy and the per-period constrained
    estimates recorded against contracts and POBs.

Architecture:
    revenue_modules layer.

    Dependency direction (strict):
        revenue_modules/variable_consideration  -->  revenue_engines.constraint
        revenue_modules/variable_consideration  -->  revenue_kernel
"""

from revenue_modules.variable_consideration.models import (
    Scenario,
    VcEstimate,
    VcEstimateStatus,
    VcMethod,
    VcPolicy,
)

__all__ = [
    "Scenario",
    "VcEstimate",
    "VcEstimateStatus",
    "VcMethod",
    "VcPolicy",
]
