"""
Module: revenue_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  Canonical import surface for revenue_modules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import revenue_kernel (types, exceptions, logging) and sibling
    engine modules.  MUST NOT import revenue_modules or revenue_config.

Invariants enforced:
    - Purity: engines never read the clock or touch the database; dates
      are passed in explicitly.
    - Decimal-only arithmetic for money, ratios and probabilities.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are wrapped in ``@traced_engine`` and emit
    REVENUE_ENGINE_TRACE records with an input fingerprint and duration.
"""

from revenue_engines.allocation import (
    AllocationComputation,
    AllocationLineInput,
    AllocationStrategy,
    LineAllocation,
    ResolvedStrategy,
    StrategyReason,
    allocate_relative_ssp,
    allocate_residual,
    parse_strategy,
    resolve_strategy,
)
from revenue_engines.bundles import (
    ComponentShare,
    split_bundle_amount,
    validate_weights,
)
from revenue_engines.constraint import (
    DEFAULT_CONSTRAINT_THRESHOLD,
    Scenario,
    VcMethod,
    constrain_estimate,
    estimate_amount,
)
from revenue_engines.corridor import (
    CorridorCheck,
    check_corridor,
    format_corridor_flag,
    median,
)
from revenue_engines.discounts import (
    DiscountContext,
    DiscountKind,
    DiscountParams,
    calculate_amount,
    is_eligible,
    parse_params,
    validate_params,
)
from revenue_engines.reallocation import (
    PobPricing,
    ReallocationDelta,
    compute_reallocation,
)
from revenue_engines.rounding import RoundingRule, apply_rounding
from revenue_engines.schedule import (
    PlannedPeriod,
    RecognitionMethod,
    plan_schedule,
)

__all__ = [
    "AllocationComputation",
    "AllocationLineInput",
    "AllocationStrategy",
    "LineAllocation",
    "ResolvedStrategy",
    "StrategyReason",
    "allocate_relative_ssp",
    "allocate_residual",
    "parse_strategy",
    "resolve_strategy",
    "ComponentShare",
    "split_bundle_amount",
    "validate_weights",
    "DEFAULT_CONSTRAINT_THRESHOLD",
    "Scenario",
    "VcMethod",
    "constrain_estimate",
    "estimate_amount",
    "CorridorCheck",
    "check_corridor",
    "format_corridor_flag",
    "median",
    "DiscountContext",
    "DiscountKind",
    "DiscountParams",
    "calculate_amount",
    "is_eligible",
    "parse_params",
    "validate_params",
    "PobPricing",
    "ReallocationDelta",
    "compute_reallocation",
    "RoundingRule",
    "apply_rounding",
    "PlannedPeriod",
    "RecognitionMethod",
    "plan_schedule",
]
