"""
Module: revenue_engines.constraint
Responsibility:
    Variable consideration: estimate the amount (expected value or most
    likely amount) and apply the constraint that zeroes an estimate whose
    confidence falls below the policy threshold.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - constrained == estimate iff confidence >= threshold, else 0.
    - DEFAULT_CONSTRAINT_THRESHOLD (0.5) applies when no policy exists;
      a missing policy never means "unconstrained".
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from revenue_engines.tracer import traced_engine
from revenue_kernel.exceptions import UnknownVcMethodError

DEFAULT_CONSTRAINT_THRESHOLD = Decimal("0.5")

_ZERO = Decimal("0")


class VcMethod(str, Enum):
    EXPECTED_VALUE = "EXPECTED_VALUE"
    MOST_LIKELY = "MOST_LIKELY"


def parse_vc_method(value: VcMethod | str) -> VcMethod:
    """
    Raises:
        UnknownVcMethodError: value names no estimation method.
    """
    if isinstance(value, VcMethod):
        return value
    try:
        return VcMethod(value)
    except ValueError:
        raise UnknownVcMethodError(value) from None


@dataclass(frozen=True)
class Scenario:
    probability: Decimal
    amount: Decimal


@traced_engine(
    "variable_consideration.constraint", "1.0",
    fingerprint_fields=("estimate", "confidence", "threshold"),
)
def constrain_estimate(
    *,
    estimate: Decimal,
    confidence: Decimal,
    threshold: Decimal | None = None,
) -> Decimal:
    """Constrained amount for an estimate at a given confidence."""
    effective = DEFAULT_CONSTRAINT_THRESHOLD if threshold is None else threshold
    if confidence >= effective:
        return estimate
    return _ZERO


def estimate_amount(method: VcMethod, scenarios: Sequence[Scenario]) -> Decimal:
    """
    Estimate variable consideration from probability-weighted scenarios.

    EXPECTED_VALUE sums probability * amount; MOST_LIKELY returns the amount
    of the highest-probability scenario (first one wins a tie).  No
    scenarios yields 0.
    """
    if not scenarios:
        return _ZERO
    match parse_vc_method(method):
        case VcMethod.MOST_LIKELY:
            best = max(scenarios, key=lambda s: s.probability)
            return best.amount
        case VcMethod.EXPECTED_VALUE:
            return sum((s.probability * s.amount for s in scenarios), _ZERO)
