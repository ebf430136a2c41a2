"""
Module: revenue_engines.rounding
Responsibility:
    Map the company SSP policy rounding rule onto a Decimal rounding mode
    and round allocation amounts to whole currency units.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - HALF_UP and BANKERS are genuinely distinct: HALF_UP rounds ties away
      from zero (ROUND_HALF_UP), BANKERS rounds ties to the even neighbour
      (ROUND_HALF_EVEN).  2.5 -> 3 vs 2; 3.5 -> 4 under both.
    - All rounding delegates to revenue_kernel.db.types.round_money.
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal
from enum import Enum

from revenue_kernel.db.types import round_money

# Allocations land on whole currency units unless configured otherwise.
ALLOCATION_DECIMAL_PLACES = 0


class RoundingRule(str, Enum):
    """Policy-level rounding rule for allocated amounts."""

    HALF_UP = "HALF_UP"
    BANKERS = "BANKERS"


_DECIMAL_MODES: dict[RoundingRule, str] = {
    RoundingRule.HALF_UP: ROUND_HALF_UP,
    RoundingRule.BANKERS: ROUND_HALF_EVEN,
}


def decimal_mode(rule: RoundingRule) -> str:
    """Decimal module rounding constant for a policy rule."""
    return _DECIMAL_MODES[RoundingRule(rule)]


def apply_rounding(
    value: Decimal,
    rule: RoundingRule,
    decimal_places: int = ALLOCATION_DECIMAL_PLACES,
) -> Decimal:
    """Round ``value`` under ``rule`` to ``decimal_places``."""
    return round_money(value, decimal_places, decimal_mode(rule))
