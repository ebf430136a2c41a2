"""
Module: revenue_engines.corridor
Responsibility:
    SSP corridor compliance: compare a candidate SSP with the market median
    of approved SSPs in the same currency.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The service gathers the
    approved SSP values and the tolerance from the company policy.

Invariants enforced:
    - Median is the interpolated 50th percentile (mean of the two middle
      values for an even count).
    - variance = |candidate - median| / median.
    - compliant iff variance <= tolerance.
    - Fail-open: no tolerance (no policy), no approved values, or a zero
      median all yield compliant=True with median/variance unset.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class CorridorCheck:
    compliant: bool
    median_ssp: Decimal | None = None
    variance: Decimal | None = None


def median(values: Iterable[Decimal]) -> Decimal | None:
    """Interpolated median, or None for an empty input."""
    ordered = sorted(values)
    if not ordered:
        return None
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / Decimal(2)


def check_corridor(
    candidate_ssp: Decimal,
    approved_ssps: Iterable[Decimal],
    tolerance_pct: Decimal | None,
) -> CorridorCheck:
    """
    Check ``candidate_ssp`` against the median of ``approved_ssps``.

    ``tolerance_pct`` of None means the company has no SSP policy.
    """
    if tolerance_pct is None:
        return CorridorCheck(compliant=True)

    market_median = median(approved_ssps)
    if market_median is None or market_median == _ZERO:
        return CorridorCheck(compliant=True)

    variance = abs(candidate_ssp - market_median) / market_median
    return CorridorCheck(
        compliant=variance <= tolerance_pct,
        median_ssp=market_median,
        variance=variance,
    )


def format_corridor_flag(product_id: str, variance: Decimal) -> str:
    """Human-readable corridor violation, e.g. ``"A: variance 25.0%"``."""
    pct = (variance * _HUNDRED).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return f"{product_id}: variance {pct}%"
