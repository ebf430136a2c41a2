"""
Module: revenue_engines.allocation
Responsibility:
    Allocate an invoice's net transaction price across performance
    obligations, by relative SSP weight or by the residual approach, and
    resolve which of the two strategies an AUTO request runs.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  SSP lookups, corridor
    checks and POB persistence happen in
    revenue_modules.allocation.service; this module only sees resolved
    numbers.

Invariants enforced:
    - Conservation: sum(rounded allocations) + rounding_adjustment ==
      net_amount exactly, for every line set and rounding rule.  The
      remainder is reported, never redistributed.
    - Relative SSP: weight = ssp * line amount; every line must carry an SSP.
    - Residual: non-residual lines with an SSP are served first, in invoice
      order, capped at min(line amount, net still unallocated); the rest is
      split evenly (not by size) across residual-eligible lines.
    - AUTO resolution is an explicit decision table (StrategyReason), not a
      catch-all default.

Failure modes:
    - SspNotFoundError when a relative-SSP line has no SSP.
    - UnknownStrategyError on a strategy string outside AllocationStrategy.

Audit relevance:
    The AllocationComputation returned here is what the service snapshots
    into the AllocationAudit results column.

Usage:
    from revenue_engines.allocation import AllocationLineInput, allocate_relative_ssp
    from revenue_engines.rounding import RoundingRule

    result = allocate_relative_ssp(
        lines=[
            AllocationLineInput(line_id="l1", product_id="A", product_name="A",
                                amount=Decimal("6000"), ssp=Decimal("6000")),
            AllocationLineInput(line_id="l2", product_id="B", product_name="B",
                                amount=Decimal("4000"), ssp=Decimal("4000")),
        ],
        net_amount=Decimal("10000"),
        rounding=RoundingRule.HALF_UP,
    )
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from revenue_engines.rounding import (
    ALLOCATION_DECIMAL_PLACES,
    RoundingRule,
    apply_rounding,
)
from revenue_engines.tracer import traced_engine
from revenue_kernel.exceptions import SspNotFoundError, UnknownStrategyError
from revenue_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")

_ZERO = Decimal("0")


class AllocationStrategy(str, Enum):
    """Requested allocation strategy."""

    RELATIVE_SSP = "RELATIVE_SSP"
    RESIDUAL = "RESIDUAL"
    AUTO = "AUTO"


class StrategyReason(str, Enum):
    """Why resolve_strategy picked the strategy it picked."""

    EXPLICIT = "EXPLICIT"
    ALL_LINES_APPROVED = "ALL_LINES_APPROVED"
    RESIDUAL_ALLOWED = "RESIDUAL_ALLOWED"
    # Policy default: SSP coverage is incomplete and residual is disallowed,
    # yet relative SSP is still attempted (and fails on the first line
    # without an SSP).
    PERMISSIVE_FALLBACK = "PERMISSIVE_FALLBACK"


@dataclass(frozen=True)
class ResolvedStrategy:
    strategy: AllocationStrategy
    reason: StrategyReason


@dataclass(frozen=True)
class AllocationLineInput:
    """
    One invoice line as the allocation math sees it.

    ``ssp`` is the effective APPROVED SSP as of the invoice date, or None.
    """

    line_id: Any
    product_id: str
    product_name: str
    amount: Decimal
    ssp: Decimal | None = None


@dataclass(frozen=True)
class LineAllocation:
    """Allocation outcome for one line (becomes one POB)."""

    line_id: Any
    product_id: str
    product_name: str
    ssp: Decimal | None
    weight: Decimal | None
    allocated: Decimal
    residual: bool = False


@dataclass(frozen=True)
class AllocationComputation:
    """
    Result of one allocation run.

    Guarantees:
        - ``total_allocated + rounding_adjustment == net_amount``.
        - ``lines`` are in invoice order (residual lines after the
          non-residual ones for the RESIDUAL strategy).
    """

    strategy: AllocationStrategy
    net_amount: Decimal
    lines: tuple[LineAllocation, ...]
    total_allocated: Decimal
    rounding_adjustment: Decimal


def parse_strategy(value: AllocationStrategy | str) -> AllocationStrategy:
    """Parse a caller-supplied strategy string.

    Raises:
        UnknownStrategyError: value is not a known strategy.
    """
    if isinstance(value, AllocationStrategy):
        return value
    try:
        return AllocationStrategy(value)
    except ValueError:
        raise UnknownStrategyError(value) from None


def resolve_strategy(
    requested: AllocationStrategy,
    all_lines_have_approved_ssp: bool,
    residual_allowed: bool,
) -> ResolvedStrategy:
    """
    Resolve the strategy an allocation run will execute.

    Decision table for AUTO:
        every line has an APPROVED SSP  -> RELATIVE_SSP (ALL_LINES_APPROVED)
        else policy allows residual     -> RESIDUAL     (RESIDUAL_ALLOWED)
        else                            -> RELATIVE_SSP (PERMISSIVE_FALLBACK)
    """
    match requested:
        case AllocationStrategy.RELATIVE_SSP | AllocationStrategy.RESIDUAL:
            return ResolvedStrategy(requested, StrategyReason.EXPLICIT)
        case AllocationStrategy.AUTO:
            if all_lines_have_approved_ssp:
                return ResolvedStrategy(
                    AllocationStrategy.RELATIVE_SSP,
                    StrategyReason.ALL_LINES_APPROVED,
                )
            if residual_allowed:
                return ResolvedStrategy(
                    AllocationStrategy.RESIDUAL,
                    StrategyReason.RESIDUAL_ALLOWED,
                )
            logger.warning("allocation_permissive_fallback", extra={
                "requested": requested.value,
            })
            return ResolvedStrategy(
                AllocationStrategy.RELATIVE_SSP,
                StrategyReason.PERMISSIVE_FALLBACK,
            )
        case _:
            raise UnknownStrategyError(requested)


@traced_engine(
    "allocation.relative_ssp", "1.0",
    fingerprint_fields=("lines", "net_amount", "rounding"),
)
def allocate_relative_ssp(
    *,
    lines: Sequence[AllocationLineInput],
    net_amount: Decimal,
    rounding: RoundingRule,
    decimal_places: int = ALLOCATION_DECIMAL_PLACES,
) -> AllocationComputation:
    """
    Allocate ``net_amount`` in proportion to ssp * line amount.

    Preconditions:
        - Every line carries an SSP.
    Postconditions:
        - One LineAllocation per input line, same order.
        - total_allocated + rounding_adjustment == net_amount.
        - A zero total weight allocates 0 to every line and leaves the whole
          net amount in rounding_adjustment.
    Raises:
        SspNotFoundError: a line has no SSP.
    """
    weights: list[Decimal] = []
    for line in lines:
        if line.ssp is None:
            raise SspNotFoundError(line.product_id)
        weights.append(line.ssp * line.amount)

    total_weight = sum(weights, _ZERO)
    allocations: list[LineAllocation] = []
    for line, weight in zip(lines, weights):
        if total_weight == _ZERO:
            allocated = _ZERO
        else:
            allocated = apply_rounding(
                net_amount * weight / total_weight, rounding, decimal_places,
            )
        allocations.append(LineAllocation(
            line_id=line.line_id,
            product_id=line.product_id,
            product_name=line.product_name,
            ssp=line.ssp,
            weight=weight,
            allocated=allocated,
        ))

    return _finish(AllocationStrategy.RELATIVE_SSP, net_amount, allocations)


@traced_engine(
    "allocation.residual", "1.0",
    fingerprint_fields=("lines", "net_amount", "residual_products", "rounding"),
)
def allocate_residual(
    *,
    lines: Sequence[AllocationLineInput],
    net_amount: Decimal,
    residual_products: Collection[str],
    rounding: RoundingRule,
    decimal_places: int = ALLOCATION_DECIMAL_PLACES,
) -> AllocationComputation:
    """
    Residual approach: SSP-backed lines first, the remainder split evenly.

    Postconditions:
        - Non-residual lines without an SSP get no allocation (no POB).
        - Residual allocations are only made while net remains > 0, and
          carry ``ssp=None``.
        - total_allocated + rounding_adjustment == net_amount.
    """
    allocations: list[LineAllocation] = []
    residual_lines: list[AllocationLineInput] = []
    allocated_to_non_residual = _ZERO

    for line in lines:
        if line.product_id in residual_products:
            residual_lines.append(line)
            continue
        if line.ssp is None:
            logger.info("allocation_line_skipped_no_ssp", extra={
                "product_id": line.product_id,
            })
            continue
        available = max(net_amount - allocated_to_non_residual, _ZERO)
        allocated = apply_rounding(min(line.amount, available), rounding, decimal_places)
        allocated_to_non_residual += allocated
        allocations.append(LineAllocation(
            line_id=line.line_id,
            product_id=line.product_id,
            product_name=line.product_name,
            ssp=line.ssp,
            weight=None,
            allocated=allocated,
        ))

    remaining = net_amount - allocated_to_non_residual
    if remaining > _ZERO and residual_lines:
        share = apply_rounding(
            remaining / Decimal(len(residual_lines)), rounding, decimal_places,
        )
        for line in residual_lines:
            allocations.append(LineAllocation(
                line_id=line.line_id,
                product_id=line.product_id,
                product_name=line.product_name,
                ssp=None,
                weight=None,
                allocated=share,
                residual=True,
            ))

    return _finish(AllocationStrategy.RESIDUAL, net_amount, allocations)


def _finish(
    strategy: AllocationStrategy,
    net_amount: Decimal,
    allocations: list[LineAllocation],
) -> AllocationComputation:
    total_allocated = sum((a.allocated for a in allocations), _ZERO)
    rounding_adjustment = net_amount - total_allocated

    # INVARIANT: allocations plus the reported remainder reproduce the net amount
    assert total_allocated + rounding_adjustment == net_amount, (
        f"Allocation conservation violated: "
        f"{total_allocated} + {rounding_adjustment} != {net_amount}"
    )

    logger.info("allocation_computed", extra={
        "strategy": strategy.value,
        "net_amount": str(net_amount),
        "total_allocated": str(total_allocated),
        "rounding_adjustment": str(rounding_adjustment),
        "line_count": len(allocations),
    })

    return AllocationComputation(
        strategy=strategy,
        net_amount=net_amount,
        lines=tuple(allocations),
        total_allocated=total_allocated,
        rounding_adjustment=rounding_adjustment,
    )
