"""
Module: revenue_engines.reallocation
Responsibility:
    Prospective reallocation deltas when an approved SSP change reprices
    open performance obligations.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The service selects the
    OPEN POBs and decides whether to persist (dry run vs. live).

Invariants enforced:
    - old SSP is the POB's stored SSP, or 0 when it has none (residual POBs).
    - new SSP comes from the change's new_ssp_values; a product missing
      from the map keeps its old SSP.
    - POBs whose old and new SSP are equal produce no delta at all.
    - delta = (new - old) * qty; new allocated = allocated + delta.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from revenue_engines.tracer import traced_engine


@dataclass(frozen=True)
class PobPricing:
    pob_id: Any
    product_id: str
    ssp: Decimal | None
    qty: Decimal
    allocated_amount: Decimal


@dataclass(frozen=True)
class ReallocationDelta:
    pob_id: Any
    product_id: str
    old_ssp: Decimal
    new_ssp: Decimal
    reallocation_delta: Decimal
    allocated_before: Decimal
    allocated_after: Decimal


@traced_engine(
    "reallocation.prospective", "1.0",
    fingerprint_fields=("pobs", "new_ssp_values"),
)
def compute_reallocation(
    *,
    pobs: Sequence[PobPricing],
    new_ssp_values: Mapping[str, Decimal],
) -> tuple[ReallocationDelta, ...]:
    """Deltas for every POB whose SSP actually changes, in input order."""
    deltas: list[ReallocationDelta] = []
    for pob in pobs:
        old_ssp = pob.ssp if pob.ssp is not None else Decimal("0")
        new_ssp = new_ssp_values.get(pob.product_id, old_ssp)
        if new_ssp == old_ssp:
            continue
        delta = (new_ssp - old_ssp) * pob.qty
        deltas.append(ReallocationDelta(
            pob_id=pob.pob_id,
            product_id=pob.product_id,
            old_ssp=old_ssp,
            new_ssp=new_ssp,
            reallocation_delta=delta,
            allocated_before=pob.allocated_amount,
            allocated_after=pob.allocated_amount + delta,
        ))
    return tuple(deltas)
