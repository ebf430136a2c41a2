"""
Module: revenue_engines.bundles
Responsibility:
    Bundle weight validation and the split of a bundle's invoice amount
    across its component products ahead of SSP allocation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Weights are valid when |sum(weight_pct) - 1| < tolerance (1e-4 by
      default).  Advisory only; nothing here refuses to split a bundle
      with bad weights.
    - Conservation: the component shares of a split sum to the bundle
      line amount exactly; the last component absorbs the rounding residue.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from revenue_kernel.db.types import round_money

DEFAULT_WEIGHT_TOLERANCE = Decimal("0.0001")
# Component shares keep cent precision; allocation rounds later.
SHARE_DECIMAL_PLACES = 2


class WeightedComponent(Protocol):
    product_id: str
    weight_pct: Decimal
    min_qty: Decimal


@dataclass(frozen=True)
class ComponentShare:
    product_id: str
    amount: Decimal
    qty: Decimal


def validate_weights(
    components: Sequence[WeightedComponent],
    tolerance: Decimal = DEFAULT_WEIGHT_TOLERANCE,
) -> bool:
    """True when component weights sum to 1 within ``tolerance``."""
    total = sum((c.weight_pct for c in components), Decimal("0"))
    return abs(total - Decimal("1")) < tolerance


def split_bundle_amount(
    amount: Decimal,
    qty: Decimal,
    components: Sequence[WeightedComponent],
) -> tuple[ComponentShare, ...]:
    """
    Split a bundle line's amount by component weight.

    Each component's quantity is the line quantity times its ``min_qty``.
    """
    if not components:
        return ()
    shares: list[ComponentShare] = []
    allocated = Decimal("0")
    last = len(components) - 1
    for i, component in enumerate(components):
        if i == last:
            share = amount - allocated
        else:
            share = round_money(amount * component.weight_pct, SHARE_DECIMAL_PLACES)
            allocated += share
        shares.append(ComponentShare(
            product_id=component.product_id,
            amount=share,
            qty=qty * component.min_qty,
        ))
    return tuple(shares)
