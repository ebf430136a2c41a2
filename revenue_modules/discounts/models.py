"""
Module: revenue_modules.discounts.models
Responsibility:
    Frozen domain DTOs for discount rules and recorded discount
    applications.

Architecture:
    revenue_modules layer -- pure data definitions with ZERO I/O.  The
    kind enum and the typed per-kind params live in
    revenue_engines.discounts and are re-exported here.

Invariants:
    - ``params`` always matches ``kind`` (built by parse_params).
    - Usage caps are carried, not enforced.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from revenue_engines.discounts import (
    DiscountContext,
    DiscountKind,
    DiscountParams,
    PartnerParams,
    PromoParams,
    ProportionalParams,
    ResidualParams,
    TieredParams,
)


@dataclass(frozen=True)
class DiscountRule:
    """
    An effective-dated discount rule.

    Guarantees:
        - ``params`` is the typed variant for ``kind``.
        - ``effective_to`` of None means open-ended.
    """
    id: UUID
    company_id: UUID
    kind: DiscountKind
    code: str
    params: DiscountParams
    effective_from: date
    effective_to: date | None = None
    name: str | None = None
    active: bool = True
    priority: int = 0
    max_usage_count: int | None = None
    max_usage_amount: Decimal | None = None
    created_by_id: UUID | None = None
    created_at: datetime | None = None

    def is_effective_on(self, as_of: date) -> bool:
        return self.effective_from <= as_of and (
            self.effective_to is None or as_of < self.effective_to
        )


@dataclass(frozen=True)
class DiscountApplied:
    """One rule applied to one invoice."""
    id: UUID
    company_id: UUID
    invoice_id: UUID
    rule_id: UUID
    computed_amount: Decimal
    detail: dict[str, Any] = field(default_factory=dict)
    applied_by_id: UUID | None = None
    applied_at: datetime | None = None


__all__ = [
    "DiscountApplied",
    "DiscountContext",
    "DiscountKind",
    "DiscountParams",
    "DiscountRule",
    "PartnerParams",
    "PromoParams",
    "ProportionalParams",
    "ResidualParams",
    "TieredParams",
]
