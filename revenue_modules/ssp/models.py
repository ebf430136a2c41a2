"""
Module: revenue_modules.ssp.models
Responsibility:
    Frozen domain DTOs for the SSP catalog: effective-dated standalone
    selling prices, their evidence, the company allocation policy and SSP
    change requests.

Architecture:
    revenue_modules layer -- pure data definitions with ZERO I/O.
    All models are frozen dataclasses; all prices and percentages are
    Decimal; enum values are the upper-case strings stored in the database.

Invariants:
    - At most one APPROVED entry with an open effective interval per
      (company, product, currency) -- maintained by SspCatalogService.
    - Effective intervals are half-open: [effective_from, effective_to).
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from revenue_engines.corridor import CorridorCheck
from revenue_engines.rounding import RoundingRule
from revenue_kernel.exceptions import UnknownSspMethodError


class SspMethod(Enum):
    """How an SSP was established (also the evidence source type)."""
    OBSERVABLE = "OBSERVABLE"
    BENCHMARK = "BENCHMARK"
    ADJ_COST = "ADJ_COST"
    RESIDUAL = "RESIDUAL"


def parse_ssp_method(value: SspMethod | str) -> SspMethod:
    """
    Raises:
        UnknownSspMethodError: value names no SSP method.
    """
    if isinstance(value, SspMethod):
        return value
    try:
        return SspMethod(value)
    except ValueError:
        raise UnknownSspMethodError(value) from None


class SspStatus(Enum):
    DRAFT = "DRAFT"
    REVIEWED = "REVIEWED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class SspChangeStatus(Enum):
    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class SspCatalogEntry:
    """
    One standalone selling price for a product in a currency.

    Guarantees:
        - ``ssp`` is Decimal.
        - ``effective_to`` of None means the interval is open.
    """
    id: UUID
    company_id: UUID
    product_id: str
    currency: str
    ssp: Decimal
    method: SspMethod
    effective_from: date
    effective_to: date | None = None
    corridor_min_pct: Decimal | None = None
    corridor_max_pct: Decimal | None = None
    status: SspStatus = SspStatus.DRAFT
    created_by_id: UUID | None = None
    created_at: datetime | None = None

    def is_effective_on(self, as_of: date) -> bool:
        return self.effective_from <= as_of and (
            self.effective_to is None or as_of < self.effective_to
        )


@dataclass(frozen=True)
class SspEvidence:
    id: UUID
    company_id: UUID
    catalog_id: UUID
    source: SspMethod
    note: str | None = None
    value: Decimal | None = None
    doc_uri: str | None = None
    created_by_id: UUID | None = None


@dataclass(frozen=True)
class SspPolicy:
    """
    Company-wide allocation policy (one per company, replaced on write).

    Defaults mirror a fresh company: HALF_UP rounding, residual allowed,
    20% corridor tolerance, 15% alert threshold.
    """
    company_id: UUID
    rounding: RoundingRule = RoundingRule.HALF_UP
    residual_allowed: bool = True
    residual_eligible_products: tuple[str, ...] = ()
    default_method: SspMethod = SspMethod.OBSERVABLE
    corridor_tolerance_pct: Decimal = Decimal("0.20")
    alert_threshold_pct: Decimal = Decimal("0.15")
    id: UUID | None = None


@dataclass(frozen=True)
class SspChangeDiff:
    """Payload of an SSP change request: which products get which new SSP."""
    affected_products: tuple[str, ...] = ()
    new_ssp_values: dict[str, Decimal] = field(default_factory=dict)

    def to_json(self) -> dict:
        return {
            "affected_products": list(self.affected_products),
            "new_ssp_values": {k: str(v) for k, v in self.new_ssp_values.items()},
        }

    @classmethod
    def from_json(cls, data: dict | None) -> "SspChangeDiff":
        data = data or {}
        return cls(
            affected_products=tuple(str(p) for p in data.get("affected_products", ())),
            new_ssp_values={
                str(k): Decimal(str(v))
                for k, v in (data.get("new_ssp_values") or {}).items()
            },
        )


@dataclass(frozen=True)
class SspChangeRequest:
    id: UUID
    company_id: UUID
    requestor_id: UUID
    reason: str
    diff: SspChangeDiff
    status: SspChangeStatus = SspChangeStatus.DRAFT
    decided_by_id: UUID | None = None
    decided_at: datetime | None = None
    decision_notes: str | None = None


__all__ = [
    "CorridorCheck",
    "RoundingRule",
    "SspCatalogEntry",
    "SspChangeDiff",
    "SspChangeRequest",
    "SspChangeStatus",
    "SspEvidence",
    "SspMethod",
    "SspPolicy",
    "SspStatus",
    "parse_ssp_method",
]
