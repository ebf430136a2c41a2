"""
Module: revenue_modules.bundles.models
Responsibility:
    Frozen domain DTOs for the bundle catalog: an effective-dated bundle
    SKU and its weighted component products.

Architecture:
    revenue_modules layer -- pure data definitions with ZERO I/O.

Invariants:
    - Component weights are expected to sum to 1; the check is advisory
      (BundleService.validate_weights) and never blocks a write.
    - ``min_qty`` defaults to 1.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class BundleStatus(Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ARCHIVED = "ARCHIVED"


@dataclass(frozen=True)
class BundleComponent:
    """One product inside a bundle and its share of the bundle price."""
    product_id: str
    weight_pct: Decimal
    required: bool = True
    min_qty: Decimal = Decimal("1")
    max_qty: Decimal | None = None
    id: UUID | None = None


@dataclass(frozen=True)
class Bundle:
    id: UUID
    company_id: UUID
    bundle_sku: str
    name: str
    effective_from: date
    effective_to: date | None = None
    status: BundleStatus = BundleStatus.ACTIVE
    components: tuple[BundleComponent, ...] = field(default_factory=tuple)
    created_by_id: UUID | None = None
    created_at: datetime | None = None

    def is_effective_on(self, as_of: date) -> bool:
        return self.effective_from <= as_of and (
            self.effective_to is None or as_of < self.effective_to
        )
