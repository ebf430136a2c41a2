"""
Module: revenue_modules.disclosures.models
Responsibility:
    Frozen DTOs for the disclosure read model.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class ModificationRegisterEntry:
    """
    One applied change order as disclosed.

    Guarantees:
        - ``txn_price_delta == txn_price_after - txn_price_before``.
    """
    id: UUID
    company_id: UUID
    contract_id: UUID
    change_order_id: UUID
    effective_date: date
    type: str
    txn_price_before: Decimal
    txn_price_after: Decimal
    txn_price_delta: Decimal
    reason: str | None = None
    created_by_id: UUID | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class VcRollforwardEntry:
    id: UUID
    company_id: UUID
    contract_id: UUID
    pob_id: UUID
    year: int
    month: int
    opening_balance: Decimal = Decimal("0")
    additions: Decimal = Decimal("0")
    changes: Decimal = Decimal("0")
    releases: Decimal = Decimal("0")
    recognized: Decimal = Decimal("0")
    closing_balance: Decimal = Decimal("0")
    created_by_id: UUID | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class RpoSnapshotEntry:
    contract_id: UUID
    pob_id: UUID
    year: int
    month: int
    rpo_amount: Decimal
    delta_from_revisions: Decimal = Decimal("0")
    delta_from_vc: Decimal = Decimal("0")
    notes: str | None = None


@dataclass(frozen=True)
class DisclosureBundle:
    """Everything disclosed for one company and period."""
    company_id: UUID
    year: int
    month: int
    modification_register: tuple[ModificationRegisterEntry, ...] = ()
    vc_rollforward: tuple[VcRollforwardEntry, ...] = ()
    rpo_snapshot: tuple[RpoSnapshotEntry, ...] = ()
