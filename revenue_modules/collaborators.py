"""
Module: revenue_modules.collaborators
Responsibility:
    Ports for the collaborators the revenue core calls out to, plus the
    invoice DTOs the invoice source hands back.

Architecture position:
    **Modules layer** -- pure interface definitions, zero I/O.  Concrete
    adapters live outside this package (billing, GL posting); the one
    in-tree ScheduleBuilder is RecognitionScheduleService.

Contract notes:
    - InvoiceSource returns None for an unknown invoice; the allocation
      service turns that into InvoiceNotFoundError.
    - ScheduleBuilder.build_schedule runs inside the caller's unit of work
      when it shares the caller's session.
    - RecognitionRunner returns the run id of the recognition run it
      executed (or simulated when dry_run is set).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID


@dataclass(frozen=True)
class InvoiceLine:
    id: UUID
    product_id: str
    product_name: str
    amount: Decimal
    qty: Decimal = Decimal("1")
    uom: str | None = None
    end_date: date | None = None
    method: str | None = None


@dataclass(frozen=True)
class Invoice:
    id: UUID
    currency: str
    invoice_date: date
    total_amount: Decimal
    lines: tuple[InvoiceLine, ...] = field(default_factory=tuple)
    contract_id: UUID | None = None
    subscription_id: UUID | None = None
    customer_id: UUID | str | None = None


@dataclass(frozen=True)
class ScheduleBuildResult:
    """What a schedule (re)build changed for one POB."""

    pob_id: UUID
    periods_created: int
    planned_before: Decimal
    planned_after: Decimal
    from_year: int
    from_month: int
    catch_up_amount: Decimal = Decimal("0")


@runtime_checkable
class InvoiceSource(Protocol):
    def get_invoice(self, company_id: UUID, invoice_id: UUID) -> Invoice | None:
        ...


@runtime_checkable
class ScheduleBuilder(Protocol):
    def build_schedule(
        self,
        company_id: UUID,
        actor_id: UUID,
        pob_id: UUID,
        method: str,
        start_date: date,
        end_date: date | None = None,
        catch_up_before: date | None = None,
    ) -> ScheduleBuildResult:
        ...


@runtime_checkable
class RecognitionRunner(Protocol):
    def run_recognition(
        self,
        company_id: UUID,
        actor_id: UUID,
        year: int,
        month: int,
        dry_run: bool,
    ) -> str:
        ...
