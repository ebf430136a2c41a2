"""
Module: revenue_modules.allocation.orm
Responsibility:
    SQLAlchemy ORM persistence models for performance obligations and the
    allocation audit trail.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``.

Invariants enforced:
    - Enum fields stored as String(50).
    - Audit rows are append-only; one per allocation run.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, Date, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from revenue_kernel.db.base import TrackedBase, UUIDString


class PerformanceObligationModel(TrackedBase):
    """
    Performance obligation created by allocation or a SEPARATE change order.

    Guarantees:
        - ``ssp`` is NULL only for residual allocations.
        - ``status`` is OPEN or CLOSED.
    """

    __tablename__ = "rev_pob"

    __table_args__ = (
        Index("idx_rev_pob_contract", "company_id", "contract_id"),
        Index("idx_rev_pob_product_status", "company_id", "product_id", "status"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    contract_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    subscription_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    invoice_line_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    product_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    qty: Mapped[Decimal] = mapped_column(default=Decimal("1"))
    uom: Mapped[str | None] = mapped_column(String(20), nullable=True)
    ssp: Mapped[Decimal | None] = mapped_column(nullable=True)
    allocated_amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="OPEN")

    def to_dto(self):
        from revenue_modules.allocation.models import PerformanceObligation, PobStatus
        from revenue_engines.schedule import RecognitionMethod

        return PerformanceObligation(
            id=self.id,
            company_id=self.company_id,
            product_id=self.product_id,
            name=self.name,
            method=RecognitionMethod(self.method),
            start_date=self.start_date,
            allocated_amount=self.allocated_amount,
            currency=self.currency,
            qty=self.qty,
            uom=self.uom,
            end_date=self.end_date,
            ssp=self.ssp,
            contract_id=self.contract_id,
            subscription_id=self.subscription_id,
            invoice_line_id=self.invoice_line_id,
            status=PobStatus(self.status),
            created_by_id=self.created_by_id,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<PerformanceObligationModel {self.name} {self.allocated_amount} ({self.status})>"


class AllocationAuditModel(TrackedBase):
    """Append-only record of one allocation run."""

    __tablename__ = "rev_alloc_audit"

    __table_args__ = (
        Index("idx_rev_alloc_audit_invoice", "company_id", "invoice_id"),
        Index("idx_rev_alloc_audit_run", "company_id", "run_id"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    invoice_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    run_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    strategy: Mapped[str] = mapped_column(String(100), nullable=False)
    inputs: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    results: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    corridor_flag: Mapped[bool] = mapped_column(Boolean, default=False)
    total_invoice_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_allocated_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    rounding_adjustment: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    processing_time_ms: Mapped[int] = mapped_column(Integer, default=0)

    def to_dto(self):
        from revenue_modules.allocation.models import AllocationAudit

        return AllocationAudit(
            id=self.id,
            company_id=self.company_id,
            invoice_id=self.invoice_id,
            run_id=self.run_id,
            method=self.method,
            strategy=self.strategy,
            inputs=dict(self.inputs or {}),
            results=dict(self.results or {}),
            corridor_flag=self.corridor_flag,
            total_invoice_amount=self.total_invoice_amount,
            total_allocated_amount=self.total_allocated_amount,
            rounding_adjustment=self.rounding_adjustment,
            processing_time_ms=self.processing_time_ms,
            created_by_id=self.created_by_id,
            created_at=self.created_at,
        )
