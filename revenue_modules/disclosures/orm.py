"""
Module: revenue_modules.disclosures.orm
Responsibility:
    SQLAlchemy ORM persistence models for the modification register and
    the VC rollforward.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``.

Invariants enforced:
    - Both tables are append-only.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from revenue_kernel.db.base import TrackedBase, UUIDString


class ModificationRegisterModel(TrackedBase):
    __tablename__ = "rev_mod_register"

    __table_args__ = (
        Index("idx_rev_mod_register_contract", "company_id", "contract_id"),
        Index("idx_rev_mod_register_date", "company_id", "effective_date"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    contract_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    change_order_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    txn_price_before: Mapped[Decimal] = mapped_column(nullable=False)
    txn_price_after: Mapped[Decimal] = mapped_column(nullable=False)
    txn_price_delta: Mapped[Decimal] = mapped_column(nullable=False)

    def to_dto(self):
        from revenue_modules.disclosures.models import ModificationRegisterEntry

        return ModificationRegisterEntry(
            id=self.id,
            company_id=self.company_id,
            contract_id=self.contract_id,
            change_order_id=self.change_order_id,
            effective_date=self.effective_date,
            type=self.type,
            reason=self.reason,
            txn_price_before=self.txn_price_before,
            txn_price_after=self.txn_price_after,
            txn_price_delta=self.txn_price_delta,
            created_by_id=self.created_by_id,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<ModificationRegisterModel {self.change_order_id} {self.type} {self.txn_price_delta}>"


class VcRollforwardModel(TrackedBase):
    __tablename__ = "rev_vc_rollforward"

    __table_args__ = (
        Index("idx_rev_vc_rollforward_period", "company_id", "year", "month"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    contract_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    pob_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    opening_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    additions: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    changes: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    releases: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    recognized: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    closing_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    def to_dto(self):
        from revenue_modules.disclosures.models import VcRollforwardEntry

        return VcRollforwardEntry(
            id=self.id,
            company_id=self.company_id,
            contract_id=self.contract_id,
            pob_id=self.pob_id,
            year=self.year,
            month=self.month,
            opening_balance=self.opening_balance,
            additions=self.additions,
            changes=self.changes,
            releases=self.releases,
            recognized=self.recognized,
            closing_balance=self.closing_balance,
            created_by_id=self.created_by_id,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<VcRollforwardModel pob={self.pob_id} {self.year}-{self.month:02d}>"
