"""
Module: revenue_modules.modifications.orm
Responsibility:
    SQLAlchemy ORM persistence models for change order headers and lines.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``.

Invariants enforced:
    - Header and lines are written in one unit of work.
    - Lines are owned by their header (cascade delete-orphan).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from revenue_kernel.db.base import TrackedBase, UUIDString


class ChangeOrderModel(TrackedBase):
    __tablename__ = "rev_change_order"

    __table_args__ = (
        Index("idx_rev_change_order_contract", "company_id", "contract_id"),
        Index("idx_rev_change_order_status", "company_id", "status"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    contract_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="DRAFT")
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="DRAFT")

    lines: Mapped[list["ChangeLineModel"]] = relationship(
        back_populates="change_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ChangeLineModel.position",
    )

    def to_dto(self):
        from revenue_modules.modifications.models import ChangeOrder, ChangeOrderStatus

        return ChangeOrder(
            id=self.id,
            company_id=self.company_id,
            contract_id=self.contract_id,
            effective_date=self.effective_date,
            type=self.type,
            status=ChangeOrderStatus(self.status),
            reason=self.reason,
            lines=tuple(line.to_dto() for line in self.lines),
            created_by_id=self.created_by_id,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<ChangeOrderModel {self.id} {self.type} ({self.status})>"


class ChangeLineModel(TrackedBase):
    __tablename__ = "rev_change_line"

    __table_args__ = (
        Index("idx_rev_change_line_order", "change_order_id"),
    )

    change_order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("rev_change_order.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(nullable=False, default=0)
    pob_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    product_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    qty_delta: Mapped[Decimal | None] = mapped_column(nullable=True)
    price_delta: Mapped[Decimal | None] = mapped_column(nullable=True)
    term_delta_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    new_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    new_ssp: Mapped[Decimal | None] = mapped_column(nullable=True)

    change_order: Mapped["ChangeOrderModel"] = relationship(back_populates="lines")

    def to_dto(self):
        from revenue_modules.modifications.models import ChangeLine

        return ChangeLine(
            id=self.id,
            change_order_id=self.change_order_id,
            pob_id=self.pob_id,
            product_id=self.product_id,
            qty_delta=self.qty_delta,
            price_delta=self.price_delta,
            term_delta_days=self.term_delta_days,
            new_method=self.new_method,
            new_ssp=self.new_ssp,
        )
