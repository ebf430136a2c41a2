"""
Module: revenue_modules.discounts.orm
Responsibility:
    SQLAlchemy ORM persistence models for discount rules and discount
    applications.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``.

Invariants enforced:
    - ``params`` is stored as JSON in the shape produced by
      ``params_to_json``.
    - A superseded rule is end-dated, never deleted.
    - Application rows are append-only.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from revenue_kernel.db.base import TrackedBase, UUIDString


class DiscountRuleModel(TrackedBase):
    """Effective-dated discount rule keyed by (company, code)."""

    __tablename__ = "rev_discount_rule"

    __table_args__ = (
        Index("idx_rev_discount_rule_code", "company_id", "code", "effective_from"),
        Index("idx_rev_discount_rule_active", "company_id", "active", "effective_from"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    code: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    params: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    priority: Mapped[int] = mapped_column(Integer, default=0)
    max_usage_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_usage_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    def to_dto(self):
        from revenue_engines.discounts import parse_params
        from revenue_modules.discounts.models import DiscountKind, DiscountRule

        kind = DiscountKind(self.kind)
        return DiscountRule(
            id=self.id,
            company_id=self.company_id,
            kind=kind,
            code=self.code,
            params=parse_params(kind, self.params or {}),
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            name=self.name,
            active=self.active,
            priority=self.priority or 0,
            max_usage_count=self.max_usage_count,
            max_usage_amount=self.max_usage_amount,
            created_by_id=self.created_by_id,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<DiscountRuleModel {self.code} {self.kind} active={self.active}>"


class DiscountAppliedModel(TrackedBase):
    """Append-only record of a rule applied to an invoice."""

    __tablename__ = "rev_discount_applied"

    __table_args__ = (
        Index("idx_rev_discount_applied_invoice", "company_id", "invoice_id"),
        Index("idx_rev_discount_applied_rule", "company_id", "rule_id"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    invoice_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    rule_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("rev_discount_rule.id"),
        nullable=False,
    )
    computed_amount: Mapped[Decimal] = mapped_column(nullable=False)
    detail: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_dto(self):
        from revenue_modules.discounts.models import DiscountApplied

        return DiscountApplied(
            id=self.id,
            company_id=self.company_id,
            invoice_id=self.invoice_id,
            rule_id=self.rule_id,
            computed_amount=self.computed_amount,
            detail=dict(self.detail or {}),
            applied_by_id=self.created_by_id,
            applied_at=self.applied_at,
        )
