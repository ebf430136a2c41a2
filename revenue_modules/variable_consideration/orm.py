"""
Module: revenue_modules.variable_consideration.orm
Responsibility:
    SQLAlchemy ORM persistence models for the VC policy and VC estimates.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``.

Invariants enforced:
    - One policy per company (uq_rev_vc_policy_company).
    - One estimate per (company, contract, pob, year, month)
      (uq_rev_vc_estimate_period).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from revenue_kernel.db.base import TrackedBase, UUIDString


class VcPolicyModel(TrackedBase):
    __tablename__ = "rev_vc_policy"

    __table_args__ = (
        UniqueConstraint("company_id", name="uq_rev_vc_policy_company"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    default_method: Mapped[str] = mapped_column(String(50), nullable=False)
    constraint_probability_threshold: Mapped[Decimal] = mapped_column(default=Decimal("0.5"))
    volatility_lookback_months: Mapped[int] = mapped_column(Integer, default=12)

    def to_dto(self):
        from revenue_modules.variable_consideration.models import VcMethod, VcPolicy

        return VcPolicy(
            id=self.id,
            company_id=self.company_id,
            default_method=VcMethod(self.default_method),
            constraint_probability_threshold=self.constraint_probability_threshold,
            volatility_lookback_months=self.volatility_lookback_months,
        )

    def __repr__(self) -> str:
        return (
            f"<VcPolicyModel company={self.company_id} "
            f"threshold={self.constraint_probability_threshold}>"
        )


class VcEstimateModel(TrackedBase):
    """
    Constrained VC estimate for one POB period.

    Guarantees:
        - Rewritten in place on a repeated upsert for the same period.
    """

    __tablename__ = "rev_vc_estimate"

    __table_args__ = (
        UniqueConstraint(
            "company_id", "contract_id", "pob_id", "year", "month",
            name="uq_rev_vc_estimate_period",
        ),
        Index("idx_rev_vc_estimate_contract", "company_id", "contract_id"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    contract_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    pob_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    raw_estimate: Mapped[Decimal] = mapped_column(nullable=False)
    constrained_amount: Mapped[Decimal] = mapped_column(nullable=False)
    confidence: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="OPEN")

    def to_dto(self):
        from revenue_modules.variable_consideration.models import (
            VcEstimate,
            VcEstimateStatus,
            VcMethod,
        )

        return VcEstimate(
            id=self.id,
            company_id=self.company_id,
            contract_id=self.contract_id,
            pob_id=self.pob_id,
            year=self.year,
            month=self.month,
            method=VcMethod(self.method),
            raw_estimate=self.raw_estimate,
            constrained_amount=self.constrained_amount,
            confidence=self.confidence,
            status=VcEstimateStatus(self.status),
            created_by_id=self.created_by_id,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return (
            f"<VcEstimateModel pob={self.pob_id} {self.year}-{self.month:02d} "
            f"{self.constrained_amount}>"
        )
