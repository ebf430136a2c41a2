"""
Module: revenue_modules.schedule.orm
Responsibility:
    SQLAlchemy ORM persistence models for recognition schedule rows and
    schedule revisions.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``.

Invariants enforced:
    - One row per (company, pob, year, month) (uq_rev_schedule_period).
    - Revisions are append-only.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from revenue_kernel.db.base import TrackedBase, UUIDString


class RecognitionScheduleModel(TrackedBase):
    """Planned and recognized revenue for one POB in one month."""

    __tablename__ = "rev_schedule"

    __table_args__ = (
        UniqueConstraint(
            "company_id", "pob_id", "year", "month",
            name="uq_rev_schedule_period",
        ),
        Index("idx_rev_schedule_period", "company_id", "year", "month"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    pob_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("rev_pob.id"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    planned: Mapped[Decimal] = mapped_column(nullable=False)
    recognized: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(50), default="PLANNED")

    def to_dto(self):
        from revenue_modules.schedule.models import RecognitionScheduleEntry, ScheduleStatus

        return RecognitionScheduleEntry(
            id=self.id,
            company_id=self.company_id,
            pob_id=self.pob_id,
            year=self.year,
            month=self.month,
            planned=self.planned,
            recognized=self.recognized if self.recognized is not None else Decimal("0"),
            status=ScheduleStatus(self.status),
        )

    def __repr__(self) -> str:
        return (
            f"<RecognitionScheduleModel pob={self.pob_id} "
            f"{self.year}-{self.month:02d} {self.planned} ({self.status})>"
        )


class ScheduleRevisionModel(TrackedBase):
    """Append-only log of schedule re-plans."""

    __tablename__ = "rev_sched_rev"

    __table_args__ = (
        Index("idx_rev_sched_rev_pob", "company_id", "pob_id"),
        Index("idx_rev_sched_rev_period", "company_id", "from_period_year", "from_period_month"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    pob_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    from_period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    from_period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    planned_before: Mapped[Decimal] = mapped_column(nullable=False)
    planned_after: Mapped[Decimal] = mapped_column(nullable=False)
    delta_planned: Mapped[Decimal] = mapped_column(nullable=False)
    cause: Mapped[str] = mapped_column(String(50), nullable=False)
    change_order_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    ssp_change_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    vc_estimate_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def to_dto(self):
        from revenue_modules.schedule.models import RevisionCause, ScheduleRevision

        return ScheduleRevision(
            id=self.id,
            company_id=self.company_id,
            pob_id=self.pob_id,
            from_period_year=self.from_period_year,
            from_period_month=self.from_period_month,
            planned_before=self.planned_before,
            planned_after=self.planned_after,
            delta_planned=self.delta_planned,
            cause=RevisionCause(self.cause),
            change_order_id=self.change_order_id,
            ssp_change_id=self.ssp_change_id,
            vc_estimate_id=self.vc_estimate_id,
            created_by_id=self.created_by_id,
            created_at=self.created_at,
        )
