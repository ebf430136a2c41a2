"""
Module: revenue_modules.schedule.service
Responsibility:
    Default ScheduleBuilder: (re)plans a POB's monthly recognition
    schedule, records recognition against it and keeps the schedule
    revision log.

Architecture:
    revenue_modules layer -- holds a Session; each public mutating method
    is one unit_of_work and joins the caller's when invoked from another
    service on the same session.  Period math is delegated to
    revenue_engines.schedule.plan_schedule.

Invariants:
    - Rows before the start period are never rewritten by a rebuild.
    - The rebuilt plan covers allocated_amount minus what is already
      planned before the start period, so the POB total is preserved.
    - Rows that already carry recognized revenue are re-planned in place,
      never deleted.

Failure modes:
    - PobNotFoundError for an unknown POB or another company's.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from revenue_config.schema import RevenueEngineConfig
from revenue_engines.schedule import (
    RecognitionMethod,
    parse_recognition_method,
    period_of,
    plan_schedule,
)
from revenue_kernel.db.engine import unit_of_work
from revenue_kernel.db.types import to_decimal
from revenue_kernel.domain.clock import Clock, SystemClock
from revenue_kernel.exceptions import PobNotFoundError, ValidationError
from revenue_kernel.logging_config import LogContext, get_logger
from revenue_modules.allocation.orm import PerformanceObligationModel
from revenue_modules.collaborators import ScheduleBuildResult
from revenue_modules.schedule.models import (
    RecognitionScheduleEntry,
    RevisionCause,
    ScheduleRevision,
    ScheduleStatus,
)
from revenue_modules.schedule.orm import RecognitionScheduleModel, ScheduleRevisionModel

logger = get_logger("modules.schedule.service")

_ZERO = Decimal("0")


def _sum_planned(rows, before: tuple[int, int] | None = None) -> Decimal:
    return sum(
        (r.planned for r in rows if before is None or (r.year, r.month) < before),
        _ZERO,
    )


class RecognitionScheduleService:
    """
    Recognition schedule builder and revision log.

    Satisfies the ScheduleBuilder collaborator protocol.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: RevenueEngineConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or RevenueEngineConfig.with_defaults()

    def build_schedule(
        self,
        company_id: UUID,
        actor_id: UUID,
        pob_id: UUID,
        method: RecognitionMethod | str,
        start_date: date,
        end_date: date | None = None,
        catch_up_before: date | None = None,
    ) -> ScheduleBuildResult:
        """
        Re-plan ``pob_id`` from ``start_date``'s month onward.

        Preconditions:
            - The POB belongs to ``company_id``.
        Postconditions:
            - Rows before the start period are unchanged.
            - Sum of planned over all rows == POB allocated_amount (unless
              the method is USAGE, which plans nothing).
            - catch_up_amount is new minus old planned for periods before
              ``catch_up_before`` (0 when not given).

        Raises:
            PobNotFoundError: unknown POB.
        """
        method = parse_recognition_method(method)
        from_period = period_of(start_date)

        with LogContext.bind(company_id=company_id, actor_id=actor_id), \
                unit_of_work(self._session):
            pob = self._pob_model(company_id, pob_id)
            rows = self._rows(company_id, pob_id)

            planned_before = _sum_planned(rows)
            catch_up_period = period_of(catch_up_before) if catch_up_before else None
            old_catch_up_base = (
                _sum_planned(rows, catch_up_period) if catch_up_period else _ZERO
            )

            kept_total = _sum_planned(rows, from_period)
            amount = pob.allocated_amount - kept_total
            plan = plan_schedule(
                method=method,
                amount=amount,
                start_date=start_date,
                end_date=end_date if end_date is not None else pob.end_date,
            )
            new_by_period = {p.key: p.amount for p in plan}

            now = self._clock.now()
            existing = {(r.year, r.month): r for r in rows}
            for key, row in existing.items():
                if key < from_period or key in new_by_period:
                    continue
                if row.recognized == _ZERO:
                    self._session.delete(row)
                else:
                    row.planned = _ZERO
                    row.updated_by_id = actor_id
            for key, planned in new_by_period.items():
                row = existing.get(key)
                if row is None:
                    self._session.add(RecognitionScheduleModel(
                        company_id=company_id,
                        pob_id=pob_id,
                        year=key[0],
                        month=key[1],
                        planned=planned,
                        recognized=_ZERO,
                        status=ScheduleStatus.PLANNED.value,
                        created_at=now,
                        created_by_id=actor_id,
                    ))
                else:
                    row.planned = planned
                    row.status = self._status_for(planned, row.recognized).value
                    row.updated_by_id = actor_id
            self._session.flush()

            after_rows = self._rows(company_id, pob_id)
            planned_after = _sum_planned(after_rows)
            catch_up = (
                _sum_planned(after_rows, catch_up_period) - old_catch_up_base
                if catch_up_period else _ZERO
            )

        logger.info("schedule_built", extra={
            "pob_id": str(pob_id),
            "method": method.value,
            "from_period": f"{from_period[0]}-{from_period[1]:02d}",
            "periods_created": len(plan),
            "planned_before": str(planned_before),
            "planned_after": str(planned_after),
        })
        return ScheduleBuildResult(
            pob_id=pob_id,
            periods_created=len(plan),
            planned_before=planned_before,
            planned_after=planned_after,
            from_year=from_period[0],
            from_month=from_period[1],
            catch_up_amount=catch_up,
        )

    def query_schedule(
        self,
        company_id: UUID,
        *,
        pob_id: UUID | None = None,
        year: int | None = None,
        month: int | None = None,
        status: ScheduleStatus | str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[RecognitionScheduleEntry]:
        stmt = select(RecognitionScheduleModel).where(
            RecognitionScheduleModel.company_id == company_id,
        )
        if pob_id is not None:
            stmt = stmt.where(RecognitionScheduleModel.pob_id == pob_id)
        if year is not None:
            stmt = stmt.where(RecognitionScheduleModel.year == year)
        if month is not None:
            stmt = stmt.where(RecognitionScheduleModel.month == month)
        if status is not None:
            stmt = stmt.where(RecognitionScheduleModel.status == ScheduleStatus(status).value)
        stmt = (
            stmt.order_by(
                RecognitionScheduleModel.year,
                RecognitionScheduleModel.month,
                RecognitionScheduleModel.created_at,
            )
            .limit(self._config.clamp_limit(limit))
            .offset(offset)
        )
        return [row.to_dto() for row in self._session.scalars(stmt).all()]

    def update_recognition(
        self,
        company_id: UUID,
        actor_id: UUID,
        pob_id: UUID,
        year: int,
        month: int,
        amount: Decimal,
    ) -> RecognitionScheduleEntry:
        """
        Add ``amount`` to the period's recognized revenue.

        Status follows the totals: PARTIAL while recognized < planned, DONE
        once recognized reaches planned.
        """
        amount = to_decimal(amount, "amount")
        if amount < _ZERO:
            raise ValidationError("amount", "recognized amount cannot be negative")

        with unit_of_work(self._session):
            row = self._session.scalars(
                select(RecognitionScheduleModel).where(
                    RecognitionScheduleModel.company_id == company_id,
                    RecognitionScheduleModel.pob_id == pob_id,
                    RecognitionScheduleModel.year == year,
                    RecognitionScheduleModel.month == month,
                )
            ).first()
            if row is None:
                raise ValidationError(
                    "period", f"no schedule row for POB {pob_id} in {year}-{month:02d}",
                )
            row.recognized = (row.recognized or _ZERO) + amount
            row.status = self._status_for(row.planned, row.recognized).value
            row.updated_by_id = actor_id
            self._session.flush()
            entry = row.to_dto()

        logger.info("schedule_recognized", extra={
            "pob_id": str(pob_id),
            "period": f"{year}-{month:02d}",
            "amount": str(amount),
            "status": entry.status.value,
        })
        return entry

    # =========================================================================
    # Revisions
    # =========================================================================

    def record_revision(
        self,
        company_id: UUID,
        actor_id: UUID,
        pob_id: UUID,
        from_year: int,
        from_month: int,
        planned_before: Decimal,
        planned_after: Decimal,
        cause: RevisionCause | str,
        change_order_id: UUID | None = None,
        ssp_change_id: UUID | None = None,
        vc_estimate_id: UUID | None = None,
    ) -> ScheduleRevision:
        cause = RevisionCause(cause)
        planned_before = to_decimal(planned_before, "planned_before")
        planned_after = to_decimal(planned_after, "planned_after")

        with unit_of_work(self._session):
            orm_revision = ScheduleRevisionModel(
                company_id=company_id,
                pob_id=pob_id,
                from_period_year=from_year,
                from_period_month=from_month,
                planned_before=planned_before,
                planned_after=planned_after,
                delta_planned=planned_after - planned_before,
                cause=cause.value,
                change_order_id=change_order_id,
                ssp_change_id=ssp_change_id,
                vc_estimate_id=vc_estimate_id,
                created_at=self._clock.now(),
                created_by_id=actor_id,
            )
            self._session.add(orm_revision)
            self._session.flush()
            revision = orm_revision.to_dto()

        logger.info("schedule_revision_recorded", extra={
            "revision_id": str(revision.id),
            "pob_id": str(pob_id),
            "cause": cause.value,
            "delta_planned": str(revision.delta_planned),
        })
        return revision

    def query_revisions(
        self,
        company_id: UUID,
        *,
        pob_id: UUID | None = None,
        year: int | None = None,
        month: int | None = None,
        cause: RevisionCause | str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ScheduleRevision]:
        stmt = select(ScheduleRevisionModel).where(
            ScheduleRevisionModel.company_id == company_id,
        )
        if pob_id is not None:
            stmt = stmt.where(ScheduleRevisionModel.pob_id == pob_id)
        if year is not None:
            stmt = stmt.where(ScheduleRevisionModel.from_period_year == year)
        if month is not None:
            stmt = stmt.where(ScheduleRevisionModel.from_period_month == month)
        if cause is not None:
            stmt = stmt.where(ScheduleRevisionModel.cause == RevisionCause(cause).value)
        stmt = (
            stmt.order_by(ScheduleRevisionModel.created_at.desc())
            .limit(self._config.clamp_limit(limit))
            .offset(offset)
        )
        return [row.to_dto() for row in self._session.scalars(stmt).all()]

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _status_for(planned: Decimal, recognized: Decimal) -> ScheduleStatus:
        if recognized <= _ZERO:
            return ScheduleStatus.PLANNED
        if recognized < planned:
            return ScheduleStatus.PARTIAL
        return ScheduleStatus.DONE

    def _pob_model(self, company_id: UUID, pob_id: UUID) -> PerformanceObligationModel:
        pob = self._session.scalars(
            select(PerformanceObligationModel).where(
                PerformanceObligationModel.id == pob_id,
                PerformanceObligationModel.company_id == company_id,
            )
        ).first()
        if pob is None:
            raise PobNotFoundError(pob_id)
        return pob

    def _rows(self, company_id: UUID, pob_id: UUID) -> list[RecognitionScheduleModel]:
        return list(self._session.scalars(
            select(RecognitionScheduleModel)
            .where(
                RecognitionScheduleModel.company_id == company_id,
                RecognitionScheduleModel.pob_id == pob_id,
            )
            .order_by(RecognitionScheduleModel.year, RecognitionScheduleModel.month)
        ).all())
