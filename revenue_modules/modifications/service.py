"""
Module: revenue_modules.modifications.service
Responsibility:
    Change order lifecycle: create a DRAFT order with its lines, apply it
    under one of the four modification treatments, and run revised
    recognition afterwards.

Architecture:
    revenue_modules layer -- outermost orchestrator.

    Dependency direction (strict):
        service.py  -->  revenue_modules.allocation.service (POBs, txn price)
        service.py  -->  revenue_modules.schedule.service   (revision log)
        service.py  -->  revenue_modules.disclosures.service (register)
        service.py  -->  revenue_modules.collaborators (ScheduleBuilder,
                                                        RecognitionRunner)

Invariants:
    - Only a DRAFT order can be applied; APPLIED is terminal.
    - The treatment work, the header flip to APPLIED and the register row
      are one unit of work.  If the treatment fails the order stays DRAFT
      and nothing it wrote survives.
    - An unknown treatment is rejected before anything is read or written.
    - Treatments never rewrite a POB's allocated amount or SSP; only
      prospective SSP reallocation does that.

Failure modes:
    - UnknownTreatmentError, ChangeOrderNotFoundError,
      ChangeOrderNotDraftError from apply_change_order.
    - TreatmentNotImplementedError for TERMINATION_NEW.
    - run_revised_recognition never raises; failures come back as a result.

Audit relevance:
    Every applied order leaves a modification register row with the
    contract transaction price before and after, and one CO schedule
    revision per POB it re-planned.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from revenue_config.schema import RevenueEngineConfig
from revenue_engines.schedule import RecognitionMethod, parse_recognition_method, period_of
from revenue_kernel.db.engine import unit_of_work
from revenue_kernel.db.types import to_decimal
from revenue_kernel.domain.clock import Clock, SystemClock
from revenue_kernel.exceptions import (
    ChangeOrderNotDraftError,
    ChangeOrderNotFoundError,
    TreatmentNotImplementedError,
    UnknownTreatmentError,
)
from revenue_kernel.logging_config import LogContext, get_logger
from revenue_modules.allocation.models import PerformanceObligation
from revenue_modules.allocation.service import AllocationService
from revenue_modules.collaborators import RecognitionRunner, ScheduleBuilder
from revenue_modules.disclosures.service import DisclosureService
from revenue_modules.modifications.models import (
    DRAFT_TYPE,
    ApplyResult,
    ChangeLine,
    ChangeLineInput,
    ChangeOrder,
    ChangeOrderStatus,
    RecognitionRunResult,
    RevisionCause,
    ScheduleRevision,
    Treatment,
)
from revenue_modules.modifications.orm import ChangeLineModel, ChangeOrderModel
from revenue_modules.schedule.service import RecognitionScheduleService

logger = get_logger("modules.modifications.service")

_ZERO = Decimal("0")
_APPLIED_MESSAGE = "Change order applied successfully"


def _as_line_input(raw: ChangeLineInput | Mapping[str, Any]) -> ChangeLineInput:
    """
    Raises:
        UnknownRecognitionMethodError: new_method names no recognition method.
    """
    if isinstance(raw, ChangeLineInput):
        if raw.new_method:
            parse_recognition_method(raw.new_method)
        return raw

    def _opt_decimal(key: str) -> Decimal | None:
        value = raw.get(key)
        return to_decimal(value, key) if value is not None else None

    pob_id = raw.get("pob_id")
    return ChangeLineInput(
        pob_id=UUID(str(pob_id)) if pob_id is not None else None,
        product_id=raw.get("product_id"),
        qty_delta=_opt_decimal("qty_delta"),
        price_delta=_opt_decimal("price_delta"),
        term_delta_days=raw.get("term_delta_days"),
        new_method=(
            parse_recognition_method(raw["new_method"]).value
            if raw.get("new_method") else None
        ),
        new_ssp=_opt_decimal("new_ssp"),
    )


def parse_treatment(value: Treatment | str) -> Treatment:
    """
    Raises:
        UnknownTreatmentError: value names no treatment.
    """
    if isinstance(value, Treatment):
        return value
    try:
        return Treatment(value)
    except ValueError:
        raise UnknownTreatmentError(value) from None


class ChangeOrderService:
    """
    Contract modification engine.

    Contract:
        Receives the Session and the collaborators it orchestrates.  The
        schedule builder and recognition runner are ports; pass
        RecognitionScheduleService for the in-tree schedule builder.

    Transaction boundary: create_change_order and apply_change_order are
    each one unit of work; collaborators on the same session join it.
    """

    def __init__(
        self,
        session: Session,
        allocation_service: AllocationService,
        schedule_builder: ScheduleBuilder,
        recognition_runner: RecognitionRunner,
        disclosure_service: DisclosureService | None = None,
        clock: Clock | None = None,
        config: RevenueEngineConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or RevenueEngineConfig.with_defaults()
        self._allocation = allocation_service
        self._schedule_builder = schedule_builder
        self._recognition = recognition_runner
        self._disclosures = disclosure_service or DisclosureService(
            session, self._clock, self._config,
        )
        self._revisions = RecognitionScheduleService(session, self._clock, self._config)

    # =========================================================================
    # Create / apply
    # =========================================================================

    def create_change_order(
        self,
        company_id: UUID,
        actor_id: UUID,
        contract_id: UUID,
        effective_date: date,
        lines: Sequence[ChangeLineInput | Mapping[str, Any]],
        reason: str | None = None,
    ) -> ChangeOrder:
        """
        Create a DRAFT change order and its lines.

        Postconditions:
            - status DRAFT, type DRAFT.
            - Header and lines committed together.
        """
        parsed = [_as_line_input(line) for line in lines]

        with LogContext.bind(company_id=company_id, actor_id=actor_id), \
                unit_of_work(self._session):
            now = self._clock.now()
            orm_co = ChangeOrderModel(
                company_id=company_id,
                contract_id=contract_id,
                effective_date=effective_date,
                type=DRAFT_TYPE,
                reason=reason,
                status=ChangeOrderStatus.DRAFT.value,
                created_at=now,
                created_by_id=actor_id,
            )
            orm_co.lines = [
                ChangeLineModel(
                    position=i,
                    pob_id=line.pob_id,
                    product_id=line.product_id,
                    qty_delta=line.qty_delta,
                    price_delta=line.price_delta,
                    term_delta_days=line.term_delta_days,
                    new_method=line.new_method,
                    new_ssp=line.new_ssp,
                    created_at=now,
                    created_by_id=actor_id,
                )
                for i, line in enumerate(parsed)
            ]
            self._session.add(orm_co)
            self._session.flush()
            change_order = orm_co.to_dto()

        logger.info("change_order_created", extra={
            "change_order_id": str(change_order.id),
            "contract_id": str(contract_id),
            "line_count": len(change_order.lines),
        })
        return change_order

    def get_change_order(self, company_id: UUID, change_order_id: UUID) -> ChangeOrder:
        return self._change_order_model(company_id, change_order_id).to_dto()

    def apply_change_order(
        self,
        company_id: UUID,
        actor_id: UUID,
        change_order_id: UUID,
        treatment: Treatment | str,
    ) -> ApplyResult:
        """
        Apply a DRAFT change order under ``treatment``.

        Postconditions (success):
            - status APPLIED, type = treatment.
            - One modification register row.
        Postconditions (failure):
            - Order unchanged (DRAFT); no POBs, revisions or register rows.

        Raises:
            UnknownTreatmentError, ChangeOrderNotFoundError,
            ChangeOrderNotDraftError, TreatmentNotImplementedError, plus
            whatever the schedule builder raises.
        """
        treatment = parse_treatment(treatment)

        with LogContext.bind(
            company_id=company_id,
            actor_id=actor_id,
            change_order_id=change_order_id,
        ), unit_of_work(self._session):
            orm_co = self._change_order_model(company_id, change_order_id)
            if orm_co.status != ChangeOrderStatus.DRAFT.value:
                raise ChangeOrderNotDraftError(change_order_id, orm_co.status)

            change_order = orm_co.to_dto()
            txn_price_before = self._allocation.contract_transaction_price(
                company_id, change_order.contract_id,
            )

            match treatment:
                case Treatment.SEPARATE:
                    self._apply_separate(company_id, actor_id, change_order)
                case Treatment.TERMINATION_NEW:
                    raise TreatmentNotImplementedError(treatment.value)
                case Treatment.PROSPECTIVE:
                    self._apply_prospective(company_id, actor_id, change_order)
                case Treatment.RETROSPECTIVE:
                    self._apply_retrospective(company_id, actor_id, change_order)
                case _:
                    raise UnknownTreatmentError(treatment)

            orm_co.type = treatment.value
            orm_co.status = ChangeOrderStatus.APPLIED.value
            orm_co.updated_by_id = actor_id

            txn_price_delta = sum(
                (line.price_delta for line in change_order.lines if line.price_delta is not None),
                _ZERO,
            )
            self._disclosures.record_modification(
                company_id,
                actor_id,
                contract_id=change_order.contract_id,
                change_order_id=change_order_id,
                effective_date=change_order.effective_date,
                type=treatment.value,
                txn_price_before=txn_price_before,
                txn_price_delta=txn_price_delta,
                reason=change_order.reason,
            )
            self._session.flush()

        logger.info("change_order_applied", extra={
            "change_order_id": str(change_order_id),
            "treatment": treatment.value,
            "txn_price_before": str(txn_price_before),
            "txn_price_delta": str(txn_price_delta),
        })
        return ApplyResult(success=True, message=_APPLIED_MESSAGE)

    # =========================================================================
    # Treatments
    # =========================================================================

    def _apply_separate(self, company_id: UUID, actor_id: UUID, change_order: ChangeOrder) -> None:
        """A distinct contract: one new POB per line that names a product."""
        for line in change_order.lines:
            if not line.product_id:
                continue
            pob = self._allocation.create_pob(
                company_id,
                actor_id,
                product_id=line.product_id,
                name=f"Additional {line.product_id}",
                method=line.new_method or self._config.default_recognition_method,
                start_date=change_order.effective_date,
                end_date=change_order.effective_date,
                qty=line.qty_delta if line.qty_delta is not None else Decimal("1"),
                allocated_amount=line.price_delta if line.price_delta is not None else _ZERO,
                currency=self._config.default_currency,
                contract_id=change_order.contract_id,
            )
            logger.info("separate_contract_pob_created", extra={
                "pob_id": str(pob.id),
                "product_id": line.product_id,
                "allocated_amount": str(pob.allocated_amount),
            })

    def _apply_prospective(self, company_id: UUID, actor_id: UUID, change_order: ChangeOrder) -> None:
        """Re-plan each referenced POB from the effective date forward."""
        for line in change_order.lines:
            if line.pob_id is None:
                continue
            pob = self._allocation.get_pob(company_id, line.pob_id)
            result = self._schedule_builder.build_schedule(
                company_id,
                actor_id,
                pob.id,
                self._method_for(line, pob).value,
                change_order.effective_date,
                end_date=self._end_date_for(line, pob),
            )
            self.record_schedule_revision(
                company_id,
                actor_id,
                pob_id=pob.id,
                from_year=result.from_year,
                from_month=result.from_month,
                planned_before=result.planned_before,
                planned_after=result.planned_after,
                change_order_id=change_order.id,
            )

    def _apply_retrospective(self, company_id: UUID, actor_id: UUID, change_order: ChangeOrder) -> None:
        """
        Re-plan each referenced POB from inception.

        The cumulative catch-up (re-planned minus previously planned
        amounts for periods before the effective date) is logged for the
        posting layer; no journal is written here.
        """
        for line in change_order.lines:
            if line.pob_id is None:
                continue
            pob = self._allocation.get_pob(company_id, line.pob_id)
            result = self._schedule_builder.build_schedule(
                company_id,
                actor_id,
                pob.id,
                self._method_for(line, pob).value,
                pob.start_date,
                end_date=self._end_date_for(line, pob),
                catch_up_before=change_order.effective_date,
            )
            from_year, from_month = period_of(pob.start_date)
            self.record_schedule_revision(
                company_id,
                actor_id,
                pob_id=pob.id,
                from_year=from_year,
                from_month=from_month,
                planned_before=result.planned_before,
                planned_after=result.planned_after,
                change_order_id=change_order.id,
            )
            logger.info("retrospective_catch_up_required", extra={
                "pob_id": str(pob.id),
                "effective_date": change_order.effective_date.isoformat(),
                "catch_up_amount": str(result.catch_up_amount),
            })

    @staticmethod
    def _method_for(line: ChangeLine, pob: PerformanceObligation) -> RecognitionMethod:
        return parse_recognition_method(line.new_method) if line.new_method else pob.method

    @staticmethod
    def _end_date_for(line: ChangeLine, pob: PerformanceObligation) -> date | None:
        if pob.end_date is None or not line.term_delta_days:
            return pob.end_date
        return pob.end_date + timedelta(days=line.term_delta_days)

    # =========================================================================
    # Queries and revisions
    # =========================================================================

    def query_change_orders(
        self,
        company_id: UUID,
        *,
        contract_id: UUID | None = None,
        status: ChangeOrderStatus | str | None = None,
        type: Treatment | str | None = None,
        effective_date_from: date | None = None,
        effective_date_to: date | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ChangeOrder]:
        stmt = select(ChangeOrderModel).where(ChangeOrderModel.company_id == company_id)
        if contract_id is not None:
            stmt = stmt.where(ChangeOrderModel.contract_id == contract_id)
        if status is not None:
            stmt = stmt.where(ChangeOrderModel.status == ChangeOrderStatus(status).value)
        if type is not None:
            type_value = type.value if isinstance(type, Treatment) else str(type)
            stmt = stmt.where(ChangeOrderModel.type == type_value)
        if effective_date_from is not None:
            stmt = stmt.where(ChangeOrderModel.effective_date >= effective_date_from)
        if effective_date_to is not None:
            stmt = stmt.where(ChangeOrderModel.effective_date <= effective_date_to)
        stmt = (
            stmt.order_by(ChangeOrderModel.created_at.desc())
            .limit(self._config.clamp_limit(limit))
            .offset(offset)
        )
        return [row.to_dto() for row in self._session.scalars(stmt).all()]

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
        return self._revisions.query_revisions(
            company_id,
            pob_id=pob_id,
            year=year,
            month=month,
            cause=cause,
            limit=limit,
            offset=offset,
        )

    def record_schedule_revision(
        self,
        company_id: UUID,
        actor_id: UUID,
        pob_id: UUID,
        from_year: int,
        from_month: int,
        planned_before: Decimal,
        planned_after: Decimal,
        cause: RevisionCause | str = RevisionCause.CO,
        change_order_id: UUID | None = None,
        vc_estimate_id: UUID | None = None,
    ) -> ScheduleRevision:
        return self._revisions.record_revision(
            company_id,
            actor_id,
            pob_id,
            from_year,
            from_month,
            planned_before=planned_before,
            planned_after=planned_after,
            cause=cause,
            change_order_id=change_order_id,
            vc_estimate_id=vc_estimate_id,
        )

    # =========================================================================
    # Revised recognition
    # =========================================================================

    def run_revised_recognition(
        self,
        company_id: UUID,
        actor_id: UUID,
        year: int,
        month: int,
        dry_run: bool = True,
    ) -> RecognitionRunResult:
        """
        Run (or simulate) recognition for a period after modifications.

        Never raises: a runner failure is reported as
        ``success=False`` with the runner's message.
        """
        with LogContext.bind(company_id=company_id, actor_id=actor_id):
            try:
                run_id = self._recognition.run_recognition(
                    company_id, actor_id, year, month, dry_run,
                )
            except Exception as exc:
                logger.error("revised_recognition_failed", exc_info=True, extra={
                    "period": f"{year}-{month:02d}",
                    "dry_run": dry_run,
                })
                return RecognitionRunResult(
                    success=False,
                    message=f"Recognition failed: {exc}",
                )

            logger.info("revised_recognition_completed", extra={
                "period": f"{year}-{month:02d}",
                "dry_run": dry_run,
                "run_id": str(run_id),
            })
        return RecognitionRunResult(
            success=True,
            message="Dry run completed" if dry_run else "Recognition run completed",
            run_id=str(run_id),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _change_order_model(self, company_id: UUID, change_order_id: UUID) -> ChangeOrderModel:
        orm_co = self._session.scalars(
            select(ChangeOrderModel).where(
                ChangeOrderModel.id == change_order_id,
                ChangeOrderModel.company_id == company_id,
            )
        ).first()
        if orm_co is None:
            raise ChangeOrderNotFoundError(change_order_id)
        return orm_co
