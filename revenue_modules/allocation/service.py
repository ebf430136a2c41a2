"""
Module: revenue_modules.allocation.service
Responsibility:
    Allocate an invoice's transaction price across new performance
    obligations, keep the allocation audit trail, and reprice open POBs
    prospectively when an SSP change is approved.

Architecture:
    revenue_modules layer -- orchestrates the SSP catalog, discount rules,
    bundle catalog and schedule revision log around the pure allocation
    engines.  Owns the transaction boundary of each public mutating
    method.

    Dependency direction (strict):
        service.py  -->  revenue_engines.allocation / reallocation / corridor
        service.py  -->  revenue_modules.{ssp,discounts,bundles,schedule}
        service.py  -->  revenue_modules.collaborators (InvoiceSource)

Invariants:
    - Conservation: total_allocated + rounding_adjustment equals the
      invoice total minus applied discounts.
    - One AllocationAudit row per allocation run, success or failure.  A
      failed run's POBs and discount applications are rolled back; its
      audit row is written afterwards in its own unit of work.  If that
      write fails it is logged and the allocation error still propagates.
    - Prospective reallocation never touches CLOSED POBs; a dry run
      writes nothing.

Failure modes:
    - InvoiceNotFoundError: the invoice source returned nothing.
    - UnknownStrategyError: strategy string outside RELATIVE_SSP/RESIDUAL/AUTO.
    - SspPolicyNotConfiguredError: the company has no SSP policy.
    - SspNotFoundError: relative-SSP allocation and a line has no SSP.
    - SspChangeNotApprovedError: reallocation against a change that is
      missing or not APPROVED.

Audit relevance:
    The audit row carries the invoice snapshot, the resolved strategy and
    the reason it was chosen, every line allocation and the rounding
    adjustment, so any POB amount can be traced back to its inputs.
"""

from __future__ import annotations

import time
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from revenue_config.schema import RevenueEngineConfig
from revenue_engines.allocation import (
    AllocationComputation,
    AllocationLineInput,
    AllocationStrategy,
    allocate_relative_ssp,
    allocate_residual,
    parse_strategy,
    resolve_strategy,
)
from revenue_engines.corridor import format_corridor_flag
from revenue_engines.reallocation import PobPricing, compute_reallocation
from revenue_engines.schedule import RecognitionMethod, parse_recognition_method, period_of
from revenue_kernel.db.engine import unit_of_work
from revenue_kernel.db.types import to_decimal, validate_currency
from revenue_kernel.domain.clock import Clock, SystemClock
from revenue_kernel.exceptions import (
    InvoiceNotFoundError,
    PobClosedError,
    PobNotFoundError,
    SspChangeNotApprovedError,
    SspPolicyNotConfiguredError,
)
from revenue_kernel.logging_config import LogContext, get_logger
from revenue_kernel.utils.serialization import to_json_safe
from revenue_modules.allocation.models import (
    AllocationAudit,
    AllocationOutcome,
    PerformanceObligation,
    PobStatus,
    ReallocationDetail,
    ReallocationOutcome,
)
from revenue_modules.allocation.orm import AllocationAuditModel, PerformanceObligationModel
from revenue_modules.bundles.service import BundleService
from revenue_modules.collaborators import Invoice, InvoiceLine, InvoiceSource
from revenue_modules.discounts.models import DiscountContext
from revenue_modules.discounts.service import DiscountRuleService
from revenue_modules.schedule.models import RevisionCause
from revenue_modules.schedule.service import RecognitionScheduleService
from revenue_modules.ssp.models import SspChangeDiff, SspChangeStatus, SspPolicy
from revenue_modules.ssp.orm import SspChangeRequestModel
from revenue_modules.ssp.service import SspCatalogService

logger = get_logger("modules.allocation.service")

_ZERO = Decimal("0")
_FAILED_RUN_METHOD = AllocationStrategy.AUTO.value


class AllocationService:
    """
    Invoice allocation, POB administration and prospective reallocation.

    Contract:
        Receives a Session, the InvoiceSource collaborator and, optionally,
        the sibling services it orchestrates (built on the same session
        when omitted).

    Transaction boundary: each public mutating method is one unit of
    work; collaborator services join it.
    """

    def __init__(
        self,
        session: Session,
        invoice_source: InvoiceSource,
        clock: Clock | None = None,
        config: RevenueEngineConfig | None = None,
        ssp_service: SspCatalogService | None = None,
        discount_service: DiscountRuleService | None = None,
        bundle_service: BundleService | None = None,
        schedule_service: RecognitionScheduleService | None = None,
    ):
        self._session = session
        self._invoices = invoice_source
        self._clock = clock or SystemClock()
        self._config = config or RevenueEngineConfig.with_defaults()
        self._ssp = ssp_service or SspCatalogService(session, self._clock, self._config)
        self._discounts = discount_service or DiscountRuleService(
            session, self._clock, self._config,
        )
        self._bundles = bundle_service or BundleService(session, self._clock, self._config)
        self._schedules = schedule_service or RecognitionScheduleService(
            session, self._clock, self._config,
        )

    # =========================================================================
    # Allocation
    # =========================================================================

    def allocate_from_invoice(
        self,
        company_id: UUID,
        actor_id: UUID,
        invoice_id: UUID,
        strategy: AllocationStrategy | str = AllocationStrategy.AUTO,
    ) -> AllocationOutcome:
        """
        Allocate an invoice into new OPEN POBs.

        Preconditions:
            - The company has an SSP policy.
        Postconditions:
            - One POB per allocated line; one audit row for the run.
            - total_allocated + rounding_adjustment == total - discounts.
            - On failure nothing but the failure audit row is persisted,
              and the original error propagates.

        Raises:
            InvoiceNotFoundError, UnknownStrategyError,
            SspPolicyNotConfiguredError, SspNotFoundError.
        """
        run_id = uuid4()
        started = time.perf_counter()

        with LogContext.bind(company_id=company_id, actor_id=actor_id, run_id=run_id):
            logger.info("allocation_started", extra={
                "invoice_id": str(invoice_id),
                "strategy": strategy.value if isinstance(strategy, AllocationStrategy) else strategy,
            })
            try:
                with unit_of_work(self._session):
                    outcome = self._allocate(
                        company_id, actor_id, invoice_id, strategy, run_id, started,
                    )
            except Exception as exc:
                try:
                    self._write_failure_audit(
                        company_id, actor_id, invoice_id, strategy, run_id, started, exc,
                    )
                except Exception:
                    # The allocation error is the one the caller must see
                    logger.exception("allocation_failure_audit_failed", extra={
                        "invoice_id": str(invoice_id),
                        "allocation_error": str(exc),
                    })
                raise

            logger.info("allocation_completed", extra={
                "invoice_id": str(invoice_id),
                "strategy": outcome.strategy.value,
                "strategy_reason": outcome.strategy_reason.value,
                "pobs_created": outcome.pobs_created,
                "total_allocated": str(outcome.total_allocated),
                "rounding_adjustment": str(outcome.rounding_adjustment),
                "corridor_flags": list(outcome.corridor_flags),
            })
        return outcome

    def _allocate(
        self,
        company_id: UUID,
        actor_id: UUID,
        invoice_id: UUID,
        requested: AllocationStrategy | str,
        run_id: UUID,
        started: float,
    ) -> AllocationOutcome:
        invoice = self._invoices.get_invoice(company_id, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)

        lines = self._expand_bundles(company_id, invoice)

        ssp_by_line: dict[UUID, Decimal | None] = {}
        for line in lines:
            entry = self._ssp.get_effective(
                company_id, line.product_id, invoice.currency, invoice.invoice_date,
            )
            ssp_by_line[line.id] = entry.ssp if entry is not None else None

        parsed = parse_strategy(requested)
        policy: SspPolicy | None = self._ssp.get_policy(company_id)
        if policy is None:
            raise SspPolicyNotConfiguredError(company_id)
        resolved = resolve_strategy(
            parsed,
            all_lines_have_approved_ssp=all(v is not None for v in ssp_by_line.values()),
            residual_allowed=policy.residual_allowed,
        )

        total_discount, rules_applied = self._apply_discounts(
            company_id, actor_id, invoice, lines,
        )
        net_amount = invoice.total_amount - total_discount

        inputs = [
            AllocationLineInput(
                line_id=line.id,
                product_id=line.product_id,
                product_name=line.product_name,
                amount=line.amount,
                ssp=ssp_by_line[line.id],
            )
            for line in lines
        ]
        corridor_flags: list[str] = []
        match resolved.strategy:
            case AllocationStrategy.RELATIVE_SSP:
                computation = allocate_relative_ssp(
                    lines=inputs,
                    net_amount=net_amount,
                    rounding=policy.rounding,
                    decimal_places=self._config.allocation_decimal_places,
                )
                corridor_flags = self._corridor_flags(company_id, invoice.currency, inputs)
            case AllocationStrategy.RESIDUAL:
                computation = allocate_residual(
                    lines=inputs,
                    net_amount=net_amount,
                    residual_products=policy.residual_eligible_products,
                    rounding=policy.rounding,
                    decimal_places=self._config.allocation_decimal_places,
                )

        pobs = self._create_allocation_pobs(company_id, actor_id, invoice, lines, computation)

        processing_time_ms = int((time.perf_counter() - started) * 1000)
        self._session.add(AllocationAuditModel(
            company_id=company_id,
            invoice_id=invoice_id,
            run_id=run_id,
            method=resolved.strategy.value,
            strategy=resolved.strategy.value,
            inputs=to_json_safe({
                "invoice": invoice,
                "lines": lines,
                "strategy_requested": requested,
                "strategy_reason": resolved.reason,
                "discount_rules_applied": rules_applied,
                "total_discount": total_discount,
            }),
            results=to_json_safe({
                "pobs_created": len(pobs),
                "net_amount": net_amount,
                "total_allocated": computation.total_allocated,
                "rounding_adjustment": computation.rounding_adjustment,
                "allocations": computation.lines,
                "corridor_flags": corridor_flags,
            }),
            corridor_flag=bool(corridor_flags),
            total_invoice_amount=invoice.total_amount,
            total_allocated_amount=computation.total_allocated,
            rounding_adjustment=computation.rounding_adjustment,
            processing_time_ms=processing_time_ms,
            created_at=self._clock.now(),
            created_by_id=actor_id,
        ))
        self._session.flush()

        return AllocationOutcome(
            invoice_id=invoice_id,
            run_id=run_id,
            strategy=resolved.strategy,
            strategy_reason=resolved.reason,
            pobs_created=len(pobs),
            total_discount=total_discount,
            total_allocated=computation.total_allocated,
            rounding_adjustment=computation.rounding_adjustment,
            corridor_flags=tuple(corridor_flags),
            processing_time_ms=processing_time_ms,
            pobs=tuple(pobs),
        )

    def _expand_bundles(self, company_id: UUID, invoice: Invoice) -> list[InvoiceLine]:
        lines: list[InvoiceLine] = []
        for line in invoice.lines:
            bundle = self._bundles.get_effective(company_id, line.product_id, invoice.invoice_date)
            if bundle is None or not bundle.components:
                lines.append(line)
                continue
            expanded = self._bundles.expand_bundle_line(line, bundle)
            logger.info("bundle_line_expanded", extra={
                "bundle_sku": bundle.bundle_sku,
                "line_id": str(line.id),
                "component_count": len(expanded),
            })
            lines.extend(expanded)
        return lines

    def _apply_discounts(
        self,
        company_id: UUID,
        actor_id: UUID,
        invoice: Invoice,
        lines: list[InvoiceLine],
    ) -> tuple[Decimal, int]:
        context = DiscountContext(
            total_amount=invoice.total_amount,
            customer_id=str(invoice.customer_id) if invoice.customer_id is not None else None,
        )
        rules = self._discounts.get_active_rules(company_id, invoice.invoice_date, context)
        total_discount = _ZERO
        for rule in rules:
            amount = self._discounts.calculate_amount(rule, lines, invoice.total_amount)
            if amount <= _ZERO:
                continue
            self._discounts.apply_rule(
                company_id,
                actor_id,
                invoice.id,
                rule.id,
                amount,
                {
                    "invoice_lines": to_json_safe(lines),
                    "total_amount": str(invoice.total_amount),
                    "discount_percentage": str(rule.params.pct),
                },
            )
            total_discount += amount
        return total_discount, len(rules)

    def _corridor_flags(
        self,
        company_id: UUID,
        currency: str,
        inputs: list[AllocationLineInput],
    ) -> list[str]:
        flags: list[str] = []
        for line in inputs:
            check = self._ssp.check_corridor_compliance(
                company_id, line.product_id, currency, line.ssp,
            )
            if not check.compliant:
                flags.append(format_corridor_flag(line.product_id, check.variance))
        return flags

    def _create_allocation_pobs(
        self,
        company_id: UUID,
        actor_id: UUID,
        invoice: Invoice,
        lines: list[InvoiceLine],
        computation: AllocationComputation,
    ) -> list[PerformanceObligation]:
        by_id = {line.id: line for line in lines}
        pobs: list[PerformanceObligation] = []
        for allocation in computation.lines:
            line = by_id[allocation.line_id]
            suffix = "Residual Allocation" if allocation.residual else "SSP Allocation"
            orm_pob = self._new_pob_model(
                company_id=company_id,
                actor_id=actor_id,
                product_id=line.product_id,
                name=f"{line.product_name} - {suffix}",
                method=parse_recognition_method(
                    line.method or self._config.default_recognition_method,
                ).value,
                start_date=invoice.invoice_date,
                end_date=line.end_date,
                qty=line.qty,
                uom=line.uom or self._config.default_uom,
                ssp=allocation.ssp,
                allocated_amount=allocation.allocated,
                currency=invoice.currency,
                contract_id=invoice.contract_id,
                subscription_id=invoice.subscription_id,
                invoice_line_id=line.id,
            )
            pobs.append(orm_pob.to_dto())
        return pobs

    def _write_failure_audit(
        self,
        company_id: UUID,
        actor_id: UUID,
        invoice_id: UUID,
        requested: AllocationStrategy | str,
        run_id: UUID,
        started: float,
        exc: Exception,
    ) -> None:
        strategy = requested.value if isinstance(requested, AllocationStrategy) else str(requested)
        with unit_of_work(self._session):
            self._session.add(AllocationAuditModel(
                company_id=company_id,
                invoice_id=invoice_id,
                run_id=run_id,
                method=_FAILED_RUN_METHOD,
                strategy=strategy,
                inputs={"error": str(exc)},
                results={},
                corridor_flag=False,
                total_invoice_amount=_ZERO,
                total_allocated_amount=_ZERO,
                rounding_adjustment=_ZERO,
                processing_time_ms=int((time.perf_counter() - started) * 1000),
                created_at=self._clock.now(),
                created_by_id=actor_id,
            ))
        logger.warning("allocation_failed", extra={
            "invoice_id": str(invoice_id),
            "strategy": strategy,
            "error": str(exc),
            "error_code": getattr(exc, "code", None),
        })

    # =========================================================================
    # Prospective reallocation
    # =========================================================================

    def prospective_reallocation(
        self,
        company_id: UUID,
        actor_id: UUID,
        ssp_change_id: UUID,
        dry_run: bool = True,
    ) -> ReallocationOutcome:
        """
        Reprice OPEN POBs of the change's affected products.

        Postconditions:
            - dry_run: nothing written; deltas reported.
            - otherwise: each changed POB has the new ssp and
              allocated_amount += delta, and one SSP schedule revision.
            - POBs whose SSP does not change are neither updated nor
              counted as revised.

        Raises:
            SspChangeNotApprovedError: change missing, another company's,
                or not APPROVED.
        """
        with LogContext.bind(company_id=company_id, actor_id=actor_id), \
                unit_of_work(self._session):
            change = self._session.scalars(
                select(SspChangeRequestModel).where(
                    SspChangeRequestModel.id == ssp_change_id,
                    SspChangeRequestModel.company_id == company_id,
                    SspChangeRequestModel.status == SspChangeStatus.APPROVED.value,
                )
            ).first()
            if change is None:
                raise SspChangeNotApprovedError(ssp_change_id)
            diff = SspChangeDiff.from_json(change.diff)

            open_pobs: list[PerformanceObligationModel] = []
            if diff.affected_products:
                open_pobs = list(self._session.scalars(
                    select(PerformanceObligationModel)
                    .where(
                        PerformanceObligationModel.company_id == company_id,
                        PerformanceObligationModel.status == PobStatus.OPEN.value,
                        PerformanceObligationModel.product_id.in_(diff.affected_products),
                    )
                    .order_by(PerformanceObligationModel.created_at)
                ).all())

            deltas = compute_reallocation(
                pobs=[
                    PobPricing(
                        pob_id=p.id,
                        product_id=p.product_id,
                        ssp=p.ssp,
                        qty=p.qty,
                        allocated_amount=p.allocated_amount,
                    )
                    for p in open_pobs
                ],
                new_ssp_values=diff.new_ssp_values,
            )

            by_id = {p.id: p for p in open_pobs}
            from_date = change.decided_at.date() if change.decided_at else self._clock.now().date()
            from_year, from_month = period_of(from_date)
            details: list[ReallocationDetail] = []
            revisions_created = 0
            for delta in deltas:
                revision_id = None
                if not dry_run:
                    orm_pob = by_id[delta.pob_id]
                    orm_pob.ssp = delta.new_ssp
                    orm_pob.allocated_amount = delta.allocated_after
                    orm_pob.updated_by_id = actor_id
                    revision = self._schedules.record_revision(
                        company_id,
                        actor_id,
                        delta.pob_id,
                        from_year,
                        from_month,
                        planned_before=delta.allocated_before,
                        planned_after=delta.allocated_after,
                        cause=RevisionCause.SSP,
                        ssp_change_id=ssp_change_id,
                    )
                    revision_id = revision.id
                    revisions_created += 1
                details.append(ReallocationDetail(
                    pob_id=delta.pob_id,
                    product_id=delta.product_id,
                    old_ssp=delta.old_ssp,
                    new_ssp=delta.new_ssp,
                    reallocation_delta=delta.reallocation_delta,
                    schedule_revision_id=revision_id,
                ))
            self._session.flush()

        total_delta = sum((d.reallocation_delta for d in details), _ZERO)
        logger.info("prospective_reallocation_completed", extra={
            "ssp_change_id": str(ssp_change_id),
            "dry_run": dry_run,
            "open_pobs_affected": len(open_pobs),
            "pobs_repriced": len(details),
            "total_reallocation_delta": str(total_delta),
        })
        return ReallocationOutcome(
            ssp_change_id=ssp_change_id,
            open_pobs_affected=len(open_pobs),
            total_reallocation_delta=total_delta,
            schedule_revisions_created=revisions_created,
            dry_run=dry_run,
            details=tuple(details),
        )

    # =========================================================================
    # POB administration
    # =========================================================================

    def create_pob(
        self,
        company_id: UUID,
        actor_id: UUID,
        product_id: str,
        name: str,
        method: RecognitionMethod | str,
        start_date: date,
        allocated_amount: Decimal,
        currency: str | None = None,
        qty: Decimal = Decimal("1"),
        uom: str | None = None,
        end_date: date | None = None,
        ssp: Decimal | None = None,
        contract_id: UUID | None = None,
        subscription_id: UUID | None = None,
        invoice_line_id: UUID | None = None,
    ) -> PerformanceObligation:
        """Create an OPEN POB outside an invoice allocation run."""
        with unit_of_work(self._session):
            orm_pob = self._new_pob_model(
                company_id=company_id,
                actor_id=actor_id,
                product_id=product_id,
                name=name,
                method=parse_recognition_method(method).value,
                start_date=start_date,
                end_date=end_date,
                qty=to_decimal(qty, "qty"),
                uom=uom or self._config.default_uom,
                ssp=to_decimal(ssp, "ssp") if ssp is not None else None,
                allocated_amount=to_decimal(allocated_amount, "allocated_amount"),
                currency=validate_currency(currency or self._config.default_currency),
                contract_id=contract_id,
                subscription_id=subscription_id,
                invoice_line_id=invoice_line_id,
            )
            pob = orm_pob.to_dto()
        return pob

    def get_pob(self, company_id: UUID, pob_id: UUID) -> PerformanceObligation:
        return self._pob_model(company_id, pob_id).to_dto()

    def close_pob(self, company_id: UUID, actor_id: UUID, pob_id: UUID) -> PerformanceObligation:
        """
        Close a POB; it can no longer be repriced.

        Raises:
            PobNotFoundError: unknown POB.
            PobClosedError: already CLOSED.
        """
        with unit_of_work(self._session):
            orm_pob = self._pob_model(company_id, pob_id)
            if orm_pob.status == PobStatus.CLOSED.value:
                raise PobClosedError(pob_id)
            orm_pob.status = PobStatus.CLOSED.value
            orm_pob.updated_by_id = actor_id
            self._session.flush()
            pob = orm_pob.to_dto()

        logger.info("pob_closed", extra={"pob_id": str(pob_id)})
        return pob

    def query_pobs(
        self,
        company_id: UUID,
        *,
        contract_id: UUID | None = None,
        product_id: str | None = None,
        status: PobStatus | str | None = None,
        invoice_line_id: UUID | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[PerformanceObligation]:
        stmt = select(PerformanceObligationModel).where(
            PerformanceObligationModel.company_id == company_id,
        )
        if contract_id is not None:
            stmt = stmt.where(PerformanceObligationModel.contract_id == contract_id)
        if product_id is not None:
            stmt = stmt.where(PerformanceObligationModel.product_id == product_id)
        if status is not None:
            stmt = stmt.where(PerformanceObligationModel.status == PobStatus(status).value)
        if invoice_line_id is not None:
            stmt = stmt.where(PerformanceObligationModel.invoice_line_id == invoice_line_id)
        stmt = (
            stmt.order_by(PerformanceObligationModel.created_at, PerformanceObligationModel.name)
            .limit(self._config.clamp_limit(limit))
            .offset(offset)
        )
        return [row.to_dto() for row in self._session.scalars(stmt).all()]

    def query_audits(
        self,
        company_id: UUID,
        *,
        invoice_id: UUID | None = None,
        run_id: UUID | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[AllocationAudit]:
        stmt = select(AllocationAuditModel).where(
            AllocationAuditModel.company_id == company_id,
        )
        if invoice_id is not None:
            stmt = stmt.where(AllocationAuditModel.invoice_id == invoice_id)
        if run_id is not None:
            stmt = stmt.where(AllocationAuditModel.run_id == run_id)
        stmt = (
            stmt.order_by(AllocationAuditModel.created_at.desc())
            .limit(self._config.clamp_limit(limit))
            .offset(offset)
        )
        return [row.to_dto() for row in self._session.scalars(stmt).all()]

    def contract_transaction_price(self, company_id: UUID, contract_id: UUID) -> Decimal:
        """Sum of allocated amounts over every POB of a contract."""
        amounts = self._session.scalars(
            select(PerformanceObligationModel.allocated_amount).where(
                PerformanceObligationModel.company_id == company_id,
                PerformanceObligationModel.contract_id == contract_id,
            )
        ).all()
        return sum(amounts, _ZERO)

    # =========================================================================
    # Internals
    # =========================================================================

    def _new_pob_model(self, *, company_id: UUID, actor_id: UUID, **fields: Any) -> PerformanceObligationModel:
        orm_pob = PerformanceObligationModel(
            company_id=company_id,
            status=PobStatus.OPEN.value,
            created_at=self._clock.now(),
            created_by_id=actor_id,
            **fields,
        )
        self._session.add(orm_pob)
        self._session.flush()
        logger.info("pob_created", extra={
            "pob_id": str(orm_pob.id),
            "product_id": orm_pob.product_id,
            "allocated_amount": str(orm_pob.allocated_amount),
        })
        return orm_pob

    def _pob_model(self, company_id: UUID, pob_id: UUID) -> PerformanceObligationModel:
        orm_pob = self._session.scalars(
            select(PerformanceObligationModel).where(
                PerformanceObligationModel.id == pob_id,
                PerformanceObligationModel.company_id == company_id,
            )
        ).first()
        if orm_pob is None:
            raise PobNotFoundError(pob_id)
        return orm_pob
