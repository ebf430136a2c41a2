"""
Module: revenue_modules.variable_consideration.service
Responsibility:
    Company VC policy administration and the upsert of constrained
    variable consideration estimates.

Architecture:
    revenue_modules layer -- holds a Session; each public mutating method
    is one unit_of_work.  The constraint itself is
    revenue_engines.constraint.constrain_estimate.

Invariants:
    - Without a policy the configured default threshold (0.5) applies.
    - A repeated upsert for the same (contract, pob, year, month)
      overwrites the earlier estimate.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from revenue_config.schema import RevenueEngineConfig
from revenue_engines.constraint import constrain_estimate, estimate_amount, parse_vc_method
from revenue_kernel.db.engine import unit_of_work
from revenue_kernel.db.types import to_decimal
from revenue_kernel.domain.clock import Clock, SystemClock
from revenue_kernel.exceptions import ValidationError
from revenue_kernel.logging_config import LogContext, get_logger
from revenue_modules.variable_consideration.models import (
    Scenario,
    VcEstimate,
    VcEstimateStatus,
    VcMethod,
    VcPolicy,
)
from revenue_modules.variable_consideration.orm import VcEstimateModel, VcPolicyModel

logger = get_logger("modules.variable_consideration.service")


class VariableConsiderationService:
    """Variable consideration policy and estimates."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: RevenueEngineConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or RevenueEngineConfig.with_defaults()

    def upsert_policy(
        self,
        company_id: UUID,
        actor_id: UUID,
        default_method: VcMethod | str,
        threshold_probability: Decimal = Decimal("0.5"),
        lookback_months: int = 12,
    ) -> VcPolicy:
        """
        Create or replace the company's VC policy.

        Raises:
            ValidationError: threshold outside [0, 1] or lookback < 1.
        """
        default_method = parse_vc_method(default_method)
        threshold = to_decimal(threshold_probability, "threshold_probability")
        if not (Decimal("0") <= threshold <= Decimal("1")):
            raise ValidationError(
                "threshold_probability", "threshold must lie between 0 and 1",
            )
        if lookback_months < 1:
            raise ValidationError("lookback_months", "lookback must be at least one month")

        with LogContext.bind(company_id=company_id, actor_id=actor_id), \
                unit_of_work(self._session):
            orm_policy = self._policy_model(company_id)
            if orm_policy is None:
                orm_policy = VcPolicyModel(
                    company_id=company_id,
                    created_at=self._clock.now(),
                    created_by_id=actor_id,
                )
                self._session.add(orm_policy)
            else:
                orm_policy.updated_by_id = actor_id
            orm_policy.default_method = default_method.value
            orm_policy.constraint_probability_threshold = threshold
            orm_policy.volatility_lookback_months = lookback_months
            self._session.flush()
            policy = orm_policy.to_dto()

        logger.info("vc_policy_upserted", extra={
            "default_method": default_method.value,
            "threshold": str(threshold),
            "lookback_months": lookback_months,
        })
        return policy

    def get_policy(self, company_id: UUID) -> VcPolicy | None:
        orm_policy = self._policy_model(company_id)
        return orm_policy.to_dto() if orm_policy is not None else None

    def upsert_estimate(
        self,
        company_id: UUID,
        actor_id: UUID,
        contract_id: UUID,
        pob_id: UUID,
        year: int,
        month: int,
        method: VcMethod | str,
        estimate: Decimal,
        confidence: Decimal,
        resolve: bool = False,
    ) -> VcEstimate:
        """
        Constrain and store an estimate for one POB period.

        Postconditions:
            - constrained_amount == estimate if confidence >= threshold,
              else 0, where threshold is the company policy's or the
              configured default.
            - status is RESOLVED iff ``resolve``.
            - An existing row for the same period is overwritten.
        """
        method = parse_vc_method(method)
        estimate = to_decimal(estimate, "estimate")
        confidence = to_decimal(confidence, "confidence")

        with LogContext.bind(company_id=company_id, actor_id=actor_id), \
                unit_of_work(self._session):
            policy = self._policy_model(company_id)
            threshold = (
                policy.constraint_probability_threshold
                if policy is not None
                else self._config.default_constraint_threshold
            )
            constrained = constrain_estimate(
                estimate=estimate, confidence=confidence, threshold=threshold,
            )
            status = VcEstimateStatus.RESOLVED if resolve else VcEstimateStatus.OPEN

            orm_estimate = self._session.scalars(
                select(VcEstimateModel).where(
                    VcEstimateModel.company_id == company_id,
                    VcEstimateModel.contract_id == contract_id,
                    VcEstimateModel.pob_id == pob_id,
                    VcEstimateModel.year == year,
                    VcEstimateModel.month == month,
                )
            ).first()
            if orm_estimate is None:
                orm_estimate = VcEstimateModel(
                    company_id=company_id,
                    contract_id=contract_id,
                    pob_id=pob_id,
                    year=year,
                    month=month,
                    created_at=self._clock.now(),
                    created_by_id=actor_id,
                )
                self._session.add(orm_estimate)
            else:
                orm_estimate.updated_by_id = actor_id
            orm_estimate.method = method.value
            orm_estimate.raw_estimate = estimate
            orm_estimate.constrained_amount = constrained
            orm_estimate.confidence = confidence
            orm_estimate.status = status.value
            self._session.flush()
            stored = orm_estimate.to_dto()

        logger.info("vc_estimate_constrained", extra={
            "contract_id": str(contract_id),
            "pob_id": str(pob_id),
            "period": f"{year}-{month:02d}",
            "raw_estimate": str(estimate),
            "constrained_amount": str(constrained),
            "confidence": str(confidence),
            "threshold": str(threshold),
            "status": status.value,
        })
        return stored

    def estimate_from_scenarios(
        self,
        method: VcMethod | str,
        scenarios: Sequence[Scenario],
    ) -> Decimal:
        """Raw estimate from probability-weighted outcomes."""
        return estimate_amount(parse_vc_method(method), scenarios)

    def query_estimates(
        self,
        company_id: UUID,
        *,
        contract_id: UUID | None = None,
        pob_id: UUID | None = None,
        year: int | None = None,
        month: int | None = None,
        status: VcEstimateStatus | str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[VcEstimate]:
        stmt = select(VcEstimateModel).where(VcEstimateModel.company_id == company_id)
        if contract_id is not None:
            stmt = stmt.where(VcEstimateModel.contract_id == contract_id)
        if pob_id is not None:
            stmt = stmt.where(VcEstimateModel.pob_id == pob_id)
        if year is not None:
            stmt = stmt.where(VcEstimateModel.year == year)
        if month is not None:
            stmt = stmt.where(VcEstimateModel.month == month)
        if status is not None:
            stmt = stmt.where(VcEstimateModel.status == VcEstimateStatus(status).value)
        stmt = (
            stmt.order_by(
                VcEstimateModel.year.desc(),
                VcEstimateModel.month.desc(),
                VcEstimateModel.created_at.desc(),
            )
            .limit(self._config.clamp_limit(limit))
            .offset(offset)
        )
        return [row.to_dto() for row in self._session.scalars(stmt).all()]

    def _policy_model(self, company_id: UUID) -> VcPolicyModel | None:
        return self._session.scalars(
            select(VcPolicyModel).where(VcPolicyModel.company_id == company_id)
        ).first()
