"""
Module: revenue_modules.discounts.service
Responsibility:
    Discount rule administration and evaluation: effective-dated rule
    upserts keyed by code, active-rule selection with kind eligibility,
    amount calculation and the append-only application record.

Architecture:
    revenue_modules layer -- holds a Session; each public mutating method
    is one unit_of_work.  Eligibility and amount math are delegated to
    revenue_engines.discounts.

Invariants:
    - A new rule end-dates the open active rule with the same code.
    - Active-rule order: priority desc, then created_at asc.
    - max_usage_count / max_usage_amount are stored but never enforced.

Failure modes:
    - UnknownDiscountKindError on an unknown kind.
    - ValidationError on params missing a key their kind needs.
    - DiscountRuleNotFoundError from set_rule_active on an unknown id.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from revenue_config.schema import RevenueEngineConfig
from revenue_engines import discounts as discount_engine
from revenue_engines.discounts import PricedLine
from revenue_kernel.db.engine import unit_of_work
from revenue_kernel.db.types import to_decimal
from revenue_kernel.domain.clock import Clock, SystemClock
from revenue_kernel.exceptions import DiscountRuleNotFoundError
from revenue_kernel.logging_config import LogContext, get_logger
from revenue_kernel.utils.serialization import to_json_safe
from revenue_modules.discounts.models import (
    DiscountApplied,
    DiscountContext,
    DiscountKind,
    DiscountRule,
)
from revenue_modules.discounts.orm import DiscountAppliedModel, DiscountRuleModel

logger = get_logger("modules.discounts.service")


class DiscountRuleService:
    """
    Discount rule catalog and evaluator.

    Transaction boundary: each public mutating method commits on success
    and rolls back on failure (joins the caller's unit of work when one is
    already open on the session).
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

    def upsert_rule(
        self,
        company_id: UUID,
        actor_id: UUID,
        kind: DiscountKind | str,
        code: str,
        params: Mapping[str, Any],
        effective_from: date,
        effective_to: date | None = None,
        name: str | None = None,
        active: bool = True,
        priority: int = 0,
        max_usage_count: int | None = None,
        max_usage_amount: Decimal | None = None,
    ) -> DiscountRule:
        """
        Insert a rule, end-dating the open active rule with the same code.

        Raises:
            UnknownDiscountKindError: unknown ``kind``.
            ValidationError: ``params`` lacks a key its kind needs.
        """
        kind = discount_engine.parse_kind(kind)
        typed = discount_engine.parse_params(kind, params)
        if max_usage_amount is not None:
            max_usage_amount = to_decimal(max_usage_amount, "max_usage_amount")

        with LogContext.bind(company_id=company_id, actor_id=actor_id), \
                unit_of_work(self._session):
            superseded = self._session.scalars(
                select(DiscountRuleModel).where(
                    DiscountRuleModel.company_id == company_id,
                    DiscountRuleModel.code == code,
                    DiscountRuleModel.active.is_(True),
                    DiscountRuleModel.effective_to.is_(None),
                )
            ).all()
            for prior in superseded:
                prior.effective_to = effective_from
                prior.updated_by_id = actor_id

            orm_rule = DiscountRuleModel(
                company_id=company_id,
                kind=kind.value,
                code=code,
                name=name,
                params=discount_engine.params_to_json(typed),
                active=active,
                effective_from=effective_from,
                effective_to=effective_to,
                priority=priority,
                max_usage_count=max_usage_count,
                max_usage_amount=max_usage_amount,
                created_at=self._clock.now(),
                created_by_id=actor_id,
            )
            self._session.add(orm_rule)
            self._session.flush()
            rule = orm_rule.to_dto()

        logger.info("discount_rule_upserted", extra={
            "rule_id": str(rule.id),
            "code": code,
            "kind": kind.value,
            "superseded_count": len(superseded),
        })
        return rule

    def get_rule(self, company_id: UUID, rule_id: UUID) -> DiscountRule | None:
        orm_rule = self._rule_model(company_id, rule_id)
        return orm_rule.to_dto() if orm_rule is not None else None

    def set_rule_active(
        self,
        company_id: UUID,
        actor_id: UUID,
        rule_id: UUID,
        active: bool,
    ) -> DiscountRule:
        with unit_of_work(self._session):
            orm_rule = self._rule_model(company_id, rule_id)
            if orm_rule is None:
                raise DiscountRuleNotFoundError(rule_id)
            orm_rule.active = active
            orm_rule.updated_by_id = actor_id
            self._session.flush()
            rule = orm_rule.to_dto()

        logger.info("discount_rule_status_changed", extra={
            "rule_id": str(rule_id),
            "active": active,
        })
        return rule

    def query_rules(
        self,
        company_id: UUID,
        *,
        kind: DiscountKind | str | None = None,
        code: str | None = None,
        active: bool | None = None,
        effective_from: date | None = None,
        effective_to: date | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[DiscountRule]:
        stmt = select(DiscountRuleModel).where(DiscountRuleModel.company_id == company_id)
        if kind is not None:
            stmt = stmt.where(DiscountRuleModel.kind == discount_engine.parse_kind(kind).value)
        if code is not None:
            stmt = stmt.where(DiscountRuleModel.code == code)
        if active is not None:
            stmt = stmt.where(DiscountRuleModel.active.is_(active))
        if effective_from is not None:
            stmt = stmt.where(DiscountRuleModel.effective_from >= effective_from)
        if effective_to is not None:
            stmt = stmt.where(DiscountRuleModel.effective_from <= effective_to)
        stmt = (
            stmt.order_by(
                DiscountRuleModel.priority.desc(),
                DiscountRuleModel.effective_from.desc(),
                DiscountRuleModel.created_at.desc(),
            )
            .limit(self._config.clamp_limit(limit))
            .offset(offset)
        )
        return [row.to_dto() for row in self._session.scalars(stmt).all()]

    def get_active_rules(
        self,
        company_id: UUID,
        as_of: date,
        context: DiscountContext | None = None,
    ) -> list[DiscountRule]:
        """
        Active rules whose window contains ``as_of`` and that are eligible
        for the invoice described by ``context``.

        Without a context only the window filter applies.
        """
        rows = self._session.scalars(
            select(DiscountRuleModel)
            .where(
                DiscountRuleModel.company_id == company_id,
                DiscountRuleModel.active.is_(True),
                DiscountRuleModel.effective_from <= as_of,
                or_(
                    DiscountRuleModel.effective_to.is_(None),
                    DiscountRuleModel.effective_to > as_of,
                ),
            )
            .order_by(DiscountRuleModel.priority.desc(), DiscountRuleModel.created_at.asc())
        ).all()
        rules = [row.to_dto() for row in rows]
        if context is None:
            return rules
        return [
            rule for rule in rules
            if discount_engine.is_eligible(rule.params, as_of, context)
        ]

    def calculate_amount(
        self,
        rule: DiscountRule,
        lines: Sequence[PricedLine],
        total_amount: Decimal,
    ) -> Decimal:
        return discount_engine.calculate_amount(rule.params, lines, total_amount)

    def apply_rule(
        self,
        company_id: UUID,
        actor_id: UUID,
        invoice_id: UUID,
        rule_id: UUID,
        computed_amount: Decimal,
        detail: Mapping[str, Any] | None = None,
    ) -> DiscountApplied:
        """Record that ``rule_id`` took ``computed_amount`` off an invoice."""
        computed_amount = to_decimal(computed_amount, "computed_amount")
        with unit_of_work(self._session):
            orm_applied = DiscountAppliedModel(
                company_id=company_id,
                invoice_id=invoice_id,
                rule_id=rule_id,
                computed_amount=computed_amount,
                detail=to_json_safe(dict(detail or {})),
                applied_at=self._clock.now(),
                created_at=self._clock.now(),
                created_by_id=actor_id,
            )
            self._session.add(orm_applied)
            self._session.flush()
            applied = orm_applied.to_dto()

        logger.info("discount_applied", extra={
            "invoice_id": str(invoice_id),
            "rule_id": str(rule_id),
            "computed_amount": str(computed_amount),
        })
        return applied

    def get_applications(self, company_id: UUID, invoice_id: UUID) -> list[DiscountApplied]:
        rows = self._session.scalars(
            select(DiscountAppliedModel)
            .where(
                DiscountAppliedModel.company_id == company_id,
                DiscountAppliedModel.invoice_id == invoice_id,
            )
            .order_by(DiscountAppliedModel.applied_at.asc())
        ).all()
        return [row.to_dto() for row in rows]

    def validate_params(self, kind: DiscountKind | str, params: Mapping[str, Any]) -> bool:
        return discount_engine.validate_params(kind, params)

    def _rule_model(self, company_id: UUID, rule_id: UUID) -> DiscountRuleModel | None:
        return self._session.scalars(
            select(DiscountRuleModel).where(
                DiscountRuleModel.id == rule_id,
                DiscountRuleModel.company_id == company_id,
            )
        ).first()
