"""
Module: revenue_modules.disclosures.service
Responsibility:
    Read and append the disclosure tables: modification register, VC
    rollforward, RPO snapshot.

Architecture:
    revenue_modules layer -- holds a Session.  record_modification is
    called by ChangeOrderService inside its own unit of work, so the
    register row commits or rolls back with the change order it
    describes.

Invariants:
    - Register order: effective_date asc, then created_at asc.
    - Rollforward order: contract_id, then pob_id.
    - The RPO snapshot is not computed yet and is always empty.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from revenue_config.schema import RevenueEngineConfig
from revenue_kernel.db.engine import unit_of_work
from revenue_kernel.db.types import to_decimal
from revenue_kernel.domain.clock import Clock, SystemClock
from revenue_kernel.logging_config import get_logger
from revenue_modules.disclosures.models import (
    DisclosureBundle,
    ModificationRegisterEntry,
    RpoSnapshotEntry,
    VcRollforwardEntry,
)
from revenue_modules.disclosures.orm import ModificationRegisterModel, VcRollforwardModel

logger = get_logger("modules.disclosures.service")

_ZERO = Decimal("0")


class DisclosureService:
    """Disclosure read model and its two writers."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: RevenueEngineConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or RevenueEngineConfig.with_defaults()

    def record_modification(
        self,
        company_id: UUID,
        actor_id: UUID,
        contract_id: UUID,
        change_order_id: UUID,
        effective_date: date,
        type: str,
        txn_price_before: Decimal,
        txn_price_delta: Decimal,
        reason: str | None = None,
    ) -> ModificationRegisterEntry:
        """Append a register row; after = before + delta."""
        txn_price_before = to_decimal(txn_price_before, "txn_price_before")
        txn_price_delta = to_decimal(txn_price_delta, "txn_price_delta")

        with unit_of_work(self._session):
            orm_entry = ModificationRegisterModel(
                company_id=company_id,
                contract_id=contract_id,
                change_order_id=change_order_id,
                effective_date=effective_date,
                type=type,
                reason=reason,
                txn_price_before=txn_price_before,
                txn_price_after=txn_price_before + txn_price_delta,
                txn_price_delta=txn_price_delta,
                created_at=self._clock.now(),
                created_by_id=actor_id,
            )
            self._session.add(orm_entry)
            self._session.flush()
            entry = orm_entry.to_dto()

        logger.info("modification_registered", extra={
            "change_order_id": str(change_order_id),
            "contract_id": str(contract_id),
            "type": type,
            "txn_price_delta": str(txn_price_delta),
        })
        return entry

    def record_vc_rollforward(
        self,
        company_id: UUID,
        actor_id: UUID,
        contract_id: UUID,
        pob_id: UUID,
        year: int,
        month: int,
        closing_balance: Decimal,
        opening_balance: Decimal = _ZERO,
        additions: Decimal = _ZERO,
        changes: Decimal = _ZERO,
        releases: Decimal = _ZERO,
        recognized: Decimal = _ZERO,
    ) -> VcRollforwardEntry:
        """
        Append a rollforward row for one POB period.

        Every balance is stored as reported by the caller; the closing
        balance is never derived from the movements.
        """
        closing_balance = to_decimal(closing_balance, "closing_balance")
        opening_balance = to_decimal(opening_balance, "opening_balance")
        additions = to_decimal(additions, "additions")
        changes = to_decimal(changes, "changes")
        releases = to_decimal(releases, "releases")
        recognized = to_decimal(recognized, "recognized")

        with unit_of_work(self._session):
            orm_entry = VcRollforwardModel(
                company_id=company_id,
                contract_id=contract_id,
                pob_id=pob_id,
                year=year,
                month=month,
                opening_balance=opening_balance,
                additions=additions,
                changes=changes,
                releases=releases,
                recognized=recognized,
                closing_balance=closing_balance,
                created_at=self._clock.now(),
                created_by_id=actor_id,
            )
            self._session.add(orm_entry)
            self._session.flush()
            entry = orm_entry.to_dto()

        logger.info("vc_rollforward_recorded", extra={
            "pob_id": str(pob_id),
            "period": f"{year}-{month:02d}",
            "closing_balance": str(closing_balance),
        })
        return entry

    def get_modification_register(self, company_id: UUID) -> list[ModificationRegisterEntry]:
        rows = self._session.scalars(
            select(ModificationRegisterModel)
            .where(ModificationRegisterModel.company_id == company_id)
            .order_by(
                ModificationRegisterModel.effective_date.asc(),
                ModificationRegisterModel.created_at.asc(),
            )
        ).all()
        return [row.to_dto() for row in rows]

    def get_vc_rollforward(
        self,
        company_id: UUID,
        year: int,
        month: int,
    ) -> list[VcRollforwardEntry]:
        rows = self._session.scalars(
            select(VcRollforwardModel)
            .where(
                VcRollforwardModel.company_id == company_id,
                VcRollforwardModel.year == year,
                VcRollforwardModel.month == month,
            )
            .order_by(VcRollforwardModel.contract_id, VcRollforwardModel.pob_id)
        ).all()
        return [row.to_dto() for row in rows]

    def get_rpo_snapshot(self, company_id: UUID) -> list[RpoSnapshotEntry]:
        # TODO: derive from open POB schedules once recognized totals are posted per period
        return []

    def get_disclosures(self, company_id: UUID, year: int, month: int) -> DisclosureBundle:
        """Register, rollforward for the period and RPO snapshot together."""
        return DisclosureBundle(
            company_id=company_id,
            year=year,
            month=month,
            modification_register=tuple(self.get_modification_register(company_id)),
            vc_rollforward=tuple(self.get_vc_rollforward(company_id, year, month)),
            rpo_snapshot=tuple(self.get_rpo_snapshot(company_id)),
        )
