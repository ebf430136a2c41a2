"""
Module: revenue_modules.bundles.service
Responsibility:
    Bundle catalog administration and the expansion of a bundle invoice
    line into one line per component product before allocation.

Architecture:
    revenue_modules layer -- holds a Session; each public mutating method
    is one unit_of_work.  Weight checks and the amount split are
    delegated to revenue_engines.bundles.

Invariants:
    - A new bundle end-dates the open ACTIVE bundle with the same SKU.
    - Weights are not validated on write.
    - Expansion conserves the line amount.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid5

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from revenue_config.schema import RevenueEngineConfig
from revenue_engines.bundles import split_bundle_amount
from revenue_engines.bundles import validate_weights as weights_balance
from revenue_kernel.db.engine import unit_of_work
from revenue_kernel.db.types import to_decimal
from revenue_kernel.domain.clock import Clock, SystemClock
from revenue_kernel.exceptions import BundleNotFoundError
from revenue_kernel.logging_config import LogContext, get_logger
from revenue_modules.bundles.models import Bundle, BundleComponent, BundleStatus
from revenue_modules.bundles.orm import BundleComponentModel, BundleModel
from revenue_modules.collaborators import InvoiceLine

logger = get_logger("modules.bundles.service")


def _as_component(raw: BundleComponent | Mapping[str, Any]) -> BundleComponent:
    if isinstance(raw, BundleComponent):
        return raw
    min_qty = raw.get("min_qty")
    max_qty = raw.get("max_qty")
    return BundleComponent(
        product_id=str(raw["product_id"]),
        weight_pct=to_decimal(raw["weight_pct"], "weight_pct"),
        required=bool(raw.get("required", True)),
        min_qty=to_decimal(min_qty, "min_qty") if min_qty is not None else Decimal("1"),
        max_qty=to_decimal(max_qty, "max_qty") if max_qty is not None else None,
    )


class BundleService:
    """
    Bundle catalog.

    Transaction boundary: each public mutating method commits on success
    and rolls back on failure.
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

    def upsert_bundle(
        self,
        company_id: UUID,
        actor_id: UUID,
        bundle_sku: str,
        name: str,
        components: Sequence[BundleComponent | Mapping[str, Any]],
        effective_from: date,
        effective_to: date | None = None,
    ) -> Bundle:
        """
        Insert an ACTIVE bundle and its components.

        Postconditions:
            - The previously open ACTIVE bundle with this SKU, if any, has
              effective_to = ``effective_from``.
            - Header and components are committed together or not at all.
        """
        parsed = [_as_component(c) for c in components]

        with LogContext.bind(company_id=company_id, actor_id=actor_id), \
                unit_of_work(self._session):
            superseded = self._session.scalars(
                select(BundleModel).where(
                    BundleModel.company_id == company_id,
                    BundleModel.bundle_sku == bundle_sku,
                    BundleModel.status == BundleStatus.ACTIVE.value,
                    BundleModel.effective_to.is_(None),
                )
            ).all()
            for prior in superseded:
                prior.effective_to = effective_from
                prior.updated_by_id = actor_id

            now = self._clock.now()
            orm_bundle = BundleModel(
                company_id=company_id,
                bundle_sku=bundle_sku,
                name=name,
                effective_from=effective_from,
                effective_to=effective_to,
                status=BundleStatus.ACTIVE.value,
                created_at=now,
                created_by_id=actor_id,
            )
            orm_bundle.components = [
                BundleComponentModel(
                    position=i,
                    product_id=c.product_id,
                    weight_pct=c.weight_pct,
                    required=c.required,
                    min_qty=c.min_qty,
                    max_qty=c.max_qty,
                    created_at=now,
                    created_by_id=actor_id,
                )
                for i, c in enumerate(parsed)
            ]
            self._session.add(orm_bundle)
            self._session.flush()
            bundle = orm_bundle.to_dto()

        if not self.validate_weights(bundle.components):
            logger.warning("bundle_weights_unbalanced", extra={
                "bundle_sku": bundle_sku,
                "total_weight": str(sum((c.weight_pct for c in bundle.components), Decimal("0"))),
            })
        logger.info("bundle_upserted", extra={
            "bundle_id": str(bundle.id),
            "bundle_sku": bundle_sku,
            "component_count": len(bundle.components),
        })
        return bundle

    def get_bundle(self, company_id: UUID, bundle_id: UUID) -> Bundle | None:
        orm_bundle = self._bundle_model(company_id, bundle_id)
        return orm_bundle.to_dto() if orm_bundle is not None else None

    def get_effective(self, company_id: UUID, bundle_sku: str, as_of: date) -> Bundle | None:
        """ACTIVE bundle for ``bundle_sku`` whose window contains ``as_of``."""
        orm_bundle = self._session.scalars(
            select(BundleModel)
            .where(
                BundleModel.company_id == company_id,
                BundleModel.bundle_sku == bundle_sku,
                BundleModel.status == BundleStatus.ACTIVE.value,
                BundleModel.effective_from <= as_of,
                or_(BundleModel.effective_to.is_(None), BundleModel.effective_to > as_of),
            )
            .order_by(BundleModel.effective_from.desc(), BundleModel.created_at.desc())
            .limit(1)
        ).first()
        return orm_bundle.to_dto() if orm_bundle is not None else None

    def query_bundles(
        self,
        company_id: UUID,
        *,
        bundle_sku: str | None = None,
        status: BundleStatus | str | None = None,
        effective_from: date | None = None,
        effective_to: date | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Bundle]:
        stmt = select(BundleModel).where(BundleModel.company_id == company_id)
        if bundle_sku is not None:
            stmt = stmt.where(BundleModel.bundle_sku == bundle_sku)
        if status is not None:
            stmt = stmt.where(BundleModel.status == BundleStatus(status).value)
        if effective_from is not None:
            stmt = stmt.where(BundleModel.effective_from >= effective_from)
        if effective_to is not None:
            stmt = stmt.where(BundleModel.effective_from <= effective_to)
        stmt = (
            stmt.order_by(BundleModel.effective_from.desc(), BundleModel.created_at.desc())
            .limit(self._config.clamp_limit(limit))
            .offset(offset)
        )
        return [row.to_dto() for row in self._session.scalars(stmt).all()]

    def set_status(
        self,
        company_id: UUID,
        actor_id: UUID,
        bundle_id: UUID,
        status: BundleStatus | str,
    ) -> Bundle:
        status = BundleStatus(status)
        with unit_of_work(self._session):
            orm_bundle = self._bundle_model(company_id, bundle_id)
            if orm_bundle is None:
                raise BundleNotFoundError(bundle_id)
            orm_bundle.status = status.value
            orm_bundle.updated_by_id = actor_id
            self._session.flush()
            bundle = orm_bundle.to_dto()

        logger.info("bundle_status_changed", extra={
            "bundle_id": str(bundle_id),
            "status": status.value,
        })
        return bundle

    def get_bundles_by_product(self, company_id: UUID, product_id: str) -> list[Bundle]:
        """ACTIVE bundles that contain ``product_id`` as a component."""
        rows = self._session.scalars(
            select(BundleModel)
            .join(BundleComponentModel, BundleComponentModel.bundle_id == BundleModel.id)
            .where(
                BundleModel.company_id == company_id,
                BundleModel.status == BundleStatus.ACTIVE.value,
                BundleComponentModel.product_id == product_id,
            )
            .order_by(BundleModel.effective_from.desc())
        ).unique().all()
        return [row.to_dto() for row in rows]

    def validate_weights(self, components: Sequence[BundleComponent]) -> bool:
        return weights_balance(components, self._config.weight_tolerance)

    def expand_bundle_line(self, line: InvoiceLine, bundle: Bundle) -> tuple[InvoiceLine, ...]:
        """
        One invoice line per bundle component, splitting the line amount by
        weight.  Component line ids are derived from the bundle line id so
        re-expanding the same line yields the same ids.
        """
        shares = split_bundle_amount(line.amount, line.qty, bundle.components)
        return tuple(
            InvoiceLine(
                id=uuid5(line.id, share.product_id),
                product_id=share.product_id,
                product_name=share.product_id,
                amount=share.amount,
                qty=share.qty,
                uom=line.uom,
                end_date=line.end_date,
                method=line.method,
            )
            for share in shares
        )

    def _bundle_model(self, company_id: UUID, bundle_id: UUID) -> BundleModel | None:
        return self._session.scalars(
            select(BundleModel).where(
                BundleModel.id == bundle_id,
                BundleModel.company_id == company_id,
            )
        ).first()
