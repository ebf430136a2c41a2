"""
Module: revenue_modules.ssp.service
Responsibility:
    SSP catalog and policy administration: effective-dated SSP upserts with
    end-dating of the superseded entry, the approval decision step, SSP
    evidence, the company policy, corridor compliance and SSP change
    requests.

Architecture:
    revenue_modules layer -- holds a Session and owns the transaction
    boundary of each public mutating method (unit_of_work).  Corridor math
    is delegated to revenue_engines.corridor.

    Dependency direction (strict):
        service.py  -->  revenue_engines.corridor
        service.py  -->  revenue_kernel (db, exceptions, logging, clock)
        service.py  -X-> revenue_modules.allocation (FORBIDDEN; allocation
                         depends on this module, not the reverse)

Invariants:
    - At most one APPROVED entry with an open interval per (company,
      product, currency): upsert end-dates the open APPROVED entry at the
      new entry's effective_from, and approving an entry end-dates any
      other open APPROVED entry for the same key.
    - New entries are always DRAFT; upsert never auto-approves.
    - Approving a change request does not touch the catalog.
    - Every query filters on company_id.

Failure modes:
    - ValidationError on an invalid currency or a negative SSP.
    - SspEntryNotFoundError / SspChangeNotFoundError on unknown ids.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from revenue_config.schema import RevenueEngineConfig
from revenue_engines.corridor import CorridorCheck, check_corridor
from revenue_engines.rounding import RoundingRule
from revenue_kernel.db.engine import unit_of_work
from revenue_kernel.db.types import to_decimal, validate_currency
from revenue_kernel.domain.clock import Clock, SystemClock
from revenue_kernel.exceptions import (
    SspChangeNotFoundError,
    SspEntryNotFoundError,
    ValidationError,
)
from revenue_kernel.logging_config import LogContext, get_logger
from revenue_modules.ssp.models import (
    SspCatalogEntry,
    SspChangeDiff,
    SspChangeRequest,
    SspChangeStatus,
    SspEvidence,
    SspMethod,
    SspPolicy,
    SspStatus,
    parse_ssp_method,
)
from revenue_modules.ssp.orm import (
    SspCatalogEntryModel,
    SspChangeRequestModel,
    SspEvidenceModel,
    SspPolicyModel,
)

logger = get_logger("modules.ssp.service")


class SspCatalogService:
    """
    SSP catalog, policy and change-request administration.

    Contract:
        Callers supply a live SQLAlchemy Session and, optionally, a Clock
        and a RevenueEngineConfig.  Company and actor ids are trusted.

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

    # =========================================================================
    # Catalog
    # =========================================================================

    def upsert_entry(
        self,
        company_id: UUID,
        actor_id: UUID,
        product_id: str,
        currency: str,
        ssp: Decimal,
        method: SspMethod | str,
        effective_from: date,
        effective_to: date | None = None,
        corridor_min_pct: Decimal | None = None,
        corridor_max_pct: Decimal | None = None,
    ) -> SspCatalogEntry:
        """
        Add a DRAFT SSP entry, end-dating the open APPROVED one it supersedes.

        Postconditions:
            - The previously open APPROVED entry for (company, product,
              currency), if any, has effective_to = ``effective_from``.
            - The returned entry is DRAFT.

        Raises:
            ValidationError: invalid currency or negative SSP.
        """
        currency = validate_currency(currency)
        ssp = to_decimal(ssp, "ssp")
        if ssp < 0:
            raise ValidationError("ssp", "ssp cannot be negative")
        method = parse_ssp_method(method)

        with LogContext.bind(company_id=company_id, actor_id=actor_id), \
                unit_of_work(self._session):
            superseded = self._session.scalars(
                select(SspCatalogEntryModel).where(
                    SspCatalogEntryModel.company_id == company_id,
                    SspCatalogEntryModel.product_id == product_id,
                    SspCatalogEntryModel.currency == currency,
                    SspCatalogEntryModel.status == SspStatus.APPROVED.value,
                    SspCatalogEntryModel.effective_to.is_(None),
                )
            ).all()
            for prior in superseded:
                prior.effective_to = effective_from
                prior.updated_by_id = actor_id

            orm_entry = SspCatalogEntryModel(
                company_id=company_id,
                product_id=product_id,
                currency=currency,
                ssp=ssp,
                method=method.value,
                effective_from=effective_from,
                effective_to=effective_to,
                corridor_min_pct=corridor_min_pct,
                corridor_max_pct=corridor_max_pct,
                status=SspStatus.DRAFT.value,
                created_at=self._clock.now(),
                created_by_id=actor_id,
            )
            self._session.add(orm_entry)
            self._session.flush()
            entry = orm_entry.to_dto()

        logger.info("ssp_entry_upserted", extra={
            "entry_id": str(entry.id),
            "product_id": product_id,
            "currency": currency,
            "ssp": str(ssp),
            "superseded_count": len(superseded),
        })
        return entry

    def decide_entry(
        self,
        company_id: UUID,
        actor_id: UUID,
        entry_id: UUID,
        status: SspStatus | str,
    ) -> SspCatalogEntry:
        """
        Record the review/approval decision for a catalog entry.

        Approving an entry end-dates any other open APPROVED entry for the
        same (company, product, currency) at this entry's effective_from.

        Raises:
            SspEntryNotFoundError: unknown entry or another company's.
            ValidationError: status is DRAFT.
        """
        status = SspStatus(status)
        if status is SspStatus.DRAFT:
            raise ValidationError("status", "an SSP decision cannot return an entry to DRAFT")

        with LogContext.bind(company_id=company_id, actor_id=actor_id), \
                unit_of_work(self._session):
            orm_entry = self._get_entry_model(company_id, entry_id)
            if status is SspStatus.APPROVED:
                others = self._session.scalars(
                    select(SspCatalogEntryModel).where(
                        SspCatalogEntryModel.company_id == company_id,
                        SspCatalogEntryModel.product_id == orm_entry.product_id,
                        SspCatalogEntryModel.currency == orm_entry.currency,
                        SspCatalogEntryModel.status == SspStatus.APPROVED.value,
                        SspCatalogEntryModel.effective_to.is_(None),
                        SspCatalogEntryModel.id != orm_entry.id,
                    )
                ).all()
                for other in others:
                    other.effective_to = orm_entry.effective_from
                    other.updated_by_id = actor_id
            orm_entry.status = status.value
            orm_entry.updated_by_id = actor_id
            self._session.flush()
            entry = orm_entry.to_dto()

        logger.info("ssp_entry_decided", extra={
            "entry_id": str(entry_id),
            "status": status.value,
        })
        return entry

    def get_entry(self, company_id: UUID, entry_id: UUID) -> SspCatalogEntry:
        return self._get_entry_model(company_id, entry_id).to_dto()

    def get_effective(
        self,
        company_id: UUID,
        product_id: str,
        currency: str,
        as_of: date,
    ) -> SspCatalogEntry | None:
        """
        APPROVED entry whose [effective_from, effective_to) contains ``as_of``.

        Most recent effective_from wins if intervals overlap.
        """
        orm_entry = self._session.scalars(
            select(SspCatalogEntryModel)
            .where(
                SspCatalogEntryModel.company_id == company_id,
                SspCatalogEntryModel.product_id == product_id,
                SspCatalogEntryModel.currency == currency,
                SspCatalogEntryModel.status == SspStatus.APPROVED.value,
                SspCatalogEntryModel.effective_from <= as_of,
                or_(
                    SspCatalogEntryModel.effective_to.is_(None),
                    SspCatalogEntryModel.effective_to > as_of,
                ),
            )
            .order_by(
                SspCatalogEntryModel.effective_from.desc(),
                SspCatalogEntryModel.created_at.desc(),
            )
            .limit(1)
        ).first()
        return orm_entry.to_dto() if orm_entry is not None else None

    def query_catalog(
        self,
        company_id: UUID,
        *,
        product_id: str | None = None,
        currency: str | None = None,
        method: SspMethod | str | None = None,
        status: SspStatus | str | None = None,
        effective_from: date | None = None,
        effective_to: date | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[SspCatalogEntry]:
        """Catalog entries, newest effective_from first."""
        stmt = select(SspCatalogEntryModel).where(
            SspCatalogEntryModel.company_id == company_id,
        )
        if product_id is not None:
            stmt = stmt.where(SspCatalogEntryModel.product_id == product_id)
        if currency is not None:
            stmt = stmt.where(SspCatalogEntryModel.currency == currency)
        if method is not None:
            stmt = stmt.where(SspCatalogEntryModel.method == parse_ssp_method(method).value)
        if status is not None:
            stmt = stmt.where(SspCatalogEntryModel.status == SspStatus(status).value)
        if effective_from is not None:
            stmt = stmt.where(SspCatalogEntryModel.effective_from >= effective_from)
        if effective_to is not None:
            stmt = stmt.where(SspCatalogEntryModel.effective_from <= effective_to)
        stmt = (
            stmt.order_by(
                SspCatalogEntryModel.effective_from.desc(),
                SspCatalogEntryModel.created_at.desc(),
            )
            .limit(self._config.clamp_limit(limit))
            .offset(offset)
        )
        return [row.to_dto() for row in self._session.scalars(stmt).all()]

    # =========================================================================
    # Evidence
    # =========================================================================

    def add_evidence(
        self,
        company_id: UUID,
        actor_id: UUID,
        catalog_id: UUID,
        source: SspMethod | str,
        note: str | None = None,
        value: Decimal | None = None,
        doc_uri: str | None = None,
    ) -> SspEvidence:
        """Attach supporting evidence to a catalog entry of the company."""
        source = parse_ssp_method(source)
        if value is not None:
            value = to_decimal(value, "value")

        with unit_of_work(self._session):
            self._get_entry_model(company_id, catalog_id)
            orm_evidence = SspEvidenceModel(
                company_id=company_id,
                catalog_id=catalog_id,
                source=source.value,
                note=note,
                value=value,
                doc_uri=doc_uri,
                created_at=self._clock.now(),
                created_by_id=actor_id,
            )
            self._session.add(orm_evidence)
            self._session.flush()
            evidence = orm_evidence.to_dto()

        logger.info("ssp_evidence_added", extra={
            "catalog_id": str(catalog_id),
            "source": source.value,
        })
        return evidence

    def list_evidence(self, company_id: UUID, catalog_id: UUID) -> list[SspEvidence]:
        rows = self._session.scalars(
            select(SspEvidenceModel)
            .where(
                SspEvidenceModel.company_id == company_id,
                SspEvidenceModel.catalog_id == catalog_id,
            )
            .order_by(SspEvidenceModel.created_at)
        ).all()
        return [row.to_dto() for row in rows]

    # =========================================================================
    # Policy
    # =========================================================================

    def upsert_policy(
        self,
        company_id: UUID,
        actor_id: UUID,
        rounding: RoundingRule | str = RoundingRule.HALF_UP,
        residual_allowed: bool = True,
        residual_eligible_products: tuple[str, ...] | list[str] = (),
        default_method: SspMethod | str = SspMethod.OBSERVABLE,
        corridor_tolerance_pct: Decimal = Decimal("0.20"),
        alert_threshold_pct: Decimal = Decimal("0.15"),
    ) -> SspPolicy:
        """
        Replace the company's SSP policy with the given record.

        Fields not passed fall back to their defaults; nothing is merged
        from the previous policy.
        """
        policy = SspPolicy(
            company_id=company_id,
            rounding=RoundingRule(rounding),
            residual_allowed=residual_allowed,
            residual_eligible_products=tuple(residual_eligible_products),
            default_method=parse_ssp_method(default_method),
            corridor_tolerance_pct=to_decimal(corridor_tolerance_pct, "corridor_tolerance_pct"),
            alert_threshold_pct=to_decimal(alert_threshold_pct, "alert_threshold_pct"),
        )

        with LogContext.bind(company_id=company_id, actor_id=actor_id), \
                unit_of_work(self._session):
            orm_policy = self._policy_model(company_id)
            if orm_policy is None:
                orm_policy = SspPolicyModel(company_id=company_id, created_by_id=actor_id)
                self._session.add(orm_policy)
            else:
                orm_policy.updated_by_id = actor_id
            orm_policy.rounding = policy.rounding.value
            orm_policy.residual_allowed = policy.residual_allowed
            orm_policy.residual_eligible_products = list(policy.residual_eligible_products)
            orm_policy.default_method = policy.default_method.value
            orm_policy.corridor_tolerance_pct = policy.corridor_tolerance_pct
            orm_policy.alert_threshold_pct = policy.alert_threshold_pct
            self._session.flush()
            stored = orm_policy.to_dto()

        logger.info("ssp_policy_upserted", extra={
            "rounding": stored.rounding.value,
            "residual_allowed": stored.residual_allowed,
            "corridor_tolerance_pct": str(stored.corridor_tolerance_pct),
        })
        return stored

    def get_policy(self, company_id: UUID) -> SspPolicy | None:
        orm_policy = self._policy_model(company_id)
        return orm_policy.to_dto() if orm_policy is not None else None

    def check_corridor_compliance(
        self,
        company_id: UUID,
        product_id: str,
        currency: str,
        candidate_ssp: Decimal,
    ) -> CorridorCheck:
        """
        Compare ``candidate_ssp`` with the median of every APPROVED SSP of
        the company in ``currency`` (all products, not just ``product_id``).

        Fail-open: no policy or no approved history means compliant.
        """
        policy = self.get_policy(company_id)
        if policy is None:
            return CorridorCheck(compliant=True)

        approved = self._session.scalars(
            select(SspCatalogEntryModel.ssp).where(
                SspCatalogEntryModel.company_id == company_id,
                SspCatalogEntryModel.currency == currency,
                SspCatalogEntryModel.status == SspStatus.APPROVED.value,
            )
        ).all()
        result = check_corridor(
            to_decimal(candidate_ssp, "candidate_ssp"),
            approved,
            policy.corridor_tolerance_pct,
        )
        if not result.compliant:
            logger.info("ssp_corridor_violation", extra={
                "product_id": product_id,
                "currency": currency,
                "candidate_ssp": str(candidate_ssp),
                "median_ssp": str(result.median_ssp),
                "variance": str(result.variance),
            })
        return result

    # =========================================================================
    # Change requests
    # =========================================================================

    def create_change_request(
        self,
        company_id: UUID,
        actor_id: UUID,
        reason: str,
        diff: SspChangeDiff | dict[str, Any],
    ) -> SspChangeRequest:
        """Open a DRAFT SSP change request."""
        if not isinstance(diff, SspChangeDiff):
            diff = SspChangeDiff.from_json(diff)

        with unit_of_work(self._session):
            orm_change = SspChangeRequestModel(
                company_id=company_id,
                requestor_id=actor_id,
                reason=reason,
                diff=diff.to_json(),
                status=SspChangeStatus.DRAFT.value,
                created_at=self._clock.now(),
                created_by_id=actor_id,
            )
            self._session.add(orm_change)
            self._session.flush()
            change = orm_change.to_dto()

        logger.info("ssp_change_requested", extra={
            "change_id": str(change.id),
            "affected_products": list(diff.affected_products),
        })
        return change

    def decide_change_request(
        self,
        company_id: UUID,
        actor_id: UUID,
        change_id: UUID,
        status: SspChangeStatus | str,
        decision_notes: str | None = None,
    ) -> SspChangeRequest:
        """
        Approve or reject a change request, stamping decider and time.

        Raises:
            SspChangeNotFoundError: unknown id or another company's.
            ValidationError: status is DRAFT.
        """
        status = SspChangeStatus(status)
        if status is SspChangeStatus.DRAFT:
            raise ValidationError("status", "a decision must APPROVE or REJECT")

        with LogContext.bind(company_id=company_id, actor_id=actor_id), \
                unit_of_work(self._session):
            orm_change = self._session.scalars(
                select(SspChangeRequestModel).where(
                    SspChangeRequestModel.id == change_id,
                    SspChangeRequestModel.company_id == company_id,
                )
            ).first()
            if orm_change is None:
                raise SspChangeNotFoundError(change_id)
            orm_change.status = status.value
            orm_change.decided_by_id = actor_id
            orm_change.decided_at = self._clock.now()
            orm_change.decision_notes = decision_notes
            orm_change.updated_by_id = actor_id
            self._session.flush()
            change = orm_change.to_dto()

        logger.info("ssp_change_decided", extra={
            "change_id": str(change_id),
            "status": status.value,
        })
        return change

    def get_change_request(self, company_id: UUID, change_id: UUID) -> SspChangeRequest:
        orm_change = self._session.scalars(
            select(SspChangeRequestModel).where(
                SspChangeRequestModel.id == change_id,
                SspChangeRequestModel.company_id == company_id,
            )
        ).first()
        if orm_change is None:
            raise SspChangeNotFoundError(change_id)
        return orm_change.to_dto()

    def query_change_requests(
        self,
        company_id: UUID,
        status: SspChangeStatus | str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[SspChangeRequest]:
        stmt = select(SspChangeRequestModel).where(
            SspChangeRequestModel.company_id == company_id,
        )
        if status is not None:
            stmt = stmt.where(SspChangeRequestModel.status == SspChangeStatus(status).value)
        stmt = (
            stmt.order_by(SspChangeRequestModel.created_at.desc())
            .limit(self._config.clamp_limit(limit))
            .offset(offset)
        )
        return [row.to_dto() for row in self._session.scalars(stmt).all()]

    # =========================================================================
    # Internals
    # =========================================================================

    def _get_entry_model(self, company_id: UUID, entry_id: UUID) -> SspCatalogEntryModel:
        orm_entry = self._session.scalars(
            select(SspCatalogEntryModel).where(
                SspCatalogEntryModel.id == entry_id,
                SspCatalogEntryModel.company_id == company_id,
            )
        ).first()
        if orm_entry is None:
            raise SspEntryNotFoundError(entry_id)
        return orm_entry

    def _policy_model(self, company_id: UUID) -> SspPolicyModel | None:
        return self._session.scalars(
            select(SspPolicyModel).where(SspPolicyModel.company_id == company_id)
        ).first()
