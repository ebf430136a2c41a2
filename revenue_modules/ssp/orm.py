"""
Module: revenue_modules.ssp.orm
Responsibility:
    SQLAlchemy ORM persistence models for the SSP catalog, SSP evidence,
    the company SSP policy and SSP change requests.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``.

Invariants enforced:
    - Every table carries ``company_id``; every query filters on it.
    - Enum fields stored as String(50).
    - One SSP policy per company (uq_rev_ssp_policy_company).
    - Superseded catalog entries are end-dated, never deleted.

Failure modes:
    - IntegrityError on a second policy row for a company.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from revenue_kernel.db.base import TrackedBase, UUIDString


class SspCatalogEntryModel(TrackedBase):
    """
    Effective-dated SSP for one (company, product, currency).

    Guarantees:
        - ``status`` is one of DRAFT, REVIEWED, APPROVED, REJECTED.
        - ``effective_to`` is NULL for the open entry.
    """

    __tablename__ = "rev_ssp_catalog"

    __table_args__ = (
        Index("idx_rev_ssp_catalog_lookup", "company_id", "product_id", "currency"),
        Index("idx_rev_ssp_catalog_status", "company_id", "status"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    product_id: Mapped[str] = mapped_column(String(100), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    ssp: Mapped[Decimal] = mapped_column(nullable=False)
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    corridor_min_pct: Mapped[Decimal | None] = mapped_column(nullable=True)
    corridor_max_pct: Mapped[Decimal | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="DRAFT")

    def to_dto(self):
        from revenue_modules.ssp.models import SspCatalogEntry, SspMethod, SspStatus

        return SspCatalogEntry(
            id=self.id,
            company_id=self.company_id,
            product_id=self.product_id,
            currency=self.currency,
            ssp=self.ssp,
            method=SspMethod(self.method),
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            corridor_min_pct=self.corridor_min_pct,
            corridor_max_pct=self.corridor_max_pct,
            status=SspStatus(self.status),
            created_by_id=self.created_by_id,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return (
            f"<SspCatalogEntryModel {self.product_id}/{self.currency} "
            f"{self.ssp} ({self.status})>"
        )


class SspEvidenceModel(TrackedBase):
    """Supporting evidence attached to a catalog entry."""

    __tablename__ = "rev_ssp_evidence"

    __table_args__ = (
        Index("idx_rev_ssp_evidence_catalog", "catalog_id"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    catalog_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("rev_ssp_catalog.id"),
        nullable=False,
    )
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    value: Mapped[Decimal | None] = mapped_column(nullable=True)
    doc_uri: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def to_dto(self):
        from revenue_modules.ssp.models import SspEvidence, SspMethod

        return SspEvidence(
            id=self.id,
            company_id=self.company_id,
            catalog_id=self.catalog_id,
            source=SspMethod(self.source),
            note=self.note,
            value=self.value,
            doc_uri=self.doc_uri,
            created_by_id=self.created_by_id,
        )


class SspPolicyModel(TrackedBase):
    """
    Company SSP allocation policy.

    Guarantees:
        - Exactly one row per company (uq_rev_ssp_policy_company).
        - ``residual_eligible_products`` is a JSON list of product ids.
    """

    __tablename__ = "rev_ssp_policy"

    __table_args__ = (
        UniqueConstraint("company_id", name="uq_rev_ssp_policy_company"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    rounding: Mapped[str] = mapped_column(String(50), default="HALF_UP")
    residual_allowed: Mapped[bool] = mapped_column(Boolean, default=True)
    residual_eligible_products: Mapped[list] = mapped_column(JSON, default=list)
    default_method: Mapped[str] = mapped_column(String(50), default="OBSERVABLE")
    corridor_tolerance_pct: Mapped[Decimal] = mapped_column(default=Decimal("0.20"))
    alert_threshold_pct: Mapped[Decimal] = mapped_column(default=Decimal("0.15"))

    def to_dto(self):
        from revenue_modules.ssp.models import RoundingRule, SspMethod, SspPolicy

        return SspPolicy(
            id=self.id,
            company_id=self.company_id,
            rounding=RoundingRule(self.rounding),
            residual_allowed=self.residual_allowed,
            residual_eligible_products=tuple(self.residual_eligible_products or ()),
            default_method=SspMethod(self.default_method),
            corridor_tolerance_pct=self.corridor_tolerance_pct,
            alert_threshold_pct=self.alert_threshold_pct,
        )

    def __repr__(self) -> str:
        return f"<SspPolicyModel company={self.company_id} rounding={self.rounding}>"


class SspChangeRequestModel(TrackedBase):
    """
    Request to change SSPs; its approved diff drives prospective
    reallocation of open POBs.
    """

    __tablename__ = "rev_ssp_change"

    __table_args__ = (
        Index("idx_rev_ssp_change_status", "company_id", "status"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    requestor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    diff: Mapped[dict] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="DRAFT")
    decided_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    decision_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        from revenue_modules.ssp.models import (
            SspChangeDiff,
            SspChangeRequest,
            SspChangeStatus,
        )

        return SspChangeRequest(
            id=self.id,
            company_id=self.company_id,
            requestor_id=self.requestor_id,
            reason=self.reason,
            diff=SspChangeDiff.from_json(self.diff),
            status=SspChangeStatus(self.status),
            decided_by_id=self.decided_by_id,
            decided_at=self.decided_at,
            decision_notes=self.decision_notes,
        )
