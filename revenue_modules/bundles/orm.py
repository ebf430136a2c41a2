"""
Module: revenue_modules.bundles.orm
Responsibility:
    SQLAlchemy ORM persistence models for bundles and bundle components.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``.

Invariants enforced:
    - A bundle and its components are written in one unit of work.
    - Components are owned by their bundle (cascade delete-orphan).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from revenue_kernel.db.base import TrackedBase, UUIDString


class BundleModel(TrackedBase):
    """Effective-dated bundle definition keyed by (company, bundle_sku)."""

    __tablename__ = "rev_bundle"

    __table_args__ = (
        Index("idx_rev_bundle_sku", "company_id", "bundle_sku", "effective_from"),
        Index("idx_rev_bundle_status", "company_id", "status", "effective_from"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    bundle_sku: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="ACTIVE")

    components: Mapped[list["BundleComponentModel"]] = relationship(
        back_populates="bundle",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BundleComponentModel.position",
    )

    def to_dto(self):
        from revenue_modules.bundles.models import Bundle, BundleStatus

        return Bundle(
            id=self.id,
            company_id=self.company_id,
            bundle_sku=self.bundle_sku,
            name=self.name,
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            status=BundleStatus(self.status),
            components=tuple(c.to_dto() for c in self.components),
            created_by_id=self.created_by_id,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<BundleModel {self.bundle_sku} ({self.status})>"


class BundleComponentModel(TrackedBase):
    """One weighted component product of a bundle."""

    __tablename__ = "rev_bundle_component"

    __table_args__ = (
        Index("idx_rev_bundle_component_bundle", "bundle_id"),
        Index("idx_rev_bundle_component_product", "product_id"),
    )

    bundle_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("rev_bundle.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(nullable=False, default=0)
    product_id: Mapped[str] = mapped_column(String(100), nullable=False)
    weight_pct: Mapped[Decimal] = mapped_column(nullable=False)
    required: Mapped[bool] = mapped_column(Boolean, default=True)
    min_qty: Mapped[Decimal] = mapped_column(default=Decimal("1"))
    max_qty: Mapped[Decimal | None] = mapped_column(nullable=True)

    bundle: Mapped["BundleModel"] = relationship(back_populates="components")

    def to_dto(self):
        from revenue_modules.bundles.models import BundleComponent

        return BundleComponent(
            id=self.id,
            product_id=self.product_id,
            weight_pct=self.weight_pct,
            required=self.required,
            min_qty=self.min_qty if self.min_qty is not None else Decimal("1"),
            max_qty=self.max_qty,
        )
