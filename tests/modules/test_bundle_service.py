"""
Tests for the bundle catalog service.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from revenue_kernel.exceptions import BundleNotFoundError
from revenue_modules.bundles.models import BundleComponent, BundleStatus
from revenue_modules.collaborators import InvoiceLine

SUITE = [
    {"product_id": "CRM", "weight_pct": "0.6"},
    {"product_id": "SUPPORT", "weight_pct": "0.4", "min_qty": "2"},
]


class TestBundleCatalog:

    def test_upsert_with_components(self, bundle_service, company_id, actor_id):
        bundle = bundle_service.upsert_bundle(
            company_id, actor_id, "SUITE", "Suite", SUITE, effective_from=date(2024, 1, 1),
        )

        assert bundle.status == BundleStatus.ACTIVE
        assert [c.product_id for c in bundle.components] == ["CRM", "SUPPORT"]
        assert bundle.components[1].min_qty == Decimal("2")

    def test_supersedes_open_bundle(self, bundle_service, clock, company_id, actor_id):
        first = bundle_service.upsert_bundle(
            company_id, actor_id, "SUITE", "Suite v1", SUITE, effective_from=date(2023, 1, 1),
        )
        clock.tick()
        bundle_service.upsert_bundle(
            company_id, actor_id, "SUITE", "Suite v2",
            [BundleComponent("CRM", Decimal("1"))], effective_from=date(2024, 1, 1),
        )

        assert bundle_service.get_bundle(company_id, first.id).effective_to == date(2024, 1, 1)
        assert bundle_service.get_effective(company_id, "SUITE", date(2023, 6, 1)).name == "Suite v1"
        assert bundle_service.get_effective(company_id, "SUITE", date(2024, 6, 1)).name == "Suite v2"

    def test_unbalanced_weights_warn(self, bundle_service, company_id, actor_id, captured_logs):
        bundle_service.upsert_bundle(
            company_id, actor_id, "ODD", "Odd",
            [{"product_id": "A", "weight_pct": "0.5"}, {"product_id": "B", "weight_pct": "0.3"}],
            effective_from=date(2024, 1, 1),
        )

        warnings = [r for r in captured_logs() if r["message"] == "bundle_weights_unbalanced"]
        assert len(warnings) == 1
        assert warnings[0]["level"] == "WARNING"

    def test_inactive_not_effective(self, bundle_service, company_id, actor_id):
        bundle = bundle_service.upsert_bundle(
            company_id, actor_id, "SUITE", "Suite", SUITE, effective_from=date(2024, 1, 1),
        )
        bundle_service.set_status(company_id, actor_id, bundle.id, "INACTIVE")

        assert bundle_service.get_effective(company_id, "SUITE", date(2024, 6, 1)) is None

    def test_set_status_unknown(self, bundle_service, company_id, actor_id):
        with pytest.raises(BundleNotFoundError):
            bundle_service.set_status(company_id, actor_id, uuid4(), "ARCHIVED")

    def test_bundles_by_product(self, bundle_service, company_id, actor_id):
        bundle_service.upsert_bundle(
            company_id, actor_id, "SUITE", "Suite", SUITE, effective_from=date(2024, 1, 1),
        )
        bundle_service.upsert_bundle(
            company_id, actor_id, "SOLO", "Solo",
            [{"product_id": "SUPPORT", "weight_pct": "1"}], effective_from=date(2024, 1, 1),
        )

        assert sorted(b.bundle_sku for b in bundle_service.get_bundles_by_product(company_id, "SUPPORT")) == [
            "SOLO", "SUITE",
        ]
        assert [b.bundle_sku for b in bundle_service.get_bundles_by_product(company_id, "CRM")] == ["SUITE"]

    def test_query_by_status(self, bundle_service, company_id, actor_id):
        bundle = bundle_service.upsert_bundle(
            company_id, actor_id, "SUITE", "Suite", SUITE, effective_from=date(2024, 1, 1),
        )
        bundle_service.set_status(company_id, actor_id, bundle.id, "ARCHIVED")

        assert bundle_service.query_bundles(company_id, status="ACTIVE") == []
        assert len(bundle_service.query_bundles(company_id, status="ARCHIVED")) == 1


class TestExpandBundleLine:

    def test_split_by_weight(self, bundle_service, company_id, actor_id):
        bundle = bundle_service.upsert_bundle(
            company_id, actor_id, "SUITE", "Suite", SUITE, effective_from=date(2024, 1, 1),
        )
        line = InvoiceLine(
            id=uuid4(), product_id="SUITE", product_name="Suite",
            amount=Decimal("1000"), qty=Decimal("3"), uom="SEAT",
        )

        expanded = bundle_service.expand_bundle_line(line, bundle)

        assert [(e.product_id, e.amount, e.qty) for e in expanded] == [
            ("CRM", Decimal("600.00"), Decimal("3")),
            ("SUPPORT", Decimal("400.00"), Decimal("6")),
        ]
        assert all(e.uom == "SEAT" for e in expanded)

    def test_expansion_ids_stable(self, bundle_service, company_id, actor_id):
        bundle = bundle_service.upsert_bundle(
            company_id, actor_id, "SUITE", "Suite", SUITE, effective_from=date(2024, 1, 1),
        )
        line = InvoiceLine(id=uuid4(), product_id="SUITE", product_name="Suite", amount=Decimal("10"))

        first = bundle_service.expand_bundle_line(line, bundle)
        second = bundle_service.expand_bundle_line(line, bundle)

        assert [e.id for e in first] == [e.id for e in second]
        assert len({e.id for e in first}) == 2
