"""
Tests for the SSP catalog service.

Validates:
- Upsert end-dates the superseded APPROVED entry
- At most one open APPROVED entry per (company, product, currency)
- Effective lookup by date and status
- Policy upsert and corridor compliance (fail-open)
- Change request lifecycle
- Company isolation
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from revenue_kernel.exceptions import (
    SspChangeNotFoundError,
    SspEntryNotFoundError,
    UnknownSspMethodError,
    ValidationError,
)
from revenue_modules.ssp.models import (
    SspChangeDiff,
    SspChangeStatus,
    SspMethod,
    SspStatus,
)
from revenue_modules.ssp.orm import SspCatalogEntryModel


def _open_approved(session, company_id, product_id, currency="USD"):
    return session.scalars(
        select(SspCatalogEntryModel).where(
            SspCatalogEntryModel.company_id == company_id,
            SspCatalogEntryModel.product_id == product_id,
            SspCatalogEntryModel.currency == currency,
            SspCatalogEntryModel.status == SspStatus.APPROVED.value,
            SspCatalogEntryModel.effective_to.is_(None),
        )
    ).all()


class TestCatalogUpsert:
    """Upsert and approval."""

    def test_upsert_creates_draft(self, ssp_service, company_id, actor_id):
        entry = ssp_service.upsert_entry(
            company_id, actor_id,
            product_id="A", currency="usd", ssp=Decimal("6000"),
            method="OBSERVABLE", effective_from=date(2024, 1, 1),
        )

        assert entry.status == SspStatus.DRAFT
        assert entry.currency == "USD"
        assert entry.method == SspMethod.OBSERVABLE
        assert entry.created_by_id == actor_id

    def test_superseding_upsert_end_dates_prior(self, ssp_service, approved_ssp, company_id, actor_id):
        first = approved_ssp("A", "6000", effective_from=date(2023, 1, 1))

        ssp_service.upsert_entry(
            company_id, actor_id,
            product_id="A", currency="USD", ssp=Decimal("6500"),
            method="OBSERVABLE", effective_from=date(2024, 7, 1),
        )

        prior = ssp_service.get_entry(company_id, first.id)
        assert prior.effective_to == date(2024, 7, 1)
        assert prior.status == SspStatus.APPROVED

    def test_at_most_one_open_approved(self, ssp_service, session, clock, company_id, actor_id):
        starts = [date(2023, 1, 1), date(2023, 6, 1), date(2024, 1, 1), date(2024, 3, 1)]
        for i, start in enumerate(starts):
            clock.tick()
            entry = ssp_service.upsert_entry(
                company_id, actor_id,
                product_id="A", currency="USD", ssp=Decimal(1000 + i),
                method="BENCHMARK", effective_from=start,
            )
            ssp_service.decide_entry(company_id, actor_id, entry.id, "APPROVED")

            open_rows = _open_approved(session, company_id, "A")
            assert len(open_rows) == 1
            assert open_rows[0].id == entry.id

        history = ssp_service.query_catalog(company_id, product_id="A")
        ends = sorted((e.effective_from, e.effective_to) for e in history)
        assert ends == [
            (date(2023, 1, 1), date(2023, 6, 1)),
            (date(2023, 6, 1), date(2024, 1, 1)),
            (date(2024, 1, 1), date(2024, 3, 1)),
            (date(2024, 3, 1), None),
        ]

    def test_other_currency_untouched(self, ssp_service, approved_ssp, company_id, actor_id):
        usd = approved_ssp("A", "100", currency="USD")

        ssp_service.upsert_entry(
            company_id, actor_id,
            product_id="A", currency="EUR", ssp=Decimal("90"),
            method="OBSERVABLE", effective_from=date(2024, 1, 1),
        )

        assert ssp_service.get_entry(company_id, usd.id).effective_to is None

    def test_negative_ssp_rejected(self, ssp_service, company_id, actor_id):
        with pytest.raises(ValidationError):
            ssp_service.upsert_entry(
                company_id, actor_id,
                product_id="A", currency="USD", ssp=Decimal("-1"),
                method="OBSERVABLE", effective_from=date(2024, 1, 1),
            )

    def test_invalid_currency_rejected(self, ssp_service, company_id, actor_id):
        with pytest.raises(ValidationError):
            ssp_service.upsert_entry(
                company_id, actor_id,
                product_id="A", currency="DOLLARS", ssp=Decimal("1"),
                method="OBSERVABLE", effective_from=date(2024, 1, 1),
            )

    def test_unknown_method_rejected(self, ssp_service, approved_ssp, company_id, actor_id):
        prior = approved_ssp("A", "100", effective_from=date(2023, 1, 1))

        with pytest.raises(UnknownSspMethodError) as excinfo:
            ssp_service.upsert_entry(
                company_id, actor_id,
                product_id="A", currency="USD", ssp=Decimal("120"),
                method="GUESS", effective_from=date(2024, 1, 1),
            )

        assert excinfo.value.method == "GUESS"
        assert [e.id for e in ssp_service.query_catalog(company_id, product_id="A")] == [prior.id]
        assert ssp_service.get_entry(company_id, prior.id).effective_to is None

    def test_decision_cannot_return_to_draft(self, ssp_service, company_id, actor_id):
        entry = ssp_service.upsert_entry(
            company_id, actor_id,
            product_id="A", currency="USD", ssp=Decimal("1"),
            method="OBSERVABLE", effective_from=date(2024, 1, 1),
        )
        with pytest.raises(ValidationError):
            ssp_service.decide_entry(company_id, actor_id, entry.id, "DRAFT")

    def test_decide_other_company_entry(self, ssp_service, approved_ssp, other_company_id, actor_id):
        entry = approved_ssp("A", "100")
        with pytest.raises(SspEntryNotFoundError):
            ssp_service.decide_entry(other_company_id, actor_id, entry.id, "REJECTED")

    def test_upsert_logs(self, ssp_service, company_id, actor_id, captured_logs):
        ssp_service.upsert_entry(
            company_id, actor_id,
            product_id="A", currency="USD", ssp=Decimal("10"),
            method="OBSERVABLE", effective_from=date(2024, 1, 1),
        )

        upserted = [r for r in captured_logs() if r["message"] == "ssp_entry_upserted"]
        assert len(upserted) == 1
        assert upserted[0]["product_id"] == "A"


class TestEffectiveLookup:

    def test_as_of_respects_interval(self, ssp_service, approved_ssp, clock, company_id):
        approved_ssp("A", "100", effective_from=date(2023, 1, 1))
        clock.tick()
        approved_ssp("A", "120", effective_from=date(2024, 1, 1))

        assert ssp_service.get_effective(company_id, "A", "USD", date(2023, 6, 1)).ssp == Decimal("100")
        assert ssp_service.get_effective(company_id, "A", "USD", date(2024, 1, 1)).ssp == Decimal("120")
        assert ssp_service.get_effective(company_id, "A", "USD", date(2022, 12, 31)) is None

    def test_draft_not_effective(self, ssp_service, company_id, actor_id):
        ssp_service.upsert_entry(
            company_id, actor_id,
            product_id="A", currency="USD", ssp=Decimal("100"),
            method="OBSERVABLE", effective_from=date(2023, 1, 1),
        )
        assert ssp_service.get_effective(company_id, "A", "USD", date(2024, 1, 1)) is None

    def test_company_isolation(self, ssp_service, approved_ssp, other_company_id):
        approved_ssp("A", "100")
        assert ssp_service.get_effective(other_company_id, "A", "USD", date(2024, 1, 1)) is None


class TestEvidence:

    def test_add_and_list(self, ssp_service, approved_ssp, company_id, actor_id):
        entry = approved_ssp("A", "100")

        ssp_service.add_evidence(
            company_id, actor_id, entry.id, "BENCHMARK",
            note="Analyst report", value=Decimal("105"),
        )

        (evidence,) = ssp_service.list_evidence(company_id, entry.id)
        assert evidence.source == SspMethod.BENCHMARK
        assert evidence.value == Decimal("105")
        assert evidence.note == "Analyst report"

    def test_unknown_entry(self, ssp_service, company_id, actor_id):
        with pytest.raises(SspEntryNotFoundError):
            ssp_service.add_evidence(company_id, actor_id, uuid4(), "OBSERVABLE")

    def test_unknown_source_rejected(self, ssp_service, approved_ssp, company_id, actor_id):
        entry = approved_ssp("A", "100")
        with pytest.raises(UnknownSspMethodError):
            ssp_service.add_evidence(company_id, actor_id, entry.id, "HUNCH")
        assert ssp_service.list_evidence(company_id, entry.id) == []


class TestPolicyAndCorridor:

    def test_policy_round_trip(self, ssp_service, company_id, actor_id):
        assert ssp_service.get_policy(company_id) is None

        ssp_service.upsert_policy(
            company_id, actor_id,
            rounding="BANKERS",
            residual_allowed=False,
            residual_eligible_products=["R"],
            corridor_tolerance_pct=Decimal("0.10"),
        )
        policy = ssp_service.get_policy(company_id)

        assert policy.rounding.value == "BANKERS"
        assert policy.residual_allowed is False
        assert policy.residual_eligible_products == ("R",)
        assert policy.corridor_tolerance_pct == Decimal("0.10")

    def test_policy_replaced_not_merged(self, ssp_service, company_id, actor_id):
        ssp_service.upsert_policy(company_id, actor_id, residual_eligible_products=["R"])
        ssp_service.upsert_policy(company_id, actor_id, rounding="BANKERS")

        policy = ssp_service.get_policy(company_id)
        assert policy.residual_eligible_products == ()

    def test_fail_open_without_policy(self, ssp_service, approved_ssp, company_id):
        approved_ssp("A", "100")
        check = ssp_service.check_corridor_compliance(company_id, "A", "USD", Decimal("1000000"))
        assert check.compliant

    def test_fail_open_without_history(self, ssp_service, company_id, actor_id):
        ssp_service.upsert_policy(company_id, actor_id)
        check = ssp_service.check_corridor_compliance(company_id, "A", "EUR", Decimal("1000000"))
        assert check.compliant
        assert check.median_ssp is None

    def test_violation(self, ssp_service, approved_ssp, company_id, actor_id, captured_logs):
        ssp_service.upsert_policy(company_id, actor_id, corridor_tolerance_pct=Decimal("0.20"))
        approved_ssp("A", "6000")
        approved_ssp("B", "4000")

        inside = ssp_service.check_corridor_compliance(company_id, "A", "USD", Decimal("6000"))
        outside = ssp_service.check_corridor_compliance(company_id, "C", "USD", Decimal("7000"))

        assert inside.compliant
        assert not outside.compliant
        assert outside.median_ssp == Decimal("5000")
        assert outside.variance == Decimal("0.4")
        assert any(r["message"] == "ssp_corridor_violation" for r in captured_logs())


class TestChangeRequests:

    def test_lifecycle(self, ssp_service, clock, company_id, actor_id):
        change = ssp_service.create_change_request(
            company_id, actor_id,
            reason="Annual repricing",
            diff={"affected_products": ["A"], "new_ssp_values": {"A": "6500"}},
        )
        assert change.status == SspChangeStatus.DRAFT
        assert change.diff == SspChangeDiff(("A",), {"A": Decimal("6500")})

        clock.advance(3600)
        decided = ssp_service.decide_change_request(
            company_id, actor_id, change.id, "APPROVED", decision_notes="ok",
        )

        assert decided.status == SspChangeStatus.APPROVED
        assert decided.decided_by_id == actor_id
        assert decided.decided_at.replace(tzinfo=None) == clock.now().replace(tzinfo=None)
        assert decided.decision_notes == "ok"
        assert ssp_service.get_change_request(company_id, change.id).status == SspChangeStatus.APPROVED

    def test_decision_must_not_be_draft(self, ssp_service, company_id, actor_id):
        change = ssp_service.create_change_request(company_id, actor_id, "r", SspChangeDiff())
        with pytest.raises(ValidationError):
            ssp_service.decide_change_request(company_id, actor_id, change.id, "DRAFT")

    def test_other_company(self, ssp_service, company_id, other_company_id, actor_id):
        change = ssp_service.create_change_request(company_id, actor_id, "r", SspChangeDiff())
        with pytest.raises(SspChangeNotFoundError):
            ssp_service.get_change_request(other_company_id, change.id)
        with pytest.raises(SspChangeNotFoundError):
            ssp_service.decide_change_request(other_company_id, actor_id, change.id, "APPROVED")

    def test_query_by_status(self, ssp_service, clock, company_id, actor_id):
        first = ssp_service.create_change_request(company_id, actor_id, "one", SspChangeDiff())
        clock.tick()
        second = ssp_service.create_change_request(company_id, actor_id, "two", SspChangeDiff())
        ssp_service.decide_change_request(company_id, actor_id, first.id, "REJECTED")

        drafts = ssp_service.query_change_requests(company_id, status="DRAFT")
        everything = ssp_service.query_change_requests(company_id)

        assert [c.id for c in drafts] == [second.id]
        assert [c.id for c in everything] == [second.id, first.id]
