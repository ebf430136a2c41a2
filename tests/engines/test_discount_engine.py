"""
Tests for discount parameter parsing, eligibility and amounts.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest

from revenue_engines.discounts import (
    DiscountContext,
    DiscountKind,
    PartnerParams,
    PromoParams,
    ProportionalParams,
    ResidualParams,
    TieredParams,
    calculate_amount,
    is_eligible,
    params_to_json,
    parse_params,
    validate_params,
)
from revenue_kernel.exceptions import UnknownDiscountKindError, ValidationError


@dataclass(frozen=True)
class _Line:
    product_id: str
    amount: Decimal


LINES = [_Line("A", Decimal("600")), _Line("B", Decimal("400"))]


class TestParseParams:

    def test_each_kind_has_its_own_type(self):
        assert isinstance(parse_params("PROP", {"pct": "0.1"}), ProportionalParams)
        assert isinstance(
            parse_params("RESIDUAL", {"pct": "0.1", "residual_products": ["B"]}),
            ResidualParams,
        )
        assert isinstance(parse_params("TIERED", {"pct": "0.1", "threshold": "1000"}), TieredParams)
        assert isinstance(
            parse_params("PROMO", {"pct": "0.1", "start_date": "2024-01-01", "end_date": "2024-01-31"}),
            PromoParams,
        )
        assert isinstance(
            parse_params("PARTNER", {"pct": "0.1", "partner_customers": ["cust-1"]}),
            PartnerParams,
        )

    def test_json_floats_parsed_by_repr(self):
        params = parse_params(DiscountKind.PROP, {"pct": 0.1})
        assert params.pct == Decimal("0.1")

    def test_missing_pct(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_params("PROP", {})
        assert exc_info.value.field == "pct"

    def test_bad_promo_date(self):
        with pytest.raises(ValidationError):
            parse_params("PROMO", {"pct": "0.1", "start_date": "soon", "end_date": "2024-01-31"})

    def test_partner_list_required(self):
        with pytest.raises(ValidationError):
            parse_params("PARTNER", {"pct": "0.1", "partner_customers": "cust-1"})

    def test_unknown_kind(self):
        with pytest.raises(UnknownDiscountKindError):
            parse_params("LOYALTY", {"pct": "0.1"})

    def test_json_form(self):
        params = parse_params(
            "PROMO", {"pct": "0.25", "start_date": "2024-01-01", "end_date": "2024-02-01"},
        )
        assert params_to_json(params) == {
            "pct": "0.25",
            "start_date": "2024-01-01",
            "end_date": "2024-02-01",
        }


class TestValidateParams:

    @pytest.mark.parametrize("kind,raw,valid", [
        ("PROP", {"pct": "0.1"}, True),
        ("PROP", {"pct": "1.5"}, False),
        ("PROP", {"pct": "-0.1"}, False),
        ("TIERED", {"pct": "0.1", "threshold": "0"}, False),
        ("TIERED", {"pct": "0.1", "threshold": "500"}, True),
        ("PROMO", {"pct": "0.1", "start_date": "2024-01-01"}, False),
        ("RESIDUAL", {"pct": "0.1"}, False),
        ("LOYALTY", {"pct": "0.1"}, False),
    ])
    def test_cases(self, kind, raw, valid):
        assert validate_params(kind, raw) is valid


class TestEligibility:

    def test_tiered_threshold(self):
        params = TieredParams(pct=Decimal("0.1"), threshold=Decimal("1000"))
        as_of = date(2024, 1, 15)

        assert not is_eligible(params, as_of, DiscountContext(total_amount=Decimal("500")))
        assert is_eligible(params, as_of, DiscountContext(total_amount=Decimal("1500")))
        assert is_eligible(params, as_of, DiscountContext(total_amount=Decimal("1000")))

    def test_promo_window_inclusive(self):
        params = PromoParams(
            pct=Decimal("0.1"), start_date=date(2024, 1, 1), end_date=date(2024, 1, 31),
        )
        ctx = DiscountContext(total_amount=Decimal("100"))

        assert is_eligible(params, date(2024, 1, 1), ctx)
        assert is_eligible(params, date(2024, 1, 31), ctx)
        assert not is_eligible(params, date(2024, 2, 1), ctx)

    def test_partner_customer(self):
        params = PartnerParams(pct=Decimal("0.1"), partner_customers=("cust-1",))
        as_of = date(2024, 1, 1)

        assert is_eligible(params, as_of, DiscountContext(Decimal("100"), customer_id="cust-1"))
        assert not is_eligible(params, as_of, DiscountContext(Decimal("100"), customer_id="cust-2"))
        assert not is_eligible(params, as_of, DiscountContext(Decimal("100")))

    def test_prop_always(self):
        params = ProportionalParams(pct=Decimal("0.1"))
        assert is_eligible(params, date(2024, 1, 1), DiscountContext(Decimal("0")))


class TestCalculateAmount:

    def test_proportional(self):
        params = ProportionalParams(pct=Decimal("0.1"))
        assert calculate_amount(params, LINES, Decimal("1000")) == Decimal("100.0")

    def test_residual_only_counts_listed_products(self):
        params = ResidualParams(pct=Decimal("0.5"), residual_products=("B",))
        assert calculate_amount(params, LINES, Decimal("1000")) == Decimal("200.0")

    def test_tiered(self):
        params = TieredParams(pct=Decimal("0.1"), threshold=Decimal("1500"))
        assert calculate_amount(params, LINES, Decimal("1000")) == Decimal("0")
        assert calculate_amount(params, LINES, Decimal("2000")) == Decimal("200.0")
