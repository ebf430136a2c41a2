"""
Tests for the allocation engine.

Covers:
- Relative SSP weighting (ssp * line amount)
- Residual approach ordering and capping
- HALF_UP vs BANKERS rounding
- AUTO strategy resolution table
- Conservation under arbitrary line sets (property-based)
"""

from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from revenue_engines.allocation import (
    AllocationLineInput,
    AllocationStrategy,
    StrategyReason,
    allocate_relative_ssp,
    allocate_residual,
    parse_strategy,
    resolve_strategy,
)
from revenue_engines.rounding import RoundingRule, apply_rounding
from revenue_kernel.exceptions import SspNotFoundError, UnknownStrategyError


def _line(product_id: str, amount, ssp=None) -> AllocationLineInput:
    return AllocationLineInput(
        line_id=f"line-{product_id}",
        product_id=product_id,
        product_name=f"Product {product_id}",
        amount=Decimal(str(amount)),
        ssp=Decimal(str(ssp)) if ssp is not None else None,
    )


class TestRelativeSsp:
    """Relative SSP allocation."""

    def test_unit_ssps_allocate_by_amount(self):
        result = allocate_relative_ssp(
            lines=[_line("A", 6000, 1), _line("B", 4000, 1)],
            net_amount=Decimal("10000"),
            rounding=RoundingRule.HALF_UP,
        )

        assert [a.allocated for a in result.lines] == [Decimal("6000"), Decimal("4000")]
        assert result.rounding_adjustment == Decimal("0")
        assert result.strategy == AllocationStrategy.RELATIVE_SSP

    def test_weight_is_ssp_times_amount(self):
        """SSP 6000/4000 on amounts 6000/4000 weights 36M vs 16M."""
        result = allocate_relative_ssp(
            lines=[_line("A", 6000, 6000), _line("B", 4000, 4000)],
            net_amount=Decimal("10000"),
            rounding=RoundingRule.HALF_UP,
        )

        a, b = result.lines
        assert a.weight == Decimal("36000000")
        assert b.weight == Decimal("16000000")
        assert a.allocated == Decimal("6923")
        assert b.allocated == Decimal("3077")
        assert result.total_allocated == Decimal("10000")

    def test_rounding_remainder_reported(self):
        result = allocate_relative_ssp(
            lines=[_line("A", 100, 1), _line("B", 100, 1), _line("C", 100, 1)],
            net_amount=Decimal("100"),
            rounding=RoundingRule.HALF_UP,
        )

        assert [a.allocated for a in result.lines] == [Decimal("33")] * 3
        assert result.total_allocated == Decimal("99")
        assert result.rounding_adjustment == Decimal("1")

    def test_half_up_and_bankers_differ_on_ties(self):
        lines = [_line("A", 1, 1), _line("B", 1, 1)]

        half_up = allocate_relative_ssp(
            lines=lines, net_amount=Decimal("5"), rounding=RoundingRule.HALF_UP,
        )
        bankers = allocate_relative_ssp(
            lines=lines, net_amount=Decimal("5"), rounding=RoundingRule.BANKERS,
        )

        assert [a.allocated for a in half_up.lines] == [Decimal("3"), Decimal("3")]
        assert half_up.rounding_adjustment == Decimal("-1")
        assert [a.allocated for a in bankers.lines] == [Decimal("2"), Decimal("2")]
        assert bankers.rounding_adjustment == Decimal("1")

    def test_missing_ssp_raises(self):
        with pytest.raises(SspNotFoundError) as exc_info:
            allocate_relative_ssp(
                lines=[_line("A", 100, 10), _line("B", 100)],
                net_amount=Decimal("200"),
                rounding=RoundingRule.HALF_UP,
            )
        assert exc_info.value.product_id == "B"

    def test_zero_weight_leaves_net_unallocated(self):
        result = allocate_relative_ssp(
            lines=[_line("A", 100, 0)],
            net_amount=Decimal("100"),
            rounding=RoundingRule.HALF_UP,
        )

        assert result.lines[0].allocated == Decimal("0")
        assert result.rounding_adjustment == Decimal("100")

    def test_decimal_places_honoured(self):
        result = allocate_relative_ssp(
            lines=[_line("A", 1, 1), _line("B", 1, 1), _line("C", 1, 1)],
            net_amount=Decimal("100"),
            rounding=RoundingRule.HALF_UP,
            decimal_places=2,
        )

        assert result.lines[0].allocated == Decimal("33.33")
        assert result.rounding_adjustment == Decimal("0.01")


class TestResidual:
    """Residual approach."""

    def test_ssp_lines_first_then_even_split(self):
        result = allocate_residual(
            lines=[_line("A", 3000, 3000), _line("R1", 500), _line("R2", 9000)],
            net_amount=Decimal("10000"),
            residual_products={"R1", "R2"},
            rounding=RoundingRule.HALF_UP,
        )

        allocated = {a.product_id: a.allocated for a in result.lines}
        assert allocated == {"A": Decimal("3000"), "R1": Decimal("3500"), "R2": Decimal("3500")}
        residual = [a for a in result.lines if a.residual]
        assert [a.product_id for a in residual] == ["R1", "R2"]
        assert all(a.ssp is None for a in residual)

    def test_non_residual_line_without_ssp_skipped(self):
        result = allocate_residual(
            lines=[_line("A", 3000, 3000), _line("X", 2000), _line("R", 100)],
            net_amount=Decimal("10000"),
            residual_products={"R"},
            rounding=RoundingRule.HALF_UP,
        )

        assert [a.product_id for a in result.lines] == ["A", "R"]
        assert result.lines[1].allocated == Decimal("7000")

    def test_ssp_lines_capped_at_remaining_net(self):
        result = allocate_residual(
            lines=[_line("A", 8000, 1), _line("B", 5000, 1), _line("R", 100)],
            net_amount=Decimal("10000"),
            residual_products={"R"},
            rounding=RoundingRule.HALF_UP,
        )

        assert [(a.product_id, a.allocated) for a in result.lines] == [
            ("A", Decimal("8000")),
            ("B", Decimal("2000")),
        ]
        assert result.rounding_adjustment == Decimal("0")

    def test_no_residual_lines_leaves_remainder(self):
        result = allocate_residual(
            lines=[_line("A", 4000, 1)],
            net_amount=Decimal("10000"),
            residual_products=set(),
            rounding=RoundingRule.HALF_UP,
        )

        assert result.total_allocated == Decimal("4000")
        assert result.rounding_adjustment == Decimal("6000")

    def test_odd_residual_split_reports_remainder(self):
        result = allocate_residual(
            lines=[_line("R1", 1), _line("R2", 1), _line("R3", 1)],
            net_amount=Decimal("100"),
            residual_products={"R1", "R2", "R3"},
            rounding=RoundingRule.HALF_UP,
        )

        assert [a.allocated for a in result.lines] == [Decimal("33")] * 3
        assert result.rounding_adjustment == Decimal("1")


class TestStrategyResolution:
    """AUTO decision table."""

    @pytest.mark.parametrize("all_approved,residual_allowed,expected,reason", [
        (True, True, AllocationStrategy.RELATIVE_SSP, StrategyReason.ALL_LINES_APPROVED),
        (True, False, AllocationStrategy.RELATIVE_SSP, StrategyReason.ALL_LINES_APPROVED),
        (False, True, AllocationStrategy.RESIDUAL, StrategyReason.RESIDUAL_ALLOWED),
        (False, False, AllocationStrategy.RELATIVE_SSP, StrategyReason.PERMISSIVE_FALLBACK),
    ])
    def test_auto(self, all_approved, residual_allowed, expected, reason):
        resolved = resolve_strategy(AllocationStrategy.AUTO, all_approved, residual_allowed)
        assert resolved.strategy == expected
        assert resolved.reason == reason

    @pytest.mark.parametrize("requested", [
        AllocationStrategy.RELATIVE_SSP,
        AllocationStrategy.RESIDUAL,
    ])
    def test_explicit_request_wins(self, requested):
        resolved = resolve_strategy(requested, False, False)
        assert resolved.strategy == requested
        assert resolved.reason == StrategyReason.EXPLICIT

    def test_parse_known(self):
        assert parse_strategy("RESIDUAL") == AllocationStrategy.RESIDUAL
        assert parse_strategy(AllocationStrategy.AUTO) is AllocationStrategy.AUTO

    def test_parse_unknown(self):
        with pytest.raises(UnknownStrategyError) as exc_info:
            parse_strategy("FIFO")
        assert exc_info.value.strategy == "FIFO"


class TestRounding:

    @pytest.mark.parametrize("value,half_up,bankers", [
        ("2.5", "3", "2"),
        ("3.5", "4", "4"),
        ("-2.5", "-3", "-2"),
        ("2.4", "2", "2"),
        ("2.6", "3", "3"),
    ])
    def test_rules(self, value, half_up, bankers):
        assert apply_rounding(Decimal(value), RoundingRule.HALF_UP) == Decimal(half_up)
        assert apply_rounding(Decimal(value), RoundingRule.BANKERS) == Decimal(bankers)


_amounts = st.decimals(min_value=Decimal("0"), max_value=Decimal("1000000"), places=2)
_ssps = st.decimals(min_value=Decimal("0.01"), max_value=Decimal("100000"), places=2)


class TestConservation:
    """sum(allocated) + rounding_adjustment == net, always."""

    @given(
        lines=st.lists(st.tuples(_amounts, _ssps), min_size=1, max_size=8),
        net=_amounts,
        rule=st.sampled_from(list(RoundingRule)),
    )
    @settings(max_examples=200)
    def test_relative_ssp_conserves(self, lines, net, rule):
        inputs = [_line(f"P{i}", amount, ssp) for i, (amount, ssp) in enumerate(lines)]

        result = allocate_relative_ssp(lines=inputs, net_amount=net, rounding=rule)

        assert len(result.lines) == len(inputs)
        assert sum(a.allocated for a in result.lines) + result.rounding_adjustment == net

    @given(
        lines=st.lists(
            st.tuples(_amounts, st.one_of(st.none(), _ssps), st.booleans()),
            min_size=1,
            max_size=8,
        ),
        net=_amounts,
        rule=st.sampled_from(list(RoundingRule)),
    )
    @settings(max_examples=200)
    def test_residual_conserves(self, lines, net, rule):
        inputs = [_line(f"P{i}", amount, ssp) for i, (amount, ssp, _) in enumerate(lines)]
        residual = {f"P{i}" for i, (_, _, is_residual) in enumerate(lines) if is_residual}

        result = allocate_residual(
            lines=inputs, net_amount=net, residual_products=residual, rounding=rule,
        )

        assert sum(a.allocated for a in result.lines) + result.rounding_adjustment == net
        assert all(a.allocated >= 0 for a in result.lines)
