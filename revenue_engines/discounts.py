"""
Module: revenue_engines.discounts
Responsibility:
    Typed discount parameters per rule kind, kind-specific eligibility and
    the discount amount a rule yields for an invoice.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Rule storage, effective
    windows and application records live in revenue_modules.discounts.

Invariants enforced:
    - Each DiscountKind has exactly one params type (tagged variants);
      every dispatch point matches exhaustively and raises
      UnknownDiscountKindError otherwise.
    - Amounts:
        PROP / PROMO / PARTNER  total * pct
        RESIDUAL                sum(lines in residual_products) * pct
        TIERED                  total * pct if total >= threshold else 0
    - Eligibility:
        TIERED   total >= threshold
        PROMO    start_date <= as_of <= end_date
        PARTNER  customer in partner_customers
        PROP / RESIDUAL always
    - Usage caps are not consulted here.

Failure modes:
    - ValidationError from parse_params on malformed params.
    - UnknownDiscountKindError on an unknown kind.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Protocol, Union

from revenue_kernel.exceptions import UnknownDiscountKindError, ValidationError

_ZERO = Decimal("0")
_ONE = Decimal("1")


class DiscountKind(str, Enum):
    PROP = "PROP"
    RESIDUAL = "RESIDUAL"
    TIERED = "TIERED"
    PROMO = "PROMO"
    PARTNER = "PARTNER"


@dataclass(frozen=True)
class ProportionalParams:
    pct: Decimal


@dataclass(frozen=True)
class ResidualParams:
    pct: Decimal
    residual_products: tuple[str, ...] = ()


@dataclass(frozen=True)
class TieredParams:
    pct: Decimal
    threshold: Decimal


@dataclass(frozen=True)
class PromoParams:
    pct: Decimal
    start_date: date
    end_date: date


@dataclass(frozen=True)
class PartnerParams:
    pct: Decimal
    partner_customers: tuple[str, ...] = field(default_factory=tuple)


DiscountParams = Union[
    ProportionalParams, ResidualParams, TieredParams, PromoParams, PartnerParams,
]


class PricedLine(Protocol):
    product_id: str
    amount: Decimal


@dataclass(frozen=True)
class DiscountContext:
    """What the eligibility filter knows about the invoice."""

    total_amount: Decimal
    customer_id: str | None = None


def parse_kind(value: DiscountKind | str) -> DiscountKind:
    if isinstance(value, DiscountKind):
        return value
    try:
        return DiscountKind(value)
    except ValueError:
        raise UnknownDiscountKindError(value) from None


def _decimal(raw: Mapping[str, Any], key: str) -> Decimal:
    value = raw.get(key)
    if value is None:
        raise ValidationError(key, f"discount params missing {key!r}")
    if isinstance(value, bool):
        raise ValidationError(key, f"discount param {key!r} must be numeric")
    if isinstance(value, float):
        # JSON numbers arrive as floats; go through their shortest repr
        value = repr(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValidationError(key, f"discount param {key!r} must be numeric") from None


def _date(raw: Mapping[str, Any], key: str) -> date:
    value = raw.get(key)
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(key, f"discount params missing {key!r}")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(key, f"discount param {key!r} is not an ISO date") from None


def _strings(raw: Mapping[str, Any], key: str) -> tuple[str, ...]:
    value = raw.get(key)
    if not isinstance(value, (list, tuple)):
        raise ValidationError(key, f"discount param {key!r} must be a list")
    return tuple(str(v) for v in value)


def parse_params(kind: DiscountKind | str, raw: Mapping[str, Any]) -> DiscountParams:
    """
    Build the typed params for ``kind`` from their JSON form.

    Raises:
        UnknownDiscountKindError: unknown kind.
        ValidationError: a required key is missing or malformed.
    """
    match parse_kind(kind):
        case DiscountKind.PROP:
            return ProportionalParams(pct=_decimal(raw, "pct"))
        case DiscountKind.RESIDUAL:
            return ResidualParams(
                pct=_decimal(raw, "pct"),
                residual_products=_strings(raw, "residual_products"),
            )
        case DiscountKind.TIERED:
            return TieredParams(
                pct=_decimal(raw, "pct"),
                threshold=_decimal(raw, "threshold"),
            )
        case DiscountKind.PROMO:
            return PromoParams(
                pct=_decimal(raw, "pct"),
                start_date=_date(raw, "start_date"),
                end_date=_date(raw, "end_date"),
            )
        case DiscountKind.PARTNER:
            return PartnerParams(
                pct=_decimal(raw, "pct"),
                partner_customers=_strings(raw, "partner_customers"),
            )
        case other:
            raise UnknownDiscountKindError(other)


def params_to_json(params: DiscountParams) -> dict[str, Any]:
    """JSON form of typed params (Decimals and dates as strings)."""
    match params:
        case ProportionalParams(pct=pct):
            return {"pct": str(pct)}
        case ResidualParams(pct=pct, residual_products=products):
            return {"pct": str(pct), "residual_products": list(products)}
        case TieredParams(pct=pct, threshold=threshold):
            return {"pct": str(pct), "threshold": str(threshold)}
        case PromoParams(pct=pct, start_date=start, end_date=end):
            return {
                "pct": str(pct),
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
            }
        case PartnerParams(pct=pct, partner_customers=customers):
            return {"pct": str(pct), "partner_customers": list(customers)}
        case _:
            raise UnknownDiscountKindError(type(params).__name__)


def validate_params(kind: DiscountKind | str, raw: Mapping[str, Any]) -> bool:
    """
    Advisory validator for raw params.

    pct must lie in [0, 1]; TIERED needs threshold > 0; PROMO needs both
    dates; PARTNER and RESIDUAL need their lists.  Unknown kinds are
    invalid rather than an error here.
    """
    try:
        params = parse_params(kind, raw)
    except (UnknownDiscountKindError, ValidationError):
        return False
    if not (_ZERO <= params.pct <= _ONE):
        return False
    if isinstance(params, TieredParams) and params.threshold <= _ZERO:
        return False
    return True


def is_eligible(params: DiscountParams, as_of: date, context: DiscountContext) -> bool:
    """Kind-specific eligibility of an otherwise active, in-window rule."""
    match params:
        case TieredParams(threshold=threshold):
            return context.total_amount >= threshold
        case PromoParams(start_date=start, end_date=end):
            return start <= as_of <= end
        case PartnerParams(partner_customers=customers):
            return context.customer_id is not None and str(context.customer_id) in customers
        case ProportionalParams() | ResidualParams():
            return True
        case _:
            raise UnknownDiscountKindError(type(params).__name__)


def calculate_amount(
    params: DiscountParams,
    lines: Sequence[PricedLine],
    total_amount: Decimal,
) -> Decimal:
    """Discount amount a rule yields for an invoice (unrounded)."""
    match params:
        case ProportionalParams(pct=pct) | PromoParams(pct=pct) | PartnerParams(pct=pct):
            return total_amount * pct
        case ResidualParams(pct=pct, residual_products=products):
            eligible = sum(
                (line.amount for line in lines if line.product_id in products),
                _ZERO,
            )
            return eligible * pct
        case TieredParams(pct=pct, threshold=threshold):
            if total_amount >= threshold:
                return total_amount * pct
            return _ZERO
        case _:
            raise UnknownDiscountKindError(type(params).__name__)
