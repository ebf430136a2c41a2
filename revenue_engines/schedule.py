"""
Module: revenue_engines.schedule
Responsibility:
    Period math for recognition schedules: how much of a POB's amount is
    planned in each calendar month under its recognition method.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Persisting the plan and
    revising it is revenue_modules.schedule.service's job.

Invariants enforced:
    - Conservation: planned amounts sum to the input amount exactly (the
      last period absorbs cent rounding), except USAGE, which plans nothing.
    - POINT_IN_TIME     one period, the start month.
    - RATABLE_MONTHLY   equal split over every month start..end inclusive.
    - RATABLE_DAILY     split by the number of days each month contributes
                        to the inclusive start..end range.
    - An end date before the start date collapses to the start date.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from revenue_engines.tracer import traced_engine
from revenue_kernel.db.types import round_money
from revenue_kernel.exceptions import UnknownRecognitionMethodError

SCHEDULE_DECIMAL_PLACES = 2


class RecognitionMethod(str, Enum):
    POINT_IN_TIME = "POINT_IN_TIME"
    RATABLE_DAILY = "RATABLE_DAILY"
    RATABLE_MONTHLY = "RATABLE_MONTHLY"
    USAGE = "USAGE"


def parse_recognition_method(value: RecognitionMethod | str) -> RecognitionMethod:
    """
    Raises:
        UnknownRecognitionMethodError: value names no recognition method.
    """
    if isinstance(value, RecognitionMethod):
        return value
    try:
        return RecognitionMethod(value)
    except ValueError:
        raise UnknownRecognitionMethodError(value) from None


@dataclass(frozen=True)
class PlannedPeriod:
    year: int
    month: int
    amount: Decimal

    @property
    def key(self) -> tuple[int, int]:
        return (self.year, self.month)


def period_of(d: date) -> tuple[int, int]:
    return (d.year, d.month)


def months_between(start: date, end: date) -> list[tuple[int, int]]:
    """Every (year, month) from start's month to end's month inclusive."""
    periods: list[tuple[int, int]] = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        periods.append((year, month))
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return periods


def _days_in_range(year: int, month: int, start: date, end: date) -> int:
    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    lo = max(first, start)
    hi = min(last, end)
    return (hi - lo).days + 1


def _spread(amount: Decimal, periods: list[tuple[int, int]], weights: list[int]) -> tuple[PlannedPeriod, ...]:
    total_weight = sum(weights)
    planned: list[PlannedPeriod] = []
    allocated = Decimal("0")
    last = len(periods) - 1
    for i, ((year, month), weight) in enumerate(zip(periods, weights)):
        if i == last:
            share = amount - allocated
        else:
            share = round_money(
                amount * Decimal(weight) / Decimal(total_weight),
                SCHEDULE_DECIMAL_PLACES,
            )
            allocated += share
        planned.append(PlannedPeriod(year=year, month=month, amount=share))
    return tuple(planned)


@traced_engine(
    "schedule.plan", "1.0",
    fingerprint_fields=("method", "amount", "start_date", "end_date"),
)
def plan_schedule(
    *,
    method: RecognitionMethod,
    amount: Decimal,
    start_date: date,
    end_date: date | None = None,
) -> tuple[PlannedPeriod, ...]:
    """Monthly recognition plan for ``amount`` between the two dates."""
    end = end_date if end_date is not None and end_date >= start_date else start_date

    match parse_recognition_method(method):
        case RecognitionMethod.POINT_IN_TIME:
            return (PlannedPeriod(start_date.year, start_date.month, amount),)
        case RecognitionMethod.RATABLE_MONTHLY:
            periods = months_between(start_date, end)
            return _spread(amount, periods, [1] * len(periods))
        case RecognitionMethod.RATABLE_DAILY:
            periods = months_between(start_date, end)
            weights = [_days_in_range(y, m, start_date, end) for y, m in periods]
            return _spread(amount, periods, weights)
        case RecognitionMethod.USAGE:
            return ()
