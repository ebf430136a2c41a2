"""Database layer - engine helpers, base classes and column types."""

from revenue_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from revenue_kernel.db.engine import (
    create_engine_from_url,
    create_session_factory,
    create_tables,
    drop_tables,
    session_scope,
    unit_of_work,
)
from revenue_kernel.db.types import Currency, Money, Ratio, round_money, to_decimal

__all__ = [
    "Base",
    "TrackedBase",
    "UUID",
    "UUIDString",
    "create_engine_from_url",
    "create_session_factory",
    "create_tables",
    "drop_tables",
    "session_scope",
    "unit_of_work",
    "Currency",
    "Money",
    "Ratio",
    "round_money",
    "to_decimal",
]
