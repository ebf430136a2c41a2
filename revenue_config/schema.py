"""
Configuration schema (``revenue_config.schema``).

Responsibility
--------------
Frozen dataclasses describing every runtime setting of the revenue
engine.  Validation happens in ``__post_init__`` so an invalid YAML file
fails at load time, not halfway through an allocation run.

Architecture position
---------------------
**Config layer** -- pure data.  No I/O; loading is ``loader.py``'s job.
The kernel MUST NEVER import from ``revenue_config``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Self

_RECOGNITION_METHODS = ("POINT_IN_TIME", "RATABLE_DAILY", "RATABLE_MONTHLY", "USAGE")


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite://"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url must not be empty")
        if self.pool_size <= 0:
            raise ValueError("database.pool_size must be positive")
        if self.max_overflow < 0:
            raise ValueError("database.max_overflow cannot be negative")


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"

    def __post_init__(self) -> None:
        if self.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"logging.level is not a logging level: {self.level!r}")


@dataclass(frozen=True)
class RevenueEngineConfig:
    """
    Runtime settings for the allocation and modification services.

    Guarantees:
        - allocation_decimal_places >= 0.
        - default_recognition_method is a known recognition method.
        - default_constraint_threshold lies in [0, 1].
        - 0 < default_query_limit <= max_query_limit.
    """

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    # Allocation
    allocation_decimal_places: int = 0
    default_recognition_method: str = "RATABLE_MONTHLY"
    default_uom: str = "EA"
    default_currency: str = "USD"

    # Variable consideration
    default_constraint_threshold: Decimal = Decimal("0.5")

    # Bundles
    weight_tolerance: Decimal = Decimal("0.0001")

    # Read-side pagination
    default_query_limit: int = 50
    max_query_limit: int = 100

    def __post_init__(self) -> None:
        if self.allocation_decimal_places < 0:
            raise ValueError("allocation_decimal_places cannot be negative")
        if self.default_recognition_method not in _RECOGNITION_METHODS:
            raise ValueError(
                f"default_recognition_method must be one of {_RECOGNITION_METHODS}"
            )
        if not (Decimal("0") <= self.default_constraint_threshold <= Decimal("1")):
            raise ValueError("default_constraint_threshold must be within [0, 1]")
        if self.weight_tolerance <= 0:
            raise ValueError("weight_tolerance must be positive")
        if not (0 < self.default_query_limit <= self.max_query_limit):
            raise ValueError("default_query_limit must be in (0, max_query_limit]")

    @classmethod
    def with_defaults(cls) -> Self:
        """Config with the built-in defaults (no YAML involved)."""
        return cls()

    def clamp_limit(self, limit: int | None) -> int:
        """Page size for a read query: default when unset, capped at max."""
        if limit is None or limit <= 0:
            return self.default_query_limit
        return min(limit, self.max_query_limit)
