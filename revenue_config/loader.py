"""
Configuration Loader (``revenue_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the typed
``revenue_config.schema`` dataclasses.  Runtime callers go through
``revenue_config.get_active_config()``; this module is its plumbing.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Numeric ratios are parsed as Decimal via ``str()`` so YAML floats never
  leak binary rounding into thresholds.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError`` from the schema ``__post_init__``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from revenue_config.schema import DatabaseSettings, LoggingSettings, RevenueEngineConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _decimal(value: Any, default: Decimal) -> Decimal:
    if value is None:
        return default
    return Decimal(str(value))


def parse_config(data: dict[str, Any], database_url: str | None = None) -> RevenueEngineConfig:
    """
    Build a RevenueEngineConfig from the parsed YAML mapping.

    ``database_url`` (usually from the environment) overrides database.url.
    """
    db_data = dict(data.get("database") or {})
    if database_url:
        db_data["url"] = database_url
    database = DatabaseSettings(**db_data)
    logging_settings = LoggingSettings(**(data.get("logging") or {}))

    allocation = data.get("allocation") or {}
    vc = data.get("variable_consideration") or {}
    bundles = data.get("bundles") or {}
    queries = data.get("queries") or {}
    defaults = RevenueEngineConfig.with_defaults()

    return RevenueEngineConfig(
        database=database,
        logging=logging_settings,
        allocation_decimal_places=int(
            allocation.get("allocation_decimal_places", defaults.allocation_decimal_places)
        ),
        default_recognition_method=allocation.get(
            "default_recognition_method", defaults.default_recognition_method
        ),
        default_uom=allocation.get("default_uom", defaults.default_uom),
        default_currency=allocation.get("default_currency", defaults.default_currency),
        default_constraint_threshold=_decimal(
            vc.get("default_constraint_threshold"), defaults.default_constraint_threshold
        ),
        weight_tolerance=_decimal(bundles.get("weight_tolerance"), defaults.weight_tolerance),
        default_query_limit=int(queries.get("default_limit", defaults.default_query_limit)),
        max_query_limit=int(queries.get("max_limit", defaults.max_query_limit)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
