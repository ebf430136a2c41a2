"""
revenue_config -- single public entrypoint for runtime settings.

Responsibility:
    ``get_active_config()`` is the only way services and entrypoints obtain
    settings.  It reads the YAML settings file, applies the DATABASE_URL
    environment override, validates everything into a frozen
    ``RevenueEngineConfig`` and logs the checksum of what was loaded.

Architecture position:
    Configuration -- sits beside ``revenue_kernel``; the kernel MUST NEVER
    import from ``revenue_config``.  Services receive the config object by
    constructor injection.

Failure modes:
    - ``FileNotFoundError`` -- the configured YAML file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ValueError`` -- a setting fails schema validation.

Audit relevance:
    Every call emits a ``revenue_config_loaded`` record carrying the source
    path and SHA-256 checksum, tying a run to the exact settings it used.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from revenue_config.loader import compute_checksum, load_yaml_file, parse_config
from revenue_config.schema import DatabaseSettings, LoggingSettings, RevenueEngineConfig

_logger = logging.getLogger("revenue_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_PATH_ENV = "REVENUE_CONFIG_PATH"
DATABASE_URL_ENV = "DATABASE_URL"


def get_active_config(path: Path | str | None = None) -> RevenueEngineConfig:
    """
    Load and validate the active runtime configuration.

    Resolution order for the file: ``path`` argument, then the
    REVENUE_CONFIG_PATH environment variable, then the packaged
    defaults.yaml.
    """
    source = Path(path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    data = load_yaml_file(source)
    config = parse_config(data, database_url=os.environ.get(DATABASE_URL_ENV))

    _logger.info(
        "revenue_config_loaded",
        extra={
            "config_path": str(source),
            "checksum": compute_checksum(data),
            "allocation_decimal_places": config.allocation_decimal_places,
            "default_constraint_threshold": str(config.default_constraint_threshold),
        },
    )
    return config


__all__ = [
    "DatabaseSettings",
    "LoggingSettings",
    "RevenueEngineConfig",
    "get_active_config",
]
