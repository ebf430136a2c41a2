"""
Tests for runtime configuration loading and validation.

Covers:
- Built-in defaults
- YAML loading and the DATABASE_URL override
- Schema validation failures
- Query limit clamping
- Checksum determinism
"""

from decimal import Decimal

import pytest
import yaml

from revenue_config import get_active_config
from revenue_config.loader import compute_checksum, load_yaml_file, parse_config
from revenue_config.schema import DatabaseSettings, LoggingSettings, RevenueEngineConfig


class TestDefaults:
    """Built-in defaults match the shipped defaults.yaml."""

    def test_with_defaults(self):
        config = RevenueEngineConfig.with_defaults()

        assert config.allocation_decimal_places == 0
        assert config.default_recognition_method == "RATABLE_MONTHLY"
        assert config.default_uom == "EA"
        assert config.default_currency == "USD"
        assert config.default_constraint_threshold == Decimal("0.5")
        assert config.weight_tolerance == Decimal("0.0001")
        assert config.default_query_limit == 50
        assert config.max_query_limit == 100

    def test_packaged_yaml_loads(self, monkeypatch):
        monkeypatch.delenv("REVENUE_CONFIG_PATH", raising=False)
        monkeypatch.delenv("DATABASE_URL", raising=False)

        config = get_active_config()

        assert config.database.url.startswith("postgresql://")
        assert config.default_constraint_threshold == Decimal("0.5")
        assert config.logging.level == "INFO"

    def test_config_is_frozen(self):
        config = RevenueEngineConfig.with_defaults()
        with pytest.raises(AttributeError):
            config.default_uom = "HR"  # type: ignore[misc]


class TestYamlLoading:
    """Loading from an explicit file and from the environment."""

    def _write(self, tmp_path, data) -> str:
        path = tmp_path / "revenue.yaml"
        path.write_text(yaml.safe_dump(data))
        return str(path)

    def test_explicit_path(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        path = self._write(tmp_path, {
            "database": {"url": "sqlite:///revenue.db"},
            "allocation": {"allocation_decimal_places": 2, "default_uom": "HR"},
            "variable_consideration": {"default_constraint_threshold": "0.7"},
        })

        config = get_active_config(path)

        assert config.database.url == "sqlite:///revenue.db"
        assert config.allocation_decimal_places == 2
        assert config.default_uom == "HR"
        assert config.default_constraint_threshold == Decimal("0.7")
        # untouched sections keep their defaults
        assert config.max_query_limit == 100

    def test_env_path(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        path = self._write(tmp_path, {"queries": {"default_limit": 10, "max_limit": 20}})
        monkeypatch.setenv("REVENUE_CONFIG_PATH", path)

        config = get_active_config()

        assert config.default_query_limit == 10
        assert config.max_query_limit == 20

    def test_database_url_override(self, tmp_path, monkeypatch):
        path = self._write(tmp_path, {"database": {"url": "sqlite:///file.db"}})
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db:5432/revenue")

        config = get_active_config(path)

        assert config.database.url == "postgresql://u:p@db:5432/revenue"

    def test_yaml_float_threshold_parsed_exactly(self):
        config = parse_config({"variable_consideration": {"default_constraint_threshold": 0.3}})
        assert config.default_constraint_threshold == Decimal("0.3")

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_yaml_file(path) == {}
        assert parse_config({}) == RevenueEngineConfig.with_defaults()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_load_emits_checksum(self, tmp_path, monkeypatch, captured_logs):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        path = self._write(tmp_path, {"allocation": {"default_uom": "HR"}})

        get_active_config(path)

        loaded = [r for r in captured_logs() if r["message"] == "revenue_config_loaded"]
        assert len(loaded) == 1
        assert loaded[0]["config_path"] == path
        assert len(loaded[0]["checksum"]) == 64


class TestValidation:
    """Invalid settings fail at load time."""

    @pytest.mark.parametrize("data", [
        {"allocation": {"allocation_decimal_places": -1}},
        {"allocation": {"default_recognition_method": "WHENEVER"}},
        {"variable_consideration": {"default_constraint_threshold": "1.5"}},
        {"variable_consideration": {"default_constraint_threshold": "-0.1"}},
        {"bundles": {"weight_tolerance": "0"}},
        {"queries": {"default_limit": 0}},
        {"queries": {"default_limit": 200, "max_limit": 100}},
    ])
    def test_invalid_engine_settings(self, data):
        with pytest.raises(ValueError):
            parse_config(data)

    def test_invalid_database_settings(self):
        with pytest.raises(ValueError):
            DatabaseSettings(url="")
        with pytest.raises(ValueError):
            DatabaseSettings(pool_size=0)
        with pytest.raises(ValueError):
            DatabaseSettings(max_overflow=-1)

    def test_invalid_logging_level(self):
        with pytest.raises(ValueError):
            LoggingSettings(level="LOUD")

    def test_unknown_database_key(self):
        with pytest.raises(TypeError):
            parse_config({"database": {"hostname": "db"}})


class TestClampLimit:
    """Read-side page sizes."""

    @pytest.mark.parametrize("requested,expected", [
        (None, 50),
        (0, 50),
        (-5, 50),
        (1, 1),
        (50, 50),
        (100, 100),
        (101, 100),
        (10_000, 100),
    ])
    def test_clamp(self, requested, expected):
        assert RevenueEngineConfig.with_defaults().clamp_limit(requested) == expected


class TestChecksum:

    def test_key_order_irrelevant(self):
        a = {"allocation": {"default_uom": "EA", "default_currency": "USD"}, "queries": {}}
        b = {"queries": {}, "allocation": {"default_currency": "USD", "default_uom": "EA"}}
        assert compute_checksum(a) == compute_checksum(b)

    def test_value_change_detected(self):
        a = {"allocation": {"default_uom": "EA"}}
        b = {"allocation": {"default_uom": "HR"}}
        assert compute_checksum(a) != compute_checksum(b)
