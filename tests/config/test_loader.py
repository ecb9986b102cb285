"""
Rule-set loading and validation.

Covers the bundled default rule set, checksum identity, collected
validation errors, and the RECOVERY_CONFIG_TRACE audit log.
"""

import copy
from decimal import Decimal

import pytest
import yaml

from recovery_config import DEFAULT_CONFIG_PATH, get_active_config
from recovery_config.loader import compute_checksum, load_yaml_file, parse_config
from recovery_kernel.exceptions import ConfigValidationError


@pytest.fixture
def raw_default() -> dict:
    return load_yaml_file(DEFAULT_CONFIG_PATH)


def _write(tmp_path, data: dict):
    path = tmp_path / "rules.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaultRuleSet:
    """The bundled rule set loads into frozen engine parameters."""

    def test_identity(self, recovery_config):
        assert recovery_config.config_id == "recovery-default"
        assert recovery_config.version == 3
        assert len(recovery_config.checksum) == 64
        int(recovery_config.checksum, 16)

    def test_ingestion_settings(self, recovery_config):
        assert recovery_config.ingestion.batch_size == 500
        assert recovery_config.ingestion.delimiter == ","
        assert recovery_config.ingestion.required_columns == ("trgid",)

    def test_fee_schedule(self, recovery_config):
        schedule = recovery_config.fee_schedule
        assert schedule.gated_client_source == "WMUS"
        assert schedule.rounding_quantum == Decimal("0.01")
        assert all(isinstance(r.rate, Decimal) for r in schedule.marketplace_rates)
        assert "dsv" in schedule.formula_exempt_keywords

    def test_reporting_settings(self, recovery_config):
        assert recovery_config.reporting.excluded_marketplace == "Transfer"
        assert recovery_config.reporting.owned_program_keyword == "owned"
        assert recovery_config.reporting.trend_weeks == 12

    def test_config_is_frozen(self, recovery_config):
        with pytest.raises(AttributeError):
            recovery_config.version = 4


class TestChecksum:

    def test_deterministic(self, raw_default):
        assert compute_checksum(raw_default) == compute_checksum(copy.deepcopy(raw_default))

    def test_key_order_does_not_matter(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})

    def test_changes_with_content(self, raw_default):
        changed = copy.deepcopy(raw_default)
        changed["version"] = 99
        assert compute_checksum(changed) != compute_checksum(raw_default)


class TestValidation:
    """Every problem in a document is reported at once."""

    def test_missing_fallback_rate(self, raw_default):
        del raw_default["fees"]["fallback_rate"]
        with pytest.raises(ConfigValidationError) as exc_info:
            parse_config(raw_default, "test")
        assert "fees.fallback_rate is required" in exc_info.value.errors
        assert exc_info.value.source == "test"

    @pytest.mark.parametrize("batch_size", [0, -5, "big"])
    def test_invalid_batch_size(self, raw_default, batch_size):
        raw_default["ingestion"]["batch_size"] = batch_size
        with pytest.raises(ConfigValidationError) as exc_info:
            parse_config(raw_default, "test")
        assert any(
            e.startswith("ingestion.batch_size must be a positive integer")
            for e in exc_info.value.errors
        )

    def test_multi_character_delimiter(self, raw_default):
        raw_default["ingestion"]["delimiter"] = ";;"
        with pytest.raises(ConfigValidationError) as exc_info:
            parse_config(raw_default, "test")
        assert any("delimiter" in e for e in exc_info.value.errors)

    def test_keyword_list_must_be_strings(self, raw_default):
        raw_default["fees"]["electronics_keywords"] = ["computer", 7]
        with pytest.raises(ConfigValidationError) as exc_info:
            parse_config(raw_default, "test")
        assert "fees.electronics_keywords must be a list of strings" in exc_info.value.errors

    def test_non_decimal_rate(self, raw_default):
        raw_default["fees"]["fallback_rate"] = "twelve percent"
        with pytest.raises(ConfigValidationError) as exc_info:
            parse_config(raw_default, "test")
        assert any(e.startswith("fees.fallback_rate must be a decimal") for e in exc_info.value.errors)

    def test_all_problems_collected(self, raw_default):
        del raw_default["fees"]["fallback_rate"]
        raw_default["ingestion"]["batch_size"] = 0
        del raw_default["channels"]["auction_channel"]
        with pytest.raises(ConfigValidationError) as exc_info:
            parse_config(raw_default, "test")
        errors = exc_info.value.errors
        assert "fees.fallback_rate is required" in errors
        assert "channels.auction_channel is required" in errors
        assert any(e.startswith("ingestion.batch_size") for e in errors)

    def test_missing_sections(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            parse_config({}, "empty")
        assert "config.fees is required" in exc_info.value.errors
        assert "config.channels is required" in exc_info.value.errors


class TestGetActiveConfig:

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_custom_rule_set(self, tmp_path, raw_default):
        raw_default["config_id"] = "custom"
        raw_default["ingestion"]["batch_size"] = 50
        config = get_active_config(_write(tmp_path, raw_default))

        assert config.config_id == "custom"
        assert config.ingestion.batch_size == 50
        assert config.source.endswith("rules.yaml")

    def test_trace_logged(self, captured_logs):
        config = get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "RECOVERY_CONFIG_TRACE"]
        assert traces
        assert traces[-1]["config_id"] == config.config_id
        assert traces[-1]["config_version"] == config.version
        assert traces[-1]["checksum"] == config.checksum
