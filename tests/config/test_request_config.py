"""
Configuration loading tests.

Covers the LoanRequestConfig schema, the YAML loader and the
LOAN_CONFIG_TRACE emitted for every loaded configuration.
"""

import pytest
import yaml

from loan_config import DEFAULT_CONFIG_PATH, compute_checksum, get_active_config, parse_config
from loan_kernel.domain.models import Priority
from loan_modules.requests.config import LoanRequestConfig


class TestLoanRequestConfig:
    """Schema defaults and validation."""

    def test_defaults(self):
        config = LoanRequestConfig.with_defaults()

        assert config.request_prefix == "LR-"
        assert config.kit_prefix == "KIT-"
        assert config.sequence_width == 3
        assert config.split_child_marker == "P"
        assert config.require_quantity_justification is True
        assert config.default_priority is Priority.MEDIUM
        assert config.overdue_grace_days == 0

    def test_priority_from_string(self):
        config = LoanRequestConfig.from_dict({"default_priority": "urgent"})
        assert config.default_priority is Priority.URGENT

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="request_prefx"):
            LoanRequestConfig.from_dict({"request_prefx": "REQ-"})

    @pytest.mark.parametrize(
        "overrides",
        [
            {"sequence_width": 0},
            {"overdue_grace_days": -1},
            {"request_prefix": "KIT-"},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            LoanRequestConfig(**overrides)

    def test_bad_priority(self):
        with pytest.raises(ValueError):
            LoanRequestConfig(default_priority="whenever")


class TestActiveConfig:
    """Loading YAML through loan_config."""

    def test_packaged_defaults_match_schema_defaults(self):
        assert LoanRequestConfig.load() == LoanRequestConfig()

    def test_load_custom_file(self, tmp_path):
        path = tmp_path / "site.yaml"
        path.write_text(yaml.safe_dump({
            "config_id": "site-a",
            "config_version": 3,
            "requests": {"request_prefix": "REQ-", "overdue_grace_days": 2},
        }))

        config = LoanRequestConfig.load(path)

        assert config.request_prefix == "REQ-"
        assert config.overdue_grace_days == 2
        assert config.kit_prefix == "KIT-"

    def test_config_trace_logged(self, captured_logs):
        pack = get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "LOAN_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["config_id"] == "loan-requests-default"
        assert traces[0]["config_version"] == 1
        assert traces[0]["checksum"] == pack.checksum
        assert traces[0]["config_source"] == str(DEFAULT_CONFIG_PATH)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestParseConfig:
    """Top-level key validation and checksum."""

    def test_missing_key(self):
        with pytest.raises(ValueError, match="missing"):
            parse_config({"config_id": "x", "config_version": 1})

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="unknown"):
            parse_config({"config_id": "x", "config_version": 1, "requests": {}, "extra": 1})

    def test_requests_must_be_mapping(self):
        with pytest.raises(ValueError, match="mapping"):
            parse_config({"config_id": "x", "config_version": 1, "requests": ["a"]})

    def test_checksum_ignores_key_order(self):
        a = {"config_id": "x", "config_version": 1, "requests": {"a": 1, "b": 2}}
        b = {"requests": {"b": 2, "a": 1}, "config_version": 1, "config_id": "x"}

        assert compute_checksum(a) == compute_checksum(b)
        assert parse_config(a).checksum == parse_config(b).checksum

    def test_checksum_changes_with_content(self):
        a = {"config_id": "x", "config_version": 1, "requests": {"a": 1}}
        b = {"config_id": "x", "config_version": 2, "requests": {"a": 1}}

        assert compute_checksum(a) != compute_checksum(b)
