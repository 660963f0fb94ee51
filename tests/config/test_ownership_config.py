"""
Tests for ownership configuration loading and the config-to-kernel bridges.

Covers:
- Packaged defaults
- Partial overrides from a YAML file
- Rejection of unknown sections, unknown keys and out-of-range values
- OWNERSHIP_CONFIG environment variable resolution
- Checksum determinism and the OWNERSHIP_CONFIG_TRACE log entry
- Bridges into kernel inputs
"""

from decimal import Decimal

import pytest

from ownership_config import CONFIG_ENV_VAR, get_active_config
from ownership_config.bridges import (
    build_alert_thresholds,
    build_engine_kwargs,
    build_precision,
    build_retry_kwargs,
    default_costing_method,
)
from ownership_config.loader import DEFAULTS_PATH, load_config
from ownership_engines.costing import CostingMethod
from ownership_kernel.domain.precision import DEFAULT_PRECISION


@pytest.fixture(autouse=True)
def _no_env_override(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


@pytest.fixture
def write_config(tmp_path):
    def _write(text: str, name: str = "ownership.yaml"):
        path = tmp_path / name
        path.write_text(text)
        return path

    return _write


class TestDefaults:
    def test_packaged_defaults(self):
        config = get_active_config()

        assert config.source == str(DEFAULTS_PATH)
        assert config.precision.money_places == 2
        assert config.precision.fraction_places == 6
        assert config.alerts.low_ownership_threshold == Decimal("0.5")
        assert config.alerts.high_outstanding_amount == Decimal("10000")
        assert config.retry.max_attempts == 3
        assert config.database.url == "sqlite:///:memory:"
        assert config.costing.default_method == "weighted_average"

    def test_checksum_is_deterministic(self):
        assert load_config().checksum == load_config().checksum
        assert len(load_config().checksum) == 64


class TestOverrides:
    def test_partial_override_keeps_other_defaults(self, write_config):
        path = write_config(
            "alerts:\n"
            "  high_outstanding_amount: '5000'\n"
            "costing:\n"
            "  default_method: FIFO\n"
        )

        config = get_active_config(path)

        assert config.source == str(path)
        assert config.alerts.high_outstanding_amount == Decimal("5000")
        assert config.alerts.low_ownership_threshold == Decimal("0.5")
        assert config.costing.default_method == "fifo"
        assert config.checksum != load_config().checksum

    def test_environment_variable(self, write_config, monkeypatch):
        path = write_config("retry:\n  max_attempts: 7\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        assert get_active_config().retry.max_attempts == 7

    def test_explicit_path_beats_environment(self, write_config, monkeypatch):
        env_path = write_config("retry:\n  max_attempts: 7\n", name="env.yaml")
        arg_path = write_config("retry:\n  max_attempts: 2\n", name="arg.yaml")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(env_path))

        assert get_active_config(arg_path).retry.max_attempts == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestValidation:
    @pytest.mark.parametrize(
        "text,match",
        [
            ("pricing:\n  markup: 2\n", "Unknown configuration section"),
            ("retry:\n  attempts: 2\n", "Unknown key"),
            ("retry: 5\n", "must be a mapping"),
            ("- a\n- b\n", "top level must be a mapping"),
            ("precision:\n  money_places: 12\n", "between 0 and 9"),
            ("alerts:\n  low_ownership_threshold: '50'\n", r"fraction in \[0, 1\]"),
            ("alerts:\n  high_severity_ownership: '0.75'\n", "cannot exceed"),
            ("alerts:\n  high_outstanding_amount: lots\n", "must be a decimal"),
            ("retry:\n  max_attempts: 0\n", "at least 1"),
            ("retry:\n  backoff_seconds: -1\n", "cannot be negative"),
            ("costing:\n  default_method: average\n", "must be one of"),
        ],
    )
    def test_invalid_files_rejected(self, write_config, text, match):
        with pytest.raises(ValueError, match=match):
            load_config(write_config(text))


class TestTrace:
    def test_config_trace_logged(self, captured_logs):
        config = get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "OWNERSHIP_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["source"] == config.source
        assert traces[0]["costing_method"] == "weighted_average"


class TestBridges:
    def test_default_precision_matches_kernel_default(self):
        assert build_precision(load_config()) == DEFAULT_PRECISION

    def test_alert_thresholds(self, write_config):
        config = load_config(write_config("alerts:\n  low_ownership_threshold: '0.4'\n"))

        thresholds = build_alert_thresholds(config)

        assert thresholds.low_ownership == Decimal("0.4")
        assert thresholds.high_severity_ownership == Decimal("0.25")

    def test_retry_and_engine_kwargs(self):
        config = load_config()

        assert build_retry_kwargs(config) == {
            "max_attempts": 3,
            "backoff_seconds": 0.05,
            "precision": DEFAULT_PRECISION,
        }
        assert build_engine_kwargs(config)["database_url"] == "sqlite:///:memory:"

    def test_costing_method(self, write_config):
        config = load_config(write_config("costing:\n  default_method: lifo\n"))
        assert default_costing_method(config) is CostingMethod.LIFO
