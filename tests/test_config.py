"""
Unit tests for configuration loading and validation.

Tests strict validation and environment overrides for metering configs.
"""

import os
import tempfile
from decimal import Decimal

import pytest
import yaml

from relay_metering.config.loader import (
    ENV_DATA_DIR,
    ENV_DEFAULT_RATE_MULTIPLIER,
    MeteringConfig,
    UnknownModelPolicy,
    apply_env_overrides,
    load_metering_config,
)


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_valid_config_loads_correctly(self):
        """Test that a full configuration loads correctly."""
        config_path = self._write_config({
            "data_dir": "/srv/relay/data",
            "unit_size": 1000,
            "default_rate_multiplier": 1.5,
            "unknown_model": "zero",
            "ledger_path": "/srv/relay/usage.db",
            "account_overrides": {
                "key-1": 2.0,
                "key-2": 0.8,
            },
        })
        config = load_metering_config(config_path)

        assert config.data_dir == "/srv/relay/data"
        assert config.unit_size == 1000
        assert config.default_rate_multiplier == Decimal("1.5")
        assert config.unknown_model == UnknownModelPolicy.ZERO
        assert config.ledger_path == "/srv/relay/usage.db"
        assert config.account_overrides == {"key-1": Decimal("2.0"), "key-2": Decimal("0.8")}

    def test_minimal_config_uses_defaults(self):
        """Test that omitted keys fall back to defaults."""
        config = load_metering_config(self._write_config({"data_dir": "data"}))

        assert config.unit_size == 1_000_000
        assert config.default_rate_multiplier is None
        assert config.unknown_model == UnknownModelPolicy.REJECT
        assert config.ledger_path is None
        assert config.account_overrides == {}

    def test_null_default_multiplier_is_unset(self):
        """Test that an explicit null default means no default."""
        config = load_metering_config(self._write_config({"default_rate_multiplier": None}))
        assert config.default_rate_multiplier is None

    def test_missing_file_raises_error(self):
        """Test that missing config file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Metering config file not found"):
            load_metering_config(os.path.join(self.temp_dir, "missing.yaml"))

    def test_empty_file_raises_error(self):
        """Test that empty config file raises ValueError."""
        config_path = os.path.join(self.temp_dir, "empty.yaml")
        open(config_path, 'w').close()
        with pytest.raises(ValueError, match="Configuration file is empty"):
            load_metering_config(config_path)

    def test_invalid_yaml_raises_error(self):
        """Test that invalid YAML raises YAMLError."""
        config_path = os.path.join(self.temp_dir, "bad.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write("data_dir: [unclosed\n")
        with pytest.raises(yaml.YAMLError, match="Invalid YAML"):
            load_metering_config(config_path)

    def test_non_mapping_config_rejected(self):
        """Test that a top-level list is rejected."""
        with pytest.raises(ValueError, match="must be a dictionary"):
            load_metering_config(self._write_config(["data_dir"]))

    def test_unknown_keys_rejected(self):
        """Test that unknown top-level keys are rejected."""
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_metering_config(self._write_config({"data_dir": "data", "currency": "EUR"}))

    @pytest.mark.parametrize("value", [0, -1.5, "1.5", True])
    def test_invalid_default_multiplier_rejected(self, value):
        """Test that the default multiplier must be a number > 0."""
        with pytest.raises(ValueError, match="default_rate_multiplier"):
            load_metering_config(self._write_config({"default_rate_multiplier": value}))

    @pytest.mark.parametrize("value", [0, -1000, 1.5, "1000000"])
    def test_invalid_unit_size_rejected(self, value):
        """Test that unit_size must be a positive integer."""
        with pytest.raises(ValueError, match="unit_size"):
            load_metering_config(self._write_config({"unit_size": value}))

    def test_invalid_unknown_model_policy_rejected(self):
        """Test that the unknown model policy must be a known value."""
        with pytest.raises(ValueError, match="must be one of"):
            load_metering_config(self._write_config({"unknown_model": "guess"}))

    def test_unknown_model_policy_case_insensitive(self):
        """Test that policy values are matched case-insensitively."""
        config = load_metering_config(self._write_config({"unknown_model": "ZERO"}))
        assert config.unknown_model == UnknownModelPolicy.ZERO

    def test_invalid_account_override_rejected(self):
        """Test that every account override must be a number > 0."""
        with pytest.raises(ValueError, match="account_overrides.key-1"):
            load_metering_config(self._write_config({"account_overrides": {"key-1": 0}}))

    def test_account_overrides_must_be_mapping(self):
        """Test that account_overrides must be a dictionary."""
        with pytest.raises(ValueError, match="'account_overrides' must be a dictionary"):
            load_metering_config(self._write_config({"account_overrides": ["key-1"]}))


class TestMeteringConfig:
    """Test MeteringConfig validation."""

    def test_defaults(self):
        """Test the default configuration is valid."""
        config = MeteringConfig()
        assert config.data_dir == "data"
        assert config.unit_size == 1_000_000

    def test_rejects_non_positive_default(self):
        """Test that direct construction validates the default multiplier."""
        with pytest.raises(ValueError, match="default_rate_multiplier"):
            MeteringConfig(default_rate_multiplier=Decimal("0"))

    def test_rejects_empty_data_dir(self):
        """Test that data_dir cannot be empty."""
        with pytest.raises(ValueError, match="data_dir"):
            MeteringConfig(data_dir="")


class TestEnvOverrides:
    """Test environment variable overrides."""

    def test_default_multiplier_from_env(self):
        """Test DEFAULT_RATE_MULTIPLIER sets the default multiplier."""
        config = apply_env_overrides(MeteringConfig(), {ENV_DEFAULT_RATE_MULTIPLIER: "1.5"})
        assert config.default_rate_multiplier == Decimal("1.5")

    def test_env_overrides_file_value(self):
        """Test the environment wins over the file."""
        base = MeteringConfig(default_rate_multiplier=Decimal("2"))
        config = apply_env_overrides(base, {ENV_DEFAULT_RATE_MULTIPLIER: "0.8"})
        assert config.default_rate_multiplier == Decimal("0.8")

    def test_data_dir_from_env(self):
        """Test RELAY_METERING_DATA_DIR sets the data directory."""
        config = apply_env_overrides(MeteringConfig(), {ENV_DATA_DIR: "/tmp/pricing"})
        assert config.data_dir == "/tmp/pricing"

    def test_empty_env_values_ignored(self):
        """Test that blank variables leave the config unchanged."""
        base = MeteringConfig()
        config = apply_env_overrides(base, {ENV_DEFAULT_RATE_MULTIPLIER: "  ", ENV_DATA_DIR: ""})
        assert config is base

    @pytest.mark.parametrize("value", ["0", "-1", "abc", "nan"])
    def test_invalid_env_multiplier_rejected(self, value):
        """Test that an invalid env multiplier is an error, not ignored."""
        with pytest.raises(ValueError, match=ENV_DEFAULT_RATE_MULTIPLIER):
            apply_env_overrides(MeteringConfig(), {ENV_DEFAULT_RATE_MULTIPLIER: value})

    def test_account_overrides_preserved(self):
        """Test that env overrides keep the other settings."""
        base = MeteringConfig(account_overrides={"key-1": Decimal("2")})
        config = apply_env_overrides(base, {ENV_DEFAULT_RATE_MULTIPLIER: "1.5"})
        assert config.account_overrides == {"key-1": Decimal("2")}
