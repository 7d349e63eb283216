"""
Configuration management and loading.

Handles metering settings from YAML files and environment variables.
"""

import os
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from relay_metering.core.cost import UNIT_SIZE
from relay_metering.core.errors import InvalidMultiplier
from relay_metering.core.multiplier import parse_multiplier


ENV_DEFAULT_RATE_MULTIPLIER = "DEFAULT_RATE_MULTIPLIER"
ENV_DATA_DIR = "RELAY_METERING_DATA_DIR"


class UnknownModelPolicy(Enum):
    """How usage on a model without a quote is billed."""
    REJECT = "reject"
    ZERO = "zero"


@dataclass(frozen=True)
class MeteringConfig:
    """Complete metering configuration."""
    data_dir: str = "data"
    unit_size: int = UNIT_SIZE
    default_rate_multiplier: Optional[Decimal] = None
    unknown_model: UnknownModelPolicy = UnknownModelPolicy.REJECT
    ledger_path: Optional[str] = None
    account_overrides: Dict[str, Decimal] = field(default_factory=dict)

    def __post_init__(self):
        """Validate configuration values."""
        if not self.data_dir:
            raise ValueError("data_dir cannot be empty")
        if isinstance(self.unit_size, bool) or not isinstance(self.unit_size, int) or self.unit_size <= 0:
            raise ValueError("unit_size must be a positive integer")
        if self.default_rate_multiplier is not None:
            object.__setattr__(
                self, "default_rate_multiplier",
                _parse_config_multiplier(self.default_rate_multiplier, "default_rate_multiplier")
            )
        overrides = {
            str(account): _parse_config_multiplier(value, f"account_overrides.{account}")
            for account, value in self.account_overrides.items()
        }
        object.__setattr__(self, "account_overrides", overrides)


def _parse_config_multiplier(value, path: str) -> Decimal:
    try:
        return parse_multiplier(value)
    except InvalidMultiplier:
        raise ValueError(f"'{path}' must be a number > 0") from None


def load_metering_config(path: str) -> MeteringConfig:
    """Load and validate metering configuration from YAML file.

    Strict validation ensures a typo cannot silently bill every account at
    the wrong rate.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated MeteringConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Metering config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_keys = {
        'data_dir', 'unit_size', 'default_rate_multiplier',
        'unknown_model', 'ledger_path', 'account_overrides'
    }
    unknown_keys = set(raw_config.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    values = {}

    if 'data_dir' in raw_config:
        if not isinstance(raw_config['data_dir'], str):
            raise ValueError("'data_dir' must be a string")
        values['data_dir'] = raw_config['data_dir']

    if 'unit_size' in raw_config:
        unit_size = raw_config['unit_size']
        if isinstance(unit_size, bool) or not isinstance(unit_size, int) or unit_size <= 0:
            raise ValueError("'unit_size' must be a positive integer")
        values['unit_size'] = unit_size

    if raw_config.get('default_rate_multiplier') is not None:
        multiplier = raw_config['default_rate_multiplier']
        if isinstance(multiplier, bool) or not isinstance(multiplier, (int, float)):
            raise ValueError("'default_rate_multiplier' must be a number > 0")
        values['default_rate_multiplier'] = multiplier

    if 'unknown_model' in raw_config:
        policy = raw_config['unknown_model']
        if not isinstance(policy, str):
            raise ValueError("'unknown_model' must be a string")
        try:
            values['unknown_model'] = UnknownModelPolicy(policy.lower())
        except ValueError:
            valid_policies = [policy.value for policy in UnknownModelPolicy]
            raise ValueError(f"'unknown_model' must be one of: {valid_policies}")

    if raw_config.get('ledger_path') is not None:
        if not isinstance(raw_config['ledger_path'], str):
            raise ValueError("'ledger_path' must be a string")
        values['ledger_path'] = raw_config['ledger_path']

    overrides_data = raw_config.get('account_overrides') or {}
    if not isinstance(overrides_data, dict):
        raise ValueError("'account_overrides' must be a dictionary")
    for account, multiplier in overrides_data.items():
        if isinstance(multiplier, bool) or not isinstance(multiplier, (int, float)):
            raise ValueError(f"'account_overrides.{account}' must be a number > 0")
    values['account_overrides'] = overrides_data

    return MeteringConfig(**values)


def apply_env_overrides(
    config: MeteringConfig,
    environ: Optional[Mapping[str, str]] = None
) -> MeteringConfig:
    """Layer environment variables over a loaded configuration.

    Honors ``DEFAULT_RATE_MULTIPLIER`` and ``RELAY_METERING_DATA_DIR``.
    Empty values are treated as unset.

    Raises:
        ValueError: If ``DEFAULT_RATE_MULTIPLIER`` is not a number > 0
    """
    environ = os.environ if environ is None else environ
    changes = {}

    raw_multiplier = environ.get(ENV_DEFAULT_RATE_MULTIPLIER, "").strip()
    if raw_multiplier:
        changes['default_rate_multiplier'] = _parse_config_multiplier(
            raw_multiplier, ENV_DEFAULT_RATE_MULTIPLIER
        )

    data_dir = environ.get(ENV_DATA_DIR, "").strip()
    if data_dir:
        changes['data_dir'] = data_dir

    return replace(config, **changes) if changes else config
