"""
Configuration Module.

Centralizes all simulation constants and loads run configurations from YAML.
A configuration is validated as a whole before any simulation state exists.
"""
import os
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr, ValidationError, field_validator

# ==========================================
# SIMULATION SETTINGS
# ==========================================
DEFAULT_VALIDATORS_COUNT = 10
DEFAULT_STAKE_SPREAD_FACTOR = 2    # Higher = bigger gap between largest and smallest stakes

# VDF timing (ticks)
DEFAULT_VDF_BLOCK_TICKS = 1000     # Ticks per block of VDF depth
DEFAULT_VDF_MAX_WEIGHT_TICKS = 500 # Extra ticks for a zero weight block
DEFAULT_LATENCY_TICKS = 50         # Network delay towards other validators
DEFAULT_VDF_APPLY_RETRY_TICKS = 10 # Wait before retrying an early VDF

# Finality
DEFAULT_FINALIZATION_WEIGHT = 2    # Cumulative weight required to finalize
DEFAULT_STOP_HEIGHT = 1000         # Validators stop starting VDFs at this height
DEFAULT_STEP_STOP = None           # Max processed events (debugging)

# Weight formula
DEFAULT_SEED = "seed"
DEFAULT_FLOAT_PRECISION = 53       # Bits of mantissa

# Win-rate harness
DEFAULT_WINRATE_VALIDATORS = 1000
DEFAULT_WINRATE_SHARDS = 1
DEFAULT_WINRATE_EPOCHS = 1
DEFAULT_WINRATE_HEIGHTS_PER_EPOCH = 1000
DEFAULT_WINRATE_SPREAD_FACTOR = 20
DEFAULT_WINRATE_TOP = 10

# ==========================================
# PATHS
# ==========================================
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
RESULTS_DIR = os.path.join(BASE_DIR, '..', 'results')
DEFAULT_CONFIG_PATH = os.path.join(BASE_DIR, '..', 'config.yaml')

DEFAULTS: Dict[str, Any] = {
    'validators_count': DEFAULT_VALIDATORS_COUNT,
    'stake_spread_factor': DEFAULT_STAKE_SPREAD_FACTOR,
    'vdf_block_ticks': DEFAULT_VDF_BLOCK_TICKS,
    'vdf_max_weight_ticks': DEFAULT_VDF_MAX_WEIGHT_TICKS,
    'latency_ticks': DEFAULT_LATENCY_TICKS,
    'vdf_apply_retry_ticks': DEFAULT_VDF_APPLY_RETRY_TICKS,
    'finalization_weight': DEFAULT_FINALIZATION_WEIGHT,
    'stop_height': DEFAULT_STOP_HEIGHT,
    'step_stop': DEFAULT_STEP_STOP,
    'seed': DEFAULT_SEED,
    'float_precision': DEFAULT_FLOAT_PRECISION,
}


class ConfigError(ValueError):
    """Missing, malformed or out-of-range configuration."""


def _describe(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        field = '.'.join(str(p) for p in err['loc'])
        parts.append(f"'{field}': {err['msg']}")
    return '; '.join(parts)


class SimulationConfig(BaseModel):
    model_config = ConfigDict(extra='forbid', frozen=True)

    validators_count: StrictInt = Field(DEFAULT_VALIDATORS_COUNT, ge=1)
    stake_spread_factor: StrictInt = Field(DEFAULT_STAKE_SPREAD_FACTOR, ge=0)

    vdf_block_ticks: StrictInt = Field(DEFAULT_VDF_BLOCK_TICKS, ge=1)
    vdf_max_weight_ticks: StrictInt = Field(DEFAULT_VDF_MAX_WEIGHT_TICKS, ge=0)
    latency_ticks: StrictInt = Field(DEFAULT_LATENCY_TICKS, ge=0)
    vdf_apply_retry_ticks: StrictInt = Field(DEFAULT_VDF_APPLY_RETRY_TICKS, ge=1)

    finalization_weight: Union[StrictInt, StrictFloat] = DEFAULT_FINALIZATION_WEIGHT
    stop_height: StrictInt = Field(DEFAULT_STOP_HEIGHT, ge=1)
    step_stop: Optional[StrictInt] = Field(DEFAULT_STEP_STOP, ge=0)

    seed: StrictStr = DEFAULT_SEED
    float_precision: StrictInt = Field(DEFAULT_FLOAT_PRECISION, ge=1)

    def __init__(self, **values):
        try:
            super().__init__(**values)
        except ValidationError as e:
            raise ConfigError(_describe(e)) from e

    @field_validator('finalization_weight')
    @classmethod
    def _non_negative_weight(cls, value):
        if value < 0:
            raise ValueError(f"must be >= 0, got {value}")
        return value

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'SimulationConfig':
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration must be a mapping, got {type(data).__name__}")
        bad_keys = [k for k in data if not isinstance(k, str)]
        if bad_keys:
            raise ConfigError(f"Configuration keys must be strings, got {bad_keys!r}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()

    def replace(self, **changes) -> 'SimulationConfig':
        """Returns a validated copy with some fields changed."""
        values = self.to_dict()
        values.update(changes)
        return SimulationConfig(**values)

    @property
    def seed_bytes(self) -> bytes:
        return self.seed.encode('utf-8')


def load_config(path: str = DEFAULT_CONFIG_PATH) -> SimulationConfig:
    """
    Loads and validates a YAML simulation config.

    Raises:
        ConfigError: the file is missing, unparsable or invalid.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    return SimulationConfig.from_dict(data)
