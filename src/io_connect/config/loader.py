from enum import Enum
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import BaseModel, Field, field_validator

from io_connect.constants import CURSOR_LIMIT, DEFAULT_TIMEOUT_SECONDS

DEFAULT_CONFIG_PATH = Path("io_connect.config.yaml")


class RetrievalMode(str, Enum):
    """How a multi-sensor query is walked against the backend."""

    BATCHED = "batched"
    PER_SENSOR = "per_sensor"


class RetryPolicy(BaseModel):
    """Bounded retry with a short delay for early attempts and a long one after."""

    max_attempts: int = Field(default=15, ge=1)
    short_delay_ms: int = Field(default=2000, ge=0)
    long_delay_ms: int = Field(default=4000, ge=0)
    long_delay_threshold_attempts: int = Field(default=5, ge=0)


DEFAULT_RETRY_POLICY = RetryPolicy()
INFLUX_RETRY_POLICY = RetryPolicy(max_attempts=8, short_delay_ms=2000, long_delay_ms=10000)
CONSUMPTION_RETRY_POLICY = RetryPolicy(max_attempts=3, short_delay_ms=1000, long_delay_ms=3000)


class RetrySettings(BaseModel):
    default: RetryPolicy = Field(default_factory=lambda: DEFAULT_RETRY_POLICY.model_copy())
    influx: RetryPolicy = Field(default_factory=lambda: INFLUX_RETRY_POLICY.model_copy())
    consumption: RetryPolicy = Field(default_factory=lambda: CONSUMPTION_RETRY_POLICY.model_copy())


class RetrievalSettings(BaseModel):
    mode: RetrievalMode = RetrievalMode.BATCHED
    cursor_limit: int = Field(default=CURSOR_LIMIT, ge=1)
    verify_device: bool = True


class ConnectSettings(BaseModel):
    """Validated client settings."""

    user_id: str
    data_url: str
    on_prem: bool = False
    tz: str = "UTC"
    log_time: bool = False
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)

    @field_validator("user_id", "data_url")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()


def load_config(path: Path | None = None) -> Dict[str, Any]:
    """
    Load client configuration from YAML file.

    Args:
        path: Optional path to the config file. Defaults to io_connect.config.yaml

    Returns:
        Dictionary with the raw configuration

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the file does not hold a mapping
    """
    cfg_path = path or DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError("Config must be a dictionary")
    for section in ("retrieval", "retry"):
        if section in config and not isinstance(config[section], dict):
            raise ValueError(f"Config '{section}' must be a dictionary")
    return config


def build_settings(config: Dict[str, Any]) -> ConnectSettings:
    """
    Build validated settings from a raw config dict.

    Accepts both snake_case keys and the camelCase keys used by the
    platform's other SDKs (``userId``, ``dataUrl``, ``onPrem``,
    ``logTime``).
    """
    aliases = {
        "userId": "user_id",
        "dataUrl": "data_url",
        "onPrem": "on_prem",
        "logTime": "log_time",
    }
    normalized = {aliases.get(key, key): value for key, value in config.items()}
    return ConnectSettings.model_validate(normalized)
