"""Configuration loading, validation, and access."""

from __future__ import annotations

import copy
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from market_data_downloader.core.exceptions import ConfigError
from market_data_downloader.core.models import Granularity, OutputFormat, Provider

# Environment variable holding each provider's API key
API_KEY_ENV_VARS: dict[Provider, str] = {
    Provider.POLYGON: "POLYGON_API_KEY",
    Provider.TWELVEDATA: "TWELVEDATA_API_KEY",
}

# Keys that would carry credentials; only the environment may supply those
_SECRET_KEYS = frozenset({"api_key", "apikey", "polygon_api_key", "twelvedata_api_key"})


class HttpConfig(BaseModel):
    """Outbound HTTP configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout: float = 30.0
    user_agent: str = "market-data-downloader/0.1"

    @field_validator("timeout")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout must be > 0")
        return v


class OutputConfig(BaseModel):
    """Defaults for where and how bars are written."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    directory: str = "output"
    format: OutputFormat = OutputFormat.CSV
    precision: int = 2
    include_header: bool = True
    split_by_day: bool = False

    @field_validator("precision")
    @classmethod
    def precision_in_range(cls, v: int) -> int:
        if v < 0 or v > 10:
            raise ValueError("precision must be between 0 and 10")
        return v


class DownloaderConfig(BaseModel):
    """Root configuration for market-data-downloader.

    API keys are deliberately absent: they are resolved per run by
    resolve_api_key() and never read from the config file.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    provider: Provider = Provider.POLYGON
    granularity: Granularity = Granularity.MINUTE
    rate_limit_wait_secs: float = 12.0
    http: HttpConfig = HttpConfig()
    output: OutputConfig = OutputConfig()

    @field_validator("rate_limit_wait_secs")
    @classmethod
    def wait_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("rate_limit_wait_secs must be >= 0")
        return v


def load_config(
    config_path: str | None = None,
    env_prefix: str = "MARKET_DATA_",
) -> DownloaderConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (MARKET_DATA_HTTP__TIMEOUT, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        MARKET_DATA_OUTPUT__PRECISION=4  ->  output.precision = 4

    Unknown keys are rejected from either source, so a misspelt
    ``MARKET_DATA_OUTPUT__PRECISON`` fails loudly instead of being ignored.
    API keys are never accepted here; see resolve_api_key().
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        _reject_secrets(merged)
        return DownloaderConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid configuration: {_describe_errors(e)}",
            context={"source": "load_config", "fields": _error_fields(e)},
        ) from e
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def resolve_api_key(
    provider: Provider,
    explicit: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Return the API key for ``provider``.

    An explicit value (e.g. ``--apikey``) wins; otherwise the provider's
    environment variable is consulted.

    Raises:
        ConfigError: If neither source yields a non-empty key. The message
            names the expected environment variable.
    """
    env_var = API_KEY_ENV_VARS[provider]
    if explicit:
        return explicit

    env = os.environ if environ is None else environ
    value = env.get(env_var, "").strip()
    if value:
        return value

    raise ConfigError(
        f"API key not provided. Use --apikey or set {env_var}.",
        context={"field": env_var, "provider": provider.value},
    )


def _resolve_config_path(explicit: str | None) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_path = os.environ.get("MARKET_DATA_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from MARKET_DATA_CONFIG not found: {env_path}",
                context={"field": "MARKET_DATA_CONFIG", "value": env_path},
            )
        return p

    default = Path("market-data.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels.
    Values are auto-cast: "true"/"false" -> bool, numeric strings -> int/float.
    """
    result = copy.deepcopy(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        parts = [p.lower() for p in remainder.split("__")]

        # Skip the CONFIG env var itself
        if parts == ["config"]:
            continue

        cast_value = _auto_cast(value)

        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        target[parts[-1]] = cast_value

    return result


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value


def _reject_secrets(data: dict, prefix: str = "") -> None:
    """Refuse credential-looking keys anywhere in the merged config."""
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if str(key).lower() in _SECRET_KEYS:
            env_vars = " or ".join(API_KEY_ENV_VARS.values())
            raise ConfigError(
                f"API keys are not read from configuration ({dotted}); "
                f"use --apikey or set {env_vars}.",
                context={"field": dotted},
            )
        if isinstance(value, dict):
            _reject_secrets(value, f"{dotted}.")


def _error_fields(e: ValidationError) -> list[str]:
    return [".".join(str(p) for p in err["loc"]) for err in e.errors()]


def _describe_errors(e: ValidationError) -> str:
    return "; ".join(
        f"{field}: {err['msg']}" for field, err in zip(_error_fields(e), e.errors())
    )
