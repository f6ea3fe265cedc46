"""TOML config loader with environment variable overrides."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any


class ConfigError(Exception):
    """Raised when config loading, validation or run-parameter resolution fails."""


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base, returning a new dict."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: dict[str, Any], prefix: str = "KLINES") -> dict[str, Any]:
    """Apply environment variable overrides.

    Env var naming: KLINES__section__key=value (double underscore separator).
    Nested keys: KLINES__fetch__symbol=ETHUSDT
    """
    result = dict(config)
    env_prefix = f"{prefix}__"

    for env_key, env_value in os.environ.items():
        if not env_key.startswith(env_prefix):
            continue

        parts = env_key[len(env_prefix) :].lower().split("__")
        target = result
        for part in parts[:-1]:
            if part not in target:
                target[part] = {}
            if isinstance(target[part], dict):
                target[part] = dict(target[part])
                target = target[part]
            else:
                break
        else:
            target[parts[-1]] = _coerce_value(env_value)

    return result


def _coerce_value(value: str) -> Any:
    """Coerce string env var value to appropriate Python type.

    Numeric conversion is attempted BEFORE boolean so "0"/"1" stay integers.
    """
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False
    return value


class ConfigLoader:
    """Load and merge TOML config files with env var overrides."""

    def __init__(
        self,
        config_dir: str | Path = "config",
        env: str | None = None,
    ) -> None:
        self._config_dir = Path(config_dir)
        self._env = env or os.environ.get("KLINES_ENV", "development")
        self._config: dict[str, Any] = {}

    def load(self) -> dict[str, Any]:
        """Load config: default.toml → {env}.toml → env vars."""
        default_path = self._config_dir / "default.toml"
        if not default_path.exists():
            msg = f"Default config not found: {default_path}"
            raise ConfigError(msg)

        self._config = self._load_toml(default_path)

        env_path = self._config_dir / f"{self._env}.toml"
        if env_path.exists():
            env_config = self._load_toml(env_path)
            self._config = _deep_merge(self._config, env_config)

        self._config = _apply_env_overrides(self._config)
        return self._config

    def get(self, dotted_key: str, default: Any = None) -> Any:
        """Get a config value using dotted notation: 'fetch.symbol'."""
        if not self._config:
            self.load()

        current: Any = self._config
        for part in dotted_key.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def require(self, dotted_key: str) -> Any:
        """Get a config value, raising ConfigError if missing."""
        value = self.get(dotted_key)
        if value is None:
            msg = f"Required config key missing: {dotted_key}"
            raise ConfigError(msg)
        return value

    def validate_keys(self, required_keys: list[str]) -> None:
        """Validate that all required keys exist."""
        missing = [k for k in required_keys if self.get(k) is None]
        if missing:
            msg = f"Missing required config keys: {', '.join(missing)}"
            raise ConfigError(msg)

    @property
    def config(self) -> dict[str, Any]:
        if not self._config:
            self.load()
        return self._config

    @staticmethod
    def _load_toml(path: Path) -> dict[str, Any]:
        with open(path, "rb") as f:
            return tomllib.load(f)
