"""Typed run settings built from the layered config."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from kline_fetcher.config.loader import ConfigError, ConfigLoader

_REQUIRED_KEYS = [
    "fetch.symbol",
    "fetch.interval",
    "fetch.start_date",
    "fetch.end_date",
    "fetch.base_url",
]


class DownloadSettings(BaseModel):
    """Everything one download run needs."""

    symbol: str
    interval: str
    start_date: str
    end_date: str
    base_url: str = "https://data-api.binance.vision/api/v3/klines"
    limit: int = Field(default=1000, ge=1, le=1000)
    min_request_interval_seconds: float = Field(default=1.0, ge=0)
    timeout_seconds: float = Field(default=30.0, gt=0)
    output_dir: Path = Path(".")
    batch_size: int = Field(default=1000, ge=1, le=1000)
    queue_maxsize: int = Field(default=16, ge=0)

    model_config = {"frozen": True}

    @property
    def output_path(self) -> Path:
        name = f"{self.symbol}_{self.interval}_{self.start_date}_to_{self.end_date}.csv"
        return self.output_dir / name

    @classmethod
    def from_config(cls, config: ConfigLoader, **overrides: Any) -> DownloadSettings:
        """Build settings from config; non-None overrides (CLI flags) win.

        Raises:
            ConfigError: If a required key is missing or a value is invalid.
        """
        config.validate_keys(_REQUIRED_KEYS)

        values: dict[str, Any] = {
            "symbol": config.get("fetch.symbol"),
            "interval": config.get("fetch.interval"),
            "start_date": config.get("fetch.start_date"),
            "end_date": config.get("fetch.end_date"),
            "base_url": config.get("fetch.base_url"),
            "limit": config.get("fetch.limit", 1000),
            "min_request_interval_seconds": config.get("fetch.min_request_interval_seconds", 1.0),
            "timeout_seconds": config.get("fetch.timeout_seconds", 30.0),
            "output_dir": config.get("sink.output_dir", "."),
            "batch_size": config.get("sink.batch_size", 1000),
            "queue_maxsize": config.get("sink.queue_maxsize", 16),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})

        # tomllib parses bare dates into date objects
        for key in ("start_date", "end_date"):
            if hasattr(values[key], "isoformat"):
                values[key] = values[key].isoformat()

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            msg = f"Invalid download settings: {e}"
            raise ConfigError(msg) from e
