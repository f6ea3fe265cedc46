"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path  # noqa: TCH003
from typing import Any

import pytest

from kline_fetcher.config.loader import ConfigLoader
from kline_fetcher.config.settings import DownloadSettings
from kline_fetcher.models.kline import RawKline

DAY_MS = 86_400_000
MINUTE_MS = 60_000

# 2024-01-01T00:00:00Z
JAN_1_2024_MS = 1_704_067_200_000


def wire_row(open_time: int, interval_ms: int = DAY_MS, trades: int = 42) -> list[Any]:
    """A kline array exactly as /api/v3/klines returns it."""
    return [
        open_time,
        "42283.58000000",
        "44184.10000000",
        "42180.77000000",
        "44179.55000000",
        "27174.29903000",
        open_time + interval_ms - 1,
        "1169532818.84170720",
        trades,
        "14331.58536000",
        "617313887.54460950",
        "0",
    ]


class FakeKlineSource:
    """In-memory kline source that pages like the exchange does.

    Serves rows with ``start_time <= open_time <= end_time``, at most
    ``limit`` per call. ``pages`` overrides this with canned responses.
    """

    def __init__(
        self,
        open_times: list[int] | None = None,
        interval_ms: int = DAY_MS,
        limit: int = 1000,
        pages: list[list[list[Any]]] | None = None,
    ) -> None:
        self._rows = [wire_row(t, interval_ms) for t in (open_times or [])]
        self._limit = limit
        self._pages = list(pages) if pages is not None else None
        self.calls: list[tuple[int, int]] = []

    def get_klines(self, start_time: int, end_time: int) -> list[RawKline]:
        self.calls.append((start_time, end_time))
        if self._pages is not None:
            rows = self._pages.pop(0) if self._pages else []
        else:
            rows = [r for r in self._rows if start_time <= r[0] <= end_time][: self._limit]
        return [RawKline.from_wire(r) for r in rows]


class RecordingSink:
    """BatchSink that keeps every batch in memory."""

    def __init__(self) -> None:
        self.batches: list[list[Any]] = []
        self.closed = False

    def send(self, batch: list[Any]) -> None:
        assert not self.closed, "send after close"
        self.batches.append(batch)

    def close(self) -> None:
        self.closed = True


class FakeClock:
    """Monotonic clock + sleep pair that never really waits."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture()
def config_dir(tmp_path: Path) -> Path:
    """Create a temp config directory with default.toml."""
    config = tmp_path / "config"
    config.mkdir()

    default_toml = config / "default.toml"
    default_toml.write_text(
        """\
[fetch]
symbol = "BTCUSDT"
interval = "1d"
start_date = "2024-01-01"
end_date = "2024-01-03"
base_url = "https://data-api.binance.vision/api/v3/klines"
limit = 1000
min_request_interval_seconds = 1.0
timeout_seconds = 30.0

[sink]
output_dir = "."
batch_size = 1000
queue_maxsize = 16
"""
    )
    return config


@pytest.fixture()
def config_loader(config_dir: Path) -> ConfigLoader:
    """ConfigLoader with test config."""
    loader = ConfigLoader(config_dir=config_dir, env="test")
    loader.load()
    return loader


@pytest.fixture()
def make_settings(tmp_path: Path) -> Callable[..., DownloadSettings]:
    """Factory for settings that write under tmp_path and never sleep."""

    def _make(**overrides: Any) -> DownloadSettings:
        values: dict[str, Any] = {
            "symbol": "BTCUSDT",
            "interval": "1d",
            "start_date": "2024-01-01",
            "end_date": "2024-01-03",
            "min_request_interval_seconds": 0.0,
            "output_dir": tmp_path / "out",
        }
        values.update(overrides)
        return DownloadSettings(**values)

    return _make


@pytest.fixture()
def fake_source_cls() -> type[FakeKlineSource]:
    return FakeKlineSource


@pytest.fixture()
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def wire_row_factory() -> Callable[..., list[Any]]:
    return wire_row
