"""Data pipeline: exchange REST client, pagination, hand-off channel and CSV sink."""

from __future__ import annotations

from kline_fetcher.data.binance_client import BinanceKlinesClient, FetchError
from kline_fetcher.data.channel import BatchChannel
from kline_fetcher.data.csv_sink import CsvSinkWriter, SinkError
from kline_fetcher.data.fetcher import FetchStats, KlineFetcher
from kline_fetcher.data.rate_limiter import MinIntervalRateLimiter

__all__ = [
    "BatchChannel",
    "BinanceKlinesClient",
    "CsvSinkWriter",
    "FetchError",
    "FetchStats",
    "KlineFetcher",
    "MinIntervalRateLimiter",
    "SinkError",
]
