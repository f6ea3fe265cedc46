"""Interval code lookup and calendar-range → millisecond window resolution."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, time

from kline_fetcher.config.loader import ConfigError

# Month is approximated as 30 days; only used for the progress estimate.
INTERVAL_MS: dict[str, int] = {
    "1s": 1_000,
    "1m": 60_000,
    "3m": 180_000,
    "5m": 300_000,
    "15m": 900_000,
    "30m": 1_800_000,
    "1h": 3_600_000,
    "2h": 7_200_000,
    "4h": 14_400_000,
    "6h": 21_600_000,
    "8h": 28_800_000,
    "12h": 43_200_000,
    "1d": 86_400_000,
    "3d": 259_200_000,
    "1w": 604_800_000,
    "1M": 2_592_000_000,
}

_DATE_FORMAT = "%Y-%m-%d"


def interval_to_ms(interval: str) -> int:
    """Return the nominal duration of one candle for an interval code.

    Raises:
        ConfigError: If the code is not one the exchange accepts.
    """
    try:
        return INTERVAL_MS[interval]
    except KeyError:
        msg = f"invalid interval: {interval!r}"
        raise ConfigError(msg) from None


def parse_date(value: str | date) -> date:
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, _DATE_FORMAT).date()
    except (TypeError, ValueError):
        msg = f"invalid date {value!r}, expected YYYY-MM-DD"
        raise ConfigError(msg) from None


def to_millis(dt: datetime) -> int:
    return int(dt.timestamp()) * 1000 + dt.microsecond // 1000


@dataclass(frozen=True)
class FetchWindow:
    """Closed millisecond window [start_ts, end_ts] plus the candle duration."""

    start_ts: int
    end_ts: int
    interval_ms: int

    @property
    def estimated_count(self) -> int:
        """Rough number of candles in the window. Advisory only."""
        return max(0, (self.end_ts - self.start_ts) // self.interval_ms)


def resolve_window(
    start_date: str | date,
    end_date: str | date,
    interval: str,
) -> FetchWindow:
    """Translate an inclusive calendar range into a UTC millisecond window.

    Start is 00:00:00 of ``start_date``; end is 23:59:59 of ``end_date``.

    Raises:
        ConfigError: On an unknown interval, a malformed date, or start > end.
    """
    interval_ms = interval_to_ms(interval)
    start_day = parse_date(start_date)
    end_day = parse_date(end_date)
    if start_day > end_day:
        msg = f"start date {start_day.isoformat()} is after end date {end_day.isoformat()}"
        raise ConfigError(msg)

    start_ts = to_millis(datetime.combine(start_day, time(0, 0, 0), tzinfo=UTC))
    end_ts = to_millis(datetime.combine(end_day, time(23, 59, 59), tzinfo=UTC))
    return FetchWindow(start_ts=start_ts, end_ts=end_ts, interval_ms=interval_ms)
