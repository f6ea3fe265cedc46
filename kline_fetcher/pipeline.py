"""Download orchestrator: wires window, fetcher, channel and sink writer.

The fetcher runs on the calling thread; the CSV writer runs on a second
thread started before the first request and joined after the last.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from tqdm import tqdm

from kline_fetcher.config.settings import DownloadSettings
from kline_fetcher.core.logging import bind_run_context, clear_run_context, get_logger
from kline_fetcher.core.time_range import FetchWindow, resolve_window
from kline_fetcher.data.binance_client import BinanceKlinesClient
from kline_fetcher.data.channel import BatchChannel
from kline_fetcher.data.csv_sink import CsvSinkWriter
from kline_fetcher.data.fetcher import FetchStats, KlineFetcher
from kline_fetcher.data.rate_limiter import MinIntervalRateLimiter
from kline_fetcher.interfaces import KlineSource

logger = get_logger(__name__)


@dataclass(frozen=True)
class DownloadResult:
    path: Path
    window: FetchWindow
    stats: FetchStats
    rows_written: int


def run_download(
    settings: DownloadSettings,
    source: KlineSource | None = None,
    *,
    show_progress: bool = True,
    sleep: Callable[[float], None] | None = None,
) -> DownloadResult:
    """Download every kline in the configured range into one CSV file.

    Args:
        settings: Run parameters (symbol, interval, dates, sink options).
        source: Kline source; defaults to a BinanceKlinesClient built
            from ``settings``.
        show_progress: Render a tqdm progress bar on stderr.
        sleep: Override for the rate limiter's sleep (tests).

    Returns:
        DownloadResult with the output path and counters.

    Raises:
        ConfigError: Bad interval or dates; raised before any request.
        FetchError: The fetcher failed. Takes precedence over a sink error.
        SinkError: The writer failed and the fetcher did not.
    """
    window = resolve_window(settings.start_date, settings.end_date, settings.interval)

    bind_run_context(symbol=settings.symbol, interval=settings.interval)
    logger.info(
        "pipeline.start",
        start=settings.start_date,
        end=settings.end_date,
        start_ts=window.start_ts,
        end_ts=window.end_ts,
        estimated=window.estimated_count,
        output=str(settings.output_path),
    )

    owned_client: BinanceKlinesClient | None = None
    if source is None:
        owned_client = BinanceKlinesClient(
            symbol=settings.symbol,
            interval=settings.interval,
            base_url=settings.base_url,
            limit=settings.limit,
            timeout=settings.timeout_seconds,
        )
        source = owned_client

    cancel_event = threading.Event()
    channel = BatchChannel(maxsize=settings.queue_maxsize)
    writer = CsvSinkWriter(channel, settings.output_path, cancel_event=cancel_event)

    limiter_kwargs = {"sleep": sleep} if sleep is not None else {}
    rate_limiter = MinIntervalRateLimiter(settings.min_request_interval_seconds, **limiter_kwargs)

    progress = tqdm(
        total=window.estimated_count,
        desc=f"Downloading {settings.symbol} {settings.interval} klines",
        unit="kline",
        disable=not show_progress,
    )

    fetcher = KlineFetcher(
        source=source,
        sink=channel,
        window=window,
        batch_size=settings.batch_size,
        rate_limiter=rate_limiter,
        cancel_event=cancel_event,
        on_page=progress.update,
    )

    writer.start()
    try:
        try:
            stats = fetcher.run()
        finally:
            # run() closes the channel on every path, so the join terminates
            writer.join()
            progress.close()
            if owned_client is not None:
                owned_client.close()

        writer.join_and_raise()
        logger.info(
            "pipeline.complete",
            path=str(writer.path),
            pages=stats.pages,
            records=stats.records,
            rows=writer.rows_written,
            estimated=window.estimated_count,
        )
    except Exception as e:
        logger.error("pipeline.failed", error=str(e), error_type=type(e).__name__)
        raise
    finally:
        clear_run_context()

    return DownloadResult(
        path=writer.path,
        window=window,
        stats=stats,
        rows_written=writer.rows_written,
    )
