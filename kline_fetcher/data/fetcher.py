"""Paginated kline fetcher: walks a time window page by page.

The fetcher owns a single millisecond cursor. Each iteration requests
up to ``limit`` klines from the cursor to the window end, keeps the
ones inside the window, batches them for the sink, then moves the
cursor to one millisecond past the last open time in the page.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass

from kline_fetcher.core.logging import get_logger
from kline_fetcher.core.time_range import FetchWindow
from kline_fetcher.data.binance_client import FetchError
from kline_fetcher.data.rate_limiter import MinIntervalRateLimiter
from kline_fetcher.interfaces import BatchSink, KlineSource
from kline_fetcher.models.kline import Kline, KlineBatch

log = get_logger(__name__)

MAX_BATCH_SIZE = 1000


@dataclass
class FetchStats:
    pages: int = 0
    records: int = 0
    batches: int = 0
    dropped_out_of_window: int = 0
    cancelled: bool = False


class KlineFetcher:
    """Drives pagination over a FetchWindow and feeds batches to a sink."""

    def __init__(
        self,
        source: KlineSource,
        sink: BatchSink,
        window: FetchWindow,
        batch_size: int = MAX_BATCH_SIZE,
        rate_limiter: MinIntervalRateLimiter | None = None,
        cancel_event: threading.Event | None = None,
        on_page: Callable[[int], None] | None = None,
    ) -> None:
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            msg = f"batch_size must be in [1, {MAX_BATCH_SIZE}], got {batch_size}"
            raise ValueError(msg)
        self._source = source
        self._sink = sink
        self._window = window
        self._batch_size = batch_size
        self._rate_limiter = rate_limiter or MinIntervalRateLimiter()
        self._cancel_event = cancel_event or threading.Event()
        self._on_page = on_page
        self._batch: KlineBatch = []
        self.cursor = window.start_ts
        self.stats = FetchStats()

    def run(self) -> FetchStats:
        """Fetch the whole window, then close the sink.

        The sink is closed even when fetching fails, so the consumer
        always terminates. Batches already handed off stay handed off.

        Raises:
            FetchError: On any source failure, a malformed timestamp,
                or a page that does not advance the cursor.
        """
        try:
            self._paginate()
            self._flush()
        finally:
            self._sink.close()

        log.info(
            "fetcher.complete",
            pages=self.stats.pages,
            records=self.stats.records,
            batches=self.stats.batches,
            cancelled=self.stats.cancelled,
        )
        return self.stats

    def _paginate(self) -> None:
        end_ts = self._window.end_ts
        while self.cursor <= end_ts:
            if self._cancel_event.is_set():
                log.warning("fetcher.cancelled", cursor=self.cursor)
                self.stats.cancelled = True
                return

            self._rate_limiter.mark()
            page = self._source.get_klines(self.cursor, end_ts)
            self.stats.pages += 1

            if not page:
                log.info("fetcher.empty_page", cursor=self.cursor)
                return

            accepted = 0
            for raw in page:
                if not self.cursor <= raw.open_time <= end_ts:
                    self.stats.dropped_out_of_window += 1
                    continue
                try:
                    kline = Kline.from_raw(raw)
                except ValueError as e:
                    msg = f"malformed timestamp in kline at {raw.open_time}: {e}"
                    raise FetchError(msg) from e
                self._append(kline)
                accepted += 1

            self.stats.records += accepted
            if self._on_page is not None:
                self._on_page(accepted)

            last_open_time = page[-1].open_time
            log.debug(
                "fetcher.page",
                cursor=self.cursor,
                received=len(page),
                accepted=accepted,
                last_open_time=last_open_time,
            )

            if last_open_time >= end_ts:
                return
            if last_open_time < self.cursor:
                msg = (
                    f"source returned a page ending at {last_open_time}, "
                    f"before the cursor {self.cursor}"
                )
                raise FetchError(msg)
            self.cursor = last_open_time + 1

            self._rate_limiter.wait()

    def _append(self, kline: Kline) -> None:
        self._batch.append(kline)
        if len(self._batch) >= self._batch_size:
            self._flush()

    def _flush(self) -> None:
        if not self._batch:
            return
        batch, self._batch = self._batch, []
        self._sink.send(batch)
        self.stats.batches += 1
