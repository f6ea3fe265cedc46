"""CSV sink writer: drains a BatchChannel into a file on its own thread."""

from __future__ import annotations

import contextvars
import csv
import threading
from pathlib import Path

from kline_fetcher.core.logging import get_logger
from kline_fetcher.data.channel import BatchChannel
from kline_fetcher.models.kline import CSV_HEADER

log = get_logger(__name__)

_WRITE_BUFFER_BYTES = 1 << 20


class SinkError(Exception):
    """Raised when the output file cannot be created or written."""


class CsvSinkWriter(threading.Thread):
    """Consumes kline batches in order and appends them as CSV rows.

    The header row is written once when the file is opened, before any
    data. On any write failure the writer records a SinkError, sets
    ``cancel_event`` so the producer can stop, and keeps draining the
    channel (dropping batches) so the producer never blocks on it.
    """

    def __init__(
        self,
        channel: BatchChannel,
        path: str | Path,
        cancel_event: threading.Event | None = None,
    ) -> None:
        super().__init__(name="kline-csv-sink", daemon=True)
        self._channel = channel
        self._path = Path(path)
        self._cancel_event = cancel_event or threading.Event()
        self._context = contextvars.copy_context()
        self.error: SinkError | None = None
        self.rows_written = 0
        self.batches_written = 0
        self.batches_dropped = 0
        self._end_of_stream = False

    @property
    def path(self) -> Path:
        return self._path

    def run(self) -> None:
        self._context.run(self._consume)

    def join_and_raise(self, timeout: float | None = None) -> None:
        """Wait for the writer to finish and re-raise its failure, if any."""
        self.join(timeout)
        if self.error is not None:
            raise self.error

    def _consume(self) -> None:
        try:
            self._write_all()
        except Exception as e:
            # anything that ends the loop must reach the caller and unblock the producer
            self.error = SinkError(f"cannot write {self._path}: {e}")
            self.error.__cause__ = e
            self._cancel_event.set()
            log.error("sink.failed", path=str(self._path), error=str(e))
            if not self._end_of_stream:
                self._drain()

    def _write_all(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(
            self._path, "w", newline="", encoding="utf-8", buffering=_WRITE_BUFFER_BYTES
        ) as f:
            writer = csv.writer(f)
            writer.writerow(CSV_HEADER)
            log.info("sink.opened", path=str(self._path))

            for batch in self._channel:
                writer.writerows(kline.to_row() for kline in batch)
                self.rows_written += len(batch)
                self.batches_written += 1
            self._end_of_stream = True

            f.flush()
        log.info(
            "sink.closed",
            path=str(self._path),
            rows=self.rows_written,
            batches=self.batches_written,
        )

    def _drain(self) -> None:
        for _ in self._channel:
            self.batches_dropped += 1
        if self.batches_dropped:
            log.warning("sink.batches_dropped", count=self.batches_dropped)
