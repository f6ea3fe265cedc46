"""Single-producer/single-consumer FIFO of kline batches."""

from __future__ import annotations

import queue
from collections.abc import Iterator

from kline_fetcher.models.kline import KlineBatch

_CLOSED = object()


class BatchChannel:
    """Ordered hand-off from the fetcher thread to the sink thread.

    ``maxsize=0`` means unbounded; otherwise ``send`` blocks while the
    channel is full. ``close`` enqueues an end-of-stream marker, so the
    consumer sees every batch sent before it.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: queue.Queue[object] = queue.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, batch: KlineBatch) -> None:
        if self._closed:
            msg = "send on closed channel"
            raise RuntimeError(msg)
        self._queue.put(batch)

    def close(self) -> None:
        """Mark end of stream. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._queue.put(_CLOSED)

    def __iter__(self) -> Iterator[KlineBatch]:
        """Yield batches in send order until the channel is closed."""
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]
