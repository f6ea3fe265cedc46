"""Protocol interfaces between the fetcher, its data source and its sink."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from kline_fetcher.models.kline import KlineBatch, RawKline


@runtime_checkable
class KlineSource(Protocol):
    """Anything that returns one page of klines for a millisecond window."""

    def get_klines(self, start_time: int, end_time: int) -> list[RawKline]: ...


@runtime_checkable
class BatchSink(Protocol):
    """Receiving end of the fetcher: accepts batches, then a close."""

    def send(self, batch: KlineBatch) -> None: ...

    def close(self) -> None: ...
