"""Tests for CsvSinkWriter."""

from __future__ import annotations

import csv
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from kline_fetcher.data.channel import BatchChannel
from kline_fetcher.data.csv_sink import CsvSinkWriter, SinkError
from kline_fetcher.models.kline import CSV_HEADER, Kline, RawKline

JAN_1_2024_MS = 1_704_067_200_000
DAY_MS = 86_400_000


@pytest.fixture
def make_batch(wire_row_factory: Callable[..., list[Any]]) -> Callable[[int, int], list[Kline]]:
    def _make(first_day: int, count: int) -> list[Kline]:
        return [
            Kline.from_raw(RawKline.from_wire(wire_row_factory(JAN_1_2024_MS + d * DAY_MS)))
            for d in range(first_day, first_day + count)
        ]

    return _make


def _read_rows(path: Path) -> list[list[str]]:
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


class TestCsvSinkWriter:
    def test_header_then_rows_in_order(
        self, tmp_path: Path, make_batch: Callable[[int, int], list[Kline]],
    ) -> None:
        channel = BatchChannel()
        path = tmp_path / "out.csv"
        writer = CsvSinkWriter(channel, path)
        writer.start()

        channel.send(make_batch(0, 2))
        channel.send(make_batch(2, 3))
        channel.close()
        writer.join_and_raise(timeout=5.0)

        rows = _read_rows(path)
        assert rows[0] == list(CSV_HEADER)
        assert [r[0] for r in rows[1:]] == [
            "2024-01-01T00:00:00Z",
            "2024-01-02T00:00:00Z",
            "2024-01-03T00:00:00Z",
            "2024-01-04T00:00:00Z",
            "2024-01-05T00:00:00Z",
        ]
        assert writer.rows_written == 5
        assert writer.batches_written == 2

    def test_values_written_verbatim(
        self, tmp_path: Path, make_batch: Callable[[int, int], list[Kline]],
    ) -> None:
        channel = BatchChannel()
        path = tmp_path / "out.csv"
        writer = CsvSinkWriter(channel, path)
        writer.start()
        channel.send(make_batch(0, 1))
        channel.close()
        writer.join_and_raise(timeout=5.0)

        row = _read_rows(path)[1]
        assert row == [
            "2024-01-01T00:00:00Z",
            "42283.58000000",
            "44184.10000000",
            "42180.77000000",
            "44179.55000000",
            "27174.29903000",
            "2024-01-01T23:59:59.999Z",
            "1169532818.84170720",
            "42",
            "14331.58536000",
            "617313887.54460950",
            "0",
        ]

    def test_header_only_when_no_batches(self, tmp_path: Path) -> None:
        channel = BatchChannel()
        path = tmp_path / "empty.csv"
        writer = CsvSinkWriter(channel, path)
        writer.start()
        channel.close()
        writer.join_and_raise(timeout=5.0)

        assert _read_rows(path) == [list(CSV_HEADER)]
        assert writer.rows_written == 0

    def test_creates_missing_directories(self, tmp_path: Path) -> None:
        channel = BatchChannel()
        path = tmp_path / "a" / "b" / "out.csv"
        writer = CsvSinkWriter(channel, path)
        writer.start()
        channel.close()
        writer.join_and_raise(timeout=5.0)
        assert path.exists()

    def test_unwritable_destination_raises_sink_error(
        self, tmp_path: Path, make_batch: Callable[[int, int], list[Kline]],
    ) -> None:
        # a directory where the file should be
        path = tmp_path / "taken.csv"
        path.mkdir()
        channel = BatchChannel(maxsize=1)
        cancel = threading.Event()
        writer = CsvSinkWriter(channel, path, cancel_event=cancel)
        writer.start()

        # the failed writer keeps draining, so a bounded send never deadlocks
        for day in range(5):
            channel.send(make_batch(day, 1))
        channel.close()

        with pytest.raises(SinkError, match="cannot write"):
            writer.join_and_raise(timeout=5.0)
        assert cancel.is_set()
        assert writer.batches_dropped == 5
        assert writer.rows_written == 0

    def test_encoding_failure_mid_stream_raises_sink_error(
        self, tmp_path: Path, make_batch: Callable[[int, int], list[Kline]],
        wire_row_factory: Callable[..., list[Any]],
    ) -> None:
        # a lone surrogate is valid JSON text but cannot be encoded as UTF-8
        row = wire_row_factory(JAN_1_2024_MS + DAY_MS)
        row[11] = "\ud800"
        unencodable = [Kline.from_raw(RawKline.from_wire(row))]

        path = tmp_path / "out.csv"
        channel = BatchChannel(maxsize=1)
        cancel = threading.Event()
        writer = CsvSinkWriter(channel, path, cancel_event=cancel)
        writer.start()

        channel.send(make_batch(0, 1))
        channel.send(unencodable)
        for day in range(2, 7):
            channel.send(make_batch(day, 1))
        channel.close()

        with pytest.raises(SinkError, match="cannot write"):
            writer.join_and_raise(timeout=5.0)
        assert not writer.is_alive()
        assert cancel.is_set()
        assert writer.rows_written == 1
        assert writer.batches_dropped == 5
        assert _read_rows(path)[:2] == [list(CSV_HEADER), list(map(str, make_batch(0, 1)[0].to_row()))]

    def test_runs_in_its_own_thread(self, tmp_path: Path) -> None:
        seen: list[str] = []
        channel = BatchChannel()

        class SpyWriter(CsvSinkWriter):
            def _write_all(self) -> None:
                seen.append(threading.current_thread().name)
                super()._write_all()

        writer = SpyWriter(channel, tmp_path / "out.csv")
        writer.start()
        channel.close()
        writer.join_and_raise(timeout=5.0)
        assert seen == ["kline-csv-sink"]
        assert seen[0] != threading.current_thread().name
