"""Kline models: the positional wire record and the CSV output record."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, StrictInt, StrictStr, field_validator

# Column labels of the output file, in write order.
CSV_HEADER: tuple[str, ...] = (
    "Open Time",
    "Open",
    "High",
    "Low",
    "Close",
    "Volume",
    "Close Time",
    "Quote Asset Volume",
    "Number of Trades",
    "Taker Buy Base Asset Volume",
    "Taker Buy Quote Asset Volume",
    "Ignore",
)

# Wire order of the 12-element kline array returned by /api/v3/klines.
_WIRE_FIELDS: tuple[str, ...] = (
    "open_time",
    "open",
    "high",
    "low",
    "close",
    "volume",
    "close_time",
    "quote_asset_volume",
    "number_of_trades",
    "taker_buy_base_asset_volume",
    "taker_buy_quote_asset_volume",
    "ignore",
)


def render_millis(ms: int) -> str:
    """Render epoch milliseconds as an unambiguous UTC timestamp.

    ``2024-01-01T00:00:00Z``, or ``2024-01-01T23:59:59.999Z`` when the
    millisecond part is non-zero.

    Raises:
        ValueError: If the value is outside the representable datetime range.
    """
    try:
        dt = datetime.fromtimestamp(ms // 1000, tz=UTC)
    except (OverflowError, OSError, ValueError) as e:
        msg = f"timestamp out of range: {ms}"
        raise ValueError(msg) from e
    rendered = dt.strftime("%Y-%m-%dT%H:%M:%S")
    millis = ms % 1000
    if millis:
        rendered += f".{millis:03d}"
    return rendered + "Z"


class RawKline(BaseModel):
    """One kline as returned by the exchange, with named fields.

    Prices and volumes are kept as the exchange's decimal text so no
    rounding is ever introduced between the API and the file.
    """

    open_time: int
    open: StrictStr
    high: StrictStr
    low: StrictStr
    close: StrictStr
    volume: StrictStr
    close_time: int
    quote_asset_volume: StrictStr
    number_of_trades: StrictInt
    taker_buy_base_asset_volume: StrictStr
    taker_buy_quote_asset_volume: StrictStr
    ignore: str

    model_config = {"frozen": True}

    @field_validator("open_time", "close_time", mode="before")
    @classmethod
    def validate_epoch_millis(cls, v: Any) -> int:
        # JSON numbers only; a float must carry a whole millisecond
        if isinstance(v, int) and not isinstance(v, bool):
            return v
        if isinstance(v, float) and v.is_integer():
            return int(v)
        msg = f"expected integral epoch milliseconds, got {v!r}"
        raise ValueError(msg)

    @classmethod
    def from_wire(cls, row: Any) -> RawKline:
        """Decode one positional wire array.

        This is the only place that knows the field positions.

        Raises:
            ValueError: On wrong arity or field types (pydantic's
                ValidationError is a ValueError).
        """
        if not isinstance(row, list | tuple) or len(row) != len(_WIRE_FIELDS):
            size = len(row) if isinstance(row, list | tuple) else "n/a"
            msg = f"expected a {len(_WIRE_FIELDS)}-element kline array, got {type(row).__name__} of length {size}"
            raise ValueError(msg)
        values = dict(zip(_WIRE_FIELDS, row, strict=True))
        values["ignore"] = str(values["ignore"])
        return cls.model_validate(values)


class Kline(BaseModel):
    """Output record: a RawKline with rendered open/close timestamps."""

    open_time: str
    open: str
    high: str
    low: str
    close: str
    volume: str
    close_time: str
    quote_asset_volume: str
    number_of_trades: int
    taker_buy_base_asset_volume: str
    taker_buy_quote_asset_volume: str
    ignore: str
    open_time_ms: int

    model_config = {"frozen": True}

    @classmethod
    def from_raw(cls, raw: RawKline) -> Kline:
        return cls(
            open_time=render_millis(raw.open_time),
            open=raw.open,
            high=raw.high,
            low=raw.low,
            close=raw.close,
            volume=raw.volume,
            close_time=render_millis(raw.close_time),
            quote_asset_volume=raw.quote_asset_volume,
            number_of_trades=raw.number_of_trades,
            taker_buy_base_asset_volume=raw.taker_buy_base_asset_volume,
            taker_buy_quote_asset_volume=raw.taker_buy_quote_asset_volume,
            ignore=raw.ignore,
            open_time_ms=raw.open_time,
        )

    def to_row(self) -> list[str | int]:
        """Cells in CSV_HEADER order."""
        return [
            self.open_time,
            self.open,
            self.high,
            self.low,
            self.close,
            self.volume,
            self.close_time,
            self.quote_asset_volume,
            self.number_of_trades,
            self.taker_buy_base_asset_volume,
            self.taker_buy_quote_asset_volume,
            self.ignore,
        ]


# A batch is the unit handed from the fetcher to the sink writer.
KlineBatch = list[Kline]
