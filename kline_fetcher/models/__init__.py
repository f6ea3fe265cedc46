from kline_fetcher.models.kline import CSV_HEADER, Kline, KlineBatch, RawKline, render_millis

__all__ = [
    "CSV_HEADER",
    "Kline",
    "KlineBatch",
    "RawKline",
    "render_millis",
]
