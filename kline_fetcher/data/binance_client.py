"""Binance spot klines REST client."""

from __future__ import annotations

from typing import Any

import httpx

from kline_fetcher.core.logging import get_logger
from kline_fetcher.models.kline import RawKline

log = get_logger(__name__)

DEFAULT_BASE_URL = "https://data-api.binance.vision/api/v3/klines"
MAX_LIMIT = 1000


class FetchError(Exception):
    """Raised when a klines page cannot be fetched or decoded.

    ``status_code`` is set when the server answered with a non-2xx status.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BinanceKlinesClient:
    """Synchronous client for ``GET /api/v3/klines``.

    No authentication and no retries: any failure surfaces as FetchError.
    """

    def __init__(
        self,
        symbol: str,
        interval: str,
        base_url: str = DEFAULT_BASE_URL,
        limit: int = MAX_LIMIT,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._symbol = symbol
        self._interval = interval
        self._base_url = base_url
        self._limit = min(max(limit, 1), MAX_LIMIT)
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout))
        self._owns_client = client is None

    def __enter__(self) -> BinanceKlinesClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _params(self, start_time: int, end_time: int) -> dict[str, str]:
        return {
            "symbol": self._symbol,
            "interval": self._interval,
            "limit": str(self._limit),
            "startTime": str(start_time),
            "endTime": str(end_time),
        }

    def get_klines(self, start_time: int, end_time: int) -> list[RawKline]:
        """Fetch one page of klines with open time in [start_time, end_time].

        Args:
            start_time: Inclusive lower bound, epoch ms.
            end_time: Inclusive upper bound, epoch ms.

        Returns:
            Decoded klines in the order the server sent them.

        Raises:
            FetchError: On transport failure, non-2xx status, or a
                payload that is not a list of kline arrays.
        """
        try:
            resp = self._client.get(self._base_url, params=self._params(start_time, end_time))
        except httpx.HTTPError as e:
            msg = f"klines request failed: {e}"
            raise FetchError(msg) from e

        if not resp.is_success:
            msg = f"API request failed with status: {resp.status_code}"
            log.error(
                "binance_client.http_error",
                status=resp.status_code,
                body=resp.text[:200],
                start_time=start_time,
            )
            raise FetchError(msg, status_code=resp.status_code)

        try:
            payload: Any = resp.json()
        except ValueError as e:
            msg = f"klines response is not valid JSON: {e}"
            raise FetchError(msg) from e

        if not isinstance(payload, list):
            msg = f"klines response must be a JSON array, got {type(payload).__name__}"
            raise FetchError(msg)

        try:
            return [RawKline.from_wire(row) for row in payload]
        except ValueError as e:
            msg = f"malformed kline in response: {e}"
            raise FetchError(msg) from e
