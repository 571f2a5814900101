"""Shared builders and the fake Bybit client used across the test suite."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from stopsim.models.errors import UpstreamError
from stopsim.models.market_models import Candle

MINUTE = 60_000
T0 = 1_714_564_800_000  # 2024-05-01T12:00:00Z


def bar(start_time: int, low: float, high: float) -> Candle:
    return Candle(start_time=start_time, open=low, high=high, low=low, close=high, volume=1.0, turnover=1.0)


def kline_row(start_time: int, o: float, h: float, l: float, c: float) -> List[str]:
    return [str(start_time), str(o), str(h), str(l), str(c), "12.5", "1000.0"]


class FakeBybitClient:
    """Stands in for BybitHTTPClient: canned envelopes, records every call."""

    def __init__(
        self,
        rows: Optional[List[List[str]]] = None,
        tickers: Optional[Dict[str, Any]] = None,
        kline_error: Optional[UpstreamError] = None,
    ) -> None:
        self.rows = rows or []
        self.tickers = tickers or {}
        self.kline_error = kline_error
        self.kline_calls: List[Dict[str, Any]] = []
        self.ticker_calls: List[Dict[str, Any]] = []

    async def get_klines(self, symbol, category, interval, *, start=None, end=None, limit=None):
        self.kline_calls.append(
            {"symbol": symbol, "category": category, "interval": interval, "start": start, "end": end, "limit": limit}
        )
        if self.kline_error is not None:
            raise self.kline_error
        return {"retCode": 0, "retMsg": "OK", "result": {"symbol": symbol, "category": category, "list": self.rows}}

    async def get_tickers(self, symbol, category):
        self.ticker_calls.append({"symbol": symbol, "category": category})
        value = self.tickers.get(category)
        if isinstance(value, Exception):
            raise value
        if value is None:
            return {"retCode": 0, "result": {"category": category, "list": []}}
        return {"retCode": 0, "result": {"category": category, "list": [{"symbol": symbol, "lastPrice": value}]}}
