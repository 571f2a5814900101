"""Candle retrieval + stop simulation since an entry.

The client must expose ``get_klines(...)`` and ``get_tickers(...)`` coroutines
returning Bybit JSON envelopes (see BybitHTTPClient).
"""

from __future__ import annotations

import math
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from stopsim.infrastructure.bybit.bybit_http_client import BybitHTTPClient
from stopsim.infrastructure.logging.logging import get_logger
from stopsim.infrastructure.utils.timeutils import ms_to_iso, now_ms, parse_entry_date
from stopsim.models.errors import MalformedBar, MissingSymbol, UpstreamError
from stopsim.models.market_models import Candle
from stopsim.models.simulation_models import Direction
from stopsim.services.market.candle_normalizer import extract_kline_rows, normalize_klines
from stopsim.services.market.interval import interval_to_minutes, normalize_interval
from stopsim.services.simulation.lookback import MAX_PAGE_SIZE, compute_lookback
from stopsim.services.simulation.stop_simulator import (
    DEFAULT_STOP_PERCENTS,
    effective_stop_percents,
    simulate_stops,
    validate_entry_price,
)

JsonDict = Dict[str, Any]

log = get_logger("candle_service")


def _require_symbol(symbol: Optional[str]) -> str:
    sym = str(symbol or "").strip().upper()
    if not sym:
        raise MissingSymbol()
    return sym


class CandleService:
    def __init__(
        self,
        client: Any,
        *,
        default_category: str = "linear",
        max_page_size: int = MAX_PAGE_SIZE,
        default_stop_percents: Sequence[float] = DEFAULT_STOP_PERCENTS,
        price_categories: Sequence[str] = ("linear", "spot", "inverse"),
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._client = client
        self.default_category = default_category
        self.max_page_size = max_page_size
        self.default_stop_percents = tuple(default_stop_percents)
        self.price_categories = tuple(price_categories)
        self._clock = clock

    @classmethod
    def from_config(cls, config: Any, client: Any = None) -> "CandleService":
        """Service wired from StopSimConfig; ``client`` defaults to the Bybit REST client."""
        if client is None:
            client = BybitHTTPClient(config.bybit_base_url, timeout_sec=config.bybit.timeout_sec)
        return cls(
            client,
            default_category=config.bybit.default_category,
            max_page_size=config.simulation.max_page_size,
            default_stop_percents=config.simulation.default_stop_percents,
            price_categories=config.bybit.price_categories,
        )

    async def get_candles(
        self,
        symbol: str,
        category: Optional[str] = None,
        interval: Any = "1",
        *,
        start: Optional[int] = None,
        end: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> JsonDict:
        """Raw Bybit envelope plus normalized candles (provider order kept)."""
        sym = _require_symbol(symbol)
        cat = category or self.default_category
        code = normalize_interval(interval)
        lim = self.max_page_size if limit is None else max(1, min(int(limit), self.max_page_size))

        raw = await self._client.get_klines(sym, cat, code, start=start, end=end, limit=lim)
        try:
            candles = normalize_klines(extract_kline_rows(raw))
        except MalformedBar as e:
            log.error("malformed_upstream_bar", symbol=sym, category=cat, index=e.index, reason=e.reason)
            raise MalformedBar(e.index, e.reason, upstream=True) from e
        log.info("klines_loaded", symbol=sym, category=cat, interval=code, candles=len(candles))
        return {"raw": raw, "candles": candles}

    async def simulate_stops_since_entry(
        self,
        symbol: str,
        entry_price: Any,
        entry_date: Any,
        *,
        direction: Any = Direction.LONG,
        category: Optional[str] = None,
        interval: Any = "1",
        stop_percents: Optional[Iterable[Any]] = None,
        include_candles: bool = False,
    ) -> JsonDict:
        # Validate everything before the network call.
        sym = _require_symbol(symbol)
        price = validate_entry_price(entry_price)
        dir_ = Direction.parse(direction)
        code = normalize_interval(interval)
        entry_ts = parse_entry_date(entry_date)
        now = int(self._clock())
        window = compute_lookback(entry_ts, interval_to_minutes(code), now, self.max_page_size)
        percents = effective_stop_percents(stop_percents, self.default_stop_percents)
        cat = category or self.default_category

        fetched = await self.get_candles(sym, cat, code, start=entry_ts, limit=window.bars_capped)
        candles: List[Candle] = fetched["candles"]

        result = simulate_stops(price, dir_, candles, percents)
        if window.truncated:
            log.warning(
                "lookback_truncated",
                symbol=sym,
                bars_needed=window.bars_needed,
                bars_requested=window.bars_capped,
            )
        log.info(
            "simulation_done",
            symbol=sym,
            direction=dir_.value,
            candles=len(candles),
            hits=sum(1 for s in result.stops.values() if s.hit),
        )

        out: JsonDict = {
            "meta": {
                "symbol": sym,
                "category": cat,
                "interval": code,
                "direction": dir_.value,
                "entry_price": price,
                "entry_timestamp": entry_ts,
                "entry_date_iso": ms_to_iso(entry_ts),
                "now": now,
                "now_iso": ms_to_iso(now),
                "stop_percents": percents,
                "bars_needed": window.bars_needed,
                "bars_requested": window.bars_capped,
                "max_page_size": window.max_page_size,
                "truncated": window.truncated,
                "candles_received": len(candles),
            },
            "result": result.to_dict(),
        }
        if include_candles:
            out["candles"] = [c.to_dict() for c in candles]
        return out

    async def get_ticker(self, symbol: str, category: str = "spot") -> JsonDict:
        """Pass-through of ``/v5/market/tickers``."""
        return await self._client.get_tickers(_require_symbol(symbol), category)

    async def get_last_price(self, symbol: str, categories: Optional[Sequence[str]] = None) -> JsonDict:
        """Best-effort last price: first category with a finite ``lastPrice`` wins."""
        sym = _require_symbol(symbol)
        tried: List[str] = []

        for cat in categories or self.price_categories:
            tried.append(cat)
            try:
                resp = await self._client.get_tickers(sym, cat)
            except UpstreamError as e:
                log.debug("price_attempt_failed", symbol=sym, category=cat, error=e.message)
                continue
            price = _last_price(resp)
            if price is not None:
                log.info("price_loaded", symbol=sym, category=cat, last_price=price)
                return {"symbol": sym, "category": cat, "last_price": price}
            log.debug("price_attempt_empty", symbol=sym, category=cat)

        log.error("price_not_found", symbol=sym, categories=tried)
        raise UpstreamError(f"No price for {sym} in categories {tried}")


def _last_price(envelope: Any) -> Optional[float]:
    rows = ((envelope or {}).get("result") or {}).get("list") or []
    if not rows or not isinstance(rows[0], dict):
        return None
    try:
        price = float(rows[0].get("lastPrice"))
    except (TypeError, ValueError):
        return None
    return price if math.isfinite(price) else None
