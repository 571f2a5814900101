from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from stopsim.api.state import AppState, get_state, set_state
from stopsim.infrastructure.logging.logging import configure_logging, get_logger
from stopsim.infrastructure.utils.config import StopSimConfig, get_config
from stopsim.infrastructure.utils.timeutils import MAX_EPOCH_MS, MIN_EPOCH_MS
from stopsim.models.errors import MalformedBar, StopSimError, UpstreamError
from stopsim.models.market_models import Candle
from stopsim.services.market.candle_service import CandleService
from stopsim.services.simulation.stop_simulator import simulate_stops

JsonDict = Dict[str, Any]

log = get_logger("api")


# --------- Schemas ---------
class CandlePayload(BaseModel):
    start_time: int = Field(ge=MIN_EPOCH_MS, le=MAX_EPOCH_MS)
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    turnover: float = 0.0

    def to_candle(self) -> Candle:
        return Candle(**self.model_dump())


class SimulateStopsPayload(BaseModel):
    """Body of POST /api/simulate-stops. entry_price is validated by the engine, not here."""

    entry_price: Any = None
    direction: Any = "LONG"
    candles: List[CandlePayload] = Field(default_factory=list)
    stop_percents: Optional[List[Any]] = None


def parse_stops(stops: Optional[str]) -> Optional[List[float]]:
    """``"10,15, 20"`` -> [10.0, 15.0, 20.0]; unparsable items dropped; empty -> None."""
    if not stops:
        return None
    out: List[float] = []
    for part in stops.split(","):
        try:
            out.append(float(part.strip()))
        except ValueError:
            continue
    return out or None


def error_status(exc: StopSimError) -> int:
    if isinstance(exc, UpstreamError):
        return exc.status if exc.status and exc.status >= 400 else 502
    if isinstance(exc, MalformedBar) and exc.upstream:
        return 502
    return 400


def create_app(config: Optional[StopSimConfig] = None, client: Any = None) -> FastAPI:
    config = config or get_config()
    configure_logging(config.log_level)
    set_state(AppState(config=config, service=CandleService.from_config(config, client)))

    app = FastAPI(title="Bybit Stop Simulator API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StopSimError)
    async def _stopsim_error_handler(request: Request, exc: StopSimError) -> JSONResponse:
        status = error_status(exc)
        level = "error" if status >= 500 else "info"
        getattr(log, level)("request_failed", path=request.url.path, status=status, error=exc.code)
        return JSONResponse(status_code=status, content=exc.to_dict())

    # --------- Routes ---------
    @app.get("/health")
    def health() -> JsonDict:
        return {"ok": True, "status": "ok", "env": get_state().config.environment}

    @app.get("/api/bybit")
    async def bybit_ticker(symbol: Optional[str] = None, category: str = "spot") -> JsonDict:
        return await get_state().service.get_ticker(symbol or "", category)

    @app.get("/api/price")
    async def last_price(symbol: Optional[str] = None) -> JsonDict:
        return await get_state().service.get_last_price(symbol or "")

    @app.get("/api/candles")
    async def candles(
        symbol: Optional[str] = None,
        category: Optional[str] = None,
        interval: str = "1",
        start: Optional[int] = None,
        end: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> JsonDict:
        out = await get_state().service.get_candles(
            symbol or "", category, interval, start=start, end=end, limit=limit
        )
        return {"ok": True, "raw": out["raw"], "candles": [c.to_dict() for c in out["candles"]]}

    @app.post("/api/simulate-stops")
    def simulate(payload: SimulateStopsPayload) -> JsonDict:
        result = simulate_stops(
            payload.entry_price,
            payload.direction,
            [c.to_candle() for c in payload.candles],
            payload.stop_percents,
            default_stop_percents=get_state().config.simulation.default_stop_percents,
        )
        return {"ok": True, **result.to_dict()}

    @app.get("/api/simulate-stops/since-entry")
    async def simulate_since_entry(
        symbol: Optional[str] = None,
        entry_price: Optional[str] = None,
        entry_date: Optional[str] = None,
        direction: str = "LONG",
        category: Optional[str] = None,
        interval: Optional[str] = None,
        stops: Optional[str] = None,
        include_candles: bool = False,
    ) -> JsonDict:
        s = get_state()
        out = await s.service.simulate_stops_since_entry(
            symbol or "",
            entry_price,
            entry_date,
            direction=direction,
            category=category,
            interval=interval or s.config.simulation.default_interval,
            stop_percents=parse_stops(stops),
            include_candles=include_candles,
        )
        return {"ok": True, **out}

    return app
