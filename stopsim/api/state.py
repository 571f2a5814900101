from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from stopsim.infrastructure.utils.config import StopSimConfig
from stopsim.services.market.candle_service import CandleService


@dataclass
class AppState:
    config: StopSimConfig
    service: CandleService


_state: Optional[AppState] = None


def set_state(state: AppState) -> None:
    global _state
    _state = state


def get_state() -> AppState:
    if _state is None:
        raise RuntimeError("API state not initialized. Build the app with create_app() first.")
    return _state
