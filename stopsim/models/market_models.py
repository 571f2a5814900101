"""Market domain models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from stopsim.infrastructure.utils.timeutils import ms_to_iso


@dataclass(frozen=True)
class Candle:
    """One OHLCV bar. ``start_time`` is the bar open in epoch ms."""

    start_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    turnover: float = 0.0

    @property
    def start_time_iso(self) -> str:
        return ms_to_iso(self.start_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time": self.start_time,
            "start_time_iso": self.start_time_iso,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
            "turnover": self.turnover,
        }
