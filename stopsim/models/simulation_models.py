"""Stop simulation domain models."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from stopsim.models.errors import InvalidDirection

JsonDict = Dict[str, Any]


class Direction(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"

    @classmethod
    def parse(cls, value: Any) -> "Direction":
        """Case-insensitive parse; anything else is InvalidDirection."""
        if isinstance(value, Direction):
            return value
        if not isinstance(value, str):
            raise InvalidDirection(value)
        try:
            return cls(value.strip().upper())
        except ValueError as e:
            raise InvalidDirection(value) from e


def percent_key(percent: float) -> Decimal:
    """Canonical mapping key for a stop percent: 10, 10.0 and "10" collapse to one key."""
    return Decimal(repr(float(percent))).normalize()


def format_percent(key: Decimal) -> str:
    """``Decimal('1E+1')`` -> ``"10"``, ``Decimal('12.5')`` -> ``"12.5"``."""
    return format(key, "f")


def trigger_price(entry_price: float, percent: float, direction: Direction) -> float:
    factor = percent / 100.0
    if direction is Direction.LONG:
        return entry_price * (1.0 - factor)
    return entry_price * (1.0 + factor)


@dataclass
class StopThreshold:
    percent: float
    trigger_price: float
    hit: bool = False
    first_hit_time: Optional[int] = None
    first_hit_time_iso: Optional[str] = None

    def mark_hit(self, start_time: int, start_time_iso: str) -> None:
        # First touch only.
        if self.hit:
            return
        self.hit = True
        self.first_hit_time = start_time
        self.first_hit_time_iso = start_time_iso

    def to_dict(self) -> JsonDict:
        return {
            "percent": self.percent,
            "trigger_price": self.trigger_price,
            "hit": self.hit,
            "first_hit_time": self.first_hit_time,
            "first_hit_time_iso": self.first_hit_time_iso,
        }


@dataclass
class SimulationResult:
    min_low_since_entry: Optional[float]
    max_high_since_entry: Optional[float]
    stops: Dict[Decimal, StopThreshold] = field(default_factory=dict)

    def stop(self, percent: float) -> StopThreshold:
        return self.stops[percent_key(percent)]

    def to_dict(self) -> JsonDict:
        return {
            "min_low_since_entry": self.min_low_since_entry,
            "max_high_since_entry": self.max_high_since_entry,
            "stops": {format_percent(k): s.to_dict() for k, s in self.stops.items()},
        }


@dataclass(frozen=True)
class LookbackWindow:
    entry_timestamp: int
    now: int
    interval_minutes: int
    elapsed_ms: int
    bars_needed: int
    bars_capped: int
    max_page_size: int

    @property
    def truncated(self) -> bool:
        return self.bars_needed > self.bars_capped


def is_finite_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False
