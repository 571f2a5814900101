"""Stop-loss hit simulation over historical candles.

Pure function: no I/O, no logging, no shared state.

For each requested stop percent a trigger price is derived from the entry
price (below entry for LONG, above for SHORT). Candles are walked once in
chronological order; the first candle whose low (LONG) or high (SHORT)
touches the trigger price, inclusive, freezes that stop as hit. Running
min(low)/max(high) are reported alongside.
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from stopsim.models.errors import InvalidEntryPrice
from stopsim.models.market_models import Candle
from stopsim.models.simulation_models import (
    Direction,
    SimulationResult,
    StopThreshold,
    is_finite_number,
    percent_key,
    trigger_price,
)

DEFAULT_STOP_PERCENTS: Sequence[float] = (10.0, 15.0, 20.0)


def validate_entry_price(entry_price: Any) -> float:
    if not is_finite_number(entry_price):
        raise InvalidEntryPrice(entry_price)
    price = float(entry_price)
    if price <= 0:
        raise InvalidEntryPrice(entry_price)
    return price


def effective_stop_percents(
    stop_percents: Optional[Iterable[Any]],
    default: Sequence[float] = DEFAULT_STOP_PERCENTS,
) -> List[float]:
    """Keep finite positive values (first occurrence wins ordering); fall back to ``default``."""
    out: List[float] = []
    seen: set[Decimal] = set()
    for p in stop_percents or ():
        if not is_finite_number(p):
            continue
        pct = float(p)
        if pct <= 0:
            continue
        key = percent_key(pct)
        if key in seen:
            continue
        seen.add(key)
        out.append(pct)
    return out if out else [float(p) for p in default]


def _touches(candle: Candle, stop: StopThreshold, direction: Direction) -> bool:
    # NaN/inf prices never trigger.
    if direction is Direction.LONG:
        return math.isfinite(candle.low) and candle.low <= stop.trigger_price
    return math.isfinite(candle.high) and candle.high >= stop.trigger_price


def simulate_stops(
    entry_price: Any,
    direction: Any = Direction.LONG,
    candles: Optional[Iterable[Candle]] = None,
    stop_percents: Optional[Iterable[Any]] = None,
    *,
    default_stop_percents: Sequence[float] = DEFAULT_STOP_PERCENTS,
) -> SimulationResult:
    price = validate_entry_price(entry_price)
    dir_ = Direction.parse(direction)
    percents = effective_stop_percents(stop_percents, default_stop_percents)

    stops: Dict[Decimal, StopThreshold] = {}
    for pct in percents:
        stops[percent_key(pct)] = StopThreshold(percent=pct, trigger_price=trigger_price(price, pct, dir_))

    # Provider order is newest-first; sorted() is stable for equal start times.
    ordered = sorted(candles or (), key=lambda c: c.start_time)

    min_low = math.inf
    max_high = -math.inf
    pending = list(stops.values())

    for c in ordered:
        if math.isfinite(c.low) and c.low < min_low:
            min_low = c.low
        if math.isfinite(c.high) and c.high > max_high:
            max_high = c.high

        if not pending:
            continue

        still_pending: List[StopThreshold] = []
        for s in pending:
            if _touches(c, s, dir_):
                s.mark_hit(c.start_time, c.start_time_iso)
            else:
                still_pending.append(s)
        pending = still_pending

    return SimulationResult(
        min_low_since_entry=None if min_low == math.inf else min_low,
        max_high_since_entry=None if max_high == -math.inf else max_high,
        stops=stops,
    )
