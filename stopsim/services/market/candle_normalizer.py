"""Convert Bybit kline rows into Candle records.

Bybit row format: ``[startTime, open, high, low, close, volume, turnover]``,
every field a string. Rows are kept in provider order (Bybit returns newest first).

Policy for bad rows: a row with fewer than 7 fields, or a field that is not a
finite number, or a start time a datetime cannot hold, rejects the whole sequence
with MalformedBar. OHLC consistency (low <= open/close <= high) is not checked.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, List, Optional, Sequence

from stopsim.infrastructure.utils.timeutils import MAX_EPOCH_MS, MIN_EPOCH_MS
from stopsim.models.errors import MalformedBar
from stopsim.models.market_models import Candle

FIELDS = ("start_time", "open", "high", "low", "close", "volume", "turnover")


def _to_float(value: Any, index: int, name: str) -> float:
    if isinstance(value, bool):
        raise MalformedBar(index, f"{name}={value!r} is not numeric")
    try:
        out = float(value)
    except (TypeError, ValueError) as e:
        raise MalformedBar(index, f"{name}={value!r} is not numeric") from e
    if not math.isfinite(out):
        raise MalformedBar(index, f"{name}={value!r} is not finite")
    return out


def _to_epoch_ms(value: Any, index: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        ts = value
    else:
        f = _to_float(value, index, "start_time")
        if f != int(f):
            raise MalformedBar(index, f"start_time={value!r} is not an integer")
        ts = int(f)
    if not MIN_EPOCH_MS <= ts <= MAX_EPOCH_MS:
        raise MalformedBar(index, f"start_time={value!r} is out of range")
    return ts


def normalize_row(row: Sequence[Any], index: int = 0) -> Candle:
    if not isinstance(row, (list, tuple)):
        raise MalformedBar(index, f"expected a {len(FIELDS)}-field array, got {type(row).__name__}")
    if len(row) < len(FIELDS):
        raise MalformedBar(index, f"expected {len(FIELDS)} fields, got {len(row)}")

    return Candle(
        start_time=_to_epoch_ms(row[0], index),
        open=_to_float(row[1], index, "open"),
        high=_to_float(row[2], index, "high"),
        low=_to_float(row[3], index, "low"),
        close=_to_float(row[4], index, "close"),
        volume=_to_float(row[5], index, "volume"),
        turnover=_to_float(row[6], index, "turnover"),
    )


def normalize_klines(rows: Optional[Iterable[Sequence[Any]]]) -> List[Candle]:
    """One Candle per row, input order preserved. None/empty -> []."""
    if not rows:
        return []
    return [normalize_row(row, i) for i, row in enumerate(rows)]


def extract_kline_rows(envelope: Any) -> List[Sequence[Any]]:
    """``envelope["result"]["list"]`` or [] when any level is missing."""
    if not isinstance(envelope, dict):
        return []
    result = envelope.get("result") or {}
    if not isinstance(result, dict):
        return []
    rows = result.get("list") or []
    return list(rows) if isinstance(rows, list) else []
