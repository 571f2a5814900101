"""Typed failures surfaced to callers.

Every error carries a stable ``code`` (mapped to an HTTP status by the routing
layer) and serializes to ``{"error": code, "message": ..., **details}``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

JsonDict = Dict[str, Any]


class StopSimError(Exception):
    code = "stopsim_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> JsonDict:
        return {"error": self.code, "message": self.message, **self.details}


class ValidationFailure(StopSimError, ValueError):
    """Local input validation failure (never partially computed)."""

    code = "validation_error"


class InvalidEntryPrice(ValidationFailure):
    code = "invalid_entry_price"

    def __init__(self, value: Any) -> None:
        super().__init__(f"entry_price must be a finite positive number, got {value!r}", value=repr(value))


class InvalidDirection(ValidationFailure):
    code = "invalid_direction"

    def __init__(self, value: Any) -> None:
        super().__init__(f"direction must be LONG or SHORT, got {value!r}", value=repr(value))


class InvalidEntryDate(ValidationFailure):
    code = "invalid_entry_date"

    def __init__(self, value: Any) -> None:
        super().__init__(f"entry_date is not a valid ISO-8601 date or epoch ms: {value!r}", value=repr(value))


class FutureEntryDate(ValidationFailure):
    code = "future_entry_date"

    def __init__(self, entry_timestamp: int, now: int) -> None:
        super().__init__(
            "entry date must be strictly in the past",
            entry_timestamp=entry_timestamp,
            now=now,
        )


class InvalidInterval(ValidationFailure):
    code = "invalid_interval"

    def __init__(self, value: Any) -> None:
        super().__init__(f"unsupported interval {value!r}", value=repr(value))


class MissingSymbol(ValidationFailure):
    code = "missing_symbol"

    def __init__(self) -> None:
        super().__init__("Missing 'symbol' (example: symbol=BTCUSDT)")


class MalformedBar(ValidationFailure):
    """A bar that cannot be normalized. ``upstream`` marks rows that came from the provider."""

    code = "malformed_bar"

    def __init__(self, index: int, reason: str, *, upstream: bool = False) -> None:
        super().__init__(
            f"raw bar #{index} is malformed: {reason}",
            index=index,
            source="upstream" if upstream else "request",
        )
        self.index = index
        self.reason = reason
        self.upstream = upstream


class UpstreamError(StopSimError, RuntimeError):
    """Market-data provider failure. Never retried."""

    code = "upstream_error"

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        body_preview: Optional[str] = None,
        ret_code: Optional[int] = None,
    ) -> None:
        details: JsonDict = {}
        if status is not None:
            details["status"] = status
        if body_preview is not None:
            details["body_preview"] = body_preview
        if ret_code is not None:
            details["ret_code"] = ret_code
        super().__init__(message, **details)
        self.status = status
