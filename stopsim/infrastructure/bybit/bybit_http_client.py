"""Bybit v5 public market REST client (httpx, async).

Single-shot calls: no retries, no backoff. Any transport failure, non-JSON
body (CloudFront/edge HTML error pages) or non-zero ``retCode`` raises
UpstreamError.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

import httpx

from stopsim.infrastructure.logging.logging import get_logger
from stopsim.models.errors import UpstreamError

JsonDict = Dict[str, Any]

KLINE_PATH = "/v5/market/kline"
TICKERS_PATH = "/v5/market/tickers"

PREVIEW_CHARS = 400


class BybitHTTPClient:
    def __init__(
        self,
        base_url: str = "https://api.bybit.com",
        *,
        timeout_sec: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._logger = get_logger("bybit_http")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_sec
        self._transport = transport

    async def get_klines(
        self,
        symbol: str,
        category: str,
        interval: str,
        *,
        start: Optional[int] = None,
        end: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> JsonDict:
        params: Dict[str, str] = {
            "category": category,
            "symbol": symbol,
            "interval": str(interval),
        }
        if start is not None:
            params["start"] = str(start)
        if end is not None:
            params["end"] = str(end)
        if limit is not None:
            params["limit"] = str(limit)
        return await self._get_json(KLINE_PATH, params)

    async def get_tickers(self, symbol: str, category: str) -> JsonDict:
        return await self._get_json(TICKERS_PATH, {"category": category, "symbol": symbol})

    async def _get_json(self, path: str, params: Dict[str, str]) -> JsonDict:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            ) as cli:
                resp = await cli.get(path, params=params)
        except httpx.HTTPError as e:
            self._logger.error("bybit_request_failed", path=path, error=str(e))
            raise UpstreamError(f"Bybit request failed: {e}") from e

        content_type = resp.headers.get("content-type", "")
        text = resp.text

        if "application/json" not in content_type:
            self._logger.error("bybit_non_json", path=path, status=resp.status_code, body=text[:200])
            raise UpstreamError(
                "Upstream returned non-JSON (likely CloudFront error)",
                status=resp.status_code,
                body_preview=text[:PREVIEW_CHARS],
            )

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            self._logger.error("bybit_json_parse_failed", path=path, error=str(e), body=text[:200])
            raise UpstreamError(f"JSON parse failed: {e}", status=resp.status_code) from e

        if not isinstance(data, dict):
            raise UpstreamError("Unexpected Bybit payload (not an object)", status=resp.status_code)

        ret_code = data.get("retCode", 0)
        if ret_code not in (0, "0"):
            self._logger.warning("bybit_api_error", path=path, ret_code=ret_code, ret_msg=data.get("retMsg"))
            raise UpstreamError(
                f"Bybit API error: {data.get('retMsg') or 'unknown error'}",
                status=resp.status_code,
                ret_code=_as_int(ret_code),
            )

        if resp.status_code >= 400:
            raise UpstreamError(f"Bybit HTTP {resp.status_code}", status=resp.status_code)

        return data


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
