import asyncio

import httpx
import pytest

from stopsim.infrastructure.bybit.bybit_http_client import BybitHTTPClient
from stopsim.models.errors import UpstreamError


def _client(handler) -> BybitHTTPClient:
    return BybitHTTPClient("https://api.bybit.test/", transport=httpx.MockTransport(handler))


def test_get_klines_sends_params_and_returns_envelope():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["accept"] = request.headers.get("accept")
        return httpx.Response(200, json={"retCode": 0, "retMsg": "OK", "result": {"list": [["1", "2"]]}})

    data = asyncio.run(_client(handler).get_klines("BTCUSDT", "linear", "15", start=1000, limit=60))

    assert data["result"]["list"] == [["1", "2"]]
    assert seen["path"] == "/v5/market/kline"
    assert seen["params"] == {"category": "linear", "symbol": "BTCUSDT", "interval": "15", "start": "1000", "limit": "60"}
    assert seen["accept"] == "application/json"


def test_get_tickers_path():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v5/market/tickers"
        assert request.url.params["category"] == "spot"
        return httpx.Response(200, json={"retCode": 0, "result": {"list": [{"lastPrice": "1.5"}]}})

    data = asyncio.run(_client(handler).get_tickers("ETHUSDT", "spot"))
    assert data["result"]["list"][0]["lastPrice"] == "1.5"


def test_html_error_page_is_upstream_error():
    page = "<html><body>403 ERROR The request could not be satisfied. CloudFront</body></html>" * 10

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, html=page)

    with pytest.raises(UpstreamError) as exc:
        asyncio.run(_client(handler).get_klines("BTCUSDT", "linear", "1"))

    assert exc.value.status == 403
    assert exc.value.details["body_preview"] == page[:400]
    assert "non-JSON" in exc.value.message


def test_invalid_json_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"{not json", headers={"content-type": "application/json"})

    with pytest.raises(UpstreamError, match="JSON parse failed"):
        asyncio.run(_client(handler).get_klines("BTCUSDT", "linear", "1"))


def test_nonzero_ret_code():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"retCode": 10001, "retMsg": "params error: symbol invalid", "result": {}})

    with pytest.raises(UpstreamError) as exc:
        asyncio.run(_client(handler).get_klines("NOPE", "linear", "1"))

    assert exc.value.to_dict()["ret_code"] == 10001
    assert "symbol invalid" in exc.value.message


def test_transport_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError, match="request failed"):
        asyncio.run(_client(handler).get_tickers("BTCUSDT", "spot"))
