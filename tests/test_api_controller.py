import pytest
from fastapi.testclient import TestClient

from stopsim.controllers.api_controller import create_app, parse_stops
from stopsim.infrastructure.utils.config import StopSimConfig
from stopsim.infrastructure.utils.timeutils import now_ms
from stopsim.models.errors import UpstreamError
from tests.helpers import MINUTE, T0, FakeBybitClient, kline_row


def _api(client: FakeBybitClient) -> TestClient:
    return TestClient(create_app(StopSimConfig(), client=client))


def test_health():
    r = _api(FakeBybitClient()).get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_simulate_stops_post():
    payload = {
        "entry_price": 100,
        "direction": "long",
        "stop_percents": [10],
        "candles": [
            {"start_time": T0 + MINUTE, "open": 91, "high": 92, "low": 89, "close": 90},
            {"start_time": T0, "open": 100, "high": 105, "low": 95, "close": 97},
        ],
    }
    r = _api(FakeBybitClient()).post("/api/simulate-stops", json=payload)

    assert r.status_code == 200
    body = r.json()
    assert body["min_low_since_entry"] == 89
    assert body["stops"]["10"]["hit"] is True
    assert body["stops"]["10"]["first_hit_time"] == T0 + MINUTE


@pytest.mark.parametrize(
    "payload, code",
    [
        ({"entry_price": 0, "candles": []}, "invalid_entry_price"),
        ({"candles": []}, "invalid_entry_price"),
        ({"entry_price": 100, "direction": "sideways"}, "invalid_direction"),
    ],
)
def test_simulate_stops_validation_errors(payload, code):
    r = _api(FakeBybitClient()).post("/api/simulate-stops", json=payload)
    assert r.status_code == 400
    assert r.json()["error"] == code


def test_since_entry_route(newest_first_rows):
    client = FakeBybitClient(rows=newest_first_rows)
    r = _api(client).get(
        "/api/simulate-stops/since-entry",
        params={"symbol": "BTCUSDT", "entry_price": "100", "entry_date": str(T0), "stops": "10, 15,abc"},
    )

    assert r.status_code == 200
    body = r.json()
    assert body["meta"]["stop_percents"] == [10.0, 15.0]
    assert body["meta"]["bars_requested"] <= 200
    assert body["meta"]["candles_received"] == 4
    assert body["result"]["stops"]["10"]["first_hit_time"] == T0 + MINUTE
    assert client.kline_calls[0]["start"] == T0


def test_since_entry_future_date_is_400():
    client = FakeBybitClient()
    future = now_ms() + 3_600_000
    r = _api(client).get(
        "/api/simulate-stops/since-entry",
        params={"symbol": "BTCUSDT", "entry_price": "100", "entry_date": str(future)},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "future_entry_date"
    assert client.kline_calls == []


def test_upstream_failure_maps_to_gateway_status():
    client = FakeBybitClient(kline_error=UpstreamError("Upstream returned non-JSON", status=403, body_preview="<html>"))
    r = _api(client).get("/api/candles", params={"symbol": "BTCUSDT"})
    assert r.status_code == 403
    assert r.json()["body_preview"] == "<html>"

    client = FakeBybitClient(kline_error=UpstreamError("timeout"))
    r = _api(client).get("/api/candles", params={"symbol": "BTCUSDT"})
    assert r.status_code == 502
    assert r.json()["error"] == "upstream_error"


def test_malformed_provider_rows_are_a_gateway_error():
    client = FakeBybitClient(rows=[kline_row(T0, 1, 2, 1, 2)[:4]])
    r = _api(client).get("/api/candles", params={"symbol": "BTCUSDT"})
    assert r.status_code == 502
    body = r.json()
    assert body["error"] == "malformed_bar"
    assert body["source"] == "upstream"

    r = _api(client).get(
        "/api/simulate-stops/since-entry",
        params={"symbol": "BTCUSDT", "entry_price": "100", "entry_date": str(T0)},
    )
    assert r.status_code == 502


@pytest.mark.parametrize("start_time", [10**17, -(10**17)])
def test_simulate_stops_post_rejects_unrepresentable_start_time(start_time):
    payload = {
        "entry_price": 100,
        "stop_percents": [10],
        "candles": [{"start_time": start_time, "open": 91, "high": 92, "low": 89, "close": 90}],
    }
    r = _api(FakeBybitClient()).post("/api/simulate-stops", json=payload)
    assert r.status_code == 422


def test_candles_route(newest_first_rows):
    r = _api(FakeBybitClient(rows=newest_first_rows)).get(
        "/api/candles", params={"symbol": "BTCUSDT", "interval": "5", "limit": 4}
    )
    assert r.status_code == 200
    body = r.json()
    assert len(body["candles"]) == 4
    assert body["candles"][-1]["start_time_iso"] == "2024-05-01T12:00:00.000Z"


def test_ticker_requires_symbol():
    r = _api(FakeBybitClient()).get("/api/bybit")
    assert r.status_code == 400
    assert r.json()["error"] == "missing_symbol"


def test_price_route():
    r = _api(FakeBybitClient(tickers={"linear": "101.5"})).get("/api/price", params={"symbol": "BTCUSDT"})
    assert r.status_code == 200
    assert r.json()["last_price"] == 101.5


def test_parse_stops():
    assert parse_stops(None) is None
    assert parse_stops("") is None
    assert parse_stops("x,y") is None
    assert parse_stops("5, 7.5") == [5.0, 7.5]
