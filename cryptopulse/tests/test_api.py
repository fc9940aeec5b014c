from __future__ import annotations

import dataclasses

import pytest
from fastapi.testclient import TestClient

from cryptopulse.api.health import build_ready_payload
from cryptopulse.config.settings import Settings
from cryptopulse.main import create_app
from cryptopulse.services.errors import UpstreamHttpError, UpstreamTimeout
from cryptopulse.tests.fakes import market_row


@pytest.fixture()
def api(fake_client):
    settings = dataclasses.replace(Settings.from_env(), BROADCAST_ENABLED=False)
    app = create_app(settings, client=fake_client)
    with TestClient(app) as client:
        yield client, fake_client, app


def test_root_is_liveness(api):
    client, _, _ = api
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "message": "CryptoPulse API"}


def test_options_short_circuits_with_cors(api):
    client, fake, _ = api
    resp = client.options("/api/coins", headers={"Origin": "https://viewer.example"})
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"
    assert fake.calls == []


def test_preflight_with_custom_headers_is_allowed(api):
    client, fake, _ = api
    resp = client.options(
        "/api/coins",
        headers={
            "Origin": "https://viewer.example",
            "Access-Control-Request-Method": "GET",
            "Access-Control-Request-Headers": "authorization, x-requested-with",
        },
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "authorization" in resp.headers["access-control-allow-headers"].lower()
    assert fake.calls == []


def test_list_coins_top_then_cached(api):
    client, fake, _ = api

    first = client.get("/api/coins")
    second = client.get("/api")

    assert first.status_code == 200
    assert [c["id"] for c in first.json()] == ["bitcoin", "ethereum"]
    assert second.json() == first.json()
    assert fake.count("markets") == 1
    assert first.json()[0]["price_change_percentage_24h_in_currency"] == -1.2


def test_search_scenario_keeps_search_rank(api):
    client, fake, _ = api
    fake.search_result = {"coins": [{"id": "bitcoin"}, {"id": "bitcoin-cash"}]}
    fake.markets = [market_row("bitcoin-cash", 300.0), market_row("bitcoin", 60000.0)]

    resp = client.get("/api/coins", params={"search": "Bitcoin"})

    assert resp.status_code == 200
    assert [c["id"] for c in resp.json()] == ["bitcoin", "bitcoin-cash"]


def test_list_coins_failure_is_500(api):
    client, fake, _ = api
    fake.error = UpstreamTimeout("timed out")

    resp = client.get("/api/coins", params={"search": "eth"})

    assert resp.status_code == 500
    assert resp.json() == {"status": 500, "message": "Internal server error"}


def test_short_suggestion_query_skips_upstream(api):
    client, fake, _ = api
    resp = client.get("/api/suggestions", params={"q": "b"})
    assert resp.status_code == 200
    assert resp.json() == []
    assert fake.calls == []


def test_suggestions_map_search_results(api):
    client, fake, _ = api
    fake.search_result = {
        "coins": [
            {"id": "bitcoin", "name": "Bitcoin", "symbol": "BTC", "thumb": "t.png", "large": "l.png"},
            {"id": "wrapped-bitcoin", "name": "Wrapped Bitcoin", "symbol": "WBTC", "large": "w.png"},
        ]
    }

    resp = client.get("/api/suggestions", params={"q": " bit "})

    assert resp.json() == [
        {"id": "bitcoin", "name": "Bitcoin", "symbol": "BTC", "image": "t.png", "thumb": "t.png"},
        {"id": "wrapped-bitcoin", "name": "Wrapped Bitcoin", "symbol": "WBTC", "image": "w.png", "thumb": "w.png"},
    ]
    assert fake.calls == [("search", {"query": "bit"})]


def test_suggestions_failure_is_empty_200(api):
    client, fake, _ = api
    fake.error = UpstreamHttpError("rate limited", status_code=429)
    resp = client.get("/api/suggestions", params={"q": "bitcoin"})
    assert resp.status_code == 200
    assert resp.json() == []


def test_coin_detail_merges_price_history(api):
    client, fake, _ = api

    resp = client.get("/api/coin/bitcoin")

    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == "bitcoin"
    assert body["name"] == "Bitcoin"
    assert body["market_data"] == {"current_price": {"usd": 1}}
    assert body["priceHistory24h"] == [[1700000000000, 60000.5], [1700000300000, 60010.0]]
    assert {name for name, _ in fake.calls} == {"coin", "chart"}
    assert ("chart", {"coin_id": "bitcoin", "days": 2}) in fake.calls


def test_coin_detail_without_prices_gets_empty_history(api):
    client, fake, _ = api
    fake.chart = {}
    resp = client.get("/api/coin/bitcoin")
    assert resp.json()["priceHistory24h"] == []


def test_coin_detail_requires_id(api):
    client, fake, _ = api
    resp = client.get("/api/coin")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Coin ID is required"}
    assert fake.calls == []


def test_coin_detail_failure_surfaces_provider_message(api):
    client, fake, _ = api
    fake.error = UpstreamHttpError("coin not found", status_code=404, provider_message="coin not found")

    resp = client.get("/api/coin/not-a-coin")

    assert resp.status_code == 500
    assert resp.json() == {"status": 500, "message": "Internal server error", "error": "coin not found"}


def test_ready_reports_cache_and_disabled_broadcaster(api):
    client, _, _ = api
    client.get("/api/coins")

    resp = client.get("/ready")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["checks"]["broadcaster"]["enabled"] is False
    assert body["checks"]["cache"]["keys"] == 1


def test_ready_degraded_when_enabled_broadcaster_is_not_running(fake_client):
    settings = dataclasses.replace(Settings.from_env(), BROADCAST_ENABLED=True)
    app = create_app(settings, client=fake_client)

    payload = build_ready_payload(app.state.broadcaster, app.state.cache, app.state.settings)

    assert payload["status"] == "degraded"
    assert payload["degraded_reasons"] == ["broadcaster_unavailable"]
    assert payload["checks"]["broadcaster"]["enabled"] is True


def test_server_error_shape_is_documented(api):
    client, _, _ = api
    schema = client.get("/openapi.json").json()

    assert "500" in schema["paths"]["/api/coins"]["get"]["responses"]
    assert set(schema["components"]["schemas"]["ErrorPayload"]["properties"]) == {"status", "message", "error"}


def test_websocket_ignores_binary_frames(api):
    client, _, _ = api

    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json() == {"event": "coinsData", "data": []}

        ws.send_bytes(b"\x00\x01binary")
        ws.send_json({"event": "requestCoins"})
        frame = ws.receive_json()
        assert frame["event"] == "coinsData"
        assert [c["id"] for c in frame["data"]] == ["bitcoin", "ethereum"]


def test_websocket_session_flow(api):
    client, fake, _ = api
    fake.search_result = {"coins": [{"id": "ethereum"}]}

    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json() == {"event": "coinsData", "data": []}

        ws.send_json({"event": "searchCoins", "data": "eth"})
        frame = ws.receive_json()
        assert frame["event"] == "coinsData"
        assert [c["id"] for c in frame["data"]] == ["ethereum"]

        ws.send_text("not json")
        ws.send_json({"event": "requestCoins"})
        frame = ws.receive_json()
        assert frame["event"] == "coinsData"
        assert [c["id"] for c in frame["data"]] == ["bitcoin", "ethereum"]
