from __future__ import annotations

import pytest

from cryptopulse.services.errors import UpstreamTimeout
from cryptopulse.services.resolver import CoinResolver, ranked_search_ids
from cryptopulse.tests.fakes import market_row


def _search(*ids: str) -> dict:
    return {"coins": [{"id": i, "name": i} for i in ids]}


@pytest.mark.asyncio
async def test_top_coins_requests_first_page_by_market_cap(fake_client):
    fake_client.markets = [market_row(f"coin-{i}") for i in range(15)]

    result = await CoinResolver(fake_client).resolve("")

    assert [c.id for c in result] == [f"coin-{i}" for i in range(10)]
    assert fake_client.calls == [("markets", {"per_page": 10, "page": 1})]


@pytest.mark.asyncio
async def test_top_coins_non_list_response_is_empty(fake_client):
    fake_client.markets = {"status": {"error_code": 0}}
    assert await CoinResolver(fake_client).resolve("   ") == []


@pytest.mark.asyncio
async def test_search_preserves_search_rank_not_market_order(fake_client):
    fake_client.search_result = _search("bitcoin", "bitcoin-cash")
    fake_client.markets = [market_row("bitcoin-cash", 300.0), market_row("bitcoin", 60000.0)]

    result = await CoinResolver(fake_client).resolve("bitcoin")

    assert [c.id for c in result] == ["bitcoin", "bitcoin-cash"]
    name, kwargs = fake_client.calls[1]
    assert name == "markets"
    assert kwargs["ids"] == ["bitcoin", "bitcoin-cash"]
    assert kwargs["per_page"] == 2


@pytest.mark.asyncio
async def test_search_trims_term_and_skips_markets_when_nothing_matches(fake_client):
    fake_client.search_result = {"coins": []}

    assert await CoinResolver(fake_client).resolve("  zzzz  ") == []
    assert fake_client.calls == [("search", {"query": "zzzz"})]


@pytest.mark.asyncio
async def test_search_drops_unrequested_ids_and_caps_at_ten(fake_client):
    ids = [f"c{i}" for i in range(14)]
    fake_client.search_result = _search(*ids)
    fake_client.markets = [market_row(i) for i in reversed(ids)] + [market_row("intruder")]

    result = await CoinResolver(fake_client).resolve("c")

    assert [c.id for c in result] == ids[:10]


@pytest.mark.asyncio
async def test_upstream_errors_propagate(fake_client):
    fake_client.error = UpstreamTimeout("slow")
    with pytest.raises(UpstreamTimeout):
        await CoinResolver(fake_client).resolve("")


def test_ranked_search_ids_dedupes_in_first_seen_order():
    payload = {"coins": [{"id": "b"}, {"id": "a"}, {"id": "b"}, {"name": "no id"}, "junk", {"id": "c"}]}
    assert ranked_search_ids(payload) == ["b", "a", "c"]
    assert ranked_search_ids({"coins": None}) == []
    assert ranked_search_ids(None) == []
