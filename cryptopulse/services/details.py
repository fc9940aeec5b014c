from __future__ import annotations

import asyncio
from typing import Any

from cryptopulse.schemas.market import CoinDetail
from cryptopulse.services.coingecko import CoinGeckoClient
from cryptopulse.services.errors import UpstreamMalformed

HISTORY_DAYS = 2


async def get_coin_detail(client: CoinGeckoClient, coin_id: str) -> CoinDetail:
    """
    Coin metadata and its 2-day price chart, fetched together and merged.
    If either request fails the whole call fails.
    """
    metadata, chart = await asyncio.gather(
        client.get_coin(coin_id),
        client.get_market_chart(coin_id, days=HISTORY_DAYS),
    )

    if not isinstance(metadata, dict):
        raise UpstreamMalformed(f"coin payload for '{coin_id}' is not an object")

    prices: Any = chart.get("prices") if isinstance(chart, dict) else None
    return CoinDetail.model_validate({**metadata, "priceHistory24h": prices or []})
