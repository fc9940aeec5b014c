"""Turn an optional search term into a ranked list of market snapshots."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from cryptopulse.schemas.market import MarketSnapshot
from cryptopulse.services.coingecko import CoinGeckoClient

logger = logging.getLogger("cryptopulse.resolver")

DEFAULT_LIMIT = 10


def _snapshots(items: Iterable[Any]) -> list[MarketSnapshot]:
    out: list[MarketSnapshot] = []
    for item in items:
        if not isinstance(item, dict) or not item.get("id"):
            continue
        out.append(MarketSnapshot.model_validate(item))
    return out


def ranked_search_ids(search_payload: Any, limit: int = DEFAULT_LIMIT) -> list[str]:
    """Coin ids from a /search response, de-duplicated in first-seen order."""
    coins = search_payload.get("coins") if isinstance(search_payload, dict) else None
    if not isinstance(coins, list):
        return []

    seen: dict[str, None] = {}
    for coin in coins:
        coin_id = coin.get("id") if isinstance(coin, dict) else None
        if coin_id and coin_id not in seen:
            seen[coin_id] = None
    return list(seen)[:limit]


class CoinResolver:
    """
    Empty term -> top coins by market cap.
    Otherwise -> /search for ids, then /coins/markets for exactly those ids,
    re-sorted into search rank (the markets endpoint ignores request order).

    Upstream errors propagate; fallback belongs to the cache.
    """

    def __init__(self, client: CoinGeckoClient, *, limit: int = DEFAULT_LIMIT) -> None:
        self._client = client
        self.limit = limit

    async def resolve(self, term: str = "") -> list[MarketSnapshot]:
        term = (term or "").strip()
        if not term:
            return await self._top()
        return await self._search(term)

    async def _top(self) -> list[MarketSnapshot]:
        data = await self._client.get_markets(per_page=self.limit, page=1)
        if not isinstance(data, list):
            logger.warning("markets returned %s instead of a list", type(data).__name__)
            return []
        return _snapshots(data[: self.limit])

    async def _search(self, term: str) -> list[MarketSnapshot]:
        ids = ranked_search_ids(await self._client.search(term), self.limit)
        if not ids:
            return []

        data = await self._client.get_markets(ids=ids, per_page=len(ids), page=None)
        if not isinstance(data, list):
            logger.warning("markets for ids=%s returned %s instead of a list", ids, type(data).__name__)
            return []

        rank = {coin_id: i for i, coin_id in enumerate(ids)}
        matched = [s for s in _snapshots(data) if s.id in rank]
        matched.sort(key=lambda s: rank[s.id])
        return matched[: self.limit]
